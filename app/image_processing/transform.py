"""
    Fit-mode geometry.

    Every mode is a pure function of (image, target width, target height)
    dispatched from `apply_fit`; a width or height of 0 means "keep the
    source dimension" on that axis.
"""
from enum import Enum
from typing import Callable, Dict, Tuple

from PIL import Image, ImageOps

RESAMPLE = Image.Resampling.LANCZOS
PAD_BACKGROUND = (255, 255, 255, 255)

class FitMode(str, Enum):
    SCALE_DOWN = "scale-down"
    CONTAIN = "contain"
    COVER = "cover"
    CROP = "crop"
    PAD = "pad"

    @classmethod
    def parse(cls, value: str) -> "FitMode":
        """Unrecognised values fall back to scale-down."""
        try:
            return cls(value)
        except ValueError:
            return cls.SCALE_DOWN

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls._value2member_map_

def contain_size(orig_w: int, orig_h: int, target_w: int, target_h: int) -> Tuple[int, int]:
    """Largest aspect-preserving size that fits inside the target box."""
    scale = min(target_w / orig_w, target_h / orig_h)
    new_w = max(1, int(orig_w * scale + 0.5))
    new_h = max(1, int(orig_h * scale + 0.5))
    return new_w, new_h

def fit_scale_down(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
    orig_w, orig_h = img.size
    if orig_w <= target_w and orig_h <= target_h:
        # never enlarges
        return img
    return img.resize(contain_size(orig_w, orig_h, target_w, target_h), RESAMPLE)

def fit_contain(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
    orig_w, orig_h = img.size
    return img.resize(contain_size(orig_w, orig_h, target_w, target_h), RESAMPLE)

def fit_cover(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
    return ImageOps.fit(img, (target_w, target_h), method=RESAMPLE, centering=(0.5, 0.5))

def fit_crop(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
    """Center crop without resizing; the crop box is clamped to the source bounds."""
    orig_w, orig_h = img.size
    crop_w = min(target_w, orig_w)
    crop_h = min(target_h, orig_h)
    left = (orig_w - crop_w) // 2
    top = (orig_h - crop_h) // 2
    return img.crop((left, top, left + crop_w, top + crop_h))

def fit_pad(img: Image.Image, target_w: int, target_h: int) -> Image.Image:
    fitted = fit_contain(img, target_w, target_h)
    mode = "RGBA" if "A" in fitted.getbands() else "RGB"
    if fitted.mode != mode:
        fitted = fitted.convert(mode)
    canvas = Image.new(mode, (target_w, target_h), PAD_BACKGROUND[:len(mode)])
    offset = ((target_w - fitted.width) // 2, (target_h - fitted.height) // 2)
    canvas.paste(fitted, offset)
    return canvas

FIT_FUNCTIONS: Dict[FitMode, Callable[[Image.Image, int, int], Image.Image]] = {
    FitMode.SCALE_DOWN: fit_scale_down,
    FitMode.CONTAIN: fit_contain,
    FitMode.COVER: fit_cover,
    FitMode.CROP: fit_crop,
    FitMode.PAD: fit_pad,
}

def apply_fit(img: Image.Image, width: int, height: int, fit: str) -> Image.Image:
    """Applies the requested fit mode and returns the resulting image."""
    orig_w, orig_h = img.size
    target_w = width if width > 0 else orig_w
    target_h = height if height > 0 else orig_h
    return FIT_FUNCTIONS[FitMode.parse(fit)](img, target_w, target_h)
