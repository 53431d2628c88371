from io import BytesIO
import logging

from PIL import Image, UnidentifiedImageError

from app.exceptions import ImageProcessingException
from app.image_processing.formats import ImageFormat

log = logging.getLogger(__name__)

JPEG_QUALITY = 85

PIL_FORMATS = {
    ImageFormat.JPEG: "JPEG",
    ImageFormat.PNG: "PNG",
    ImageFormat.GIF: "GIF",
}

def decode_image(data: bytes) -> Image.Image:
    """Decodes raster bytes into an RGB/RGBA (or grayscale) image."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.error(f"Image decode failed: {e}")
        raise ImageProcessingException(f"decoding image: {e}")

    if img.mode in ("RGB", "RGBA", "L", "LA"):
        return img
    has_alpha = "A" in img.getbands() or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")

def encode_image(img: Image.Image, image_format: ImageFormat) -> bytes:
    """Encodes back to the source format; the format never changes here."""
    pil_format = PIL_FORMATS.get(image_format)
    if pil_format is None:
        raise ImageProcessingException(f"unsupported output format: {image_format.value}")

    buf = BytesIO()
    try:
        if image_format is ImageFormat.JPEG:
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
            img.save(buf, format=pil_format, quality=JPEG_QUALITY)
        else:
            img.save(buf, format=pil_format)
    except (OSError, ValueError) as e:
        log.error(f"Image encode failed: {e}")
        raise ImageProcessingException(f"encoding image: {e}")
    return buf.getvalue()
