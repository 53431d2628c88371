from typing import Tuple
import logging

from app.exceptions import UnsupportedImageFormatException
from app.image_processing.codec import decode_image, encode_image
from app.image_processing.formats import ImageFormat, PASSTHROUGH_FORMATS, detect_format
from app.image_processing.transform import apply_fit

log = logging.getLogger(__name__)

def transform(data: bytes, width: int, height: int, fit: str) -> Tuple[bytes, ImageFormat]:
    """
        Runs sniff -> fit -> re-encode over an original and returns the output
        bytes with their format. GIF and SVG originals come back untouched.
    """
    image_format = detect_format(data)
    if image_format in PASSTHROUGH_FORMATS:
        return data, image_format
    if image_format is ImageFormat.UNKNOWN:
        raise UnsupportedImageFormatException()

    img = decode_image(data)
    source_size = img.size
    img = apply_fit(img, width, height, fit)
    log.debug("Transformed %s %s -> %s (fit=%s)", image_format.value, source_size, img.size, fit)
    return encode_image(img, image_format), image_format
