"""
    Format sniffing for stored originals.

    Raster formats are recognised by their magic bytes; SVG is recognised
    by markup near the start of the file and takes precedence.
"""
from enum import Enum

SVG_SNIFF_LENGTH = 512
PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

class ImageFormat(str, Enum):
    JPEG = "jpeg"
    PNG = "png"
    GIF = "gif"
    WEBP = "webp"
    SVG = "svg"
    UNKNOWN = "unknown"

CONTENT_TYPES = {
    ImageFormat.JPEG: "image/jpeg",
    ImageFormat.PNG: "image/png",
    ImageFormat.GIF: "image/gif",
    ImageFormat.WEBP: "image/webp",
    ImageFormat.SVG: "image/svg+xml",
}

# Formats that are served byte-identical to the stored original
PASSTHROUGH_FORMATS = {ImageFormat.GIF, ImageFormat.SVG}

def is_svg(data: bytes) -> bool:
    """True when an `<svg` tag appears in the first 512 bytes."""
    if not data:
        return False
    return b"<svg" in data[:SVG_SNIFF_LENGTH]

def detect_raster_format(data: bytes) -> ImageFormat:
    if data[:3] == b"\xff\xd8\xff":
        return ImageFormat.JPEG
    if data[:8] == PNG_SIGNATURE:
        return ImageFormat.PNG
    if len(data) >= 6 and data[:3] == b"GIF":
        return ImageFormat.GIF
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ImageFormat.WEBP
    return ImageFormat.UNKNOWN

def detect_format(data: bytes) -> ImageFormat:
    """Classifies raw bytes, checking for SVG before any magic bytes."""
    if is_svg(data):
        return ImageFormat.SVG
    return detect_raster_format(data)

def content_type_for(image_format: ImageFormat) -> str:
    return CONTENT_TYPES.get(image_format, "application/octet-stream")
