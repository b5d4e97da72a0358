import mimetypes
from io import BytesIO

from PIL import Image, UnidentifiedImageError

_PREFERRED_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/tiff": ".tif",
    "image/svg+xml": ".svg",
}


def default_extension(mime_type: str) -> str:
    ext = _PREFERRED_EXTENSIONS.get(mime_type.lower()) or mimetypes.guess_extension(mime_type)
    return ext or ".bin"


def sniff_image_mime_type(raw: bytes) -> str:
    """Detect the MIME type of raw image bytes, raising ValueError for non-images."""
    try:
        with Image.open(BytesIO(raw)) as im:
            fmt = im.format
    except (UnidentifiedImageError, OSError) as exc:
        raise ValueError("Not a recognised image") from exc
    mime_type = Image.MIME.get(fmt or "")
    if not mime_type:
        raise ValueError(f"Unsupported image format: {fmt}")
    return mime_type
