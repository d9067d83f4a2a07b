from favicon_studio.core.errors import (
    EmptyFileError,
    FileTooLargeError,
    InvalidDimensionsError,
    UnsupportedTypeError,
)
from favicon_studio.utils.helpers import human_readable_size

ALLOWED_MIME_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp", "image/svg+xml")
SVG_MIME_TYPE = "image/svg+xml"
MAX_FILE_BYTES = 10 * 1024 * 1024
MIN_DIMENSION = 32
MAX_DIMENSION = 8192

EXTENSION_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "svg": "image/svg+xml",
}


def mime_type_from_name(file_name: str) -> str | None:
    ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return EXTENSION_MIME_TYPES.get(ext)


def validate_upload(mime_type: str | None, byte_size: int) -> str:
    """Check type and size of an upload before decoding. Returns the normalized MIME type."""
    mime = (mime_type or "").lower()
    if mime not in ALLOWED_MIME_TYPES:
        raise UnsupportedTypeError(
            f"Invalid file type {mime or 'unknown'}. Please upload a PNG, JPEG, WEBP or SVG image."
        )
    if byte_size <= 0:
        raise EmptyFileError("The uploaded file is empty.")
    if byte_size > MAX_FILE_BYTES:
        raise FileTooLargeError(
            f"File is {human_readable_size(byte_size)}; the limit is {human_readable_size(MAX_FILE_BYTES)}."
        )
    return "image/jpeg" if mime == "image/jpg" else mime


def validate_dimensions(width: int, height: int) -> None:
    if not (MIN_DIMENSION <= width <= MAX_DIMENSION and MIN_DIMENSION <= height <= MAX_DIMENSION):
        raise InvalidDimensionsError(
            f"Image is {width}x{height}. Please use an image between "
            f"{MIN_DIMENSION}x{MIN_DIMENSION} and {MAX_DIMENSION}x{MAX_DIMENSION} pixels."
        )
