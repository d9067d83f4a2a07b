import asyncio
import logging
import re
import xml.etree.ElementTree as ET
from io import BytesIO

from PIL import Image, UnidentifiedImageError

from favicon_studio.core.errors import (
    DecodeFailureError,
    DecodeTimeoutError,
    InvalidDimensionsError,
    RenderingUnsupportedError,
)
from favicon_studio.core.models import SourceImage
from favicon_studio.utils.validators import (
    MAX_DIMENSION,
    MIN_DIMENSION,
    SVG_MIME_TYPE,
    mime_type_from_name,
    validate_dimensions,
    validate_upload,
)

logger = logging.getLogger(__name__)

DECODE_TIMEOUT_SECONDS = 30.0
# Longest side used when rasterizing SVG sources that carry no pixel size.
SVG_RASTER_SIZE = 1024

_DECODE_FAILURE_MESSAGE = "Failed to load image. Please ensure the file is a valid image format (PNG, JPG, WEBP, SVG)."

_PX_LENGTH_RE = re.compile(r"^\s*([0-9]*\.?[0-9]+)\s*(px)?\s*$")


def svg_intrinsic_size(data: bytes) -> tuple[int, int] | None:
    """
    Pixel width/height declared on the root <svg> element, or None when the
    document is sized only by its viewBox (or in relative units).
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise DecodeFailureError(f"Failed to parse SVG: {e}") from e
    width = _PX_LENGTH_RE.match(root.get("width", ""))
    height = _PX_LENGTH_RE.match(root.get("height", ""))
    if not width or not height:
        return None
    return int(round(float(width.group(1)))), int(round(float(height.group(1))))


def _rasterize_svg(data: bytes) -> tuple[Image.Image, tuple[int, int] | None]:
    intrinsic = svg_intrinsic_size(data)
    if intrinsic is not None:
        validate_dimensions(*intrinsic)
    try:
        import cairosvg
    except (ImportError, OSError) as e:
        raise RenderingUnsupportedError("SVG sources require cairosvg and the Cairo library.") from e
    kwargs = {}
    if intrinsic is None:
        kwargs["output_width"] = SVG_RASTER_SIZE
    elif max(intrinsic) > 0:
        kwargs["scale"] = max(1.0, SVG_RASTER_SIZE / max(intrinsic))
    try:
        png_data = cairosvg.svg2png(bytestring=data, **kwargs)
    except Exception as e:
        # cairosvg surfaces malformed documents through a variety of exception types
        raise DecodeFailureError(f"Failed to render SVG: {e}") from e
    return Image.open(BytesIO(png_data)).convert("RGBA"), intrinsic


def _decode_bytes(data: bytes, mime_type: str) -> tuple[Image.Image, tuple[int, int] | None]:
    """
    Blocking decode. Returns the RGBA bitmap and the natural size to validate
    (None for vector sources without a pixel size).
    """
    if mime_type == SVG_MIME_TYPE:
        return _rasterize_svg(data)
    try:
        img = Image.open(BytesIO(data))
    except Image.DecompressionBombError as e:
        # only images far past MAX_DIMENSION on a side trip the bomb guard
        raise InvalidDimensionsError(
            f"Image is too large. Please use an image between "
            f"{MIN_DIMENSION}x{MIN_DIMENSION} and {MAX_DIMENSION}x{MAX_DIMENSION} pixels."
        ) from e
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise DecodeFailureError(_DECODE_FAILURE_MESSAGE) from e
    # the header is parsed; reject bad sizes before decoding any pixels
    validate_dimensions(img.width, img.height)
    try:
        img.load()
    except (OSError, SyntaxError) as e:
        raise DecodeFailureError(_DECODE_FAILURE_MESSAGE) from e
    return img.convert("RGBA"), (img.width, img.height)


async def load_source_image(
    data: bytes,
    file_name: str,
    mime_type: str | None = None,
    timeout: float = DECODE_TIMEOUT_SECONDS,
) -> SourceImage:
    """
    Validate and decode an upload. The decode runs off the event loop and is
    bounded by `timeout` seconds.
    """
    mime = validate_upload(mime_type or mime_type_from_name(file_name), len(data))
    try:
        img, natural = await asyncio.wait_for(asyncio.to_thread(_decode_bytes, data, mime), timeout)
    except asyncio.TimeoutError as e:
        raise DecodeTimeoutError("Image loading timeout. Please try a smaller file.") from e
    width, height = natural or img.size
    logger.info("Loaded %s (%s, %dx%d)", file_name, mime, width, height)
    return SourceImage(
        image=img,
        width=width,
        height=height,
        byte_size=len(data),
        mime_type=mime,
        file_name=file_name,
        data=data,
        is_vector=mime == SVG_MIME_TYPE,
    )


def decode_raster(raster: bytes) -> Image.Image:
    """Decode encoded raster bytes (PNG etc.) into RGBA, raising DecodeFailureError on corrupt data."""
    try:
        img = Image.open(BytesIO(raster))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeFailureError("Failed to load image") from e
    return img.convert("RGBA")
