import logging

from PIL import Image

from favicon_studio.core.errors import DecodeFailureError, ImageDecodeError, ValidationError
from favicon_studio.core.icon_generator import fill_background, new_surface, pil_to_png_bytes
from favicon_studio.core.image_handler import decode_raster
from favicon_studio.core.models import EditorState, TRANSPARENT
from favicon_studio.utils.helpers import HEX_COLOR_RE

logger = logging.getLogger(__name__)


def fit_dimensions(width: int, height: int, available: float) -> tuple[float, float]:
    """Largest (w, h) with the source aspect ratio whose longer side is `available`."""
    aspect = width / height
    if aspect > 1:
        return available, available / aspect
    if aspect < 1:
        return available * aspect, available
    return available, available


def render_image(state: EditorState) -> Image.Image:
    """
    Composite one edited icon from scratch: background, then the source bitmap
    scaled to fit, rotated and offset around the surface centre.
    """
    state = state.clamped()
    size = state.target_size
    if state.background_color != TRANSPARENT and not HEX_COLOR_RE.match(state.background_color):
        raise ValidationError(f"Invalid background color: {state.background_color!r}")

    surface = new_surface(size)
    if state.background_color != TRANSPARENT:
        radius = size * state.border_radius / 100 if state.border_radius > 0 else 0
        fill_background(surface, state.background_color, radius=radius)

    try:
        source = decode_raster(state.source_raster)
    except DecodeFailureError as e:
        raise ImageDecodeError("Failed to load image for rendering") from e

    available = (size - 2 * state.padding) * state.scale
    if available <= 0:
        return surface
    draw_w, draw_h = fit_dimensions(source.width, source.height, available)
    w, h = int(round(draw_w)), int(round(draw_h))
    if w < 1 or h < 1:
        return surface

    logo = source.resize((w, h), resample=Image.Resampling.LANCZOS)
    if state.rotation:
        # PIL rotates counter-clockwise; editor rotation is clockwise on screen.
        logo = logo.rotate(-state.rotation, resample=Image.Resampling.BICUBIC, expand=True)

    cx = size / 2 + state.position_x
    cy = size / 2 + state.position_y
    layer = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    layer.paste(logo, (int(round(cx - logo.width / 2)), int(round(cy - logo.height / 2))))
    surface.alpha_composite(layer)
    return surface


def render(state: EditorState) -> bytes:
    raster = pil_to_png_bytes(render_image(state))
    logger.debug("Rendered %dx%d edit (%d bytes)", state.target_size, state.target_size, len(raster))
    return raster
