import asyncio
import json
import logging
import time
import uuid
from io import BytesIO
from pathlib import Path
from typing import Callable, Optional

from PIL import Image, ImageDraw, ImageFilter

from favicon_studio.core.errors import RenderingUnsupportedError, SynthesisError
from favicon_studio.core.models import (
    BorderType,
    BrandAnalysis,
    FaviconSet,
    ICON_CATALOG,
    GROUP_SIZES,
    IconGroup,
    IconResult,
    IconSpec,
    SourceImage,
    StyleOptions,
)
from favicon_studio.utils.helpers import file_stem, get_resample_by_name, parse_hex_color

logger = logging.getLogger(__name__)

DEFAULT_PADDING_PERCENTAGE = 12
ROUNDED_CORNER_RATIO = 0.22
GROUP_DELAY_SECONDS = 0.15

INTEGRATION_SNIPPET = (
    "<!-- FaviconGen Generated Assets -->\n"
    '<link rel="icon" type="image/png" sizes="32x32" href="/favicon-32x32.png">\n'
    '<link rel="apple-touch-icon" sizes="180x180" href="/apple-touch-icon.png">'
)

ProgressCallback = Callable[[IconGroup, int, int], None]


def pil_to_png_bytes(im: Image.Image) -> bytes:
    buf = BytesIO()
    im.save(buf, format="PNG", optimize=True)
    return buf.getvalue()


def new_surface(size: int) -> Image.Image:
    """Allocate a transparent square RGBA working surface."""
    try:
        return Image.new("RGBA", (size, size), (0, 0, 0, 0))
    except (ValueError, MemoryError) as e:
        raise RenderingUnsupportedError(f"Drawing surface unavailable for {size}x{size}: {e}") from e


def fill_background(surface: Image.Image, color: str, radius: float = 0) -> None:
    size = surface.width
    draw = ImageDraw.Draw(surface, "RGBA")
    fill = parse_hex_color(color)
    if radius > 0:
        draw.rounded_rectangle((0, 0, size - 1, size - 1), radius=int(round(radius)), fill=fill)
    else:
        draw.rectangle((0, 0, size - 1, size - 1), fill=fill)


def _draw_glow(surface: Image.Image, logo: Image.Image, offset: tuple[int, int], color: str, blur: float) -> None:
    # Soft shadow of the logo's alpha in `color`, centred under the logo (no offset).
    mask = Image.new("L", surface.size, 0)
    mask.paste(logo.getchannel("A"), offset)
    if blur > 0:
        mask = mask.filter(ImageFilter.GaussianBlur(blur / 2))
    glow = Image.new("RGBA", surface.size, parse_hex_color(color))
    glow.putalpha(mask)
    surface.alpha_composite(glow)


def prepare_image_for_spec(
    source: Image.Image,
    spec: IconSpec,
    analysis: BrandAnalysis,
    style: StyleOptions,
    resample_name: str = "lanczos",
) -> Image.Image:
    """
    Composite one catalog icon. The source is stretched into the padded square;
    its aspect ratio is not preserved here.
    """
    size = spec.size
    surface = new_surface(size)

    if spec.group is not IconGroup.FAVICON and analysis.background_color:
        if style.border_type is BorderType.ROUNDED:
            fill_background(surface, analysis.background_color, radius=size * ROUNDED_CORNER_RATIO)
        elif style.border_type is BorderType.SQUARE:
            fill_background(surface, analysis.background_color)

    padding_pct = analysis.padding_percentage if analysis.padding_percentage is not None else DEFAULT_PADDING_PERCENTAGE
    pad = int(round(size * padding_pct / 100))
    draw_size = size - 2 * pad
    if draw_size <= 0:
        return surface

    logo = source.convert("RGBA").resize((draw_size, draw_size), resample=get_resample_by_name(resample_name))
    if style.outline_enabled:
        _draw_glow(surface, logo, (pad, pad), style.outline_color, style.outline_intensity * (size / 100))
        surface.alpha_composite(logo, (pad, pad))
    surface.alpha_composite(logo, (pad, pad))
    return surface


def render_icon(source: SourceImage, spec: IconSpec, analysis: BrandAnalysis, style: StyleOptions) -> IconResult:
    try:
        img = prepare_image_for_spec(source.image, spec, analysis, style)
        raster = pil_to_png_bytes(img)
    except RenderingUnsupportedError:
        raise
    except (OSError, ValueError, MemoryError) as e:
        raise SynthesisError(f"Failed to render {spec.label}: {e}") from e
    logger.debug("Rendered %s (%d bytes)", spec.label, len(raster))
    return IconResult(size=spec.size, label=spec.label, raster=raster, group=spec.group)


def build_manifest(name: str, theme_color: str) -> str:
    return json.dumps({"name": name, "theme_color": theme_color}, indent=2)


async def synthesize(
    source: SourceImage,
    analysis: BrandAnalysis,
    style: StyleOptions | None = None,
    *,
    set_id: str | None = None,
    created_at: int | None = None,
    progress: Optional[ProgressCallback] = None,
    cancel_event: asyncio.Event | None = None,
    group_delay: float = GROUP_DELAY_SECONDS,
) -> FaviconSet | None:
    """
    Render every catalog icon group by group. Returns None, and keeps nothing,
    when `cancel_event` is set before the batch finishes. Any draw failure
    aborts the whole batch.
    """
    style = style or StyleOptions()
    icons: list[IconResult] = []
    groups = list(GROUP_SIZES)

    def cancelled() -> bool:
        return cancel_event is not None and cancel_event.is_set()

    for index, group in enumerate(groups, start=1):
        if cancelled():
            logger.info("Synthesis of %s cancelled after %d groups", source.file_name, index - 1)
            return None
        for spec in ICON_CATALOG:
            if spec.group is not group:
                continue
            if cancelled():
                logger.info("Synthesis of %s cancelled inside group %s", source.file_name, group.value)
                return None
            icons.append(render_icon(source, spec, analysis, style))
        logger.info("Rendered %s group for %s", group.value, source.file_name)
        if progress:
            progress(group, index, len(groups))
        await asyncio.sleep(group_delay)

    if cancelled():
        return None

    return FaviconSet(
        id=set_id or str(uuid.uuid4()),
        original_file_name=source.file_name,
        icons=icons,
        html_snippet=INTEGRATION_SNIPPET,
        manifest_json=build_manifest(file_stem(source.file_name), analysis.theme_color),
        created_at=created_at if created_at is not None else int(time.time() * 1000),
    )


def save_ico_from_images(images_by_size: list[tuple[int, Image.Image]], out: Path | BytesIO):
    if not images_by_size:
        raise ValueError("No images to save.")
    images_sorted = sorted(images_by_size, key=lambda t: t[0], reverse=True)
    frames = [im.convert("RGBA") for _, im in images_sorted]
    sizes = [(im.width, im.height) for im in frames]
    base = frames[0]
    rest = frames[1:]
    if isinstance(out, Path):
        out.parent.mkdir(parents=True, exist_ok=True)
    base.save(out, format="ICO", append_images=rest, sizes=sizes)
