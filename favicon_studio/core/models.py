from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from favicon_studio.utils.helpers import clamp_float, HEX_COLOR_RE


class IconGroup(Enum):
    FAVICON = "favicon"
    APPLE = "apple"
    ANDROID = "android"
    MS = "ms"


class BorderType(Enum):
    NONE = "none"
    ROUNDED = "rounded"
    SQUARE = "square"


# Group order is the batch order; sizes ascend within a group.
GROUP_SIZES: dict[IconGroup, tuple[int, ...]] = {
    IconGroup.FAVICON: (16, 32, 48, 64, 128, 256),
    IconGroup.APPLE: (120, 152, 167, 180),
    IconGroup.ANDROID: (192, 512),
    IconGroup.MS: (144, 150, 310),
}


@dataclass(frozen=True)
class IconSpec:
    size: int
    group: IconGroup

    @property
    def label(self) -> str:
        return f"{self.group.value}-{self.size}x{self.size}.png"


ICON_CATALOG: tuple[IconSpec, ...] = tuple(
    IconSpec(size, group) for group, sizes in GROUP_SIZES.items() for size in sorted(sizes)
)


@dataclass(frozen=True)
class SourceImage:
    """Decoded upload. `image` is RGBA; width/height are the natural pixel size."""
    image: Image.Image = field(compare=False, repr=False)
    width: int
    height: int
    byte_size: int
    mime_type: str
    file_name: str
    data: bytes = field(repr=False)
    is_vector: bool = False


@dataclass(frozen=True)
class StyleOptions:
    border_type: BorderType = BorderType.ROUNDED
    outline_enabled: bool = False
    outline_color: str = "#8b5cf6"
    outline_intensity: int = 4

    def __post_init__(self):
        if not HEX_COLOR_RE.match(self.outline_color):
            raise ValueError(f"Invalid outline color: {self.outline_color!r}")
        object.__setattr__(self, "outline_intensity", int(clamp_float(self.outline_intensity, 1, 25)))


class BrandAnalysis(BaseModel):
    """Suggestions returned by the Brand Analyzer. Accepts camelCase keys from the AI payload."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    theme_color: str
    background_color: Optional[str] = None
    padding_percentage: Optional[int] = Field(default=None, ge=0, le=40)
    short_description: str = ""
    contrast_advice: str = ""

    @field_validator("theme_color", "background_color")
    @classmethod
    def _hex_color(cls, value):
        if value is not None and not HEX_COLOR_RE.match(value):
            raise ValueError(f"not a hex color: {value!r}")
        return value

    @classmethod
    def fallback(cls) -> "BrandAnalysis":
        return cls(theme_color="#6366f1", background_color="#ffffff", padding_percentage=15)


TRANSPARENT = "transparent"


@dataclass(frozen=True)
class EditorState:
    source_raster: bytes = field(repr=False)
    target_size: int
    target_group: IconGroup
    scale: float = 1.0
    padding: float = 0
    rotation: float = 0
    position_x: float = 0
    position_y: float = 0
    background_color: str = TRANSPARENT
    border_radius: float = 0

    def clamped(self) -> "EditorState":
        """Return a copy with every numeric field forced into its range."""
        return replace(
            self,
            scale=clamp_float(self.scale, 0.1, 2.0),
            padding=clamp_float(self.padding, 0, 50),
            rotation=float(self.rotation) % 360,
            position_x=clamp_float(self.position_x, -100, 100),
            position_y=clamp_float(self.position_y, -100, 100),
            border_radius=clamp_float(self.border_radius, 0, 50),
        )


# Fields `reset()` restores; the bound-icon fields are never part of it.
EDITABLE_FIELDS = ("scale", "padding", "rotation", "position_x", "position_y", "background_color", "border_radius")


@dataclass
class IconResult:
    size: int
    label: str
    raster: bytes = field(repr=False)
    group: IconGroup
    edited_raster: Optional[bytes] = field(default=None, repr=False)
    editor_state: Optional[EditorState] = None

    @property
    def display_raster(self) -> bytes:
        return self.edited_raster if self.edited_raster is not None else self.raster

    @property
    def is_edited(self) -> bool:
        return self.edited_raster is not None


@dataclass
class FaviconSet:
    id: str
    original_file_name: str
    icons: list[IconResult]
    html_snippet: str
    manifest_json: str
    created_at: int

    def icon(self, label: str) -> IconResult:
        for icon in self.icons:
            if icon.label == label:
                return icon
        raise KeyError(label)

    def group(self, group: IconGroup) -> list[IconResult]:
        return [icon for icon in self.icons if icon.group is group]
