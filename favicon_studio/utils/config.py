import json
import logging
from pathlib import Path

from favicon_studio.core.models import BorderType, StyleOptions
from favicon_studio.services.brand_analyzer import DEFAULT_MODEL

logger = logging.getLogger(__name__)

DEFAULT_PATH = Path.home() / ".favicon_studio_config.json"


class AppConfig:
    def __init__(self, path: Path | None = None):
        self.path = path or DEFAULT_PATH
        self._reset()
        self._load()

    def _reset(self):
        self.recent_files: list[str] = []
        self.border_type: str = BorderType.ROUNDED.value
        self.outline_color: str = "#8b5cf6"
        self.outline_intensity: int = 4
        self.gemini_model: str = DEFAULT_MODEL

    def _load(self):
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self.recent_files = list(data.get("recent_files", []))[:5]
            self.border_type = BorderType(data.get("border_type", self.border_type)).value
            self.outline_color = str(data.get("outline_color", self.outline_color))
            self.outline_intensity = int(data.get("outline_intensity", self.outline_intensity))
            self.gemini_model = str(data.get("gemini_model", self.gemini_model))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable config %s: %s", self.path, e)
            self._reset()

    def add_recent_file(self, path: str | Path):
        p = str(path)
        self.recent_files = [p] + [f for f in self.recent_files if f != p]
        self.recent_files = self.recent_files[:5]

    def style_options(self, outline_enabled: bool = False) -> StyleOptions:
        return StyleOptions(
            border_type=BorderType(self.border_type),
            outline_enabled=outline_enabled,
            outline_color=self.outline_color,
            outline_intensity=self.outline_intensity,
        )

    def save(self):
        data = {
            "recent_files": self.recent_files[:5],
            "border_type": self.border_type,
            "outline_color": self.outline_color,
            "outline_intensity": self.outline_intensity,
            "gemini_model": self.gemini_model,
        }
        try:
            self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save config %s: %s", self.path, e)
