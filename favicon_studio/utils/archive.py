import json
import logging
from pathlib import Path
from typing import Any

from favicon_studio.core.models import EditorState, FaviconSet, IconGroup, IconResult
from favicon_studio.utils.helpers import from_data_url, to_data_url

logger = logging.getLogger(__name__)

DEFAULT_ARCHIVE_PATH = Path.home() / ".favicon_studio_archives.json"
ARCHIVE_LIMIT = 15


def editor_state_to_dict(state: EditorState) -> dict[str, Any]:
    return {
        "scale": state.scale,
        "padding": state.padding,
        "rotation": state.rotation,
        "positionX": state.position_x,
        "positionY": state.position_y,
        "backgroundColor": state.background_color,
        "borderRadius": state.border_radius,
        "originalDataUrl": to_data_url(state.source_raster),
        "iconSize": state.target_size,
        "iconType": state.target_group.value,
    }


def editor_state_from_dict(data: dict[str, Any]) -> EditorState:
    return EditorState(
        source_raster=from_data_url(data["originalDataUrl"]),
        target_size=int(data["iconSize"]),
        target_group=IconGroup(data["iconType"]),
        scale=data["scale"],
        padding=data["padding"],
        rotation=data["rotation"],
        position_x=data["positionX"],
        position_y=data["positionY"],
        background_color=data["backgroundColor"],
        border_radius=data["borderRadius"],
    )


def favicon_set_to_dict(favicon_set: FaviconSet) -> dict[str, Any]:
    icons = []
    for icon in favicon_set.icons:
        entry = {
            "size": icon.size,
            "label": icon.label,
            "dataUrl": to_data_url(icon.raster),
            "type": icon.group.value,
        }
        if icon.edited_raster is not None:
            entry["editedDataUrl"] = to_data_url(icon.edited_raster)
        if icon.editor_state is not None:
            entry["editorState"] = editor_state_to_dict(icon.editor_state)
        icons.append(entry)
    return {
        "id": favicon_set.id,
        "originalFileName": favicon_set.original_file_name,
        "icons": icons,
        "htmlSnippet": favicon_set.html_snippet,
        "manifestJson": favicon_set.manifest_json,
        "timestamp": favicon_set.created_at,
    }


def favicon_set_from_dict(data: dict[str, Any]) -> FaviconSet:
    icons = []
    for entry in data["icons"]:
        icons.append(IconResult(
            size=int(entry["size"]),
            label=entry["label"],
            raster=from_data_url(entry["dataUrl"]),
            group=IconGroup(entry["type"]),
            edited_raster=from_data_url(entry["editedDataUrl"]) if entry.get("editedDataUrl") else None,
            editor_state=editor_state_from_dict(entry["editorState"]) if entry.get("editorState") else None,
        ))
    return FaviconSet(
        id=data["id"],
        original_file_name=data["originalFileName"],
        icons=icons,
        html_snippet=data["htmlSnippet"],
        manifest_json=data["manifestJson"],
        created_at=int(data["timestamp"]),
    )


class ArchiveStore:
    """Most-recent-first list of generated sets kept in a JSON file, capped at `limit`."""

    def __init__(self, path: Path | None = None, limit: int = ARCHIVE_LIMIT):
        self.path = path or DEFAULT_ARCHIVE_PATH
        self.limit = limit

    def load(self) -> list[FaviconSet]:
        if not self.path.exists():
            return []
        try:
            entries = json.loads(self.path.read_text(encoding="utf-8"))
            return [favicon_set_from_dict(entry) for entry in entries][: self.limit]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Failed to read archive %s: %s", self.path, e)
            return []

    def save(self, sets: list[FaviconSet]) -> None:
        data = [favicon_set_to_dict(s) for s in sets[: self.limit]]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def prepend(self, favicon_set: FaviconSet) -> list[FaviconSet]:
        sets = [favicon_set] + [s for s in self.load() if s.id != favicon_set.id]
        sets = sets[: self.limit]
        self.save(sets)
        logger.info("Archived %s (%d stored)", favicon_set.original_file_name, len(sets))
        return sets

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
