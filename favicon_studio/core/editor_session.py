import logging
import math
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from favicon_studio.core.errors import EditSessionError, IconStudioError, ValidationError
from favicon_studio.core.models import EDITABLE_FIELDS, EditorState, IconResult, TRANSPARENT
from favicon_studio.core.renderer import render
from favicon_studio.utils.helpers import HEX_COLOR_RE

logger = logging.getLogger(__name__)


class SessionStatus(Enum):
    CLOSED = "closed"
    OPEN = "open"
    DIRTY = "dirty"


class SessionOutcome(Enum):
    COMMITTED = "committed"
    DISCARDED = "discarded"


def default_state(icon: IconResult) -> EditorState:
    # Always seeded from the synthesized raster, never from an earlier edit.
    return EditorState(source_raster=icon.raster, target_size=icon.size, target_group=icon.group)


class EditSession:
    """
    Edit session bound to a single IconResult.

    Closed -> Open -> Dirty -> (commit | discard) -> Closed. Every update or reset
    re-renders the whole icon from the current state.
    """

    def __init__(self, renderer: Callable[[EditorState], bytes] = render):
        self._renderer = renderer
        self.status = SessionStatus.CLOSED
        self.last_outcome: Optional[SessionOutcome] = None
        self.icon: Optional[IconResult] = None
        self.state: Optional[EditorState] = None
        self.preview: Optional[bytes] = None
        self.restored = False

    @property
    def is_open(self) -> bool:
        return self.status is not SessionStatus.CLOSED

    @property
    def is_dirty(self) -> bool:
        return self.status is SessionStatus.DIRTY

    def _require_open(self, action: str):
        if not self.is_open:
            raise EditSessionError(f"Cannot {action}: no icon is open for editing.")

    def _render(self) -> bytes:
        try:
            self.preview = self._renderer(self.state)
        except IconStudioError:
            logger.error("Render failed for %s", self.icon.label, exc_info=True)
            raise
        return self.preview

    def open(self, icon: IconResult) -> EditorState:
        if self.is_open:
            raise EditSessionError(f"Cannot open {icon.label}: {self.icon.label} is still open.")
        self.icon = icon
        self.restored = icon.editor_state is not None
        self.state = icon.editor_state if self.restored else default_state(icon)
        self.preview = None
        self.last_outcome = None
        try:
            self._render()
        except IconStudioError:
            self._unbind()
            raise
        self.status = SessionStatus.OPEN
        logger.info("Opened %s for editing (%s)", icon.label, "restored" if self.restored else "defaults")
        return self.state

    def update(self, changes: Mapping[str, Any] | None = None, **fields) -> EditorState:
        """Merge a partial set of editable fields, clamp them and re-render."""
        self._require_open("update")
        merged = {**(changes or {}), **fields}
        unknown = set(merged) - set(EDITABLE_FIELDS)
        if unknown:
            raise EditSessionError(f"Not editable: {', '.join(sorted(unknown))}")

        if "background_color" in merged:
            background = merged["background_color"]
            if background != TRANSPARENT and not (isinstance(background, str) and HEX_COLOR_RE.match(background)):
                raise ValidationError(f"Invalid background color: {background!r}")
        for name, value in merged.items():
            if name == "background_color":
                continue
            try:
                finite = math.isfinite(value)
            except TypeError as e:
                raise ValidationError(f"Invalid editor value for {name}: {value!r}") from e
            if not finite:
                raise ValidationError(f"{name} must be a finite number, got {value!r}")
        try:
            new_state = replace(self.state, **merged).clamped()
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid editor value: {e}") from e

        self.state = new_state
        self.status = SessionStatus.DIRTY
        self._render()
        return self.state

    def reset(self) -> EditorState:
        self._require_open("reset")
        self.state = replace(self.state, **{name: getattr(default_state(self.icon), name) for name in EDITABLE_FIELDS})
        self.status = SessionStatus.DIRTY
        self._render()
        return self.state

    def commit(self, rendered_raster: bytes | None = None) -> None:
        """Attach the edited raster and the state that produced it to the bound icon."""
        self._require_open("commit")
        raster = rendered_raster if rendered_raster is not None else (self.preview or self._render())
        self.icon.edited_raster = raster
        self.icon.editor_state = self.state
        logger.info("Committed edit of %s", self.icon.label)
        self._close(SessionOutcome.COMMITTED)

    def discard(self) -> None:
        self._require_open("discard")
        logger.info("Discarded edit of %s", self.icon.label)
        self._close(SessionOutcome.DISCARDED)

    def _close(self, outcome: SessionOutcome):
        self.last_outcome = outcome
        self._unbind()

    def _unbind(self):
        self.status = SessionStatus.CLOSED
        self.icon = None
        self.state = None
        self.preview = None
        self.restored = False
