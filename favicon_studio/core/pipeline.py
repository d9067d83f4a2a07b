import asyncio
import logging
from typing import Callable, Optional

from favicon_studio.core.icon_generator import synthesize
from favicon_studio.core.image_handler import DECODE_TIMEOUT_SECONDS, load_source_image
from favicon_studio.core.models import BrandAnalysis, FaviconSet, IconGroup, StyleOptions
from favicon_studio.services.brand_analyzer import BrandAnalyzer, analyze_with_fallback
from favicon_studio.utils.archive import ArchiveStore
from favicon_studio.utils.helpers import sanitize_file_name

logger = logging.getLogger(__name__)

ProgressListener = Callable[[int, str], None]


class GenerationSession:
    """
    Runs upload -> decode -> brand analysis -> batch synthesis, with at most
    one run in flight. Starting a new run cancels the previous one; a cancelled
    run resolves to None.
    """

    def __init__(
        self,
        analyzer: Optional[BrandAnalyzer] = None,
        style: StyleOptions | None = None,
        on_progress: Optional[ProgressListener] = None,
        archive: Optional[ArchiveStore] = None,
        decode_timeout: float = DECODE_TIMEOUT_SECONDS,
        group_delay: float = 0.15,
    ):
        self.analyzer = analyzer
        self.style = style or StyleOptions()
        self.on_progress = on_progress
        self.archive = archive
        self.decode_timeout = decode_timeout
        self.group_delay = group_delay
        self.last_analysis: Optional[BrandAnalysis] = None
        self._cancel_event: Optional[asyncio.Event] = None

    @property
    def busy(self) -> bool:
        return self._cancel_event is not None

    def cancel(self) -> None:
        if self._cancel_event is not None:
            logger.info("Cancelling in-flight generation")
            self._cancel_event.set()

    def _report(self, percent: int, message: str):
        if self.on_progress:
            self.on_progress(percent, message)

    async def _analyze(self, cancel_event: asyncio.Event, data: bytes, file_name: str) -> Optional[BrandAnalysis]:
        analysis_task = asyncio.create_task(analyze_with_fallback(self.analyzer, data, file_name))
        cancel_task = asyncio.create_task(cancel_event.wait())
        done, _ = await asyncio.wait({analysis_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        if analysis_task in done:
            cancel_task.cancel()
            return analysis_task.result()
        analysis_task.cancel()
        return None

    async def generate(
        self,
        data: bytes,
        file_name: str,
        mime_type: str | None = None,
        style: StyleOptions | None = None,
    ) -> FaviconSet | None:
        self.cancel()
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event
        try:
            return await self._run(cancel_event, data, file_name, mime_type, style or self.style)
        finally:
            if self._cancel_event is cancel_event:
                self._cancel_event = None

    async def _run(self, cancel_event, data, file_name, mime_type, style) -> FaviconSet | None:
        name = sanitize_file_name(file_name)
        self._report(5, "Reading file")
        source = await load_source_image(data, name, mime_type, timeout=self.decode_timeout)
        if cancel_event.is_set():
            return None
        self._report(15, "Image decoded")
        self._report(20, "Image validated")

        analysis = await self._analyze(cancel_event, data, name)
        if analysis is None or cancel_event.is_set():
            return None
        self.last_analysis = analysis
        self._report(40, "Brand analysis complete")

        def on_group(group: IconGroup, done: int, total: int):
            # the last group lands on 100, reported once the set is assembled
            if done < total:
                self._report(40 + done * 15, f"Rendered {group.value} icons")

        favicon_set = await synthesize(
            source,
            analysis,
            style,
            progress=on_group,
            cancel_event=cancel_event,
            group_delay=self.group_delay,
        )
        if favicon_set is None:
            return None

        self._report(100, "Icons generated")
        logger.info("Generated %d icons for %s", len(favicon_set.icons), name)
        if self.archive is not None:
            try:
                self.archive.prepend(favicon_set)
            except OSError as e:
                logger.warning("Could not archive %s: %s", name, e)
        return favicon_set
