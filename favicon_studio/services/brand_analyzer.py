import asyncio
import base64
import json
import logging
import time
from typing import Any, Awaitable, Callable, Protocol, TypeVar

import httpx
from pydantic import ValidationError as PydanticValidationError

from favicon_studio.core.errors import ExternalAnalysisError, ExternalAnalysisTransientError
from favicon_studio.core.models import BrandAnalysis
from favicon_studio.utils.helpers import sanitize_file_name
from favicon_studio.utils.validators import mime_type_from_name

logger = logging.getLogger(__name__)

T = TypeVar("T")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = "gemini-2.0-flash"

ANALYSIS_PROMPT = """
You are the FaviconGen Brand Intelligence engine.
Analyze this logo/image: "{file_name}".

1. Dominant brand hex color (themeColor).
2. Perfect contrasting background hex color for app icons (backgroundColor).
3. Precise paddingPercentage (integer 0-40) to ensure the logo isn't cut off but isn't too small.
4. A 1-sentence professional "shortDescription" of the brand identity based on visual cues.
5. "contrastAdvice": Specific tips for UI designers using this logo.

Return as valid JSON.
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "themeColor": {"type": "STRING"},
        "backgroundColor": {"type": "STRING"},
        "paddingPercentage": {"type": "INTEGER"},
        "shortDescription": {"type": "STRING"},
        "contrastAdvice": {"type": "STRING"},
    },
    "required": ["themeColor", "backgroundColor", "paddingPercentage", "shortDescription", "contrastAdvice"],
}


class BrandAnalyzer(Protocol):
    async def analyze(self, data: bytes, file_name: str) -> BrandAnalysis:
        ...


class RequestScheduler:
    """At most one call in flight, and call starts at least `min_interval` seconds apart."""

    def __init__(self, min_interval: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_start: float | None = None

    async def run(self, call: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            if self._last_start is not None:
                wait = self.min_interval - (self._clock() - self._last_start)
                if wait > 0:
                    await asyncio.sleep(wait)
            self._last_start = self._clock()
            return await call()


async def retry_with_backoff(
    call: Callable[[], Awaitable[T]],
    retries: int = 2,
    initial_delay: float = 1.0,
) -> T:
    """Retry transient analyzer failures, waiting initial_delay * 2**attempt between tries."""
    attempt = 0
    while True:
        try:
            return await call()
        except ExternalAnalysisTransientError as e:
            if attempt >= retries:
                raise
            delay = initial_delay * (2 ** attempt)
            logger.warning("Brand analysis attempt %d failed (%s); retrying in %.1fs", attempt + 1, e, delay)
            await asyncio.sleep(delay)
            attempt += 1


class GeminiBrandAnalyzer:
    """
    Brand Analyzer backed by the Gemini generateContent REST endpoint.
    Credentials are passed in; nothing is read from the environment here.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        client: httpx.AsyncClient | None = None,
        scheduler: RequestScheduler | None = None,
        retries: int = 2,
        initial_delay: float = 1.0,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.model = model
        self.retries = retries
        self.initial_delay = initial_delay
        self.timeout = timeout
        self._client = client
        self._scheduler = scheduler or RequestScheduler()

    def build_payload(self, data: bytes, file_name: str) -> dict[str, Any]:
        name = sanitize_file_name(file_name)
        encoded = base64.b64encode(data).decode("ascii")
        if len(encoded) < 100:
            raise ExternalAnalysisError("Invalid image data")
        return {
            "contents": [
                {
                    "parts": [
                        {"inline_data": {"mime_type": mime_type_from_name(name) or "image/jpeg", "data": encoded}},
                        {"text": ANALYSIS_PROMPT.format(file_name=name)},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }

    async def analyze(self, data: bytes, file_name: str) -> BrandAnalysis:
        if not self.api_key:
            raise ExternalAnalysisError(
                "AI service configuration error. Please check your API key.", code="AI_CONFIG_ERROR"
            )
        payload = self.build_payload(data, file_name)
        body = await self._scheduler.run(
            lambda: retry_with_backoff(lambda: self._post(payload), self.retries, self.initial_delay)
        )
        return self.parse_response(body)

    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        if self._client is not None:
            return await self._send(self._client, payload)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._send(client, payload)

    async def _send(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{GEMINI_BASE_URL}/models/{self.model}:generateContent"
        try:
            resp = await client.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
        except httpx.TransportError as e:
            raise ExternalAnalysisTransientError(f"Network error: {e}", code="NETWORK_ERROR") from e

        if resp.status_code == 429 or resp.status_code >= 500:
            raise ExternalAnalysisTransientError(f"AI service returned {resp.status_code}")
        if resp.status_code in (401, 403):
            raise ExternalAnalysisError("AI service rejected the API key.", code="AI_CONFIG_ERROR")
        if resp.status_code >= 400:
            raise ExternalAnalysisError(f"AI service returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as e:
            raise ExternalAnalysisError("AI service returned a non-JSON body") from e

    @staticmethod
    def parse_response(body: dict[str, Any]) -> BrandAnalysis:
        try:
            text = body["candidates"][0]["content"]["parts"][0]["text"]
            return BrandAnalysis.model_validate(json.loads(text))
        except (KeyError, IndexError, TypeError, ValueError, PydanticValidationError) as e:
            raise ExternalAnalysisError("Invalid AI response structure") from e


async def analyze_with_fallback(analyzer: BrandAnalyzer | None, data: bytes, file_name: str) -> BrandAnalysis:
    """Run the analyzer, substituting fallback defaults for any analysis failure."""
    if analyzer is None:
        return BrandAnalysis.fallback()
    try:
        result = await analyzer.analyze(data, file_name)
        if not isinstance(result, BrandAnalysis):
            result = BrandAnalysis.model_validate(result)
    except Exception as e:
        # any analyzer failure degrades to defaults; cancellation is a BaseException and propagates
        logger.warning("AI analysis unavailable (%s: %s); using defaults", type(e).__name__, e)
        return BrandAnalysis.fallback()
    logger.info("Brand analysis: theme %s, background %s", result.theme_color, result.background_color)
    return result
