"""AI background removal for a single image.

The image model only accepts raster input, so SVG sources are rasterised
onto white first.  Each call gets its own retry budget; nothing outside this
module is touched until an attempt returns an image.
"""

import asyncio
import base64
import logging
from typing import Any, Optional

from google.genai import types
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_exponential,
)

from clipper.services.fetcher import fetch_bytes
from clipper.services.genai_client import get_genai_client
from clipper.services.raster import SVG_MIME, sniff_mime, svg_to_png

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = (
    "Act as a professional photo editor. Extract the main subject from this image. "
    "Remove all backgrounds and replace them with solid black (#000000). "
    "If this is not a photograph (for example a map, diagram, engraving or document), "
    "extract the primary graphical elements onto the black background instead. "
    "Do not refuse and do not answer with text: your output MUST be an image."
)


class ExtractionError(RuntimeError):
    """Raised when background removal fails for an image after all retries."""


def _first_part(response: Any, attr: str) -> Any:
    candidates = getattr(response, "candidates", None) or []
    if not candidates or candidates[0].content is None:
        return None
    for part in candidates[0].content.parts or []:
        if getattr(part, attr, None):
            return part
    return None


def reply_to_data_url(response: Any) -> str:
    """Turn a model reply into a PNG data URL, or raise :class:`ExtractionError`."""
    image_part = _first_part(response, "inline_data")
    if image_part is not None and image_part.inline_data.data:
        encoded = base64.b64encode(image_part.inline_data.data).decode("ascii")
        return f"data:image/png;base64,{encoded}"

    text_part = _first_part(response, "text")
    if text_part is not None:
        logger.warning("Image model answered with text instead of an image: %s", text_part.text)
        raise ExtractionError(f"AI was unable to process this image: {text_part.text}")

    raise ExtractionError("AI processing failed: no image was returned for this file.")


class BackgroundRemover:
    """Wraps the Gemini image model with bounded retry and backoff.

    Args:
        model: Image-capable model name.
        client: ``google.genai.Client``; created lazily from settings when omitted.
        attempts: Total attempts per image.
        pre_call_delay: Seconds slept before each model call, multiplied by
            the attempt number to stay clear of rate limits.
        backoff: Base wait after a failed attempt; doubles on each failure.
    """

    def __init__(
        self,
        model: str,
        client: Any = None,
        attempts: int = 3,
        pre_call_delay: float = 0.5,
        backoff: float = 1.0,
    ) -> None:
        self.model = model
        self.attempts = attempts
        self.pre_call_delay = pre_call_delay
        self.backoff = backoff
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_genai_client()
        return self._client

    async def _prepare(self, image_url: str) -> types.Part:
        fetched = await fetch_bytes(image_url)
        content = fetched.content
        mime_type = sniff_mime(content, fetched.content_type)

        if mime_type == SVG_MIME:
            content = await asyncio.to_thread(svg_to_png, content)
            mime_type = "image/png"

        return types.Part.from_bytes(data=content, mime_type=mime_type)

    async def _attempt(self, image_url: str, attempt_number: int) -> str:
        image_part = await self._prepare(image_url)
        await asyncio.sleep(self.pre_call_delay * attempt_number)

        response = await self.client.aio.models.generate_content(
            model=self.model,
            contents=[image_part, EXTRACTION_PROMPT],
            config=types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
        )
        return reply_to_data_url(response)

    async def remove_background(self, image_url: str) -> str:
        """Return a ``data:image/png;base64,...`` URL of *image_url* with its background removed.

        Raises:
            ExtractionError: once every attempt has failed; carries the last
                attempt's error.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=self.backoff),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._attempt(image_url, attempt.retry_state.attempt_number)
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"AI processing failed: {exc}") from exc

        raise ExtractionError("AI processing failed.")
