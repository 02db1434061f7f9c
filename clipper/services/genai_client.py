"""Lazy construction of the shared Gemini client."""

from functools import lru_cache

from google import genai
from google.genai import types

from clipper.config import get_settings


@lru_cache
def get_genai_client() -> genai.Client:
    """Return the process-wide Gemini client.

    Raises:
        RuntimeError: if ``GEMINI_API_KEY`` is not configured.
    """
    settings = get_settings()
    if not settings.GEMINI_API_KEY:
        raise RuntimeError("GEMINI_API_KEY is not set.")
    return genai.Client(
        api_key=settings.GEMINI_API_KEY,
        http_options=types.HttpOptions(timeout=int(settings.AI_TIMEOUT * 1000)),
    )
