"""Application settings loaded from the environment (and an optional ``.env`` file)."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # ---- Gemini ----
    GEMINI_API_KEY: Optional[str] = None
    TEXT_MODEL: str = "gemini-2.5-flash"
    IMAGE_MODEL: str = "gemini-2.5-flash-image"

    # ---- Timeouts (seconds) ----
    SOURCE_TIMEOUT: float = 15.0
    FETCH_TIMEOUT: float = 30.0
    AI_TIMEOUT: float = 120.0

    # ---- Background removal retry ----
    EXTRACTION_ATTEMPTS: int = 3
    EXTRACTION_PRE_DELAY: float = 0.5   # multiplied by the attempt number
    EXTRACTION_BACKOFF: float = 1.0     # 1x, then 2x after consecutive failures

    # ---- Archive downloads ----
    DOWNLOAD_ATTEMPTS: int = 2
    DOWNLOAD_RETRY_DELAY: float = 1.0
    MAX_DOWNLOAD_SIZE: int = 25 * 1024 * 1024

    # ---- Search ----
    DEFAULT_PER_SOURCE_LIMIT: int = 3
    BOOTSTRAP_TOPIC: str = "Bananas"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
