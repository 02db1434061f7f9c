"""Process-wide session state shared by the routers.

A single :class:`ClipperState` owns the board, the AI clients and the export
orchestrator.  Routers reach it through ``request.app.state.clipper``.
"""

import logging
from dataclasses import dataclass
from typing import AbstractSet, Optional

from fastapi import Request

from clipper.config import Settings, get_settings
from clipper.models.image import SourceId
from clipper.services.aggregator import ALL_SOURCES, get_topic_images
from clipper.services.background import BackgroundRemover, ExtractionError
from clipper.services.board import Board
from clipper.services.exporter import BoardObserver, ExportOrchestrator
from clipper.services.optimizer import QueryOptimizer

logger = logging.getLogger(__name__)

BOOTSTRAP_TOPIC_ID = "demo-1"


class ImageBusyError(RuntimeError):
    """Raised when an image is already being processed."""


@dataclass
class ClipperState:
    settings: Settings
    board: Board
    optimizer: QueryOptimizer
    remover: BackgroundRemover
    observer: BoardObserver
    exporter: ExportOrchestrator

    async def populate_topic(
        self,
        topic_id: str,
        name: str,
        sources: AbstractSet[SourceId] = ALL_SOURCES,
        per_source_limit: Optional[int] = None,
    ) -> None:
        """Run the aggregator for *name* and settle the topic's status."""
        limit = per_source_limit or self.settings.DEFAULT_PER_SOURCE_LIMIT
        try:
            images = await get_topic_images(name, self.optimizer, sources, limit)
        except Exception:
            logger.exception("Search failed for topic %r", name)
            self.board.fail_topic(topic_id)
            return
        self.board.resolve_topic(topic_id, images)

    async def clean_image(self, topic_id: str, title: str) -> str:
        """Remove the background of one board image and record the result.

        Raises:
            KeyError: if the topic or image does not exist.
            ImageBusyError: if the image is already being processed.
            ExtractionError: if background removal fails.
        """
        topic = self.board.get_topic(topic_id)
        image = next((img for img in topic.images if img.title == title), None) if topic else None
        if image is None:
            raise KeyError(title)
        if image.is_extracting:
            raise ImageBusyError(f"'{title}' is already being processed.")

        self.board.update_image(topic_id, title, is_extracting=True)
        try:
            extracted_url = await self.remover.remove_background(image.source_url)
        except ExtractionError:
            self.board.update_image(topic_id, title, is_extracting=False)
            raise

        self.board.update_image(topic_id, title, extracted_url=extracted_url, is_extracting=False)
        return extracted_url


def build_state(settings: Optional[Settings] = None) -> ClipperState:
    settings = settings or get_settings()
    board = Board()
    remover = BackgroundRemover(
        model=settings.IMAGE_MODEL,
        attempts=settings.EXTRACTION_ATTEMPTS,
        pre_call_delay=settings.EXTRACTION_PRE_DELAY,
        backoff=settings.EXTRACTION_BACKOFF,
    )
    observer = BoardObserver(board)
    return ClipperState(
        settings=settings,
        board=board,
        optimizer=QueryOptimizer(settings.TEXT_MODEL, enabled=bool(settings.GEMINI_API_KEY)),
        remover=remover,
        observer=observer,
        exporter=ExportOrchestrator(
            remover,
            observer,
            download_attempts=settings.DOWNLOAD_ATTEMPTS,
            download_retry_delay=settings.DOWNLOAD_RETRY_DELAY,
        ),
    )


def get_state(request: Request) -> ClipperState:
    return request.app.state.clipper
