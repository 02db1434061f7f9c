"""Bulk export of selected topics into a downloadable ZIP archive.

Two modes share the packaging step:

* **extracted** – phase 1 runs background removal over every selected image
  (0–80 % progress), phase 2 downloads the processed image where one exists
  and the original otherwise (80–100 %).
* **originals** – phase 2 only, over the original URLs (0–100 %).

Both phases are plain sequential loops.  Only one export may run at a time;
per-image failures are logged and skipped, while anything that breaks the
archive itself aborts the run.
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

import httpx
from tenacity import AsyncRetrying, stop_after_attempt, wait_fixed

from clipper.models.export_response import ExportStatus, LogEntry, LogLevel
from clipper.models.image import ImageRecord
from clipper.models.topic import Topic
from clipper.services.background import BackgroundRemover, ExtractionError
from clipper.services.board import Board
from clipper.services.fetcher import fetch_bytes
from clipper.services.naming import archive_filename, image_filename, unique_folder_names

logger = logging.getLogger(__name__)

EXTRACTION_SHARE = 80

_DOWNLOAD_ERRORS = (ValueError, httpx.HTTPError, RuntimeError)
_LOG_LEVELS = {
    LogLevel.INFO: logging.INFO,
    LogLevel.SUCCESS: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
}


class ExportInProgressError(RuntimeError):
    """Raised when an export is requested while another one is running."""


class EmptySelectionError(ValueError):
    """Raised when the selection holds no topics or no images."""


class ExportObserver(Protocol):
    def on_start(self) -> None: ...

    def on_finish(self) -> None: ...

    def on_progress(self, percent: int) -> None: ...

    def on_log(self, entry: LogEntry) -> None: ...

    def on_image_update(self, topic_id: str, title: str, **fields) -> None: ...


class BoardObserver:
    """Forwards image updates to the board and keeps progress and log for polling."""

    def __init__(self, board: Board) -> None:
        self.board = board
        self.status = ExportStatus()

    def on_start(self) -> None:
        self.status = ExportStatus(running=True)

    def on_finish(self) -> None:
        self.status.running = False

    def on_progress(self, percent: int) -> None:
        self.status.progress = percent

    def on_log(self, entry: LogEntry) -> None:
        self.status.log.append(entry)

    def on_image_update(self, topic_id: str, title: str, **fields) -> None:
        # No-op once the topic has been removed from the board
        self.board.update_image(topic_id, title, **fields)


@dataclass
class ExportResult:
    filename: str
    content: bytes
    files_written: int
    files_skipped: int


CacheKey = Tuple[str, str]


def _short(title: str, length: int = 15) -> str:
    return f"{title[:length]}..." if len(title) > length else title


class ExportOrchestrator:
    """Runs bulk exports and owns the cross-run extraction cache.

    ``processed_map`` maps ``(topic_id, original_url)`` to the extracted data
    URL.  It survives between runs and is re-seeded from any image that
    already carries an ``extracted_url``.
    """

    def __init__(
        self,
        remover: BackgroundRemover,
        observer: ExportObserver,
        download_attempts: int = 2,
        download_retry_delay: float = 1.0,
    ) -> None:
        self.remover = remover
        self.observer = observer
        self.download_attempts = download_attempts
        self.download_retry_delay = download_retry_delay
        self.processed_map: Dict[CacheKey, str] = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ── reporting ─────────────────────────────────────────────────────────

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> None:
        entry = LogEntry(time=datetime.now().strftime("%H:%M:%S"), level=level, message=message)
        logger.log(_LOG_LEVELS[level], "Export: %s", message)
        self.observer.on_log(entry)

    def _progress(self, percent: int) -> None:
        self.observer.on_progress(percent)

    # ── run lifecycle ─────────────────────────────────────────────────────

    def _begin(self, topics: Sequence[Topic], banner: str) -> None:
        if self._running:
            self.log("Export already running; wait for it to finish.", LogLevel.WARNING)
            raise ExportInProgressError("An export is already running.")
        if not topics:
            self.log("Error: No subjects selected for export.", LogLevel.WARNING)
            raise EmptySelectionError("No subjects selected for export.")

        self._running = True
        self.observer.on_start()
        self._progress(0)
        self.log(banner)

    def _end(self) -> None:
        self._running = False
        self._progress(0)
        self.observer.on_finish()

    # ── phase 1: extraction ───────────────────────────────────────────────

    def _seed_cache(self, topics: Sequence[Topic]) -> None:
        for topic in topics:
            for image in topic.images:
                if image.extracted_url:
                    self.processed_map[(topic.id, image.source_url)] = image.extracted_url

    async def _extract_one(self, topic_id: str, image: ImageRecord) -> None:
        key = (topic_id, image.source_url)
        if key in self.processed_map:
            self.log(f"CACHE: Using existing '{_short(image.title)}'")
            return

        self.log(f"CONNECT: {self.remover.model} -> '{_short(image.title)}'")
        self.observer.on_image_update(topic_id, image.title, is_extracting=True)
        try:
            extracted_url = await self.remover.remove_background(image.source_url)
        except ExtractionError as exc:
            logger.info("Extraction failed for %r: %s", image.title, exc)
            self.log(f"ERROR: AI failed for '{_short(image.title)}'", LogLevel.WARNING)
            self.observer.on_image_update(topic_id, image.title, is_extracting=False)
            return

        self.processed_map[key] = extracted_url
        self.observer.on_image_update(
            topic_id, image.title, extracted_url=extracted_url, is_extracting=False
        )
        self.log(f"SUCCESS: Extracted '{_short(image.title)}'", LogLevel.SUCCESS)

    async def _extraction_phase(self, items: List[Tuple[Topic, ImageRecord]]) -> None:
        self.log("--- PHASE 1: AI EXTRACTION ---")
        total = len(items)
        for done, (topic, image) in enumerate(items, start=1):
            await self._extract_one(topic.id, image)
            self._progress(done * EXTRACTION_SHARE // total)

    # ── phase 2: packaging ────────────────────────────────────────────────

    async def _download(self, url: str) -> bytes:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.download_attempts),
            wait=wait_fixed(self.download_retry_delay),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                fetched = await fetch_bytes(url)
                return fetched.content
        raise RuntimeError("Download failed.")

    async def _packaging_phase(
        self,
        topics: Sequence[Topic],
        use_extracted: bool,
        start: int,
        span: int,
    ) -> Tuple[Dict[str, List[Tuple[str, bytes]]], int]:
        """Download every image of *topics*; returns files per folder and the skip count."""
        total = sum(len(t.images) for t in topics)
        folders: Dict[str, List[Tuple[str, bytes]]] = {}
        skipped = 0
        done = 0

        names = unique_folder_names(t.display_name for t in topics)
        for topic, folder in zip(topics, names):
            files = folders.setdefault(folder, [])
            for index, image in enumerate(topic.images, start=1):
                extracted_url: Optional[str] = (
                    self.processed_map.get((topic.id, image.source_url)) if use_extracted else None
                )
                try:
                    content = await self._download(extracted_url or image.source_url)
                except _DOWNLOAD_ERRORS as exc:
                    skipped += 1
                    logger.info("Download failed for %r: %s", image.title, exc)
                    if extracted_url:
                        self.log(f"WRITE ERROR: {_short(image.title)}", LogLevel.WARNING)
                    else:
                        self.log(
                            f"CORS BLOCKED: {_short(image.title)} (Source blocked download)",
                            LogLevel.WARNING,
                        )
                else:
                    name = image_filename(index, image.title, image.source_url, bool(extracted_url))
                    files.append((name, content))

                done += 1
                self._progress(start + done * span // total)

        return folders, skipped

    @staticmethod
    def build_archive(root: str, folders: Dict[str, List[Tuple[str, bytes]]]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(f"{root}/", b"")
            for folder, files in folders.items():
                zf.writestr(f"{root}/{folder}/", b"")
                for name, content in files:
                    zf.writestr(f"{root}/{folder}/{name}", content)
        return buffer.getvalue()

    def _finalize(
        self,
        topics: Sequence[Topic],
        root: str,
        tag: str,
        folders: Dict[str, List[Tuple[str, bytes]]],
        skipped: int,
    ) -> ExportResult:
        self.log("COMPRESS: Generating ZIP...")
        content = self.build_archive(root, folders)
        filename = archive_filename([t.display_name for t in topics], tag)
        written = sum(len(files) for files in folders.values())
        self._progress(100)
        self.log(f"COMPLETE: {filename}", LogLevel.SUCCESS)
        return ExportResult(filename=filename, content=content, files_written=written, files_skipped=skipped)

    # ── public entry points ───────────────────────────────────────────────

    def _require_images(self, topics: Sequence[Topic]) -> List[Tuple[Topic, ImageRecord]]:
        items = [(topic, image) for topic in topics for image in topic.images]
        if not items:
            self.log("Aborting: No images found.", LogLevel.WARNING)
            raise EmptySelectionError("The selected subjects contain no images.")
        return items

    async def run_extracted(self, topics: Sequence[Topic]) -> ExportResult:
        """Remove backgrounds from every selected image, then package the results."""
        self._begin(topics, "Initializing Bulk Export Sequence...")
        try:
            items = self._require_images(topics)
            self._seed_cache(topics)
            self.log(f"Queued {len(items)} items for processing.")

            await self._extraction_phase(items)

            self.log("--- PHASE 2: ARCHIVING ---")
            folders, skipped = await self._packaging_phase(
                topics, use_extracted=True, start=EXTRACTION_SHARE, span=100 - EXTRACTION_SHARE
            )
            return self._finalize(topics, "collection", "Extracted", folders, skipped)
        except (ExportInProgressError, EmptySelectionError):
            raise
        except Exception:
            logger.exception("Extracted export failed")
            self.log("FATAL: Archive failed.", LogLevel.WARNING)
            raise
        finally:
            self._end()

    async def run_originals(self, topics: Sequence[Topic]) -> ExportResult:
        """Package the original images without any AI processing."""
        self._begin(topics, "Starting Standard Archive...")
        try:
            self._require_images(topics)
            folders, skipped = await self._packaging_phase(
                topics, use_extracted=False, start=0, span=100
            )
            return self._finalize(topics, "pd_original_archive", "Originals", folders, skipped)
        except (ExportInProgressError, EmptySelectionError):
            raise
        except Exception:
            logger.exception("Originals export failed")
            self.log("FATAL: Archive failed.", LogLevel.WARNING)
            raise
        finally:
            self._end()
