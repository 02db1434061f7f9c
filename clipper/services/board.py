"""In-session topic board and export selection.

The board is the only owner of topic state.  Every mutation goes through the
methods below and replaces the touched objects with copies, so callers that
hold references to untouched topics or images can compare them by identity.
"""

import logging
import time
from typing import Dict, List, Optional

from clipper.models.image import ImageRecord
from clipper.models.topic import Topic, TopicStatus

logger = logging.getLogger(__name__)


class Board:
    def __init__(self) -> None:
        self.topics: List[Topic] = []
        self.selection: Dict[str, bool] = {}
        self._last_id = 0

    # ── lookup ────────────────────────────────────────────────────────────

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return next((t for t in self.topics if t.id == topic_id), None)

    def _index_of(self, topic_id: str) -> int:
        for i, topic in enumerate(self.topics):
            if topic.id == topic_id:
                return i
        return -1

    def _new_id(self) -> str:
        # Millisecond timestamps, bumped when two topics arrive in the same tick
        candidate = max(int(time.time() * 1000), self._last_id + 1)
        self._last_id = candidate
        return str(candidate)

    # ── mutations ─────────────────────────────────────────────────────────

    def add_topic(
        self,
        name: str,
        description_label: str = "Custom Search",
        topic_id: Optional[str] = None,
    ) -> str:
        """Insert a new loading topic at the front and return its id."""
        topic_id = topic_id or self._new_id()
        if self._index_of(topic_id) >= 0:
            raise ValueError(f"Topic id {topic_id!r} already exists.")

        topic = Topic(id=topic_id, display_name=name, description_label=description_label)
        self.topics = [topic, *self.topics]
        self._sync_selection()
        logger.info("Topic added: %s (%s)", name, topic_id)
        return topic_id

    def _replace(self, index: int, topic: Topic) -> None:
        topics = list(self.topics)
        topics[index] = topic
        self.topics = topics

    def _loading_index(self, topic_id: str) -> int:
        # A settled topic never changes status again
        index = self._index_of(topic_id)
        if index >= 0 and self.topics[index].status is not TopicStatus.LOADING:
            logger.info("Ignoring late status change for settled topic %s", topic_id)
            return -1
        return index

    def resolve_topic(self, topic_id: str, images: List[ImageRecord]) -> None:
        index = self._loading_index(topic_id)
        if index < 0:
            return
        current = self.topics[index]
        self._replace(
            index,
            current.model_copy(update={"images": list(images), "status": TopicStatus.SUCCESS}),
        )

    def fail_topic(self, topic_id: str) -> None:
        index = self._loading_index(topic_id)
        if index < 0:
            return
        current = self.topics[index]
        self._replace(index, current.model_copy(update={"status": TopicStatus.ERROR}))

    def remove_topic(self, topic_id: str) -> bool:
        index = self._index_of(topic_id)
        if index < 0:
            return False
        self.topics = [t for t in self.topics if t.id != topic_id]
        self._sync_selection()
        logger.info("Topic removed: %s", topic_id)
        return True

    def update_image(self, topic_id: str, title: str, **fields) -> bool:
        """Merge *fields* into the image titled *title* within *topic_id*.

        Titles are assumed unique within a topic; with duplicates only the
        first match is updated.  Returns False (and changes nothing) when
        either key misses.
        """
        index = self._index_of(topic_id)
        if index < 0:
            return False

        topic = self.topics[index]
        for i, image in enumerate(topic.images):
            if image.title == title:
                images = list(topic.images)
                images[i] = image.model_copy(update=fields)
                self._replace(index, topic.model_copy(update={"images": images}))
                return True
        return False

    # ── selection ─────────────────────────────────────────────────────────

    def _sync_selection(self) -> None:
        ids = {t.id for t in self.topics}
        for stale in [tid for tid in self.selection if tid not in ids]:
            del self.selection[stale]
        for topic in self.topics:
            self.selection.setdefault(topic.id, True)

    def set_selected(self, topic_id: str, selected: bool) -> bool:
        if topic_id not in self.selection:
            return False
        self.selection[topic_id] = selected
        return True

    def select_all(self, selected: bool) -> None:
        for topic_id in self.selection:
            self.selection[topic_id] = selected

    def selected_topics(self) -> List[Topic]:
        return [t for t in self.topics if self.selection.get(t.id)]

    # ── derived views ─────────────────────────────────────────────────────

    @property
    def all_loaded(self) -> bool:
        return all(t.status is not TopicStatus.LOADING for t in self.topics)

    @property
    def total_image_count(self) -> int:
        return sum(len(t.images) for t in self.topics)

    @property
    def extracted_count(self) -> int:
        return sum(1 for t in self.topics for img in t.images if img.extracted_url)
