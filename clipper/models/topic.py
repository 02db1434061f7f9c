from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from clipper.models.image import ImageRecord


class TopicStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class Topic(BaseModel):
    """A single user search and the images discovered for it."""

    id: str
    display_name: str
    description_label: str
    images: List[ImageRecord] = Field(default_factory=list)
    status: TopicStatus = TopicStatus.LOADING


class SmartQuery(BaseModel):
    """Per-category search phrases derived from one raw topic name."""

    general_phrase: str
    archival_phrase: str
    art_phrase: str
    space_phrase: str

    @classmethod
    def fallback(cls, topic: str) -> "SmartQuery":
        return cls(
            general_phrase=topic,
            archival_phrase=topic,
            art_phrase=topic,
            space_phrase=topic,
        )
