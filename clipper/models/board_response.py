from typing import Dict, List

from pydantic import BaseModel

from clipper.models.image import ImageRecord
from clipper.models.topic import TopicStatus


class TopicResponse(BaseModel):
    id: str
    display_name: str
    description_label: str
    status: TopicStatus
    images: List[ImageRecord]
    selected: bool


class BoardResponse(BaseModel):
    topics: List[TopicResponse]
    all_loaded: bool
    total_image_count: int
    extracted_count: int


class SelectionResponse(BaseModel):
    selection: Dict[str, bool]
