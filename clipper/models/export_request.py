from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class ExportMode(str, Enum):
    EXTRACTED = "extracted"
    ORIGINALS = "originals"


class ExportRequest(BaseModel):
    mode: ExportMode = ExportMode.EXTRACTED


class SelectionRequest(BaseModel):
    selected: bool = True
    topic_ids: Optional[List[str]] = Field(
        default=None,
        description="Topics to (de)select. Omit to apply to every topic on the board.",
    )


class CleanImageRequest(BaseModel):
    title: str
