from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SourceId(str, Enum):
    """Archives an image can be discovered in."""

    WIKIMEDIA = "Wikimedia"
    LOC = "Library of Congress"
    INTERNET_ARCHIVE = "Internet Archive"
    MET = "The Met"
    ARTIC = "Art Institute of Chicago"
    CLEVELAND = "Cleveland Museum of Art"
    NASA = "NASA"


class ImageRecord(BaseModel):
    """One discovered image, normalised across all sources."""

    title: str
    source_url: str  # full resolution
    thumbnail_url: str
    detail_page_url: str
    license: str
    attribution: str
    source: SourceId

    # Overlay fields owned by the topic board
    extracted_url: Optional[str] = None
    is_extracting: bool = False
