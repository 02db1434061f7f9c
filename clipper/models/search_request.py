from typing import Optional, Set

from pydantic import BaseModel, Field

from clipper.models.image import SourceId


class SearchRequest(BaseModel):
    topic: str = Field(max_length=200)
    sources: Optional[Set[SourceId]] = Field(
        default=None,
        description="Sources to query. Omit to query every source.",
    )
    per_source_limit: Optional[int] = Field(
        default=None,
        ge=1,
        le=10,
        description="Maximum results per source (1–10). Defaults to the configured value.",
    )
