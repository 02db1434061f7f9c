"""Art Institute of Chicago artwork search (IIIF image delivery)."""

from typing import List

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

ARTIC_SEARCH_URL = "https://api.artic.edu/api/v1/artworks/search"
IIIF_BASE = "https://www.artic.edu/iiif/2"


def iiif_url(image_id: str, width: int) -> str:
    return f"{IIIF_BASE}/{image_id}/full/{width},/0/default.jpg"


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {
        "q": clean_query(query),
        "query[term][is_public_domain]": "true",
        "fields": "id,title,image_id,artist_display,date_display",
        "limit": str(limit),
    }
    data = await get_json(client, ARTIC_SEARCH_URL, params)

    records: List[ImageRecord] = []
    for item in (data.get("data") or [])[:limit]:
        image_id = item.get("image_id")
        if not image_id:
            continue
        records.append(
            ImageRecord(
                title=item.get("title") or "Untitled",
                source_url=iiif_url(image_id, 843),
                thumbnail_url=iiif_url(image_id, 400),
                detail_page_url=f"https://www.artic.edu/artworks/{item.get('id')}",
                license="Public Domain (CC0)",
                attribution=f"{item.get('artist_display') or 'Unknown'} ({item.get('date_display') or 'N/A'})",
                source=SourceId.ARTIC,
            )
        )
    return records
