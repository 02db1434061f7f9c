"""NASA Image and Video Library search.

The API has no page-size parameter (it returns up to 100 hits), so the
result is sliced to *limit* on our side.
"""

from typing import List

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

NASA_SEARCH_URL = "https://images-api.nasa.gov/search"


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {"q": clean_query(query), "media_type": "image"}
    data = await get_json(client, NASA_SEARCH_URL, params)
    items = (data.get("collection") or {}).get("items") or []

    records: List[ImageRecord] = []
    for item in items[:limit]:
        link = ((item.get("links") or [{}])[0] or {}).get("href")
        meta = (item.get("data") or [None])[0]
        if not link or not meta:
            continue
        records.append(
            ImageRecord(
                title=meta.get("title") or "NASA Image",
                # The preview href is a medium-size JPEG; the original asset needs a second lookup
                source_url=link,
                thumbnail_url=link,
                detail_page_url=f"https://images.nasa.gov/details/{meta.get('nasa_id', '')}",
                license="Public Domain (US Gov)",
                attribution=meta.get("photographer") or meta.get("center") or "NASA",
                source=SourceId.NASA,
            )
        )
    return records
