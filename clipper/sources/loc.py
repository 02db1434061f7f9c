"""Library of Congress photo search."""

from typing import List

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

LOC_SEARCH_URL = "https://www.loc.gov/photos/"
LOC_BASE = "https://www.loc.gov"


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {"q": clean_query(query, underscores_to_spaces=True), "fo": "json", "c": str(limit)}
    data = await get_json(client, LOC_SEARCH_URL, params)

    records: List[ImageRecord] = []
    for item in (data.get("results") or [])[:limit]:
        image_urls = item.get("image_url") or []
        # image_url is ordered smallest first
        if not image_urls or not image_urls[-1]:
            continue
        path = item.get("url") or ""
        records.append(
            ImageRecord(
                title=item.get("title") or "LOC Image",
                source_url=image_urls[-1],
                thumbnail_url=image_urls[0],
                detail_page_url=path if path.startswith("http") else (f"{LOC_BASE}{path}" if path else ""),
                license="Public Domain / No Known Restrictions",
                attribution=f"Library of Congress, Call Number: {item.get('call_number') or 'N/A'}",
                source=SourceId.LOC,
            )
        )
    return records
