"""Cleveland Museum of Art open access API."""

from typing import List

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

CLEVELAND_API = "https://openaccess-api.clevelandart.org/api/artworks/"


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {"q": clean_query(query), "cc0": "1", "has_image": "1", "limit": str(limit)}
    data = await get_json(client, CLEVELAND_API, params)

    items = data.get("data")
    if not isinstance(items, list):
        return []

    records: List[ImageRecord] = []
    for item in items[:limit]:
        images = item.get("images") or {}
        image_url = (images.get("web") or {}).get("url")
        if not image_url:
            continue
        creators = item.get("creators") or []
        attribution = (
            (creators[0].get("description") if creators else None)
            or item.get("creation_date")
            or "Cleveland Museum of Art"
        )
        records.append(
            ImageRecord(
                title=item.get("title") or "Untitled",
                source_url=image_url,
                thumbnail_url=(images.get("print") or {}).get("url") or image_url,
                detail_page_url=item.get("url") or f"https://www.clevelandart.org/art/{item.get('id')}",
                license="Public Domain (CC0)",
                attribution=attribution,
                source=SourceId.CLEVELAND,
            )
        )
    return records
