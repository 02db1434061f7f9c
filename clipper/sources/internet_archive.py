"""Internet Archive advanced search restricted to image items."""

from typing import List

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

IA_SEARCH_URL = "https://archive.org/advancedsearch.php"


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    term = clean_query(query, underscores_to_spaces=True)
    params = [
        ("q", f"{term} AND mediatype:image"),
        ("fl[]", "identifier"),
        ("fl[]", "title"),
        ("fl[]", "description"),
        ("rows", str(limit)),
        ("output", "json"),
    ]
    data = await get_json(client, IA_SEARCH_URL, params)
    docs = (data.get("response") or {}).get("docs") or []

    records: List[ImageRecord] = []
    for doc in docs[:limit]:
        identifier = doc.get("identifier")
        if not identifier:
            continue
        title = doc.get("title") or "Internet Archive Item"
        if isinstance(title, list):
            title = title[0] if title else "Internet Archive Item"
        records.append(
            ImageRecord(
                title=title,
                # Most image collections store the primary file under the item id
                source_url=f"https://archive.org/download/{identifier}/{identifier}.jpg",
                thumbnail_url=f"https://archive.org/services/img/{identifier}",
                detail_page_url=f"https://archive.org/details/{identifier}",
                license="Public Domain / CC0",
                attribution=f"Internet Archive: {identifier}",
                source=SourceId.INTERNET_ARCHIVE,
            )
        )
    return records
