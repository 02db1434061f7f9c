"""Wikimedia Commons file search (general-media source)."""

import logging
from typing import List, Optional

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json, strip_tags

logger = logging.getLogger(__name__)

WIKIMEDIA_API = "https://commons.wikimedia.org/w/api.php"

_FILE_NAMESPACE = "6"
_THUMB_WIDTH = "400"


def _page_to_record(page: dict) -> Optional[ImageRecord]:
    info = (page.get("imageinfo") or [None])[0]
    if not info or not info.get("url"):
        return None

    meta = info.get("extmetadata") or {}
    license_name = (meta.get("LicenseShortName") or {}).get("value") or "Public Domain"
    attribution = (
        (meta.get("Attribution") or {}).get("value")
        or (meta.get("Artist") or {}).get("value")
        or "Wikimedia Commons"
    )

    return ImageRecord(
        title=page.get("title", "").replace("File:", ""),
        source_url=info["url"],
        thumbnail_url=info.get("thumburl") or info["url"],
        detail_page_url=info.get("descriptionurl", ""),
        license=strip_tags(license_name),
        attribution=strip_tags(attribution),
        source=SourceId.WIKIMEDIA,
    )


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {
        "action": "query",
        "generator": "search",
        "gsrnamespace": _FILE_NAMESPACE,
        "gsrsearch": f"{clean_query(query)} filetype:bitmap",
        "gsrlimit": str(limit),
        "prop": "imageinfo",
        "iiprop": "url|extmetadata|thumburl",
        "iiurlwidth": _THUMB_WIDTH,
        "format": "json",
        "origin": "*",
    }
    data = await get_json(client, WIKIMEDIA_API, params)
    pages = (data.get("query") or {}).get("pages") or {}

    records = [r for r in (_page_to_record(p) for p in pages.values()) if r is not None]
    return records[:limit]
