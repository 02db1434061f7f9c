"""The Metropolitan Museum of Art collection API.

Search only returns object ids, so every hit costs one extra request for the
object record.  The id list is cut to *limit* before any detail request.
"""

import asyncio
import logging
from typing import List, Optional

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources.base import clean_query, get_json

logger = logging.getLogger(__name__)

MET_API = "https://collectionapi.metmuseum.org/public/collection/v1"


async def _fetch_object(client: httpx.AsyncClient, object_id: int) -> Optional[dict]:
    try:
        return await get_json(client, f"{MET_API}/objects/{object_id}")
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Met object %s could not be fetched: %s", object_id, exc)
        return None


def _object_to_record(obj: Optional[dict]) -> Optional[ImageRecord]:
    if not obj or not obj.get("primaryImage"):
        return None
    return ImageRecord(
        title=obj.get("title") or "Met Museum Object",
        source_url=obj["primaryImage"],
        thumbnail_url=obj.get("primaryImageSmall") or obj["primaryImage"],
        detail_page_url=obj.get("objectURL") or "",
        license="Public Domain (CC0)",
        attribution=f"{obj.get('artistDisplayName') or 'Unknown Artist'} ({obj.get('objectDate') or 'N/A'})",
        source=SourceId.MET,
    )


async def search(query: str, limit: int, client: httpx.AsyncClient) -> List[ImageRecord]:
    params = {"q": clean_query(query), "hasImages": "true", "isPublicDomain": "true"}
    data = await get_json(client, f"{MET_API}/search", params)

    object_ids = (data.get("objectIDs") or [])[:limit]
    if not object_ids:
        return []

    objects = await asyncio.gather(*(_fetch_object(client, oid) for oid in object_ids))
    return [r for r in (_object_to_record(o) for o in objects) if r is not None]
