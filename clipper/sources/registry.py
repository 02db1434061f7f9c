"""Adapter registry and the single point where source failures become empty results."""

import logging
from typing import Awaitable, Callable, Dict, List, Optional

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.sources import artic, cleveland, internet_archive, loc, met, nasa, wikimedia
from clipper.sources.base import open_client

logger = logging.getLogger(__name__)

SourceSearch = Callable[[str, int, httpx.AsyncClient], Awaitable[List[ImageRecord]]]

ADAPTERS: Dict[SourceId, SourceSearch] = {
    SourceId.WIKIMEDIA: wikimedia.search,
    SourceId.LOC: loc.search,
    SourceId.INTERNET_ARCHIVE: internet_archive.search,
    SourceId.MET: met.search,
    SourceId.ARTIC: artic.search,
    SourceId.CLEVELAND: cleveland.search,
    SourceId.NASA: nasa.search,
}

_SOURCE_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError, IndexError)


async def fetch_images(
    source: SourceId,
    query: str,
    limit: int,
    client: Optional[httpx.AsyncClient] = None,
) -> List[ImageRecord]:
    """Query one archive; never raises.

    Network, HTTP, JSON and shape errors are logged and reported as an empty
    result so that one failing archive cannot affect the others.
    """
    adapter = ADAPTERS[source]
    try:
        async with open_client(client) as http:
            records = await adapter(query, limit, http)
    except _SOURCE_ERRORS as exc:
        logger.warning("%s search failed for %r: %s", source.value, query, exc)
        return []

    logger.info("%s returned %d image(s) for %r", source.value, len(records), query)
    return records[:limit]
