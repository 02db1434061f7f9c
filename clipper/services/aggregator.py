"""Multi-source image discovery.

Pipeline for one topic:

1. Ask the query optimizer for per-category phrasings (one call).
2. Fan out to every enabled archive concurrently; disabled archives
   contribute an empty list without touching the network.
3. Interleave the per-source lists round-robin in a fixed priority order so
   that no single archive dominates the front of the board.
4. Cap the merged list at ``MAX_TOPIC_IMAGES``.
"""

import asyncio
import logging
from typing import AbstractSet, Dict, List, Mapping, Optional, Sequence

import httpx

from clipper.models.image import ImageRecord, SourceId
from clipper.models.topic import SmartQuery
from clipper.services.optimizer import QueryOptimizer
from clipper.sources.registry import fetch_images

logger = logging.getLogger(__name__)

MAX_TOPIC_IMAGES = 50

#: Round-robin order: general media first, then the museum scans, space, and archives.
INTERLEAVE_ORDER: List[SourceId] = [
    SourceId.WIKIMEDIA,
    SourceId.MET,
    SourceId.ARTIC,
    SourceId.NASA,
    SourceId.CLEVELAND,
    SourceId.LOC,
    SourceId.INTERNET_ARCHIVE,
]

ALL_SOURCES = frozenset(SourceId)


def phrase_for(source: SourceId, query: SmartQuery) -> str:
    """Return the phrasing that suits *source*'s cataloguing style."""
    if source is SourceId.WIKIMEDIA:
        return query.general_phrase
    if source in (SourceId.LOC, SourceId.INTERNET_ARCHIVE):
        return query.archival_phrase
    if source is SourceId.NASA:
        return query.space_phrase
    return query.art_phrase


def interleave(
    results: Mapping[SourceId, Sequence[ImageRecord]],
    max_items: int = MAX_TOPIC_IMAGES,
) -> List[ImageRecord]:
    """Merge per-source lists index by index in ``INTERLEAVE_ORDER``.

    Each source's own relative order is preserved.  Sources missing from
    *results* are treated as empty.
    """
    longest = max((len(v) for v in results.values()), default=0)
    merged: List[ImageRecord] = []
    for i in range(longest):
        for source in INTERLEAVE_ORDER:
            records = results.get(source) or ()
            if i < len(records):
                merged.append(records[i])
    return merged[:max_items]


async def _empty() -> List[ImageRecord]:
    return []


async def get_topic_images(
    topic: str,
    optimizer: QueryOptimizer,
    enabled_sources: AbstractSet[SourceId] = ALL_SOURCES,
    per_source_limit: int = 3,
    client: Optional[httpx.AsyncClient] = None,
) -> List[ImageRecord]:
    """Discover images for *topic* across every enabled archive."""
    if not enabled_sources:
        logger.info("No sources enabled for %r", topic)
        return []

    query = await optimizer.optimize(topic)

    # Every coroutine is created before the gather so all requests are in flight together
    calls = []
    for source in INTERLEAVE_ORDER:
        if source not in enabled_sources:
            calls.append(_empty())
            continue
        limit = per_source_limit + 1 if source is SourceId.WIKIMEDIA else per_source_limit
        calls.append(fetch_images(source, phrase_for(source, query), limit, client))

    lists = await asyncio.gather(*calls)
    per_source: Dict[SourceId, List[ImageRecord]] = dict(zip(INTERLEAVE_ORDER, lists))

    merged = interleave(per_source)
    logger.info(
        "Topic %r: %d image(s) from %d source(s)",
        topic, len(merged), sum(1 for v in per_source.values() if v),
    )
    return merged
