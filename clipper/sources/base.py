"""Shared helpers for the archive adapters."""

import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from clipper.config import get_settings

_TAG_RE = re.compile(r"<[^>]*>?")

# Some archives reject requests without an identifying agent.
USER_AGENT = "PublicDomainClipper/1.0 (+https://github.com/jbrick2070/Public-Domain-Clipper)"


def clean_query(query: str, underscores_to_spaces: bool = False) -> str:
    """Strip the ``Category:`` prefix convention and, optionally, underscores."""
    cleaned = query.replace("Category:", "")
    if underscores_to_spaces:
        cleaned = cleaned.replace("_", " ")
    return cleaned.strip()


def strip_tags(value: str) -> str:
    return _TAG_RE.sub("", value)


@asynccontextmanager
async def open_client(client: Optional[httpx.AsyncClient] = None) -> AsyncIterator[httpx.AsyncClient]:
    """Yield *client* unchanged, or a short-lived client when none is supplied."""
    if client is not None:
        yield client
        return

    async with httpx.AsyncClient(
        timeout=get_settings().SOURCE_TIMEOUT,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    ) as owned:
        yield owned


async def get_json(client: httpx.AsyncClient, url: str, params: Optional[dict] = None):
    """GET *url* and decode the JSON body, raising on HTTP errors."""
    resp = await client.get(url, params=params)
    resp.raise_for_status()
    return resp.json()
