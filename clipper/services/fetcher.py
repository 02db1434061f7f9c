import base64
import binascii
import ipaddress
import socket
from typing import NamedTuple, Optional
from urllib.parse import unquote_to_bytes, urljoin, urlparse

import httpx

from clipper.config import get_settings

MAX_REDIRECTS = 10
ALLOWED_SCHEMES = {"http", "https"}


class FetchedImage(NamedTuple):
    content: bytes
    content_type: str


def _is_private_address(hostname: str) -> bool:
    """Return True if *hostname* resolves to a private, loopback, or link-local address."""
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror:
        return False

    for info in infos:
        raw_ip = info[4][0]
        # Strip IPv6 zone IDs (e.g. "::1%eth0" → "::1")
        raw_ip = raw_ip.split("%")[0]
        try:
            addr = ipaddress.ip_address(raw_ip)
        except ValueError:
            continue
        if addr.is_private or addr.is_loopback or addr.is_link_local or addr.is_reserved:
            return True
    return False


def _validate_url(url: str) -> None:
    """Raise ValueError if *url* fails SSRF / scheme validation."""
    parsed = urlparse(url)

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname.")

    if _is_private_address(hostname):
        raise ValueError("Requests to private/internal addresses are not allowed.")


def _media_type(header: Optional[str]) -> str:
    return (header or "application/octet-stream").split(";")[0].strip().lower()


def decode_data_url(url: str) -> FetchedImage:
    """Decode an RFC 2397 ``data:`` URL such as those produced by background removal.

    Raises:
        ValueError: if *url* is not a well-formed data URL.
    """
    header, sep, payload = url.partition(",")
    if not header.startswith("data:") or not sep:
        raise ValueError("Malformed data URL.")

    meta = header[len("data:"):]
    is_base64 = meta.endswith(";base64")
    if is_base64:
        meta = meta[: -len(";base64")]
        try:
            content = base64.b64decode(payload, validate=True)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload: {exc}") from exc
    else:
        content = unquote_to_bytes(payload)
    return FetchedImage(content, _media_type(meta or "text/plain"))


async def fetch_bytes(url: str, client: Optional[httpx.AsyncClient] = None) -> FetchedImage:
    """Fetch the image at *url* and return its bytes and media type.

    ``data:`` URLs are decoded locally.  Remote redirects are followed
    manually so that every redirect destination is validated against the
    SSRF rules before the next request is made.

    Raises:
        ValueError: if the URL fails SSRF / scheme validation.
        httpx.HTTPError: on network or HTTP errors.
        RuntimeError: if the response body exceeds ``MAX_DOWNLOAD_SIZE``.
    """
    if url.startswith("data:"):
        return decode_data_url(url)

    _validate_url(url)
    settings = get_settings()
    max_size = settings.MAX_DOWNLOAD_SIZE

    if client is None:
        async with httpx.AsyncClient(follow_redirects=False, timeout=settings.FETCH_TIMEOUT) as owned:
            return await _fetch_with_redirects(owned, url, max_size)
    return await _fetch_with_redirects(client, url, max_size)


async def _fetch_with_redirects(client: httpx.AsyncClient, url: str, max_size: int) -> FetchedImage:
    current_url = url
    for _ in range(MAX_REDIRECTS + 1):
        async with client.stream("GET", current_url, follow_redirects=False) as response:
            if response.is_redirect:
                location = response.headers.get("location", "")
                next_url = urljoin(current_url, location)
                _validate_url(next_url)
                current_url = next_url
                continue

            response.raise_for_status()

            content_length = response.headers.get("content-length")
            if content_length and int(content_length) > max_size:
                raise RuntimeError("Response body exceeds the maximum allowed size.")

            chunks = []
            total = 0
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > max_size:
                    raise RuntimeError("Response body exceeds the maximum allowed size.")
                chunks.append(chunk)

            return FetchedImage(b"".join(chunks), _media_type(response.headers.get("content-type")))

    raise RuntimeError("Too many redirects.")
