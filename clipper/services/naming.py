"""File and folder naming for exported archives."""

import re
import time
from typing import Iterable, List, Set
from urllib.parse import urlparse

MAX_ARCHIVE_BASENAME = 50
TRUNCATION_MARKER = "_et_al"

_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^A-Za-z0-9_]")
_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]")
_EXT_RE = re.compile(r"^[a-z0-9]{1,5}$")


def folder_name(display_name: str) -> str:
    """Topic folder: whitespace runs become ``_``; path separators are dropped."""
    name = _WHITESPACE_RE.sub("_", display_name.strip())
    return name.replace("/", "").replace("\\", "") or "untitled"


def unique_folder_names(display_names: Iterable[str]) -> List[str]:
    """Folder per topic; repeated names get a numeric suffix (``Bananas``, ``Bananas_2``)."""
    used: Set[str] = set()
    result: List[str] = []
    for display_name in display_names:
        base = folder_name(display_name)
        candidate, n = base, 1
        while candidate in used:
            n += 1
            candidate = f"{base}_{n}"
        used.add(candidate)
        result.append(candidate)
    return result


def sanitize_title(title: str) -> str:
    return _NON_WORD_RE.sub("", _WHITESPACE_RE.sub("_", title))


def file_extension(url: str, extracted: bool) -> str:
    """``png`` for extracted images, else the original URL's extension (default ``jpg``)."""
    if extracted:
        return "png"
    path = urlparse(url).path
    if "." not in path.rsplit("/", 1)[-1]:
        return "jpg"
    ext = path.rsplit(".", 1)[-1].lower()
    return ext if _EXT_RE.match(ext) else "jpg"


def image_filename(index: int, title: str, url: str, extracted: bool) -> str:
    """``NN_Title.ext`` with a 1-based, two-digit index."""
    return f"{index:02d}_{sanitize_title(title)}.{file_extension(url, extracted)}"


def archive_basename(topic_names: Iterable[str]) -> str:
    names = [_NON_ALNUM_RE.sub("", name) for name in topic_names]
    base = "_".join(names)
    if len(base) > MAX_ARCHIVE_BASENAME:
        base = base[:MAX_ARCHIVE_BASENAME] + TRUNCATION_MARKER
    return base


def archive_filename(topic_names: Iterable[str], tag: str) -> str:
    """Deterministic ZIP name, e.g. ``Bananas_Mushrooms_Extracted.zip``."""
    names = list(topic_names)
    if not names:
        return f"pd_archive_{int(time.time() * 1000)}.zip"
    return f"{archive_basename(names)}_{tag}.zip"
