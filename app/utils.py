"""Utility helpers for the AIOLists service."""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Mapping
from urllib.parse import parse_qsl


YEAR_RE = re.compile(r"(19|20|21)\d{2}")


def slugify(value: str) -> str:
    """Return a URL-friendly slug."""

    value = unicodedata.normalize("NFKD", value)
    value = value.encode("ascii", "ignore").decode("ascii")
    value = re.sub(r"[^a-zA-Z0-9]+", "-", value)
    value = value.strip("-")
    value = re.sub(r"-+", "-", value)
    return value.lower() or "list"


def parse_year(value: Any) -> int | None:
    """Extract a plausible four digit year from ints, dates or free text."""

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if 1800 <= value <= 2200 else None
    if not value:
        return None
    match = YEAR_RE.search(str(value))
    if not match:
        return None
    year = int(match.group(0))
    if 1900 <= year <= 2100:
        return year
    return None


def ensure_url(value: Any) -> str | None:
    if isinstance(value, str) and value.startswith("http"):
        return value
    return None


def split_values(value: Any) -> list[str]:
    """Turn comma strings, lists of strings or lists of ``{"name": ...}`` into names."""

    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = []
        for entry in value:
            if isinstance(entry, Mapping):
                entry = entry.get("name")
            if entry is not None:
                parts.append(str(entry))
    else:
        return []
    cleaned: list[str] = []
    for part in parts:
        text = part.strip()
        if text and text not in cleaned:
            cleaned.append(text)
    return cleaned


def parse_extra_params(raw: str | None) -> dict[str, str]:
    """Decode the Stremio ``extra`` path segment (``skip=20&genre=Drama``)."""

    if not raw:
        return {}
    text = raw[:-5] if raw.endswith(".json") else raw
    return dict(parse_qsl(text, keep_blank_values=False))


def coerce_skip(value: Any) -> int:
    try:
        skip = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(0, skip)
