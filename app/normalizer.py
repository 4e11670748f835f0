"""Map heterogeneous provider items onto :class:`CanonicalItem`."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping

from .errors import NormalizationSkip
from .models import MOVIE, SERIES, CanonicalItem
from .utils import ensure_url, parse_year, split_values

logger = logging.getLogger(__name__)

IMDB_ID_RE = re.compile(r"^tt\d+$")
TMDB_IMAGE_BASE = "https://image.tmdb.org/t/p"

_TYPE_ALIASES = {
    "movie": MOVIE,
    "movies": MOVIE,
    "film": MOVIE,
    "show": SERIES,
    "shows": SERIES,
    "series": SERIES,
    "tv": SERIES,
    "tvshow": SERIES,
}
_SERIES_HINTS = (
    "first_air_date",
    "first_aired",
    "last_air_date",
    "aired_episodes",
    "number_of_seasons",
    "seasons",
)


class ItemNormalizer:
    """Stateless converter from raw provider payloads to canonical items.

    ``normalize`` is idempotent: feeding it the output of
    :meth:`CanonicalItem.to_meta` yields an equal item.
    """

    def normalize(
        self, raw: Mapping[str, Any], *, default_type: str | None = None
    ) -> CanonicalItem | None:
        try:
            return self._build(raw, default_type)
        except NormalizationSkip as exc:
            logger.debug("Skipping provider item: %s", exc)
            return None

    def normalize_many(
        self, items: Iterable[Any], *, default_type: str | None = None
    ) -> list[CanonicalItem]:
        normalized: list[CanonicalItem] = []
        seen: set[str] = set()
        for raw in items:
            if not isinstance(raw, Mapping):
                continue
            item = self.normalize(raw, default_type=default_type)
            if item is None or item.id in seen:
                continue
            seen.add(item.id)
            normalized.append(item)
        return normalized

    def _build(self, raw: Mapping[str, Any], default_type: str | None) -> CanonicalItem:
        data, wrapper_type = self._unwrap(raw)
        item_id = self._pick_id(data)
        if not item_id:
            raise NormalizationSkip("item has no usable identifier")

        content_type = self._classify(data, wrapper_type, default_type)
        name = _first_text(data, "name", "title", "original_title", "original_name")
        year = parse_year(data.get("year")) or parse_year(
            _first_text(
                data,
                "releaseInfo",
                "release_date",
                "released",
                "first_air_date",
                "first_aired",
            )
        )
        release_info = _first_text(data, "releaseInfo", "release_info")
        if not release_info and year:
            release_info = str(year)

        status = _first_text(data, "status") if content_type == SERIES else None

        return CanonicalItem(
            id=item_id,
            type=content_type,
            name=name or item_id,
            poster=self._image(data, ("poster", "poster_url", "poster_path"), "w500"),
            background=self._image(
                data, ("background", "backdrop", "fanart", "backdrop_path"), "original"
            ),
            logo=ensure_url(data.get("logo")),
            description=_first_text(data, "description", "overview"),
            release_info=release_info,
            year=year,
            imdb_rating=_format_rating(
                _first_value(data, "imdbRating", "imdbrating", "imdb_rating", "rating")
            ),
            genres=split_values(data.get("genres") or data.get("genre")),
            cast=split_values(data.get("cast")),
            director=split_values(data.get("director")),
            writer=split_values(data.get("writer")),
            runtime=_format_runtime(data.get("runtime")),
            status=status,
        )

    @staticmethod
    def _unwrap(raw: Mapping[str, Any]) -> tuple[Mapping[str, Any], str | None]:
        """Trakt wraps list entries as ``{"type": "movie", "movie": {...}}``."""

        for key, content_type in (("movie", MOVIE), ("show", SERIES)):
            inner = raw.get(key)
            if isinstance(inner, Mapping):
                return inner, content_type
        return raw, None

    @staticmethod
    def _pick_id(data: Mapping[str, Any]) -> str | None:
        ids = data.get("ids")
        ids = ids if isinstance(ids, Mapping) else {}

        for candidate in (data.get("imdb_id"), data.get("imdbid"), ids.get("imdb")):
            text = str(candidate or "").strip()
            if not text:
                continue
            if IMDB_ID_RE.match(text):
                return text
            if text.isdigit():
                return f"tt{text}"

        raw_id = str(data.get("id") or "").strip()
        if IMDB_ID_RE.match(raw_id) or ":" in raw_id:
            return raw_id

        tmdb_id = ids.get("tmdb") or data.get("tmdb_id") or data.get("tmdbid")
        if tmdb_id:
            return f"tmdb:{tmdb_id}"
        # MDBList items carry the TMDB id as their numeric ``id``.
        if raw_id.isdigit() and data.get("mediatype"):
            return f"tmdb:{raw_id}"
        trakt_id = ids.get("trakt")
        if trakt_id:
            return f"trakt:{trakt_id}"
        if raw_id and not raw_id.isdigit():
            return raw_id
        return None

    @staticmethod
    def _classify(
        data: Mapping[str, Any], wrapper_type: str | None, default_type: str | None
    ) -> str:
        if wrapper_type:
            return wrapper_type
        for key in ("type", "mediatype", "media_type"):
            value = data.get(key)
            if isinstance(value, str) and value.strip().lower() in _TYPE_ALIASES:
                return _TYPE_ALIASES[value.strip().lower()]
        if any(data.get(key) for key in _SERIES_HINTS):
            return SERIES
        if default_type in (MOVIE, SERIES):
            return default_type
        return MOVIE

    @staticmethod
    def _image(data: Mapping[str, Any], keys: tuple[str, ...], size: str) -> str | None:
        for key in keys:
            value = data.get(key)
            url = ensure_url(value)
            if url:
                return url
            if isinstance(value, str) and value.startswith("/"):
                return f"{TMDB_IMAGE_BASE}/{size}{value}"
        return None


def _first_value(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _first_text(data: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if value is None or isinstance(value, (Mapping, list, tuple)):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _format_rating(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return f"{float(value):.1f}"
    text = str(value).strip()
    if not text:
        return None
    try:
        return f"{float(text):.1f}"
    except ValueError:
        return text


def _format_runtime(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return f"{int(value)} min" if value > 0 else None
    text = str(value).strip()
    if not text:
        return None
    if text.isdigit():
        return f"{text} min" if int(text) > 0 else None
    return text
