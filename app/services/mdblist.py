"""Utilities for communicating with the MDBList API."""

from __future__ import annotations

import logging
import re
from typing import Any

from ..catalogs import (
    MDBLIST_URL_PREFIX,
    MDBLIST_WATCHLIST_ID,
    CatalogRef,
    ListDescriptor,
    MDBListRef,
    UrlImportRef,
    mdblist_catalog_id,
)
from ..errors import ProviderAuthError, ProviderError, ProviderNotFound
from ..models import MOVIE, SERIES, ImportedAddonRecord, SortPreference, UserConfig
from .base import ProviderAdapter, RawPage, request_json

logger = logging.getLogger(__name__)

PROVIDER = "mdblist"
LIST_URL_RE = re.compile(
    r"^https?://(?:www\.)?mdblist\.com/lists/(?P<user>[\w-]+)/(?P<slug>[\w-]+)/?$"
)


def flatten_items(payload: Any) -> list[dict[str, Any]]:
    """Flatten ``{"movies": [...], "shows": [...]}`` and plain list payloads."""

    items: list[dict[str, Any]] = []
    if isinstance(payload, dict):
        if payload.get("error"):
            raise ProviderNotFound(PROVIDER, str(payload["error"]))
        for key, content_type in (("movies", MOVIE), ("shows", SERIES)):
            entries = payload.get(key)
            if isinstance(entries, list):
                items.extend(
                    {**entry, "type": content_type}
                    for entry in entries
                    if isinstance(entry, dict)
                )
        if items:
            return items
        for key in ("items", "results"):
            entries = payload.get(key)
            if isinstance(entries, list):
                payload = entries
                break
    if isinstance(payload, list):
        for entry in payload:
            if not isinstance(entry, dict):
                continue
            mediatype = entry.get("mediatype") or entry.get("type")
            content_type = SERIES if mediatype in ("show", "series") else MOVIE
            items.append({**entry, "type": content_type})
    return items


def _type_hint(mediatype: Any) -> str | None:
    if mediatype == "movie":
        return MOVIE
    if mediatype in ("show", "series"):
        return SERIES
    return None


class MDBListClient(ProviderAdapter):
    """Thin wrapper around the MDBList HTTP API."""

    family = "mdblist"
    splittable = True
    supports_genre_filter = False

    def has_credentials(self, config: UserConfig) -> bool:
        return config.has_mdblist_key

    async def _get(
        self, path: str, config: UserConfig, params: dict[str, Any] | None = None
    ) -> Any:
        if not config.api_key:
            raise ProviderAuthError(PROVIDER, "API key missing")
        query = {"apikey": config.api_key}
        if params:
            query.update(params)
        payload, _ = await request_json(self._client, PROVIDER, path, params=query)
        return payload

    async def fetch_all_lists(self, config: UserConfig) -> list[dict[str, Any]]:
        """Return internal (``L``) and external (``E``) lists plus the watchlist."""

        if not config.api_key:
            return []
        collected: list[dict[str, Any]] = []
        for path, list_type in (("/lists/user", "L"), ("/external/lists/user", "E")):
            try:
                payload = await self.with_retry(
                    lambda path=path: self._get(path, config),
                    label=f"{list_type} list enumeration",
                )
            except ProviderAuthError:
                raise
            except ProviderError as exc:
                logger.warning("Error fetching MDBList %s lists: %s", list_type, exc)
                continue
            if not isinstance(payload, list):
                continue
            for entry in payload:
                if isinstance(entry, dict) and entry.get("id") is not None:
                    collected.append({**entry, "listType": list_type})
        collected.append({"id": "watchlist", "name": "My Watchlist", "listType": "W"})
        return collected

    async def enumerate_lists(self, config: UserConfig) -> list[ListDescriptor]:
        descriptors: list[ListDescriptor] = []
        for entry in await self.fetch_all_lists(config):
            list_type = entry["listType"]
            if list_type == "W":
                descriptors.append(
                    ListDescriptor(
                        id=MDBLIST_WATCHLIST_ID,
                        name=str(entry.get("name") or "My Watchlist"),
                        source_kind="watchlist",
                        ref=MDBListRef(list_id="watchlist", sub_kind="W"),
                        list_type="W",
                    )
                )
                continue
            list_id = str(entry["id"])
            descriptors.append(
                ListDescriptor(
                    id=mdblist_catalog_id(list_id, list_type),
                    name=str(entry.get("name") or f"MDBList {list_id}"),
                    source_kind="native",
                    ref=MDBListRef(list_id=list_id, sub_kind=list_type),
                    type_hint=_type_hint(entry.get("mediatype")),
                    list_type=list_type,
                )
            )
        return descriptors

    async def fetch_page(
        self,
        ref: CatalogRef,
        config: UserConfig,
        *,
        skip: int,
        limit: int,
        sort: SortPreference,
        genre: str | None = None,
    ) -> RawPage:
        path = await self._items_path(ref, config)
        payload = await self._get(
            path,
            config,
            {
                "sort": sort.sort,
                "order": sort.order,
                "limit": limit,
                "offset": max(0, skip),
            },
        )
        return RawPage(items=flatten_items(payload))

    async def _items_path(self, ref: CatalogRef, config: UserConfig) -> str:
        if isinstance(ref, UrlImportRef):
            return f"/lists/{ref.native_id}/items"
        if not isinstance(ref, MDBListRef):
            raise TypeError(f"MDBList cannot serve {ref.kind} catalogs")
        if ref.is_watchlist:
            return "/watchlist/items"
        sub_kind = ref.sub_kind or await self._resolve_list_type(ref.list_id, config)
        prefix = "/external" if sub_kind == "E" else ""
        return f"{prefix}/lists/{ref.list_id}/items"

    async def _resolve_list_type(self, list_id: str, config: UserConfig) -> str:
        """Find out whether a legacy id is internal or external."""

        for key in (f"aiolists-{list_id}", list_id):
            metadata = config.lists_metadata.get(key)
            if metadata is not None and metadata.list_type:
                return metadata.list_type
        for entry in await self.fetch_all_lists(config):
            if str(entry.get("id")) == list_id:
                return str(entry["listType"])
        raise ProviderNotFound(PROVIDER, f"list {list_id} not found")

    async def fetch_user_lists(
        self, username: str, config: UserConfig
    ) -> list[dict[str, Any]]:
        """Return the public lists of ``username`` for random discovery."""

        payload = await self._get(f"/lists/user/{username}", config)
        if not isinstance(payload, list):
            return []
        return [
            entry
            for entry in payload
            if isinstance(entry, dict) and entry.get("id") is not None
        ]

    async def resolve_url(self, url: str, config: UserConfig) -> ImportedAddonRecord:
        """Turn an ``mdblist.com/lists/{user}/{slug}`` URL into an import record."""

        match = LIST_URL_RE.match(url.strip())
        if not match:
            raise ValueError("Invalid MDBList URL format")
        payload = await self.with_retry(
            lambda: self._get(f"/lists/{match['user']}/{match['slug']}", config),
            label="list URL lookup",
        )
        if isinstance(payload, list):
            payload = payload[0] if payload else None
        if not isinstance(payload, dict) or payload.get("id") is None:
            raise ProviderNotFound(PROVIDER, f"list {match['slug']} not found")

        list_id = str(payload["id"])
        has_movies = int(payload.get("movies") or 0) > 0
        has_shows = int(payload.get("shows") or 0) > 0
        if not (has_movies or has_shows):
            has_movies = has_shows = True
        return ImportedAddonRecord(
            id=f"{MDBLIST_URL_PREFIX}{list_id}",
            name=str(payload.get("name") or match["slug"]),
            kind="mdblist_url",
            native_id=list_id,
            owner=match["user"],
            has_movies=has_movies,
            has_shows=has_shows,
        )
