"""Utilities for communicating with the Trakt API."""

from __future__ import annotations

import logging
import re
from typing import Any

from ..catalogs import (
    TRAKT_PREFIX,
    TRAKT_PUBLIC_PREFIX,
    TRAKT_SPECIAL_LISTS,
    TRAKT_WATCHLIST_ID,
    CatalogRef,
    ListDescriptor,
    TraktListRef,
    UrlImportRef,
    flags_for_type,
)
from ..errors import ProviderAuthError, ProviderNotFound
from ..models import ImportedAddonRecord, SortPreference, UserConfig
from ..utils import slugify
from .base import ProviderAdapter, RawPage, request_json

logger = logging.getLogger(__name__)

PROVIDER = "trakt"
LIST_URL_RE = re.compile(
    r"^https?://(?:www\.)?trakt\.tv/users/(?P<user>[^/]+)/lists/(?P<slug>[^/?#]+)/?"
)

# Special catalogs served from fixed endpoints; the flag marks OAuth-only ones.
_SPECIAL_ENDPOINTS: dict[str, tuple[str, bool]] = {
    "trakt_recommendations_movies": ("/recommendations/movies", True),
    "trakt_recommendations_shows": ("/recommendations/shows", True),
    "trakt_trending_movies": ("/movies/trending", False),
    "trakt_trending_shows": ("/shows/trending", False),
    "trakt_popular_movies": ("/movies/popular", False),
    "trakt_popular_shows": ("/shows/popular", False),
}


class TraktClient(ProviderAdapter):
    """Thin wrapper around the Trakt HTTP API."""

    family = "trakt"
    splittable = True
    supports_genre_filter = False

    def has_credentials(self, config: UserConfig) -> bool:
        return config.has_trakt_token

    def _headers(self, *, access_token: str | None = None) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "trakt-api-version": "2",
            "User-Agent": f"{self._settings.app_name} (aiolists)",
        }
        if self._settings.trakt_client_id:
            headers["trakt-api-key"] = self._settings.trakt_client_id
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    async def _get(
        self,
        path: str,
        *,
        access_token: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        payload, _ = await request_json(
            self._client,
            PROVIDER,
            path,
            params=params,
            headers=self._headers(access_token=access_token),
        )
        return payload

    async def enumerate_lists(self, config: UserConfig) -> list[ListDescriptor]:
        if not config.trakt_access_token:
            return []
        payload = await self.with_retry(
            lambda: self._get("/users/me/lists", access_token=config.trakt_access_token),
            label="list enumeration",
        )
        descriptors: list[ListDescriptor] = []
        for entry in payload if isinstance(payload, list) else []:
            if not isinstance(entry, dict):
                continue
            slug = (entry.get("ids") or {}).get("slug")
            if not slug:
                continue
            list_id = f"{TRAKT_PREFIX}{slug}"
            descriptors.append(
                ListDescriptor(
                    id=list_id,
                    name=str(entry.get("name") or slug),
                    source_kind="native",
                    ref=TraktListRef(list_id=list_id),
                )
            )
        descriptors.append(
            ListDescriptor(
                id=TRAKT_WATCHLIST_ID,
                name="Trakt Watchlist",
                source_kind="watchlist",
                ref=TraktListRef(list_id=TRAKT_WATCHLIST_ID),
            )
        )
        for list_id, (name, content_type) in TRAKT_SPECIAL_LISTS.items():
            descriptors.append(
                ListDescriptor(
                    id=list_id,
                    name=name,
                    source_kind="native",
                    ref=TraktListRef(list_id=list_id),
                    type_hint=content_type,
                    known_flags=flags_for_type(content_type),
                    splittable=False,
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
        page = skip // limit + 1
        offset = skip % limit
        params: dict[str, Any] = {"limit": limit, "page": page, "extended": "full"}

        if isinstance(ref, UrlImportRef):
            if not ref.owner:
                raise ProviderNotFound(PROVIDER, f"{ref.addon_id} has no owner")
            items = await self._get(
                f"/users/{ref.owner}/lists/{ref.native_id}/items",
                access_token=config.trakt_access_token or None,
                params={**params, "sort_by": sort.sort, "sort_how": sort.order},
            )
            return RawPage(items=self._as_items(items)[offset:])

        if not isinstance(ref, TraktListRef):
            raise TypeError(f"Trakt cannot serve {ref.kind} catalogs")

        special = _SPECIAL_ENDPOINTS.get(ref.list_id)
        if special is not None:
            path, needs_auth = special
            if needs_auth and not config.trakt_access_token:
                raise ProviderAuthError(PROVIDER, "access token missing")
            items = await self._get(
                path,
                access_token=config.trakt_access_token if needs_auth else None,
                params=params,
            )
            type_hint = TRAKT_SPECIAL_LISTS[ref.list_id][1]
            return RawPage(items=self._as_items(items)[offset:], type_hint=type_hint)

        if not config.trakt_access_token:
            raise ProviderAuthError(PROVIDER, "access token missing")
        sort_params = {"sort_by": sort.sort, "sort_how": sort.order}

        # One combined watchlist endpoint keeps pages aligned with skip.
        path = (
            "/users/me/watchlist/movies,shows"
            if ref.is_watchlist
            else f"/users/me/lists/{ref.slug}/items"
        )
        items = await self._get(
            path,
            access_token=config.trakt_access_token,
            params={**params, **sort_params},
        )
        return RawPage(items=self._as_items(items)[offset:])

    @staticmethod
    def _as_items(payload: Any) -> list[dict[str, Any]]:
        if not isinstance(payload, list):
            return []
        return [entry for entry in payload if isinstance(entry, dict)]

    async def resolve_url(self, url: str, config: UserConfig) -> ImportedAddonRecord:
        """Turn a public ``trakt.tv/users/{user}/lists/{slug}`` URL into an import."""

        match = LIST_URL_RE.match(url.strip())
        if not match:
            raise ValueError("Invalid Trakt list URL format")
        user, slug = match["user"], match["slug"]
        token = config.trakt_access_token or None
        details = await self.with_retry(
            lambda: self._get(f"/users/{user}/lists/{slug}", access_token=token),
            label="public list lookup",
        )
        if not isinstance(details, dict):
            raise ProviderNotFound(PROVIDER, f"list {slug} not found")
        items = await self.with_retry(
            lambda: self._get(
                f"/users/{user}/lists/{slug}/items",
                access_token=token,
                params={"limit": self._settings.items_per_page, "page": 1},
            ),
            label="public list probe",
        )
        kinds = {entry.get("type") for entry in self._as_items(items)}
        has_movies = "movie" in kinds
        has_shows = "show" in kinds
        if not (has_movies or has_shows):
            has_movies = has_shows = True

        native_slug = str((details.get("ids") or {}).get("slug") or slug)
        return ImportedAddonRecord(
            id=f"{TRAKT_PUBLIC_PREFIX}{slugify(user)}_{native_slug}",
            name=str(details.get("name") or native_slug),
            kind="trakt_url",
            native_id=native_slug,
            owner=user,
            has_movies=has_movies,
            has_shows=has_shows,
        )
