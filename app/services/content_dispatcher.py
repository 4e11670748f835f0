"""Resolve catalog requests to a provider and return one normalised page."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..catalogs import (
    RANDOM_CATALOG_ID,
    CatalogRef,
    MDBListRef,
    RandomListRef,
    UrlImportRef,
    resolve_catalog_ref,
    sort_preference_for,
)
from ..config import Settings
from ..errors import ProviderError, ResolutionMiss
from ..genres import genre_matches
from ..models import MOVIE, SERIES, CanonicalItem, UserConfig
from ..normalizer import ItemNormalizer
from .base import ProviderAdapter, ProviderRegistry, RawPage
from .metadata_addon import MetadataAddonClient
from .mdblist import MDBListClient
from .type_probe import TypeProbe

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CatalogPage:
    """A normalised catalog page.

    ``found`` is ``False`` when the catalog could not be served at all
    (unknown id, auth or not-found errors, exhausted retries), which is
    distinct from a valid page that simply has no items.
    """

    items: list[CanonicalItem] = field(default_factory=list)
    has_movies: bool = False
    has_shows: bool = False
    found: bool = True

    @classmethod
    def empty(cls) -> "CatalogPage":
        return cls(found=False)

    def to_response(self) -> dict[str, object]:
        return {"metas": [item.to_meta() for item in self.items]}


class ContentDispatcher:
    """Maps a catalog id to an adapter call and shapes the result."""

    def __init__(
        self,
        settings: Settings,
        providers: ProviderRegistry,
        normalizer: ItemNormalizer,
        type_probe: TypeProbe | None = None,
        metadata_client: MetadataAddonClient | None = None,
        *,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._providers = providers
        self._normalizer = normalizer
        self._type_probe = type_probe
        self._metadata_client = metadata_client
        self._rng = rng or random.Random()

    async def fetch(
        self,
        config: UserConfig,
        catalog_id: str,
        content_type: str,
        *,
        skip: int = 0,
        genre: str | None = None,
        ref: CatalogRef | None = None,
    ) -> CatalogPage:
        try:
            resolved = ref or resolve_catalog_ref(catalog_id, config)
            if resolved is None:
                raise ResolutionMiss(catalog_id)
            if isinstance(resolved, RandomListRef):
                resolved = await self._pick_random_list(config)
            page = await self._fetch_resolved(
                config, catalog_id, resolved, content_type, skip=skip, genre=genre
            )
        except ResolutionMiss as exc:
            logger.info("Unknown catalog id requested: %s", exc)
            return CatalogPage.empty()
        except ProviderError as exc:
            logger.warning("Catalog %s could not be served: %s", catalog_id, exc)
            return CatalogPage.empty()

        if self._type_probe is not None and skip == 0 and not genre and page.items:
            self._type_probe.observe(
                config,
                catalog_id,
                has_movies=page.has_movies,
                has_shows=page.has_shows,
                list_type=resolved.sub_kind if isinstance(resolved, MDBListRef) else None,
            )
        return page

    async def _fetch_resolved(
        self,
        config: UserConfig,
        catalog_id: str,
        ref: CatalogRef,
        content_type: str,
        *,
        skip: int,
        genre: str | None,
    ) -> CatalogPage:
        adapter = self._providers.for_ref(ref)
        sort = sort_preference_for(ref, catalog_id, config)
        page_size = self._settings.items_per_page
        server_side_genre = genre if adapter.supports_genre_filter else None

        async def load(offset: int) -> tuple[RawPage, list[CanonicalItem]]:
            raw = await adapter.with_retry(
                lambda: adapter.fetch_page(
                    ref,
                    config,
                    skip=offset,
                    limit=page_size,
                    sort=sort,
                    genre=server_side_genre,
                ),
                label=f"catalog {catalog_id}",
            )
            items = self._normalizer.normalize_many(
                raw.items, default_type=raw.type_hint or _single_type(content_type)
            )
            if self._metadata_client is not None:
                items = await self._metadata_client.enrich(items)
            return raw, items

        if not genre or server_side_genre:
            _, items = await load(skip)
            page = self._observe(items)
            page.items = self._filter(items, content_type, genre)[:page_size]
            return page

        return await self._over_fetch(load, adapter, content_type, genre, skip)

    async def _over_fetch(
        self,
        load: Callable[[int], Awaitable[tuple[RawPage, list[CanonicalItem]]]],
        adapter: ProviderAdapter,
        content_type: str,
        genre: str,
        skip: int,
    ) -> CatalogPage:
        """Collect genre matches across upstream pages up to a fixed ceiling."""

        page_size = self._settings.items_per_page
        wanted = skip + page_size
        matches: list[CanonicalItem] = []
        observed = CatalogPage()
        offset = 0
        for _ in range(self._settings.genre_fetch_attempts):
            raw, items = await load(offset)
            if offset == 0:
                observed = self._observe(items)
            matches.extend(self._filter(items, content_type, genre))
            if len(matches) >= wanted or len(raw.items) < page_size:
                break
            offset += len(raw.items)
        else:
            logger.info(
                "Genre filter %s on %s stopped after %s upstream pages",
                genre,
                adapter.family,
                self._settings.genre_fetch_attempts,
            )
        observed.items = matches[skip:wanted]
        return observed

    @staticmethod
    def _observe(items: list[CanonicalItem]) -> CatalogPage:
        return CatalogPage(
            items=list(items),
            has_movies=any(item.type == MOVIE for item in items),
            has_shows=any(item.type == SERIES for item in items),
        )

    @staticmethod
    def _filter(
        items: list[CanonicalItem], content_type: str, genre: str | None
    ) -> list[CanonicalItem]:
        filtered = items
        if content_type in (MOVIE, SERIES):
            filtered = [item for item in filtered if item.type == content_type]
        if genre:
            filtered = [item for item in filtered if genre_matches(item.genres, genre)]
        return filtered

    async def _pick_random_list(self, config: UserConfig) -> UrlImportRef:
        """Pick a random configured user and one of their public lists."""

        usernames = list(config.random_mdblist_usernames) or list(
            self._settings.random_mdblist_usernames
        )
        if not usernames:
            raise ResolutionMiss(f"{RANDOM_CATALOG_ID}: no usernames configured")
        adapter = self._providers.mdblist
        if not isinstance(adapter, MDBListClient):
            raise ResolutionMiss(f"{RANDOM_CATALOG_ID}: MDBList adapter unavailable")

        username = self._rng.choice(usernames)
        lists = await adapter.with_retry(
            lambda: adapter.fetch_user_lists(username, config),
            label=f"random lists for {username}",
        )
        if not lists:
            raise ResolutionMiss(f"{RANDOM_CATALOG_ID}: {username} has no public lists")
        chosen = self._rng.choice(lists)
        logger.info(
            "Random catalog picked list %s from %s", chosen.get("name") or chosen["id"], username
        )
        return UrlImportRef(
            addon_id=RANDOM_CATALOG_ID,
            provider="mdblist",
            native_id=str(chosen["id"]),
            owner=username,
        )


def _single_type(content_type: str) -> str | None:
    return content_type if content_type in (MOVIE, SERIES) else None
