"""High level orchestration of manifests, catalogs and imports."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from ..cache import TTLCache
from ..catalogs import is_watchlist_id
from ..codec import compress_config, decompress_config
from ..config import Settings
from ..list_preferences import add_imported_addon
from ..models import UserConfig
from ..normalizer import ItemNormalizer
from ..utils import coerce_skip
from .base import ProviderRegistry
from .catalog_synthesizer import CatalogSynthesizer, SynthesisResult
from .content_dispatcher import CatalogPage, ContentDispatcher
from .external_addon import ExternalAddonClient
from .mdblist import LIST_URL_RE as MDBLIST_URL_RE
from .mdblist import MDBListClient
from .metadata_addon import MetadataAddonClient
from .trakt import LIST_URL_RE as TRAKT_URL_RE
from .trakt import TraktClient
from .type_probe import TypeProbe

logger = logging.getLogger(__name__)

MANIFEST_ID = "org.stremio.aiolists"
MANIFEST_VERSION = "1.0.0"


@dataclass(slots=True)
class ManifestSnapshot:
    """A synthesis result together with its rendered manifest."""

    result: SynthesisResult
    manifest: dict[str, Any]
    token: str


class CatalogService:
    """Coordinates synthesis, dispatch and the per-token manifest cache."""

    def __init__(
        self,
        settings: Settings,
        mdblist: MDBListClient,
        trakt: TraktClient,
        addons: ExternalAddonClient,
        metadata_client: MetadataAddonClient | None = None,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._mdblist = mdblist
        self._trakt = trakt
        self._addons = addons
        self._normalizer = ItemNormalizer()
        self._providers = ProviderRegistry(mdblist=mdblist, trakt=trakt, addon=addons)
        self._type_probe = TypeProbe(settings, self._normalizer, sleep=sleep)
        self._synthesizer = CatalogSynthesizer(settings, self._providers, self._type_probe)
        self._dispatcher = ContentDispatcher(
            settings,
            self._providers,
            self._normalizer,
            self._type_probe,
            metadata_client,
            rng=rng,
        )
        self._manifests: TTLCache[str, ManifestSnapshot] = TTLCache(
            settings.manifest_cache_seconds, settings.cache_max_entries
        )

    async def snapshot(self, token: str, *, force: bool = False) -> ManifestSnapshot:
        """Return the cached synthesis for ``token``, rebuilding when stale."""

        if not force:
            cached = self._manifests.get(token)
            if cached is not None:
                return cached

        config = decompress_config(token)
        result = await self._synthesizer.synthesize(config)
        persisted = token
        if result.config_changed:
            persisted = compress_config(result.config)
            logger.info(
                "Synthesis refreshed list composition for %s catalogs",
                len(result.catalogs),
            )
        snapshot = ManifestSnapshot(
            result=result,
            manifest=self.render_manifest(result),
            token=persisted,
        )
        self._manifests.set(token, snapshot)
        if persisted != token:
            self._manifests.set(persisted, snapshot)
        return snapshot

    def render_manifest(
        self, result: SynthesisResult, *, stamp: int | None = None
    ) -> dict[str, Any]:
        version_stamp = stamp if stamp is not None else int(time.time() * 1000)
        return {
            "id": MANIFEST_ID,
            "version": f"{MANIFEST_VERSION}-{version_stamp}",
            "name": self._settings.app_name,
            "description": "Your MDBList, Trakt and imported addon lists in one place.",
            "resources": ["catalog", "meta"],
            "types": list(result.types),
            "idPrefixes": ["tt"],
            "catalogs": [catalog.to_manifest_entry() for catalog in result.catalogs],
            "behaviorHints": {"configurable": True, "configurationRequired": False},
        }

    async def build_manifest(self, token: str) -> dict[str, Any]:
        return (await self.snapshot(token)).manifest

    async def get_catalog_page(
        self,
        token: str,
        content_type: str,
        catalog_id: str,
        extra: Mapping[str, str] | None = None,
    ) -> CatalogPage:
        extra = extra or {}
        snapshot = self._manifests.get(token)
        if snapshot is not None:
            config = snapshot.result.config
            descriptor = snapshot.result.catalog(catalog_id, content_type)
            ref = descriptor.ref if descriptor is not None else None
        else:
            config = decompress_config(token)
            ref = None

        genre = (extra.get("genre") or "").strip() or None
        if config.disable_genre_filter:
            genre = None
        return await self._dispatcher.fetch(
            config,
            catalog_id,
            content_type,
            skip=coerce_skip(extra.get("skip", 0)),
            genre=genre,
            ref=ref,
        )

    async def get_catalog_payload(
        self,
        token: str,
        content_type: str,
        catalog_id: str,
        extra: Mapping[str, str] | None = None,
    ) -> dict[str, object]:
        page = await self.get_catalog_page(token, content_type, catalog_id, extra)
        return page.to_response()

    @staticmethod
    def cache_control(catalog_id: str) -> str:
        if is_watchlist_id(catalog_id):
            return "no-cache"
        return "public, max-age=300"

    async def list_rows(self, token: str) -> dict[str, Any]:
        """Describe every known list for the configuration UI."""

        snapshot = await self.snapshot(token, force=True)
        result = snapshot.result
        config = result.config
        rows = []
        for descriptor, (has_movies, has_shows) in result.lists:
            rows.append(
                {
                    "id": descriptor.id,
                    "name": descriptor.name,
                    "customName": config.custom_list_names.get(descriptor.id),
                    "sourceKind": descriptor.source_kind,
                    "hasMovies": has_movies,
                    "hasShows": has_shows,
                    "canMerge": has_movies and has_shows and descriptor.splittable,
                    "isMerged": config.merged_lists.get(descriptor.id) is not False,
                    "isHidden": descriptor.id in config.hidden_lists,
                    "customMediaType": config.custom_media_type_names.get(descriptor.id),
                    "parentId": descriptor.parent_id,
                }
            )
        return {
            "success": True,
            "lists": rows,
            "configHash": snapshot.token,
            "configChanged": result.config_changed,
        }

    async def import_addon(self, config: UserConfig, manifest_url: str) -> UserConfig:
        record = await self._addons.import_manifest(manifest_url)
        if not record.catalogs:
            raise ValueError("The addon does not expose any browsable catalogs")
        return add_imported_addon(config, record)

    async def import_list_url(self, config: UserConfig, url: str) -> UserConfig:
        cleaned = url.strip()
        if MDBLIST_URL_RE.match(cleaned):
            if not config.api_key:
                raise ValueError("An MDBList API key is required to import MDBList URLs")
            record = await self._mdblist.resolve_url(cleaned, config)
        elif TRAKT_URL_RE.match(cleaned):
            record = await self._trakt.resolve_url(cleaned, config)
        else:
            raise ValueError("Unsupported list URL")
        return add_imported_addon(config, record)
