"""Helper client for enriching items from Cinemeta-compatible add-ons."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from ..cache import TTLCache
from ..errors import ProviderError
from ..models import CanonicalItem
from ..normalizer import ItemNormalizer
from .base import request_json
from .external_addon import normalize_base_url

logger = logging.getLogger(__name__)

PROVIDER = "cinemeta"

_ENRICHED_FIELDS = (
    "name",
    "poster",
    "background",
    "logo",
    "description",
    "release_info",
    "year",
    "imdb_rating",
    "genres",
    "cast",
    "director",
    "writer",
    "runtime",
    "status",
)


class MetadataAddonClient:
    """Batch metadata lookups through the ``last-videos`` catalog endpoint."""

    _BATCH_PATH = "/catalog/{type}/last-videos/lastVideosIds={ids}.json"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        default_base_url: str | None = None,
        *,
        concurrency: int = 8,
        batch_size: int = 40,
        cache: TTLCache[tuple[str, str], dict[str, Any]] | None = None,
        normalizer: ItemNormalizer | None = None,
    ) -> None:
        self._client = http_client
        self._default_base_url = normalize_base_url(default_base_url)
        self._semaphore = asyncio.Semaphore(max(1, concurrency))
        self._batch_size = max(1, batch_size)
        self._cache = cache if cache is not None else TTLCache(86_400)
        self._normalizer = normalizer or ItemNormalizer()

    @property
    def default_base_url(self) -> str | None:
        """Return the default metadata add-on URL, if configured."""

        return self._default_base_url

    async def enrich(self, items: list[CanonicalItem]) -> list[CanonicalItem]:
        """Overlay metadata onto items that carry an IMDb id.

        Items the add-on does not know about, or whose batch failed, are
        returned untouched and in their original order.
        """

        base_url = self._default_base_url
        if not base_url or not items:
            return items

        pending: dict[str, list[str]] = {}
        for item in items:
            if not item.is_imdb or (item.type, item.id) in self._cache:
                continue
            ids = pending.setdefault(item.type, [])
            if item.id not in ids:
                ids.append(item.id)

        tasks = [
            self._fetch_batch(base_url, content_type, ids[start : start + self._batch_size])
            for content_type, ids in pending.items()
            for start in range(0, len(ids), self._batch_size)
        ]
        if tasks:
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("Metadata add-on batch failed: %s", result)

        enriched: list[CanonicalItem] = []
        for item in items:
            meta = self._cache.get((item.type, item.id)) if item.is_imdb else None
            enriched.append(self._merge(item, meta) if meta else item)
        return enriched

    async def _fetch_batch(self, base_url: str, content_type: str, ids: list[str]) -> None:
        url = base_url + self._BATCH_PATH.format(type=content_type, ids=",".join(ids))
        try:
            async with self._semaphore:
                payload, _ = await request_json(self._client, PROVIDER, url)
        except ProviderError as exc:
            logger.warning(
                "Metadata add-on lookup failed for %s %s ids via %s: %s",
                len(ids),
                content_type,
                base_url,
                exc,
            )
            return
        metas = payload.get("metasDetailed") if isinstance(payload, dict) else None
        if not isinstance(metas, list):
            return
        for meta in metas:
            if not isinstance(meta, dict):
                continue
            meta_id = str(meta.get("id") or meta.get("imdb_id") or "").strip()
            if meta_id:
                self._cache.set((content_type, meta_id), meta)

    def _merge(self, item: CanonicalItem, meta: dict[str, Any]) -> CanonicalItem:
        overlay = self._normalizer.normalize({**meta, "id": item.id, "type": item.type})
        if overlay is None:
            return item
        updates: dict[str, Any] = {}
        for field_name in _ENRICHED_FIELDS:
            value = getattr(overlay, field_name)
            if value and (field_name != "name" or value != item.id):
                updates[field_name] = value
        return item.model_copy(update=updates) if updates else item
