"""Determine and cache whether a list holds movies, series or both."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable

from ..cache import TTLCache
from ..catalogs import ListDescriptor, flags_for_type, sort_preference_for
from ..config import Settings
from ..errors import ProviderError
from ..models import MOVIE, SERIES, ListMetadata, UserConfig
from ..normalizer import ItemNormalizer
from .base import ProviderAdapter

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ProbeOutcome:
    has_movies: bool
    has_shows: bool
    metadata: ListMetadata
    changed: bool = False

    @property
    def flags(self) -> tuple[bool, bool]:
        return self.has_movies, self.has_shows


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TypeProbe:
    """Resolve list composition from cache, observation or a zero-offset fetch."""

    def __init__(
        self,
        settings: Settings,
        normalizer: ItemNormalizer,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._settings = settings
        self._normalizer = normalizer
        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._last_probe_at: dict[str, float] = {}
        self._observed: TTLCache[tuple[str, str], ListMetadata] = TTLCache(
            settings.list_metadata_ttl_seconds or settings.metadata_cache_seconds,
            settings.cache_max_entries,
        )

    def is_fresh(self, metadata: ListMetadata | None) -> bool:
        if metadata is None or not metadata.has_flags or metadata.error_fetching:
            return False
        ttl = self._settings.list_metadata_ttl_seconds
        if ttl <= 0 or metadata.last_checked is None:
            return True
        checked = metadata.last_checked
        if checked.tzinfo is None:
            checked = checked.replace(tzinfo=timezone.utc)
        return (self._now() - checked).total_seconds() < ttl

    def observe(
        self,
        config: UserConfig,
        catalog_id: str,
        *,
        has_movies: bool,
        has_shows: bool,
        list_type: str | None = None,
    ) -> None:
        """Remember composition seen while serving a catalog page."""

        self._observed.set(
            (config.credential_fingerprint(), catalog_id),
            ListMetadata(
                has_movies=has_movies,
                has_shows=has_shows,
                last_checked=self._now(),
                list_type=list_type,
            ),
        )

    async def composition(
        self,
        descriptor: ListDescriptor,
        config: UserConfig,
        adapter: ProviderAdapter | None,
    ) -> ProbeOutcome:
        if descriptor.known_flags is not None:
            has_movies, has_shows = descriptor.known_flags
            return ProbeOutcome(
                has_movies,
                has_shows,
                ListMetadata(has_movies=has_movies, has_shows=has_shows),
            )

        cached = config.lists_metadata.get(descriptor.id)
        if cached is not None and self.is_fresh(cached):
            return ProbeOutcome(bool(cached.has_movies), bool(cached.has_shows), cached)

        observed = self._observed.get((config.credential_fingerprint(), descriptor.id))
        if observed is not None and observed.has_flags:
            metadata = observed.model_copy(
                update={"list_type": descriptor.list_type or observed.list_type}
            )
            return ProbeOutcome(
                bool(metadata.has_movies), bool(metadata.has_shows), metadata, changed=True
            )

        if adapter is None:
            return self._fallback(descriptor, cached)
        return await self._probe(descriptor, config, adapter, cached)

    async def _probe(
        self,
        descriptor: ListDescriptor,
        config: UserConfig,
        adapter: ProviderAdapter,
        cached: ListMetadata | None,
    ) -> ProbeOutcome:
        await self._respect_spacing(adapter.family)
        logger.info("Probing content types for %s", descriptor.id)
        try:
            page = await adapter.with_retry(
                lambda: adapter.fetch_page(
                    descriptor.ref,
                    config,
                    skip=0,
                    limit=self._settings.items_per_page,
                    sort=sort_preference_for(descriptor.ref, descriptor.id, config),
                ),
                label=f"type probe for {descriptor.id}",
            )
        except ProviderError as exc:
            logger.warning("Type probe failed for %s: %s", descriptor.id, exc)
            outcome = self._fallback(descriptor, cached)
            outcome.metadata = outcome.metadata.model_copy(
                update={"error_fetching": True, "last_checked": self._now()}
            )
            outcome.changed = True
            return outcome
        finally:
            self._last_probe_at[adapter.family] = self._clock()

        items = self._normalizer.normalize_many(
            page.items, default_type=page.type_hint or descriptor.type_hint
        )
        has_movies = any(item.type == MOVIE for item in items)
        has_shows = any(item.type == SERIES for item in items)
        metadata = ListMetadata(
            has_movies=has_movies,
            has_shows=has_shows,
            last_checked=self._now(),
            list_type=descriptor.list_type,
        )
        return ProbeOutcome(has_movies, has_shows, metadata, changed=True)

    def _fallback(
        self, descriptor: ListDescriptor, cached: ListMetadata | None
    ) -> ProbeOutcome:
        """Last cached flags, then the provider hint, then assume both."""

        if cached is not None and cached.has_flags:
            flags = (bool(cached.has_movies), bool(cached.has_shows))
        else:
            flags = flags_for_type(descriptor.type_hint) or (True, True)
        metadata = ListMetadata(
            has_movies=flags[0],
            has_shows=flags[1],
            last_checked=cached.last_checked if cached else None,
            error_fetching=cached.error_fetching if cached else False,
            list_type=descriptor.list_type,
        )
        return ProbeOutcome(flags[0], flags[1], metadata)

    async def _respect_spacing(self, family: str) -> None:
        last = self._last_probe_at.get(family)
        spacing = self._settings.probe_spacing_seconds
        if last is None or spacing <= 0:
            return
        remaining = spacing - (self._clock() - last)
        if remaining > 0:
            await self._sleep(remaining)
