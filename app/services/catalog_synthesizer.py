"""Turn enumerated lists and user overrides into manifest catalogs."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..catalogs import (
    RANDOM_CATALOG_ID,
    AddonCatalogRef,
    CatalogDescriptor,
    ListDescriptor,
    RandomListRef,
    flags_for_type,
    ref_for_imported,
)
from ..config import Settings
from ..errors import ProviderError
from ..genres import STATIC_GENRES
from ..models import ALL, MOVIE, SERIES, ListMetadata, UserConfig
from .base import ProviderRegistry
from .type_probe import TypeProbe

logger = logging.getLogger(__name__)

BASE_TYPES: tuple[str, ...] = (MOVIE, SERIES)
RANDOM_CATALOG_NAME = "Random MDBList Catalog"


@dataclass(slots=True)
class SynthesisResult:
    """Ordered catalogs plus the configuration they were derived from.

    ``config`` carries any composition data learned while probing; when
    ``config_changed`` is set the caller should persist a new token.
    """

    catalogs: list[CatalogDescriptor]
    types: list[str]
    config: UserConfig
    config_changed: bool = False
    lists: list[tuple[ListDescriptor, tuple[bool, bool]]] = field(default_factory=list)

    def catalog(self, catalog_id: str, display_type: str | None = None) -> CatalogDescriptor | None:
        fallback: CatalogDescriptor | None = None
        for descriptor in self.catalogs:
            if descriptor.catalog_id != catalog_id:
                continue
            if display_type is None or descriptor.display_type == display_type:
                return descriptor
            fallback = fallback or descriptor
        return fallback


class CatalogSynthesizer:
    """Builds the ordered catalog list for one configuration."""

    def __init__(
        self, settings: Settings, providers: ProviderRegistry, type_probe: TypeProbe
    ) -> None:
        self._settings = settings
        self._providers = providers
        self._type_probe = type_probe

    async def enumerate(self, config: UserConfig) -> list[ListDescriptor]:
        """Native lists first, then imports, then random discovery."""

        descriptors: list[ListDescriptor] = []
        for adapter in self._providers.native():
            if not adapter.has_credentials(config):
                continue
            try:
                descriptors.extend(await adapter.enumerate_lists(config))
            except ProviderError as exc:
                logger.warning("Could not enumerate %s lists: %s", adapter.family, exc)
        descriptors.extend(self._imported_descriptors(config))
        if config.enable_random_list_feature and config.has_mdblist_key:
            descriptors.append(
                ListDescriptor(
                    id=RANDOM_CATALOG_ID,
                    name=RANDOM_CATALOG_NAME,
                    source_kind="random",
                    ref=RandomListRef(),
                    known_flags=(True, True),
                    splittable=False,
                )
            )
        return descriptors

    def _imported_descriptors(self, config: UserConfig) -> list[ListDescriptor]:
        descriptors: list[ListDescriptor] = []
        for record in config.imported_addons.values():
            if record.is_url_import:
                ref = ref_for_imported(record.id, config)
                if ref is None:
                    continue
                if ref.provider == "mdblist" and not config.has_mdblist_key:
                    continue
                descriptors.append(
                    ListDescriptor(
                        id=record.id,
                        name=record.name,
                        source_kind="url_import",
                        ref=ref,
                        known_flags=(record.has_movies, record.has_shows),
                    )
                )
                continue
            for catalog in record.catalogs:
                descriptors.append(
                    ListDescriptor(
                        id=catalog.id,
                        name=catalog.name,
                        source_kind="addon_catalog",
                        ref=AddonCatalogRef(
                            addon_id=record.id,
                            catalog_id=catalog.id,
                            original_id=catalog.original_id,
                            original_type=catalog.original_type,
                        ),
                        type_hint=catalog.type,
                        known_flags=flags_for_type(catalog.type) or (True, True),
                        splittable=False,
                        parent_id=record.id,
                    )
                )
        return descriptors

    async def synthesize(self, config: UserConfig) -> SynthesisResult:
        removed = set(config.removed_lists)
        hidden = set(config.hidden_lists)
        learned: dict[str, ListMetadata] = {}
        emitted: list[tuple[int, CatalogDescriptor]] = []
        lists: list[tuple[ListDescriptor, tuple[bool, bool]]] = []

        for discovery_index, descriptor in enumerate(await self.enumerate(config)):
            if descriptor.id in removed or descriptor.parent_id in removed:
                continue

            adapter = None
            if descriptor.known_flags is None:
                adapter = self._providers.for_ref(descriptor.ref)
            outcome = await self._type_probe.composition(descriptor, config, adapter)
            if outcome.changed:
                learned[descriptor.id] = outcome.metadata
            lists.append((descriptor, outcome.flags))

            if descriptor.id in hidden or descriptor.parent_id in hidden:
                continue
            for catalog in self._emit(descriptor, outcome.flags, config):
                emitted.append((discovery_index, catalog))

        catalogs = self._order(emitted, config.list_order)
        types = list(BASE_TYPES)
        for catalog in catalogs:
            if catalog.display_type not in types:
                types.append(catalog.display_type)

        updated = config
        if learned:
            updated = config.model_copy(deep=True)
            updated.lists_metadata.update(learned)
        return SynthesisResult(
            catalogs=catalogs,
            types=types,
            config=updated,
            config_changed=bool(learned),
            lists=lists,
        )

    def _emit(
        self,
        descriptor: ListDescriptor,
        flags: tuple[bool, bool],
        config: UserConfig,
    ) -> list[CatalogDescriptor]:
        has_movies, has_shows = flags
        name = config.custom_list_names.get(descriptor.id) or descriptor.name
        custom_type = (config.custom_media_type_names.get(descriptor.id) or "").strip()
        genres = None if config.disable_genre_filter else STATIC_GENRES

        def build(display_type: str) -> CatalogDescriptor:
            return CatalogDescriptor(
                catalog_id=descriptor.id,
                display_type=display_type,
                display_name=name,
                ref=descriptor.ref,
                list_id=descriptor.id,
                genres=genres,
            )

        mergeable = has_movies and has_shows and descriptor.splittable
        if custom_type:
            return [build(custom_type)]
        if mergeable:
            if config.merged_lists.get(descriptor.id) is False:
                return [build(MOVIE), build(SERIES)]
            return [build(ALL)]

        if has_movies and has_shows:
            return [build(ALL)]
        if has_movies:
            return [build(MOVIE)]
        if has_shows:
            return [build(SERIES)]
        if descriptor.type_hint:
            return [build(descriptor.type_hint)]
        logger.debug("List %s has no content, not emitting a catalog", descriptor.id)
        return []

    @staticmethod
    def _order(
        emitted: list[tuple[int, CatalogDescriptor]], list_order: list[str]
    ) -> list[CatalogDescriptor]:
        """Stable sort by ``listOrder``; unordered ids follow in discovery order."""

        positions = {catalog_id: index for index, catalog_id in enumerate(list_order)}
        unordered = len(positions)
        type_rank = {MOVIE: 0, SERIES: 1}

        def key(entry: tuple[int, CatalogDescriptor]) -> tuple[int, int, int]:
            discovery_index, catalog = entry
            return (
                positions.get(catalog.catalog_id, unordered),
                discovery_index,
                type_rank.get(catalog.display_type, 2),
            )

        ordered = [catalog for _, catalog in sorted(emitted, key=key)]
        for rank, catalog in enumerate(ordered):
            catalog.rank = rank
        return ordered
