"""Pure configuration mutations behind the config-management endpoints.

Every function returns a new :class:`UserConfig`; the input is never
modified, mirroring the fact that tokens are immutable values.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable

from .catalogs import RANDOM_CATALOG_ID
from .models import CREDENTIAL_FIELDS, ImportedAddonRecord, SortPreference, UserConfig


def _copy(config: UserConfig) -> UserConfig:
    updated = config.model_copy(deep=True)
    updated.last_updated = datetime.now(timezone.utc).isoformat()
    return updated


def set_list_order(config: UserConfig, order: Iterable[str]) -> UserConfig:
    updated = _copy(config)
    updated.list_order = list(dict.fromkeys(str(entry) for entry in order))
    return updated


def rename_list(config: UserConfig, list_id: str, name: str | None) -> UserConfig:
    updated = _copy(config)
    cleaned = (name or "").strip()
    if cleaned:
        updated.custom_list_names[list_id] = cleaned
    else:
        updated.custom_list_names.pop(list_id, None)
    return updated


def set_media_type(config: UserConfig, list_id: str, media_type: str | None) -> UserConfig:
    updated = _copy(config)
    cleaned = (media_type or "").strip()
    if cleaned:
        updated.custom_media_type_names[list_id] = cleaned
    else:
        updated.custom_media_type_names.pop(list_id, None)
    return updated


def set_hidden(config: UserConfig, hidden: Iterable[str]) -> UserConfig:
    updated = _copy(config)
    updated.hidden_lists = list(dict.fromkeys(str(entry) for entry in hidden))
    return updated


def set_sort(config: UserConfig, list_id: str, sort: str, order: str = "desc") -> UserConfig:
    updated = _copy(config)
    updated.sort_preferences[list_id] = SortPreference(sort=sort, order=order)
    return updated


def can_merge(config: UserConfig, list_id: str) -> bool:
    """A list may be merged only when it is known to hold both types."""

    record = config.imported_addons.get(list_id)
    if record is not None:
        return record.is_url_import and record.has_movies and record.has_shows
    metadata = config.lists_metadata.get(list_id)
    return bool(metadata and metadata.has_movies and metadata.has_shows)


def set_merged(config: UserConfig, list_id: str, merged: bool) -> UserConfig:
    if merged and not can_merge(config, list_id):
        raise ValueError(f"List {list_id} does not contain both movies and series")
    updated = _copy(config)
    if merged:
        updated.merged_lists.pop(list_id, None)
    else:
        updated.merged_lists[list_id] = False
    return updated


def set_random_feature(config: UserConfig, enabled: bool) -> UserConfig:
    updated = _copy(config)
    updated.enable_random_list_feature = bool(enabled)
    return updated


def set_genre_filter(config: UserConfig, disabled: bool) -> UserConfig:
    updated = _copy(config)
    updated.disable_genre_filter = bool(disabled)
    return updated


def add_imported_addon(config: UserConfig, record: ImportedAddonRecord) -> UserConfig:
    updated = _copy(config)
    updated.imported_addons[record.id] = record
    updated.removed_lists = [
        entry
        for entry in updated.removed_lists
        if entry != record.id and entry not in record.catalog_ids()
    ]
    return updated


def _purge(config: UserConfig, ids: set[str], sort_ids: set[str]) -> None:
    for mapping in (
        config.custom_list_names,
        config.custom_media_type_names,
        config.merged_lists,
        config.lists_metadata,
    ):
        for key in ids & set(mapping):
            del mapping[key]
    for key in (ids | sort_ids) & set(config.sort_preferences):
        del config.sort_preferences[key]
    config.list_order = [entry for entry in config.list_order if entry not in ids]
    config.hidden_lists = [entry for entry in config.hidden_lists if entry not in ids]
    config.removed_lists = [entry for entry in config.removed_lists if entry not in ids]


def remove_imported_addon(config: UserConfig, addon_id: str) -> UserConfig:
    """Delete an imported addon and every preference keyed by it or its catalogs."""

    record = config.imported_addons.get(addon_id)
    if record is None:
        raise KeyError(addon_id)
    updated = _copy(config)
    ids = {addon_id, *record.catalog_ids()}
    sort_ids = {catalog.original_id for catalog in record.catalogs}
    del updated.imported_addons[addon_id]
    _purge(updated, ids, sort_ids)
    return updated


def remove_lists(config: UserConfig, list_ids: Iterable[str]) -> UserConfig:
    """Remove lists from the manifest.

    Imports are deleted outright with a full cascade, imported sub-catalogs
    are dropped from their group, the random catalog switches the feature
    off and native lists are recorded in ``removedLists``.
    """

    updated = config
    for list_id in dict.fromkeys(list_ids):
        if list_id == RANDOM_CATALOG_ID:
            updated = set_random_feature(updated, False)
            continue
        if list_id in updated.imported_addons:
            updated = remove_imported_addon(updated, list_id)
            continue
        parent = next(
            (
                record
                for record in updated.imported_addons.values()
                if list_id in record.catalog_ids()
            ),
            None,
        )
        updated = _copy(updated)
        if parent is not None:
            group = updated.imported_addons[parent.id]
            removed = [catalog for catalog in group.catalogs if catalog.id == list_id]
            group.catalogs = [catalog for catalog in group.catalogs if catalog.id != list_id]
            _purge(updated, {list_id}, {catalog.original_id for catalog in removed})
            if not group.catalogs:
                del updated.imported_addons[parent.id]
                _purge(updated, {parent.id}, set())
            continue
        if list_id not in updated.removed_lists:
            updated.removed_lists.append(list_id)
        updated.hidden_lists = [entry for entry in updated.hidden_lists if entry != list_id]
    return updated


def merge_shared_layout(config: UserConfig, shared: UserConfig) -> UserConfig:
    """Apply the non-credential layout of a shared configuration."""

    layout = shared.without_credentials()
    credentials = {name: getattr(config, name) for name in CREDENTIAL_FIELDS}
    return _copy(layout.model_copy(update=credentials))
