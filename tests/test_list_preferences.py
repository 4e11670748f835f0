"""Tests for configuration mutations used by the management API."""

from __future__ import annotations

import pytest

from app import list_preferences
from app.catalogs import RANDOM_CATALOG_ID
from app.models import (
    ImportedAddonRecord,
    ListMetadata,
    SortPreference,
    SubCatalog,
    UserConfig,
)


def _addon_record() -> ImportedAddonRecord:
    return ImportedAddonRecord(
        id="community.addon",
        name="Community",
        api_base_url="https://addon.example.com",
        catalogs=[
            SubCatalog(
                id="community.addon_top_movie",
                original_id="top",
                original_type="movie",
                name="Top",
                type="movie",
            ),
            SubCatalog(
                id="community.addon_top_series",
                original_id="top",
                original_type="series",
                name="Top",
                type="series",
            ),
        ],
    )


def test_mutations_do_not_touch_the_input() -> None:
    config = UserConfig(list_order=["a", "b"])

    updated = list_preferences.set_list_order(config, ["b", "a", "b"])

    assert config.list_order == ["a", "b"]
    assert updated.list_order == ["b", "a"]
    assert updated.last_updated is not None


def test_rename_and_clear_name() -> None:
    named = list_preferences.rename_list(UserConfig(), "aiolists-1-L", "  Favourites ")
    cleared = list_preferences.rename_list(named, "aiolists-1-L", "")

    assert named.custom_list_names == {"aiolists-1-L": "Favourites"}
    assert cleared.custom_list_names == {}


def test_merge_requires_both_types() -> None:
    config = UserConfig(
        lists_metadata={
            "aiolists-1-L": ListMetadata(has_movies=True, has_shows=True),
            "aiolists-2-L": ListMetadata(has_movies=True, has_shows=False),
        }
    )

    split = list_preferences.set_merged(config, "aiolists-1-L", False)
    merged = list_preferences.set_merged(split, "aiolists-1-L", True)

    assert split.merged_lists == {"aiolists-1-L": False}
    assert merged.merged_lists == {}
    with pytest.raises(ValueError):
        list_preferences.set_merged(config, "aiolists-2-L", True)


def test_removing_native_list_records_it_and_unhides() -> None:
    config = UserConfig(hidden_lists=["aiolists-1-L"])

    updated = list_preferences.remove_lists(config, ["aiolists-1-L"])

    assert updated.removed_lists == ["aiolists-1-L"]
    assert updated.hidden_lists == []


def test_removing_random_catalog_disables_feature() -> None:
    config = UserConfig(enable_random_list_feature=True)

    updated = list_preferences.remove_lists(config, [RANDOM_CATALOG_ID])

    assert updated.enable_random_list_feature is False
    assert updated.removed_lists == []


def test_removing_import_cascades_preferences() -> None:
    record = _addon_record()
    config = list_preferences.add_imported_addon(UserConfig(), record)
    config = config.model_copy(
        update={
            "list_order": ["community.addon_top_movie", "aiolists-1-L"],
            "hidden_lists": ["community.addon_top_series"],
            "custom_list_names": {"community.addon_top_movie": "Best"},
            "sort_preferences": {
                "top": SortPreference(sort="rank"),
                "aiolists-1-L": SortPreference(sort="title"),
            },
        }
    )

    updated = list_preferences.remove_lists(config, ["community.addon"])

    assert updated.imported_addons == {}
    assert updated.list_order == ["aiolists-1-L"]
    assert updated.hidden_lists == []
    assert updated.custom_list_names == {}
    assert set(updated.sort_preferences) == {"aiolists-1-L"}
    assert updated.removed_lists == []


def test_removing_sub_catalog_keeps_siblings() -> None:
    config = list_preferences.add_imported_addon(UserConfig(), _addon_record())

    one_left = list_preferences.remove_lists(config, ["community.addon_top_movie"])
    none_left = list_preferences.remove_lists(one_left, ["community.addon_top_series"])

    assert one_left.imported_addons["community.addon"].catalog_ids() == [
        "community.addon_top_series"
    ]
    assert none_left.imported_addons == {}


def test_remove_unknown_addon_raises() -> None:
    with pytest.raises(KeyError):
        list_preferences.remove_imported_addon(UserConfig(), "missing")


def test_reimport_clears_previous_removal() -> None:
    config = UserConfig(removed_lists=["community.addon_top_movie", "aiolists-1-L"])

    updated = list_preferences.add_imported_addon(config, _addon_record())

    assert updated.removed_lists == ["aiolists-1-L"]


def test_shared_layout_keeps_local_credentials() -> None:
    local = UserConfig(api_key="mine")
    shared = UserConfig(api_key="theirs", list_order=["aiolists-9-L"], hidden_lists=["x"])

    merged = list_preferences.merge_shared_layout(local, shared)

    assert merged.api_key == "mine"
    assert merged.list_order == ["aiolists-9-L"]
    assert merged.hidden_lists == ["x"]
