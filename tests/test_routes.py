"""End-to-end tests for the Stremio protocol and config management routes."""

from __future__ import annotations

import random
from typing import Any, Iterator

import httpx
import pytest
from conftest import movies, no_sleep, shows
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.codec import compress_config, decompress_config
from app.config import Settings
from app.main import register_routes
from app.models import ImportedAddonRecord, UserConfig
from app.services.catalog_service import CatalogService
from app.services.external_addon import ExternalAddonClient
from app.services.mdblist import MDBListClient
from app.services.trakt import TraktClient

MDBLIST_ROUTES: dict[str, Any] = {
    "/lists/user": [{"id": 12, "name": "Favourites"}],
    "/external/lists/user": [],
    "/lists/12/items": {"movies": movies(3), "shows": shows(2)},
    "/watchlist/items": {"movies": movies(1, start=900), "shows": []},
    "/lists/alice/top-horror": [{"id": 99, "name": "Top Horror", "movies": 3, "shows": 0}],
}

ADDON_MANIFEST = {
    "id": "community.addon",
    "name": "Community",
    "version": "1.2.3",
    "types": ["movie"],
    "catalogs": [{"id": "top", "type": "movie", "name": "Top"}],
}


def mdblist_handler(request: httpx.Request) -> httpx.Response:
    payload = MDBLIST_ROUTES.get(request.url.path)
    if payload is None:
        return httpx.Response(404)
    if request.url.path.endswith("/items") and int(request.url.params.get("offset", "0")) > 0:
        return httpx.Response(200, json={"movies": [], "shows": []})
    return httpx.Response(200, json=payload)


def addon_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/manifest.json":
        return httpx.Response(200, json=ADDON_MANIFEST)
    return httpx.Response(404)


@pytest.fixture
def client(settings: Settings) -> Iterator[TestClient]:
    mdblist_http = httpx.AsyncClient(
        transport=httpx.MockTransport(mdblist_handler), base_url="https://api.mdblist.test"
    )
    trakt_http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(401)),
        base_url="https://api.trakt.test",
    )
    addon_http = httpx.AsyncClient(transport=httpx.MockTransport(addon_handler))

    app = FastAPI()
    register_routes(app)
    app.state.catalog_service = CatalogService(
        settings,
        MDBListClient(settings, mdblist_http, sleep=no_sleep),
        TraktClient(settings, trakt_http, sleep=no_sleep),
        ExternalAddonClient(settings, addon_http, sleep=no_sleep),
        sleep=no_sleep,
        rng=random.Random(1),
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def token() -> str:
    return compress_config(UserConfig(api_key="key"))


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_default_manifest_has_no_catalogs(client: TestClient) -> None:
    for path in ("/manifest.json", "/garbage-token/manifest.json"):
        payload = client.get(path).json()

        assert payload["id"] == "org.stremio.aiolists"
        assert payload["catalogs"] == []
        assert payload["types"] == ["movie", "series"]
        assert payload["resources"] == ["catalog", "meta"]
        assert payload["idPrefixes"] == ["tt"]


def test_manifest_lists_native_catalogs(client: TestClient, token: str) -> None:
    payload = client.get(f"/{token}/manifest.json").json()

    catalogs = [(entry["id"], entry["type"]) for entry in payload["catalogs"]]
    assert catalogs == [("aiolists-12-L", "all"), ("aiolists-watchlist-W", "movie")]
    assert payload["types"] == ["movie", "series", "all"]
    assert payload["version"].startswith("1.0.0-")
    genre_extra = payload["catalogs"][0]["extra"][1]
    assert genre_extra["name"] == "genre"
    assert "Drama" in genre_extra["options"]


def test_catalog_is_filtered_by_type(client: TestClient, token: str) -> None:
    client.get(f"/{token}/manifest.json")

    response = client.get(f"/{token}/catalog/series/aiolists-12-L.json")

    assert response.status_code == 200
    assert response.headers["cache-control"] == "public, max-age=300"
    metas = response.json()["metas"]
    assert [meta["type"] for meta in metas] == ["series", "series"]


def test_catalog_with_extra_segment(client: TestClient, token: str) -> None:
    response = client.get(f"/{token}/catalog/all/aiolists-12-L/skip=20.json")

    assert response.status_code == 200
    assert response.json() == {"metas": []}


def test_watchlist_is_not_cached(client: TestClient, token: str) -> None:
    response = client.get(f"/{token}/catalog/movie/aiolists-watchlist-W.json")

    assert response.headers["cache-control"] == "no-cache"
    assert len(response.json()["metas"]) == 1


def test_unknown_catalog_returns_empty_metas(client: TestClient, token: str) -> None:
    response = client.get(f"/{token}/catalog/movie/nope.json")

    assert response.status_code == 200
    assert response.json() == {"metas": []}


def test_meta_stub(client: TestClient, token: str) -> None:
    ok = client.get(f"/{token}/meta/movie/tt0111161.json")
    missing = client.get(f"/{token}/meta/movie/tmdb:1.json")

    assert ok.json()["meta"]["id"] == "tt0111161"
    assert missing.status_code == 404


def test_create_config_round_trips(client: TestClient) -> None:
    response = client.post("/api/config/create", json={"apiKey": "abc", "rpdbApiKey": "r"})

    assert response.status_code == 200
    config = decompress_config(response.json()["configHash"])
    assert config.api_key == "abc"
    assert config.rpdb_api_key == "r"


def test_create_config_applies_shared_layout(client: TestClient) -> None:
    shared = compress_config(UserConfig(api_key="theirs", list_order=["aiolists-12-L"]))

    response = client.post("/api/config/create", json={"apiKey": "mine", "sharedConfig": shared})

    config = decompress_config(response.json()["configHash"])
    assert config.api_key == "mine"
    assert config.list_order == ["aiolists-12-L"]


def test_config_is_masked(client: TestClient, token: str) -> None:
    payload = client.get(f"/api/{token}/config").json()

    assert payload["config"]["apiKey"] == "********"


def test_shareable_hash_drops_credentials(client: TestClient, token: str) -> None:
    payload = client.get(f"/api/{token}/shareable-hash").json()

    assert decompress_config(payload["shareableHash"]).api_key == ""


def test_list_rows_report_composition(client: TestClient, token: str) -> None:
    payload = client.get(f"/api/{token}/lists").json()

    rows = {row["id"]: row for row in payload["lists"]}
    assert rows["aiolists-12-L"]["hasMovies"] and rows["aiolists-12-L"]["hasShows"]
    assert rows["aiolists-12-L"]["canMerge"] is True
    assert rows["aiolists-watchlist-W"]["hasShows"] is False
    assert payload["configChanged"] is True
    learned = decompress_config(payload["configHash"])
    assert "aiolists-12-L" in learned.lists_metadata


def test_split_then_manifest(client: TestClient, token: str) -> None:
    learned = client.get(f"/api/{token}/lists").json()["configHash"]

    response = client.post(
        f"/api/{learned}/lists/merge", json={"listId": "aiolists-12-L", "merged": False}
    )
    split = response.json()["configHash"]
    manifest = client.get(f"/{split}/manifest.json").json()

    types = [entry["type"] for entry in manifest["catalogs"] if entry["id"] == "aiolists-12-L"]
    assert types == ["movie", "series"]


def test_merge_rejected_for_single_type_list(client: TestClient, token: str) -> None:
    response = client.post(
        f"/api/{token}/lists/merge", json={"listId": "aiolists-watchlist-W", "merged": True}
    )

    assert response.status_code == 400


def test_order_and_remove(client: TestClient, token: str) -> None:
    ordered = client.post(
        f"/api/{token}/lists/order", json={"order": ["aiolists-watchlist-W", "aiolists-12-L"]}
    ).json()["configHash"]
    removed = client.post(
        f"/api/{ordered}/lists/remove", json={"listIds": ["aiolists-12-L"]}
    ).json()["configHash"]

    manifest = client.get(f"/{removed}/manifest.json").json()

    assert [entry["id"] for entry in manifest["catalogs"]] == ["aiolists-watchlist-W"]


def test_invalid_payload_is_rejected(client: TestClient, token: str) -> None:
    response = client.post(f"/api/{token}/lists/order", json={"order": "not-a-list"})

    assert response.status_code == 400


def test_import_addon_and_remove(client: TestClient, token: str) -> None:
    imported = client.post(
        f"/api/{token}/import-addon",
        json={"manifestUrl": "https://addon.example.com/manifest.json"},
    )
    assert imported.status_code == 200
    config = decompress_config(imported.json()["configHash"])
    assert config.imported_addons["community.addon"].catalog_ids() == [
        "community.addon_top_movie"
    ]

    removed = client.post(
        f"/api/{imported.json()['configHash']}/remove-addon",
        json={"addonId": "community.addon"},
    )
    assert decompress_config(removed.json()["configHash"]).imported_addons == {}

    missing = client.post(f"/api/{token}/remove-addon", json={"addonId": "community.addon"})
    assert missing.status_code == 404


def test_import_list_url(client: TestClient, token: str) -> None:
    response = client.post(
        f"/api/{token}/import-list-url",
        json={"url": "https://mdblist.com/lists/alice/top-horror"},
    )

    config = decompress_config(response.json()["configHash"])
    record = config.imported_addons["mdblisturl_99"]
    assert isinstance(record, ImportedAddonRecord)
    assert record.has_movies and not record.has_shows


def test_import_unsupported_url(client: TestClient, token: str) -> None:
    response = client.post(f"/api/{token}/import-list-url", json={"url": "https://example.com/x"})

    assert response.status_code == 400


def test_feature_toggles(client: TestClient, token: str) -> None:
    random_on = client.post(
        f"/api/{token}/config/random-list-feature",
        json={"enable": True, "randomMDBListUsernames": [" alice ", ""]},
    ).json()["configHash"]
    genre_off = client.post(
        f"/api/{random_on}/config/genre-filter", json={"disableGenreFilter": True}
    ).json()["configHash"]

    config = decompress_config(genre_off)
    assert config.enable_random_list_feature is True
    assert config.random_mdblist_usernames == ["alice"]
    assert config.disable_genre_filter is True

    manifest = client.get(f"/{genre_off}/manifest.json").json()
    random_entry = next(
        entry for entry in manifest["catalogs"] if entry["id"] == "random_mdblist_catalog"
    )
    assert random_entry["extraSupported"] == ["skip"]
