"""Tests for the MDBList adapter."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.catalogs import MDBListRef, UrlImportRef
from app.config import Settings
from app.errors import ProviderAuthError, ProviderNotFound
from app.models import ListMetadata, SortPreference, UserConfig
from app.services.mdblist import MDBListClient, flatten_items


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    base: dict[str, Any] = {"RETRY_BACKOFF_SECONDS": 0, "PROBE_SPACING_SECONDS": 0}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


async def _no_sleep(_: float) -> None:
    return None


def test_flatten_items_tags_types() -> None:
    items = flatten_items(
        {"movies": [{"imdb_id": "tt1"}], "shows": [{"imdb_id": "tt2"}, "junk"]}
    )

    assert items == [
        {"imdb_id": "tt1", "type": "movie"},
        {"imdb_id": "tt2", "type": "series"},
    ]


def test_flatten_items_reads_plain_lists() -> None:
    items = flatten_items([{"imdb_id": "tt3", "mediatype": "show"}])

    assert items[0]["type"] == "series"


def test_flatten_items_raises_on_error_payload() -> None:
    with pytest.raises(ProviderNotFound):
        flatten_items({"error": "List not found"})


@pytest.mark.anyio("asyncio")
async def test_enumerate_lists_returns_internal_external_and_watchlist() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["apikey"] == "key"
        if request.url.path == "/lists/user":
            return httpx.Response(200, json=[{"id": 12, "name": "Favourites", "mediatype": "movie"}])
        if request.url.path == "/external/lists/user":
            return httpx.Response(200, json=[{"id": 34, "name": "Imported"}])
        return httpx.Response(404)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        descriptors = await client.enumerate_lists(UserConfig(api_key="key"))

    assert [descriptor.id for descriptor in descriptors] == [
        "aiolists-12-L",
        "aiolists-34-E",
        "aiolists-watchlist-W",
    ]
    assert descriptors[0].type_hint == "movie"
    assert descriptors[1].ref == MDBListRef(list_id="34", sub_kind="E")
    assert descriptors[2].source_kind == "watchlist"


@pytest.mark.anyio("asyncio")
async def test_fetch_page_uses_sort_and_offset() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"movies": [{"imdb_id": "tt1", "title": "One"}], "shows": []})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        page = await client.fetch_page(
            MDBListRef(list_id="34", sub_kind="E"),
            UserConfig(api_key="key"),
            skip=20,
            limit=10,
            sort=SortPreference(sort="released", order="asc"),
        )

    assert requests[0].url.path == "/external/lists/34/items"
    assert requests[0].url.params["offset"] == "20"
    assert requests[0].url.params["limit"] == "10"
    assert requests[0].url.params["sort"] == "released"
    assert requests[0].url.params["order"] == "asc"
    assert page.items == [{"imdb_id": "tt1", "title": "One", "type": "movie"}]


@pytest.mark.anyio("asyncio")
async def test_watchlist_and_url_imports_use_their_own_paths() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[])

    transport = httpx.MockTransport(handler)
    sort = SortPreference(sort="imdbvotes")
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        config = UserConfig(api_key="key")
        await client.fetch_page(
            MDBListRef(list_id="watchlist", sub_kind="W"), config, skip=0, limit=10, sort=sort
        )
        await client.fetch_page(
            UrlImportRef(addon_id="mdblisturl_7", provider="mdblist", native_id="7"),
            config,
            skip=0,
            limit=10,
            sort=sort,
        )

    assert paths == ["/watchlist/items", "/lists/7/items"]


@pytest.mark.anyio("asyncio")
async def test_legacy_ids_resolve_list_type_from_metadata() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[])

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        config = UserConfig(
            api_key="key",
            lists_metadata={"aiolists-56": ListMetadata(list_type="E")},
        )
        await client.fetch_page(
            MDBListRef(list_id="56"), config, skip=0, limit=10, sort=SortPreference(sort="rank")
        )

    assert paths == ["/external/lists/56/items"]


@pytest.mark.anyio("asyncio")
async def test_missing_api_key_is_an_auth_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        with pytest.raises(ProviderAuthError):
            await client.fetch_page(
                MDBListRef(list_id="1", sub_kind="L"),
                UserConfig(),
                skip=0,
                limit=10,
                sort=SortPreference(sort="rank"),
            )


@pytest.mark.anyio("asyncio")
async def test_resolve_url_builds_import_record() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/lists/alice/top-horror"
        return httpx.Response(200, json=[{"id": 999, "name": "Top Horror", "movies": 40, "shows": 0}])

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        record = await client.resolve_url(
            "https://mdblist.com/lists/alice/top-horror", UserConfig(api_key="key")
        )

    assert record.id == "mdblisturl_999"
    assert record.kind == "mdblist_url"
    assert record.native_id == "999"
    assert record.has_movies is True
    assert record.has_shows is False


@pytest.mark.anyio("asyncio")
async def test_resolve_url_rejects_other_hosts() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[]))
    async with httpx.AsyncClient(transport=transport, base_url="https://api.example.com") as http_client:
        client = MDBListClient(build_settings(), http_client, sleep=_no_sleep)
        with pytest.raises(ValueError):
            await client.resolve_url("https://example.com/lists/a/b", UserConfig(api_key="key"))
