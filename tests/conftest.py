"""Pytest configuration and test helpers."""

from __future__ import annotations

import sys
from pathlib import Path


# Ensure the application package is importable when running tests without an
# editable install. This mirrors the expected runtime layout where ``app`` sits
# at the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from typing import Any, Iterable  # noqa: E402

import pytest  # noqa: E402

from app.catalogs import (  # noqa: E402
    AddonCatalogRef,
    CatalogRef,
    ListDescriptor,
    MDBListRef,
    TraktListRef,
    UrlImportRef,
)
from app.config import Settings  # noqa: E402
from app.models import SortPreference, UserConfig  # noqa: E402
from app.services.base import ProviderAdapter, RawPage  # noqa: E402


async def no_sleep(_: float) -> None:
    return None


def ref_key(ref: CatalogRef) -> str:
    if isinstance(ref, (MDBListRef, TraktListRef)):
        return ref.list_id
    if isinstance(ref, AddonCatalogRef):
        return ref.catalog_id
    if isinstance(ref, UrlImportRef):
        return ref.addon_id
    return ref.kind


class FakeAdapter(ProviderAdapter):
    """In-memory provider serving canned items per list."""

    def __init__(
        self,
        settings: Settings,
        family: str,
        *,
        descriptors: Iterable[ListDescriptor] = (),
        items: dict[str, list[dict[str, Any]]] | None = None,
        failures: dict[str, list[Exception]] | None = None,
        genre_filter: bool = False,
    ) -> None:
        super().__init__(settings, None, sleep=no_sleep)  # type: ignore[arg-type]
        self.family = family
        self.supports_genre_filter = genre_filter
        self.descriptors = list(descriptors)
        self.items = items or {}
        self.failures = failures or {}
        self.calls: list[tuple[str, int, SortPreference, str | None]] = []

    async def enumerate_lists(self, config: UserConfig) -> list[ListDescriptor]:
        return list(self.descriptors)

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
        key = ref_key(ref)
        self.calls.append((key, skip, sort, genre))
        queued = self.failures.get(key)
        if queued:
            raise queued.pop(0)
        window = self.items.get(key, [])[skip : skip + limit]
        return RawPage(items=[dict(item) for item in window])


def movies(count: int, *, start: int = 0, genres: list[str] | None = None) -> list[dict[str, Any]]:
    return [
        {
            "imdb_id": f"tt{start + index:07d}",
            "title": f"Movie {start + index}",
            "type": "movie",
            "genres": genres or [],
        }
        for index in range(count)
    ]


def shows(count: int, *, start: int = 500) -> list[dict[str, Any]]:
    return [
        {"imdb_id": f"tt{start + index:07d}", "title": f"Show {start + index}", "type": "series"}
        for index in range(count)
    ]


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(  # type: ignore[arg-type]
        _env_file=None,
        ITEMS_PER_PAGE=10,
        RETRY_BACKOFF_SECONDS=0,
        PROBE_SPACING_SECONDS=0,
        GENRE_FETCH_ATTEMPTS=3,
    )
