"""Shared provider adapter contract and HTTP error mapping."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, TypeVar

import httpx

from ..catalogs import CatalogRef, ListDescriptor
from ..config import Settings
from ..errors import (
    ProviderAuthError,
    ProviderNotFound,
    ProviderRateLimited,
    ProviderTimeout,
    ProviderUnavailable,
    is_transient,
)
from ..models import SortPreference, UserConfig
from ..retry import retry_async

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class RawPage:
    """One page of unnormalised provider items."""

    items: list[dict[str, Any]] = field(default_factory=list)
    total: int | None = None
    type_hint: str | None = None


class ProviderAdapter(ABC):
    """Interface implemented by each list provider family."""

    family: str = "provider"
    splittable: bool = True
    supports_genre_filter: bool = False

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        *,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        self._settings = settings
        self._client = http_client
        self._sleep = sleep

    def is_retryable(self, exc: BaseException) -> bool:
        return is_transient(exc)

    async def with_retry(self, operation: Callable[[], Awaitable[T]], *, label: str) -> T:
        """Run ``operation`` under this provider's retry policy."""

        return await retry_async(
            operation,
            is_retryable=self.is_retryable,
            attempts=self._settings.provider_retry_limit,
            base_delay=self._settings.retry_backoff_seconds,
            max_delay=self._settings.retry_backoff_max,
            label=f"{self.family} {label}",
            sleep=self._sleep,
        )

    def has_credentials(self, config: UserConfig) -> bool:
        return True

    async def enumerate_lists(self, config: UserConfig) -> list[ListDescriptor]:
        return []

    @abstractmethod
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
        """Return the raw items starting at offset ``skip``."""


@dataclass(slots=True)
class ProviderRegistry:
    """Selects the adapter responsible for a catalog reference."""

    mdblist: ProviderAdapter
    trakt: ProviderAdapter
    addon: ProviderAdapter

    def for_family(self, family: str) -> ProviderAdapter:
        if family == "mdblist":
            return self.mdblist
        if family == "trakt":
            return self.trakt
        if family == "addon":
            return self.addon
        raise KeyError(family)

    def for_ref(self, ref: CatalogRef) -> ProviderAdapter:
        return self.for_family(ref.family)

    def native(self) -> tuple[ProviderAdapter, ...]:
        return (self.mdblist, self.trakt)


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


def raise_for_provider_status(provider: str, response: httpx.Response) -> None:
    """Translate HTTP status codes into the provider error taxonomy."""

    status = response.status_code
    if status < 400:
        return
    if status in (401, 403):
        raise ProviderAuthError(provider, f"credentials rejected ({status})")
    if status == 404:
        raise ProviderNotFound(provider, f"{response.request.url.path} not found")
    if status == 429:
        raise ProviderRateLimited(
            provider, "rate limited", retry_after=_retry_after(response)
        )
    if status >= 500:
        raise ProviderUnavailable(provider, f"upstream error {status}")
    raise ProviderNotFound(provider, f"request rejected ({status})")


async def request_json(
    client: httpx.AsyncClient,
    provider: str,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> tuple[Any, httpx.Response]:
    """GET ``url`` and decode its JSON body, mapping failures to provider errors."""

    try:
        response = await client.get(url, params=params, headers=headers)
    except httpx.TimeoutException as exc:
        raise ProviderTimeout(provider, f"timed out requesting {url}") from exc
    except httpx.HTTPError as exc:
        raise ProviderUnavailable(provider, f"transport error: {exc}") from exc

    raise_for_provider_status(provider, response)
    try:
        return response.json(), response
    except ValueError as exc:
        raise ProviderUnavailable(provider, "response was not valid JSON") from exc
