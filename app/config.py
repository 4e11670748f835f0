"""Application configuration models."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or a .env file."""

    app_name: str = Field(default="AIOLists", alias="APP_NAME")
    server_host: str = Field(default="0.0.0.0", alias="HOST")
    server_port: int = Field(default=7000, alias="PORT")

    mdblist_api_url: HttpUrl = Field(
        default="https://api.mdblist.com", alias="MDBLIST_API_URL"
    )
    trakt_api_url: HttpUrl = Field(
        default="https://api.trakt.tv", alias="TRAKT_API_URL"
    )
    trakt_client_id: str | None = Field(default=None, alias="TRAKT_CLIENT_ID")
    metadata_addon_url: HttpUrl | None = Field(
        default="https://v3-cinemeta.strem.io",
        alias="METADATA_ADDON_URL",
        validation_alias=AliasChoices("METADATA_ADDON_URL", "CINEMETA_API_URL"),
    )

    items_per_page: int = Field(default=100, alias="ITEMS_PER_PAGE", ge=1, le=500)
    http_timeout: float = Field(default=12.0, alias="HTTP_TIMEOUT", ge=10.0, le=15.0)

    provider_retry_limit: int = Field(
        default=3, alias="PROVIDER_RETRY_LIMIT", ge=1, le=10
    )
    retry_backoff_seconds: float = Field(
        default=1.0, alias="RETRY_BACKOFF_SECONDS", ge=0.0
    )
    retry_backoff_max: float = Field(default=8.0, alias="RETRY_BACKOFF_MAX", ge=0.0)
    probe_spacing_seconds: float = Field(
        default=0.3, alias="PROBE_SPACING_SECONDS", ge=0.0
    )
    list_metadata_ttl_seconds: int = Field(
        default=604_800, alias="LIST_METADATA_TTL", ge=0
    )

    manifest_cache_seconds: int = Field(default=60, alias="MANIFEST_CACHE_TTL", ge=0)
    metadata_cache_seconds: int = Field(
        default=86_400, alias="METADATA_CACHE_TTL", ge=0
    )
    cache_max_entries: int = Field(default=1_024, alias="CACHE_MAX_ENTRIES", ge=1)

    enrichment_concurrency: int = Field(
        default=8, alias="ENRICHMENT_CONCURRENCY", ge=1, le=20
    )
    enrichment_batch_size: int = Field(
        default=40, alias="ENRICHMENT_BATCH_SIZE", ge=1, le=100
    )
    genre_fetch_attempts: int = Field(
        default=5, alias="GENRE_FETCH_ATTEMPTS", ge=1, le=20
    )

    random_mdblist_usernames_raw: str = Field(
        default="", alias="RANDOM_MDBLIST_USERNAMES"
    )

    environment: Literal["development", "production"] = Field(
        default="development", alias="ENVIRONMENT"
    )

    @field_validator("random_mdblist_usernames_raw", mode="before")
    @classmethod
    def _join_usernames(cls, value: object) -> str:
        """Accept either a comma-separated string or an iterable of names."""

        if value is None:
            return ""
        if isinstance(value, str):
            return value
        if isinstance(value, (list, tuple, set)):
            return ",".join(str(part) for part in value)
        raise TypeError("RANDOM_MDBLIST_USERNAMES must be a string or list of strings")

    @property
    def random_mdblist_usernames(self) -> tuple[str, ...]:
        """Return the configured fallback usernames for random discovery."""

        cleaned: list[str] = []
        for part in self.random_mdblist_usernames_raw.split(","):
            name = part.strip()
            if name and name not in cleaned:
                cleaned.append(name)
        return tuple(cleaned)

    @property
    def cinemeta_api_url(self) -> HttpUrl | None:
        """Maintain backwards compatibility with the previous setting name."""

        return self.metadata_addon_url

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()  # type: ignore[call-arg]


settings = get_settings()
