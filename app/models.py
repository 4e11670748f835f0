"""Pydantic models for the user configuration and catalog payloads."""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ContentType = Literal["movie", "series"]
SortOrder = Literal["asc", "desc"]
ImportKind = Literal["manifest", "mdblist_url", "trakt_url"]

MOVIE = "movie"
SERIES = "series"
ALL = "all"

CREDENTIAL_FIELDS: tuple[str, ...] = (
    "api_key",
    "rpdb_api_key",
    "trakt_access_token",
    "trakt_refresh_token",
    "trakt_expires_at",
    "mdblist_username",
)


class CamelModel(BaseModel):
    """Base model serialising field names as camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SortPreference(CamelModel):
    sort: str
    order: SortOrder = "desc"

    @field_validator("order", mode="before")
    @classmethod
    def _lower_order(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ListMetadata(CamelModel):
    """Cached content composition of a single list."""

    has_movies: bool | None = None
    has_shows: bool | None = None
    last_checked: datetime | None = None
    error_fetching: bool = False
    list_type: str | None = None

    @property
    def has_flags(self) -> bool:
        return self.has_movies is not None and self.has_shows is not None


class SubCatalog(CamelModel):
    """One catalog exposed by an imported addon."""

    id: str
    original_id: str
    original_type: str
    name: str
    type: str = ALL


class ImportedAddonRecord(CamelModel):
    """An imported addon manifest or a list imported by URL."""

    id: str
    name: str
    kind: ImportKind = "manifest"
    version: str | None = None
    logo: str | None = None
    api_base_url: str | None = None
    types: list[str] = Field(default_factory=list)
    catalogs: list[SubCatalog] = Field(default_factory=list)
    native_id: str | None = None
    owner: str | None = None
    has_movies: bool = False
    has_shows: bool = False

    @property
    def is_url_import(self) -> bool:
        return self.kind != "manifest"

    def catalog_ids(self) -> list[str]:
        return [catalog.id for catalog in self.catalogs]


class UserConfig(CamelModel):
    """The complete mutable state of one user, carried inside the token."""

    api_key: str = ""
    rpdb_api_key: str = ""
    trakt_access_token: str = ""
    trakt_refresh_token: str = ""
    trakt_expires_at: str | None = None
    mdblist_username: str = ""
    list_order: list[str] = Field(default_factory=list)
    last_updated: str | None = None
    lists_metadata: dict[str, ListMetadata] = Field(default_factory=dict)
    hidden_lists: list[str] = Field(default_factory=list)
    removed_lists: list[str] = Field(default_factory=list)
    custom_list_names: dict[str, str] = Field(default_factory=dict)
    custom_media_type_names: dict[str, str] = Field(default_factory=dict)
    merged_lists: dict[str, bool] = Field(default_factory=dict)
    imported_addons: dict[str, ImportedAddonRecord] = Field(default_factory=dict)
    sort_preferences: dict[str, SortPreference] = Field(default_factory=dict)
    enable_random_list_feature: bool = False
    random_mdblist_usernames: list[str] = Field(
        default_factory=list, alias="randomMDBListUsernames"
    )
    disable_genre_filter: bool = False

    @field_validator("list_order", "hidden_lists", "removed_lists", mode="before")
    @classmethod
    def _unique_ids(cls, value: object) -> object:
        """Collapse duplicates while keeping first-seen order."""

        if not isinstance(value, (list, tuple, set)):
            return value
        seen: list[str] = []
        for entry in value:
            text = str(entry)
            if text not in seen:
                seen.append(text)
        return seen

    @property
    def has_mdblist_key(self) -> bool:
        return bool(self.api_key)

    @property
    def has_trakt_token(self) -> bool:
        return bool(self.trakt_access_token)

    def credential_fingerprint(self) -> str:
        """Return a short opaque digest identifying the configured accounts."""

        material = "|".join((self.api_key, self.trakt_access_token))
        return hashlib.sha256(material.encode("utf-8")).hexdigest()[:16]

    def without_credentials(self) -> "UserConfig":
        """Return a copy with every credential-bearing field reset."""

        defaults = UserConfig()
        return self.model_copy(
            deep=True,
            update={name: getattr(defaults, name) for name in CREDENTIAL_FIELDS},
        )


class CanonicalItem(BaseModel):
    """Normalised representation of one movie or series."""

    id: str
    type: ContentType
    name: str
    poster: str | None = None
    background: str | None = None
    logo: str | None = None
    description: str | None = None
    release_info: str | None = None
    year: int | None = None
    imdb_rating: str | None = None
    genres: list[str] = Field(default_factory=list)
    cast: list[str] = Field(default_factory=list)
    director: list[str] = Field(default_factory=list)
    writer: list[str] = Field(default_factory=list)
    runtime: str | None = None
    status: str | None = None

    @property
    def is_imdb(self) -> bool:
        return self.id.startswith("tt")

    def to_meta(self) -> dict[str, object]:
        """Return the Stremio meta preview for catalog responses."""

        meta: dict[str, object] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
        }
        if self.poster:
            meta["poster"] = self.poster
        if self.background:
            meta["background"] = self.background
        if self.logo:
            meta["logo"] = self.logo
        if self.description:
            meta["description"] = self.description
        release_info = self.release_info or (str(self.year) if self.year else None)
        if release_info:
            meta["releaseInfo"] = release_info
        if self.year:
            meta["year"] = self.year
        if self.imdb_rating:
            meta["imdbRating"] = self.imdb_rating
        for key in ("genres", "cast", "director", "writer"):
            values = getattr(self, key)
            if values:
                meta[key] = list(values)
        if self.runtime:
            meta["runtime"] = self.runtime
        if self.status and self.type == SERIES:
            meta["status"] = self.status
        return meta


class CreateConfigRequest(CamelModel):
    api_key: str = ""
    rpdb_api_key: str = ""
    trakt_access_token: str = ""
    trakt_refresh_token: str = ""
    trakt_expires_at: str | None = None
    mdblist_username: str = ""
    shared_config: str | None = None


class ListOrderRequest(CamelModel):
    order: list[str]


class ListNameRequest(CamelModel):
    list_id: str
    custom_name: str | None = None


class MediaTypeRequest(CamelModel):
    list_id: str
    custom_media_type: str | None = None


class VisibilityRequest(CamelModel):
    hidden_lists: list[str]


class RemoveListsRequest(CamelModel):
    list_ids: list[str]


class SortRequest(CamelModel):
    list_id: str
    sort: str
    order: SortOrder = "desc"


class MergeRequest(CamelModel):
    list_id: str
    merged: bool


class ImportAddonRequest(CamelModel):
    manifest_url: str


class ImportUrlRequest(CamelModel):
    url: str


class RemoveAddonRequest(CamelModel):
    addon_id: str


class RandomFeatureRequest(CamelModel):
    enable: bool
    random_mdblist_usernames: list[str] | None = Field(
        default=None, alias="randomMDBListUsernames"
    )


class GenreFilterRequest(CamelModel):
    disable_genre_filter: bool
