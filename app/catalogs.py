"""Catalog identity: id grammar, typed references and descriptors."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Literal, Union

from .genres import STATIC_GENRES
from .models import ALL, MOVIE, SERIES, SortPreference, UserConfig

RANDOM_CATALOG_ID = "random_mdblist_catalog"
MDBLIST_PREFIX = "aiolists-"
MDBLIST_URL_PREFIX = "mdblisturl_"
TRAKT_PREFIX = "trakt_"
TRAKT_PUBLIC_PREFIX = "traktpublic_"
MDBLIST_WATCHLIST_ID = "aiolists-watchlist-W"
TRAKT_WATCHLIST_ID = "trakt_watchlist"

TRAKT_SPECIAL_LISTS: dict[str, tuple[str, str]] = {
    "trakt_recommendations_movies": ("Trakt Recommended Movies", MOVIE),
    "trakt_recommendations_shows": ("Trakt Recommended Shows", SERIES),
    "trakt_trending_movies": ("Trending Movies", MOVIE),
    "trakt_trending_shows": ("Trending Shows", SERIES),
    "trakt_popular_movies": ("Popular Movies", MOVIE),
    "trakt_popular_shows": ("Popular Shows", SERIES),
}

MDBListKind = Literal["L", "E", "W"]
SourceKind = Literal["native", "watchlist", "url_import", "addon_catalog", "random"]

_MDBLIST_ID_RE = re.compile(r"^aiolists-(?P<id>.+?)(?:-(?P<kind>[LEW]))?$")


@dataclass(frozen=True, slots=True)
class RandomListRef:
    kind: Literal["random"] = field(default="random", init=False)

    @property
    def family(self) -> str:
        return "mdblist"


@dataclass(frozen=True, slots=True)
class UrlImportRef:
    addon_id: str
    provider: Literal["mdblist", "trakt"]
    native_id: str
    owner: str | None = None
    kind: Literal["url_import"] = field(default="url_import", init=False)

    @property
    def family(self) -> str:
        return self.provider


@dataclass(frozen=True, slots=True)
class AddonCatalogRef:
    addon_id: str
    catalog_id: str
    original_id: str
    original_type: str
    kind: Literal["addon_catalog"] = field(default="addon_catalog", init=False)

    @property
    def family(self) -> str:
        return "addon"


@dataclass(frozen=True, slots=True)
class TraktListRef:
    list_id: str
    kind: Literal["trakt"] = field(default="trakt", init=False)

    @property
    def family(self) -> str:
        return "trakt"

    @property
    def slug(self) -> str:
        return self.list_id[len(TRAKT_PREFIX):]

    @property
    def is_watchlist(self) -> bool:
        return self.list_id == TRAKT_WATCHLIST_ID


@dataclass(frozen=True, slots=True)
class MDBListRef:
    list_id: str
    sub_kind: MDBListKind | None = None
    kind: Literal["mdblist"] = field(default="mdblist", init=False)

    @property
    def family(self) -> str:
        return "mdblist"

    @property
    def is_watchlist(self) -> bool:
        return self.sub_kind == "W" or self.list_id == "watchlist"


CatalogRef = Union[RandomListRef, UrlImportRef, AddonCatalogRef, TraktListRef, MDBListRef]


def mdblist_catalog_id(list_id: str | int, sub_kind: MDBListKind) -> str:
    return f"{MDBLIST_PREFIX}{list_id}-{sub_kind}"


def parse_mdblist_catalog_id(catalog_id: str) -> MDBListRef | None:
    """Parse ``aiolists-{id}-{L|E|W}``; the suffix is optional for legacy ids."""

    match = _MDBLIST_ID_RE.match(catalog_id)
    if not match:
        return None
    list_id = match.group("id")
    sub_kind = match.group("kind")
    if list_id == "watchlist":
        sub_kind = "W"
    return MDBListRef(list_id=list_id, sub_kind=sub_kind)  # type: ignore[arg-type]


def is_watchlist_id(catalog_id: str) -> bool:
    if catalog_id in {MDBLIST_WATCHLIST_ID, TRAKT_WATCHLIST_ID}:
        return True
    return catalog_id.startswith(MDBLIST_PREFIX) and catalog_id.endswith("-W")


def ref_for_imported(addon_id: str, config: UserConfig) -> UrlImportRef | None:
    record = config.imported_addons.get(addon_id)
    if record is None or not record.is_url_import or not record.native_id:
        return None
    provider = "mdblist" if record.kind == "mdblist_url" else "trakt"
    return UrlImportRef(
        addon_id=record.id,
        provider=provider,
        native_id=record.native_id,
        owner=record.owner,
    )


def find_addon_catalog(catalog_id: str, config: UserConfig) -> AddonCatalogRef | None:
    for record in config.imported_addons.values():
        if record.is_url_import:
            continue
        for catalog in record.catalogs:
            if catalog.id == catalog_id:
                return AddonCatalogRef(
                    addon_id=record.id,
                    catalog_id=catalog.id,
                    original_id=catalog.original_id,
                    original_type=catalog.original_type,
                )
    return None


def resolve_catalog_ref(catalog_id: str, config: UserConfig) -> CatalogRef | None:
    """Map a manifest catalog id back to the list it was built from.

    The first matching rule wins: random discovery, URL imports, imported
    addon catalogs, Trakt ids, MDBList ids. ``None`` signals a miss.
    """

    if catalog_id == RANDOM_CATALOG_ID:
        return RandomListRef()
    url_ref = ref_for_imported(catalog_id, config)
    if url_ref is not None:
        return url_ref
    addon_ref = find_addon_catalog(catalog_id, config)
    if addon_ref is not None:
        return addon_ref
    if catalog_id.startswith(TRAKT_PREFIX) and not catalog_id.startswith(
        TRAKT_PUBLIC_PREFIX
    ):
        if len(catalog_id) > len(TRAKT_PREFIX):
            return TraktListRef(list_id=catalog_id)
        return None
    if catalog_id.startswith(MDBLIST_PREFIX):
        return parse_mdblist_catalog_id(catalog_id)
    return None


def sort_key(ref: CatalogRef, catalog_id: str) -> str:
    """Return the ``sortPreferences`` key consulted for ``ref``."""

    if isinstance(ref, MDBListRef):
        return ref.list_id
    if isinstance(ref, TraktListRef):
        return ref.slug
    if isinstance(ref, AddonCatalogRef):
        return ref.catalog_id
    if isinstance(ref, UrlImportRef):
        return ref.addon_id
    return catalog_id


def default_sort(ref: CatalogRef) -> SortPreference:
    if isinstance(ref, TraktListRef):
        if ref.is_watchlist:
            return SortPreference(sort="added", order="desc")
        return SortPreference(sort="rank", order="asc")
    if isinstance(ref, UrlImportRef) and ref.provider == "trakt":
        return SortPreference(sort="rank", order="asc")
    return SortPreference(sort="imdbvotes", order="desc")


def sort_preference_for(ref: CatalogRef, catalog_id: str, config: UserConfig) -> SortPreference:
    """Look up the user's sort preference, falling back to provider defaults."""

    prefs = config.sort_preferences
    for key in (sort_key(ref, catalog_id), catalog_id):
        preference = prefs.get(key)
        if preference is not None:
            return preference
    return default_sort(ref)


@dataclass(slots=True)
class ListDescriptor:
    """A list as reported by a provider during enumeration."""

    id: str
    name: str
    source_kind: SourceKind
    ref: CatalogRef
    type_hint: str | None = None
    known_flags: tuple[bool, bool] | None = None
    splittable: bool = True
    parent_id: str | None = None
    list_type: str | None = None

    @property
    def family(self) -> str:
        return self.ref.family


@dataclass(slots=True)
class CatalogDescriptor:
    """One manifest-visible catalog entry."""

    catalog_id: str
    display_type: str
    display_name: str
    ref: CatalogRef
    list_id: str
    rank: int = 0
    genres: tuple[str, ...] | None = STATIC_GENRES

    def to_manifest_entry(self) -> dict[str, object]:
        extra: list[dict[str, object]] = [{"name": "skip", "isRequired": False}]
        extra_supported = ["skip"]
        if self.genres:
            extra.append(
                {"name": "genre", "options": list(self.genres), "isRequired": False}
            )
            extra_supported.append("genre")
        return {
            "id": self.catalog_id,
            "type": self.display_type,
            "name": self.display_name,
            "extra": extra,
            "extraSupported": extra_supported,
            "extraRequired": [],
        }


def flags_for_type(content_type: str | None) -> tuple[bool, bool] | None:
    if content_type == MOVIE:
        return True, False
    if content_type == SERIES:
        return False, True
    if content_type == ALL:
        return True, True
    return None
