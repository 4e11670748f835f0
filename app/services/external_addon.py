"""Client for catalogs exposed by imported third-party addons."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlencode, urljoin

from ..catalogs import AddonCatalogRef, CatalogRef
from ..errors import ProviderNotFound, ProviderUnavailable
from ..models import ALL, MOVIE, SERIES, ImportedAddonRecord, SortPreference, SubCatalog, UserConfig
from .base import ProviderAdapter, RawPage, request_json

logger = logging.getLogger(__name__)

PROVIDER = "addon"


def normalize_manifest_url(value: str) -> str:
    normalized = value.strip()
    if normalized.startswith("stremio://"):
        normalized = "https://" + normalized[len("stremio://"):]
    return normalized


def normalize_base_url(value: str | None) -> str | None:
    """Strip ``/manifest.json`` and trailing slashes from an addon URL."""

    if not value:
        return None
    normalized = normalize_manifest_url(value)
    if not normalized:
        return None
    normalized = normalized.rstrip("/")
    lowered = normalized.lower()
    for suffix in ("/manifest.json", "/manifest"):
        if lowered.endswith(suffix):
            normalized = normalized[: -len(suffix)].rstrip("/")
            break
    return normalized or None


def display_type(original_type: str) -> str:
    if original_type == "tv":
        return SERIES
    if original_type in (MOVIE, SERIES, ALL):
        return original_type
    return ALL


def _requires_search(catalog: dict[str, Any]) -> bool:
    extras = catalog.get("extra") or []
    return any(
        isinstance(extra, dict) and extra.get("name") == "search" and extra.get("isRequired")
        for extra in extras
    )


class ExternalAddonClient(ProviderAdapter):
    """Imports addon manifests and pages through their catalogs."""

    family = "addon"
    splittable = False
    supports_genre_filter = True

    async def import_manifest(self, url: str) -> ImportedAddonRecord:
        manifest_url = normalize_manifest_url(url)
        manifest = await self.with_retry(
            lambda: self._fetch_json(manifest_url), label="manifest import"
        )
        if not isinstance(manifest, dict) or not manifest.get("id"):
            raise ProviderUnavailable(PROVIDER, "manifest is missing an id")
        raw_catalogs = manifest.get("catalogs")
        if not isinstance(raw_catalogs, list):
            raise ProviderUnavailable(PROVIDER, "manifest is missing catalogs")

        base_url = normalize_base_url(manifest_url) or manifest_url
        manifest_id = str(manifest["id"])
        usage: dict[tuple[str, str], int] = {}
        catalogs: list[SubCatalog] = []
        for catalog in raw_catalogs:
            if not isinstance(catalog, dict) or not catalog.get("id") or not catalog.get("type"):
                continue
            if _requires_search(catalog):
                continue
            original_id = str(catalog["id"])
            original_type = str(catalog["type"])
            count = usage.get((original_id, original_type), 0) + 1
            usage[(original_id, original_type)] = count
            catalog_id = f"{manifest_id}_{original_id}_{original_type}"
            if count > 1:
                catalog_id = f"{catalog_id}_{count}"
            catalogs.append(
                SubCatalog(
                    id=catalog_id,
                    original_id=original_id,
                    original_type=original_type,
                    name=str(catalog.get("name") or "Unnamed Catalog"),
                    type=display_type(original_type),
                )
            )

        logo = manifest.get("logo")
        if isinstance(logo, str) and logo and not logo.startswith(("http://", "https://", "data:")):
            logo = urljoin(f"{base_url}/", logo)

        return ImportedAddonRecord(
            id=manifest_id,
            name=str(manifest.get("name") or "Unknown Addon"),
            kind="manifest",
            version=str(manifest.get("version") or "0.0.0"),
            logo=logo if isinstance(logo, str) else None,
            api_base_url=base_url,
            types=[str(entry) for entry in manifest.get("types") or []],
            catalogs=catalogs,
        )

    async def _fetch_json(self, url: str) -> Any:
        payload, _ = await request_json(self._client, PROVIDER, url)
        return payload

    @staticmethod
    def build_catalog_url(
        base_url: str,
        original_id: str,
        original_type: str,
        *,
        skip: int = 0,
        genre: str | None = None,
    ) -> str:
        path = f"{base_url}/catalog/{original_type}/{quote(original_id, safe='')}"
        extra: dict[str, str] = {}
        if skip > 0:
            extra["skip"] = str(skip)
        if genre:
            extra["genre"] = genre
        if extra:
            path = f"{path}/{urlencode(extra)}"
        return f"{path}.json"

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
        if not isinstance(ref, AddonCatalogRef):
            raise TypeError(f"Addon client cannot serve {ref.kind} catalogs")
        record = config.imported_addons.get(ref.addon_id)
        if record is None or not record.api_base_url:
            raise ProviderNotFound(PROVIDER, f"addon {ref.addon_id} is not imported")
        url = self.build_catalog_url(
            record.api_base_url,
            ref.original_id,
            ref.original_type,
            skip=skip,
            genre=genre,
        )
        payload = await self._fetch_json(url)
        metas = payload.get("metas") if isinstance(payload, dict) else None
        if not isinstance(metas, list):
            raise ProviderUnavailable(PROVIDER, f"{url} returned no metas")
        type_hint = display_type(ref.original_type)
        return RawPage(
            items=[meta for meta in metas if isinstance(meta, dict)],
            type_hint=type_hint if type_hint != ALL else None,
        )
