"""Entry point for the FastAPI-powered Stremio addon."""

from __future__ import annotations

import json
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any, Callable, TypeVar

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_camel

from . import list_preferences
from .cache import TTLCache
from .codec import compress_config, compress_shareable_config, decompress_config
from .config import settings
from .errors import ProviderError
from .models import (
    CREDENTIAL_FIELDS,
    CreateConfigRequest,
    GenreFilterRequest,
    ImportAddonRequest,
    ImportUrlRequest,
    ListNameRequest,
    ListOrderRequest,
    MediaTypeRequest,
    MergeRequest,
    RandomFeatureRequest,
    RemoveAddonRequest,
    RemoveListsRequest,
    SortRequest,
    UserConfig,
    VisibilityRequest,
)
from .services.catalog_service import CatalogService
from .services.external_addon import ExternalAddonClient
from .services.mdblist import MDBListClient
from .services.metadata_addon import MetadataAddonClient
from .services.trakt import TraktClient
from .utils import parse_extra_params

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

RequestModel = TypeVar("RequestModel", bound=BaseModel)


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    timeout = httpx.Timeout(settings.http_timeout, connect=5.0)
    mdblist_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.mdblist_api_url), timeout=timeout)
    )
    trakt_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(base_url=str(settings.trakt_api_url), timeout=timeout)
    )
    addon_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    )
    metadata_http = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=timeout)
    )

    metadata_client = MetadataAddonClient(
        metadata_http,
        str(settings.metadata_addon_url) if settings.metadata_addon_url else None,
        concurrency=settings.enrichment_concurrency,
        batch_size=settings.enrichment_batch_size,
        cache=TTLCache(settings.metadata_cache_seconds, settings.cache_max_entries * 8),
    )
    catalog_service = CatalogService(
        settings,
        MDBListClient(settings, mdblist_http),
        TraktClient(settings, trakt_http),
        ExternalAddonClient(settings, addon_http),
        metadata_client,
    )
    fastapi_app.state.catalog_service = catalog_service
    logger.info(
        "Catalog service ready (metadata add-on: %s)",
        metadata_client.default_base_url or "disabled",
    )

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="MDBList, Trakt and imported addon lists as Stremio catalogs",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_catalog_service(app: FastAPI) -> CatalogService:
    service = getattr(app.state, "catalog_service", None)
    if not isinstance(service, CatalogService):
        raise RuntimeError("Catalog service not initialised")
    return service


async def _read_payload(request: Request, model: type[RequestModel]) -> RequestModel:
    try:
        payload = await request.json()
    except json.JSONDecodeError:
        payload = {}
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.errors()) from exc


def _token_response(config: UserConfig) -> dict[str, Any]:
    return {"success": True, "configHash": compress_config(config)}


def _mutate(token: str, mutation: Callable[[UserConfig], UserConfig]) -> dict[str, Any]:
    config = decompress_config(token)
    try:
        updated = mutation(config)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Unknown id {exc}") from exc
    return _token_response(updated)


def _masked_config(config: UserConfig) -> dict[str, Any]:
    payload = config.model_dump(mode="json", by_alias=True)
    for name in CREDENTIAL_FIELDS:
        alias = UserConfig.model_fields[name].alias or to_camel(name)
        if payload.get(alias):
            payload[alias] = "********"
    return payload


def register_routes(fastapi_app: FastAPI) -> None:
    async def _catalog_endpoint(
        token: str,
        content_type: str,
        catalog_id: str,
        extra: str | None = None,
    ) -> JSONResponse:
        service = get_catalog_service(fastapi_app)
        payload = await service.get_catalog_payload(
            token, content_type, catalog_id, parse_extra_params(extra)
        )
        return JSONResponse(
            payload, headers={"Cache-Control": service.cache_control(catalog_id)}
        )

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/manifest.json")
    async def default_manifest() -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        return await service.build_manifest("configure")

    @fastapi_app.get("/{token}/manifest.json")
    async def manifest(token: str) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        return await service.build_manifest(token)

    @fastapi_app.get("/{token}/catalog/{content_type}/{catalog_id}.json")
    async def catalog(token: str, content_type: str, catalog_id: str) -> JSONResponse:
        return await _catalog_endpoint(token, content_type, catalog_id)

    @fastapi_app.get("/{token}/catalog/{content_type}/{catalog_id}/{extra}.json")
    async def catalog_with_extra(
        token: str, content_type: str, catalog_id: str, extra: str
    ) -> JSONResponse:
        return await _catalog_endpoint(token, content_type, catalog_id, extra)

    @fastapi_app.get("/{token}/meta/{content_type}/{meta_id}.json")
    async def meta(token: str, content_type: str, meta_id: str) -> dict[str, Any]:
        if not meta_id.startswith("tt"):
            raise HTTPException(status_code=404, detail="Meta not found")
        return {
            "meta": {"id": meta_id, "type": content_type, "name": "Loading details..."}
        }

    @fastapi_app.post("/api/config/create")
    async def create_config(request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, CreateConfigRequest)
        config = UserConfig.model_validate(
            payload.model_dump(include=set(CREDENTIAL_FIELDS))
        )
        if payload.shared_config:
            shared = decompress_config(payload.shared_config)
            config = list_preferences.merge_shared_layout(config, shared)
        return _token_response(config)

    @fastapi_app.get("/api/{token}/config")
    async def get_config(token: str) -> dict[str, Any]:
        return {"success": True, "config": _masked_config(decompress_config(token))}

    @fastapi_app.get("/api/{token}/shareable-hash")
    async def shareable_hash(token: str) -> dict[str, Any]:
        return {
            "success": True,
            "shareableHash": compress_shareable_config(decompress_config(token)),
        }

    @fastapi_app.get("/api/{token}/lists")
    async def list_rows(token: str) -> dict[str, Any]:
        service = get_catalog_service(fastapi_app)
        return await service.list_rows(token)

    @fastapi_app.post("/api/{token}/lists/order")
    async def update_order(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, ListOrderRequest)
        return _mutate(
            token, lambda config: list_preferences.set_list_order(config, payload.order)
        )

    @fastapi_app.post("/api/{token}/lists/names")
    async def update_name(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, ListNameRequest)
        return _mutate(
            token,
            lambda config: list_preferences.rename_list(
                config, payload.list_id, payload.custom_name
            ),
        )

    @fastapi_app.post("/api/{token}/lists/mediatype")
    async def update_media_type(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, MediaTypeRequest)
        return _mutate(
            token,
            lambda config: list_preferences.set_media_type(
                config, payload.list_id, payload.custom_media_type
            ),
        )

    @fastapi_app.post("/api/{token}/lists/visibility")
    async def update_visibility(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, VisibilityRequest)
        return _mutate(
            token, lambda config: list_preferences.set_hidden(config, payload.hidden_lists)
        )

    @fastapi_app.post("/api/{token}/lists/remove")
    async def remove_lists(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, RemoveListsRequest)
        return _mutate(
            token, lambda config: list_preferences.remove_lists(config, payload.list_ids)
        )

    @fastapi_app.post("/api/{token}/lists/sort")
    async def update_sort(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, SortRequest)
        return _mutate(
            token,
            lambda config: list_preferences.set_sort(
                config, payload.list_id, payload.sort, payload.order
            ),
        )

    @fastapi_app.post("/api/{token}/lists/merge")
    async def update_merge(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, MergeRequest)
        return _mutate(
            token,
            lambda config: list_preferences.set_merged(
                config, payload.list_id, payload.merged
            ),
        )

    @fastapi_app.post("/api/{token}/import-addon")
    async def import_addon(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, ImportAddonRequest)
        service = get_catalog_service(fastapi_app)
        try:
            updated = await service.import_addon(
                decompress_config(token), payload.manifest_url
            )
        except (ProviderError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _token_response(updated)

    @fastapi_app.post("/api/{token}/import-list-url")
    async def import_list_url(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, ImportUrlRequest)
        service = get_catalog_service(fastapi_app)
        try:
            updated = await service.import_list_url(decompress_config(token), payload.url)
        except (ProviderError, ValueError) as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _token_response(updated)

    @fastapi_app.post("/api/{token}/remove-addon")
    async def remove_addon(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, RemoveAddonRequest)
        return _mutate(
            token,
            lambda config: list_preferences.remove_imported_addon(
                config, payload.addon_id
            ),
        )

    @fastapi_app.post("/api/{token}/config/random-list-feature")
    async def toggle_random_feature(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, RandomFeatureRequest)

        def _apply(config: UserConfig) -> UserConfig:
            updated = list_preferences.set_random_feature(config, payload.enable)
            if payload.random_mdblist_usernames is not None:
                updated.random_mdblist_usernames = [
                    name.strip()
                    for name in payload.random_mdblist_usernames
                    if name.strip()
                ]
            return updated

        return _mutate(token, _apply)

    @fastapi_app.post("/api/{token}/config/genre-filter")
    async def toggle_genre_filter(token: str, request: Request) -> dict[str, Any]:
        payload = await _read_payload(request, GenreFilterRequest)
        return _mutate(
            token,
            lambda config: list_preferences.set_genre_filter(
                config, payload.disable_genre_filter
            ),
        )


app = create_app()
