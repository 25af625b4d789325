"""Product-search endpoint clients.

The controller only depends on :class:`ProductSearchBackend`. Implementations
translate their transport failures into :class:`BackendError` so callers have a
single exception to contain.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx
from pydantic import ValidationError

from .cache import CacheBackend, cache_key, get_cache
from .config import settings
from .models import BrandsResponse, ListingRequest, ListingResponse
from .text import normalize_query

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Failed to fetch products"


class BackendError(Exception):
    """A product-search call failed; ``str(exc)`` is safe to show inline."""


class ProductSearchBackend(Protocol):
    async def fetch_listing(self, request: ListingRequest) -> ListingResponse: ...

    async def fetch_brands(self) -> List[str]: ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return DEFAULT_ERROR_MESSAGE
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return DEFAULT_ERROR_MESSAGE


class HttpProductSearchBackend:
    """Talks to the REST listing endpoint (``GET /products``)."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = client or httpx.AsyncClient(
            base_url=(base_url or settings.api_url).rstrip("/"),
            timeout=timeout if timeout is not None else settings.request_timeout_seconds,
        )

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        try:
            resp = await self._client.get(path, params=params)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            logger.warning("GET %s returned HTTP %s", path, exc.response.status_code)
            raise BackendError(_error_message(exc.response)) from exc
        except httpx.HTTPError as exc:
            logger.warning("GET %s failed: %s", path, exc)
            raise BackendError(DEFAULT_ERROR_MESSAGE) from exc
        except ValueError as exc:
            raise BackendError("Malformed response from product service") from exc

    async def fetch_listing(self, request: ListingRequest) -> ListingResponse:
        data = await self._get("/products", params=request.to_query_params())
        try:
            return ListingResponse.model_validate(data)
        except ValidationError as exc:
            raise BackendError("Malformed response from product service") from exc

    async def fetch_brands(self) -> List[str]:
        data = await self._get("/products/brands")
        try:
            return BrandsResponse.model_validate(data).brands
        except ValidationError as exc:
            raise BackendError("Malformed brand list from product service") from exc

    async def aclose(self) -> None:
        await self._client.aclose()


class CachedProductSearchBackend:
    """Caches listing pages and the brand list in front of another backend."""

    def __init__(
        self,
        inner: ProductSearchBackend,
        cache: CacheBackend | None = None,
        ttl: int | None = None,
    ) -> None:
        self._inner = inner
        self._cache = cache if cache is not None else get_cache()
        self._ttl = ttl if ttl is not None else settings.cache_ttl_seconds

    async def fetch_listing(self, request: ListingRequest) -> ListingResponse:
        params = request.to_query_params()
        if "search" in params:
            # "Head Phones!" and "head phones" share an entry.
            params["search"] = normalize_query(params["search"])
        key = cache_key("listing", params)
        cached = await asyncio.to_thread(self._cache.get, key)
        if cached is not None:
            logger.debug("cache_hit listing params=%s", params)
            return ListingResponse.model_validate(cached)
        response = await self._inner.fetch_listing(request)
        await asyncio.to_thread(self._cache.set, key, response.model_dump(mode="json"), self._ttl)
        return response

    async def fetch_brands(self) -> List[str]:
        key = cache_key("brands", {})
        cached = await asyncio.to_thread(self._cache.get, key)
        if cached is not None:
            return BrandsResponse.model_validate(cached).brands
        brands = await self._inner.fetch_brands()
        await asyncio.to_thread(self._cache.set, key, BrandsResponse(brands=brands).model_dump(), self._ttl)
        return brands
