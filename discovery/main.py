"""FastAPI application serving the product listing endpoint."""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query

from .backends import BackendError, CachedProductSearchBackend, ProductSearchBackend
from .config import settings
from .es_backend import ElasticsearchProductSearchBackend, get_client
from .models import BrandsResponse, CategoriesResponse, ListingRequest, ListingResponse
from .state import CATEGORIES

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)

app = FastAPI(title="Product Listing Service")


@lru_cache(maxsize=1)
def get_backend() -> ProductSearchBackend:
    return CachedProductSearchBackend(ElasticsearchProductSearchBackend())


def _flag(value: Optional[str]) -> bool:
    return (value or "").lower() == "true"


@app.get("/health")
async def health() -> dict:
    reachable = await asyncio.to_thread(get_client().ping)
    return {"elasticsearch": reachable, "index": settings.es_index}


@app.get("/products", response_model=ListingResponse)
async def list_products(
    page: int = Query(1, description="1-based page number"),
    limit: int = Query(12, description="Page size"),
    category: Optional[str] = None,
    search: Optional[str] = None,
    brand: Optional[str] = None,
    isExternalSource: Optional[str] = None,
    isAliExpress: Optional[str] = None,
    isOnSale: Optional[str] = None,
    backend: ProductSearchBackend = Depends(get_backend),
) -> ListingResponse:
    request = ListingRequest(
        page=max(page, 1),
        limit=max(limit, 1),
        category=category if category in CATEGORIES else None,
        search=(search or "").strip() or None,
        brand=(brand or "").strip() or None,
        isExternalSource=_flag(isExternalSource) or _flag(isAliExpress),
        isOnSale=_flag(isOnSale),
    )
    try:
        return await backend.fetch_listing(request)
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/products/brands", response_model=BrandsResponse)
async def list_brands(backend: ProductSearchBackend = Depends(get_backend)) -> BrandsResponse:
    try:
        return BrandsResponse(brands=await backend.fetch_brands())
    except BackendError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@app.get("/products/categories", response_model=CategoriesResponse)
async def list_categories() -> CategoriesResponse:
    return CategoriesResponse(categories=list(CATEGORIES))
