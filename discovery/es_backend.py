"""Listing endpoint contract served straight from an Elasticsearch index.

The rest of the code works against the official synchronous client. Blocking
calls are wrapped via ``asyncio.to_thread``.
"""
from __future__ import annotations

import asyncio
import logging
import math
from functools import lru_cache
from typing import Any, Dict, List

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import ApiError, NotFoundError, TransportError
from pydantic import ValidationError

from .backends import BackendError
from .config import settings
from .models import ListingRequest, ListingResponse, Pagination, Product
from .text import to_phonetic, transliterate_text

logger = logging.getLogger(__name__)

TEXT_FIELDS = ["name^3", "brand^2", "description"]
PHONETIC_FIELDS = ["name.phonetic^1.5", "brand.phonetic"]
BRAND_AGG_SIZE = 1000


@lru_cache(maxsize=1)
def get_client() -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host)


def build_listing_query(request: ListingRequest) -> Dict[str, Any]:
    must: List[dict] = []
    should: List[dict] = []
    filters: List[dict] = [{"term": {"isVisible": True}}]

    if request.isExternalSource:
        filters.append({"term": {"isExternalSource": True}})
    elif request.category:
        filters.append({"term": {"category.keyword": request.category}})
    if request.isOnSale:
        filters.append({"range": {"discountPrice": {"gt": 0}}})
    if request.brand:
        filters.append({"match": {"brand": {"query": request.brand, "operator": "and"}}})

    search = (request.search or "").strip()
    if search:
        must.append(
            {
                "multi_match": {
                    "query": search,
                    "fields": TEXT_FIELDS,
                    "fuzziness": "AUTO",
                }
            }
        )
        transliterated = transliterate_text(search)
        if transliterated and transliterated != search.lower():
            should.append({"multi_match": {"query": transliterated, "fields": TEXT_FIELDS, "boost": 0.8}})
        phonetic = to_phonetic(search)
        if phonetic:
            should.append(
                {
                    "multi_match": {
                        "query": phonetic,
                        "fields": PHONETIC_FIELDS,
                        "type": "most_fields",
                        "boost": 0.5,
                    }
                }
            )

    query = {
        "from": (request.page - 1) * request.limit,
        "size": request.limit,
        "track_total_hits": True,
        "sort": [{"createdAt": {"order": "desc"}}],
        "query": {"bool": {"must": must, "should": should, "filter": filters}},
    }
    logger.debug("ES listing payload=%s", query)
    return query


def _hit_to_product(hit: dict) -> Product:
    source = dict(hit.get("_source", {}))
    source.setdefault("id", hit.get("_id"))
    return Product.model_validate(source)


class ElasticsearchProductSearchBackend:
    def __init__(self, es: Elasticsearch | None = None, index: str | None = None) -> None:
        self._es = es or get_client()
        self._index = index or settings.es_index

    async def _search(self, body: Dict[str, Any]) -> Any:
        try:
            response = await asyncio.to_thread(self._es.search, index=self._index, body=body)
        except NotFoundError:
            logger.warning("Index %s is missing; serving an empty listing", self._index)
            return {}
        except (ApiError, TransportError) as exc:
            logger.warning("Elasticsearch search failed: %s", exc)
            raise BackendError("Failed to fetch products") from exc
        return response

    async def fetch_listing(self, request: ListingRequest) -> ListingResponse:
        response = await self._search(build_listing_query(request))
        hits = response.get("hits", {})
        total = hits.get("total", {}).get("value", 0)
        try:
            products = [_hit_to_product(hit) for hit in hits.get("hits", [])]
        except ValidationError as exc:
            raise BackendError("Malformed product document in index") from exc
        logger.info(
            "listing page=%s limit=%s params=%s hits=%s total=%s took=%sms",
            request.page,
            request.limit,
            request.to_query_params(),
            len(products),
            total,
            response.get("took", 0),
        )
        return ListingResponse(
            products=products,
            pagination=Pagination(
                page=request.page,
                limit=request.limit,
                total=total,
                totalPages=math.ceil(total / request.limit),
            ),
        )

    async def fetch_brands(self) -> List[str]:
        body = {
            "size": 0,
            "query": {"bool": {"filter": [{"term": {"isVisible": True}}]}},
            "aggs": {"brands": {"terms": {"field": "brand.keyword", "size": BRAND_AGG_SIZE}}},
        }
        response = await self._search(body)
        buckets = response.get("aggregations", {}).get("brands", {}).get("buckets", [])
        return sorted(bucket["key"] for bucket in buckets if str(bucket.get("key", "")).strip())
