"""HTTP and cached backends."""

import httpx
import pytest

from discovery.backends import BackendError, CachedProductSearchBackend, HttpProductSearchBackend
from discovery.cache import InMemoryCache, cache_key
from discovery.models import ListingRequest, ListingResponse

LISTING_BODY = {
    "success": True,
    "products": [
        {
            "_id": "64f0c0ffee",
            "name": "Desk Lamp",
            "price": 40,
            "discountPrice": 30,
            "stock": 3,
            "category": "Home & Kitchen",
            "brand": "Acme",
            "createdAt": "2024-03-01T10:00:00Z",
            "isFeatured": True,
            "isVisible": True,
            "isAliExpress": False,
        }
    ],
    "pagination": {"page": 2, "limit": 12, "total": 13, "totalPages": 2},
}


def _backend(handler):
    client = httpx.AsyncClient(base_url="http://shop.test/api", transport=httpx.MockTransport(handler))
    return HttpProductSearchBackend(client=client)


@pytest.mark.asyncio
async def test_fetch_listing_sends_params_and_parses_body():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url)
        return httpx.Response(200, json=LISTING_BODY)

    backend = _backend(handler)
    response = await backend.fetch_listing(
        ListingRequest(page=2, limit=12, category="Home & Kitchen", search="lamp", isOnSale=True)
    )
    await backend.aclose()

    assert seen[0].path == "/api/products"
    assert dict(seen[0].params) == {
        "page": "2",
        "limit": "12",
        "category": "Home & Kitchen",
        "search": "lamp",
        "isOnSale": "true",
    }
    product = response.products[0]
    assert product.id == "64f0c0ffee"
    assert product.effective_price == 30
    assert product.isExternalSource is False
    assert response.pagination.totalPages == 2


@pytest.mark.asyncio
async def test_error_status_uses_server_message():
    backend = _backend(lambda request: httpx.Response(500, json={"message": "Database offline"}))
    with pytest.raises(BackendError, match="Database offline"):
        await backend.fetch_listing(ListingRequest())


@pytest.mark.asyncio
async def test_transport_error_becomes_backend_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    backend = _backend(handler)
    with pytest.raises(BackendError, match="Failed to fetch products"):
        await backend.fetch_listing(ListingRequest())


@pytest.mark.asyncio
async def test_malformed_body_becomes_backend_error():
    backend = _backend(lambda request: httpx.Response(200, json={"products": [{"name": "no id"}]}))
    with pytest.raises(BackendError):
        await backend.fetch_listing(ListingRequest())


@pytest.mark.asyncio
async def test_fetch_brands():
    backend = _backend(lambda request: httpx.Response(200, json={"success": True, "brands": ["Acme", "Globex"]}))
    assert await backend.fetch_brands() == ["Acme", "Globex"]


class CountingBackend:
    def __init__(self):
        self.listing_calls = 0
        self.brand_calls = 0

    async def fetch_listing(self, request):
        self.listing_calls += 1
        return ListingResponse.model_validate(LISTING_BODY)

    async def fetch_brands(self):
        self.brand_calls += 1
        return ["Acme"]


@pytest.mark.asyncio
async def test_cached_backend_reuses_normalized_search():
    inner = CountingBackend()
    backend = CachedProductSearchBackend(inner, cache=InMemoryCache(), ttl=60)

    first = await backend.fetch_listing(ListingRequest(search="Desk Lamp!"))
    second = await backend.fetch_listing(ListingRequest(search="desk   lamp"))
    await backend.fetch_listing(ListingRequest(search="desk lamp", page=2))

    assert inner.listing_calls == 2
    assert second.products[0].id == first.products[0].id == "64f0c0ffee"

    assert await backend.fetch_brands() == ["Acme"]
    assert await backend.fetch_brands() == ["Acme"]
    assert inner.brand_calls == 1


def test_cache_key_ignores_param_order():
    assert cache_key("listing", {"page": "1", "search": "x"}) == cache_key("listing", {"search": "x", "page": "1"})
    assert cache_key("listing", {"page": "1"}) != cache_key("listing", {"page": "2"})


def test_in_memory_cache_expires_and_evicts():
    cache = InMemoryCache(max_entries=2)
    cache.set("a", {"v": 1}, ttl=60)
    cache.set("b", {"v": 2}, ttl=60)
    assert cache.get("a") == {"v": 1}
    cache.set("c", {"v": 3}, ttl=60)

    assert cache.get("b") is None
    assert cache.get("a") == {"v": 1}

    cache.set("gone", {"v": 0}, ttl=-1)
    assert cache.get("gone") is None
