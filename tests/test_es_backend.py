"""Elasticsearch query building and response mapping."""

import pytest

from discovery.es_backend import ElasticsearchProductSearchBackend, build_listing_query
from discovery.models import ListingRequest


class FakeElasticsearch:
    def __init__(self, response):
        self.response = response
        self.calls = []

    def search(self, index, body):
        self.calls.append((index, body))
        return self.response


def _filters(query):
    return query["query"]["bool"]["filter"]


def test_query_pages_and_sorts_newest_first():
    query = build_listing_query(ListingRequest(page=3, limit=12))

    assert query["from"] == 24
    assert query["size"] == 12
    assert query["sort"] == [{"createdAt": {"order": "desc"}}]
    assert _filters(query) == [{"term": {"isVisible": True}}]
    assert query["query"]["bool"]["must"] == []


def test_external_source_replaces_category_filter():
    query = build_listing_query(ListingRequest(category="Pets", isExternalSource=True, isOnSale=True))

    assert {"term": {"isExternalSource": True}} in _filters(query)
    assert {"range": {"discountPrice": {"gt": 0}}} in _filters(query)
    assert not any("category.keyword" in str(clause) for clause in _filters(query))


def test_search_adds_fuzzy_and_phonetic_clauses():
    query = build_listing_query(ListingRequest(search="Headphones", brand="Acme"))

    must = query["query"]["bool"]["must"]
    assert must[0]["multi_match"]["query"] == "Headphones"
    assert must[0]["multi_match"]["fuzziness"] == "AUTO"
    assert any(clause["multi_match"].get("type") == "most_fields" for clause in query["query"]["bool"]["should"])
    assert {"match": {"brand": {"query": "Acme", "operator": "and"}}} in _filters(query)


@pytest.mark.asyncio
async def test_fetch_listing_maps_hits_and_total_pages():
    es = FakeElasticsearch(
        {
            "took": 3,
            "hits": {
                "total": {"value": 25},
                "hits": [
                    {"_id": "a1", "_source": {"name": "Lamp", "price": 12.5, "stock": 2}},
                ],
            },
        }
    )
    backend = ElasticsearchProductSearchBackend(es, index="products-test")

    response = await backend.fetch_listing(ListingRequest(page=2, limit=12))

    assert es.calls[0][0] == "products-test"
    assert response.products[0].id == "a1"
    assert response.pagination.total == 25
    assert response.pagination.totalPages == 3
    assert response.pagination.page == 2


@pytest.mark.asyncio
async def test_fetch_brands_sorted_without_blanks():
    es = FakeElasticsearch(
        {"aggregations": {"brands": {"buckets": [{"key": "Zeta"}, {"key": " "}, {"key": "Acme"}]}}}
    )
    backend = ElasticsearchProductSearchBackend(es, index="products-test")

    assert await backend.fetch_brands() == ["Acme", "Zeta"]
