from __future__ import annotations

import asyncio

import pytest

from sellerhub.orders.hydration import HydrationEnricher, ProductCache
from sellerhub.orders.normalizer import normalize_order
from sellerhub.persistence.order_store import InMemoryOrderStore


class _FailingStore(InMemoryOrderStore):
    async def get(self, collection, doc_id):
        raise RuntimeError("firestore unavailable")


def _order(items, **extra):
    return normalize_order("o1", {"createdAt": 1_700_000_000, "items": items, **extra})


@pytest.mark.asyncio
async def test_categories_filled_from_product() -> None:
    store = InMemoryOrderStore(
        {
            "Product": {
                "p1": {"categoryID": "PtqCTLGduo6vay2umpMY", "subcategory": "Chairs", "cost": 120},
                "p2": {"category": "Gloves", "imageURL": "https://cdn.example/p2.png"},
            }
        }
    )
    enricher = HydrationEnricher(store)
    order = _order([{"name": "Chair", "productId": "p1"}, {"name": "Gloves", "productId": "p2"}])

    enriched = await enricher.enrich(order)

    chair, gloves = enriched.items
    assert chair.category == "Dental Equipment"
    assert chair.category_id == "PtqCTLGduo6vay2umpMY"
    assert chair.subcategory == "Chairs"
    assert chair.cost == 120
    assert gloves.category == "Gloves"
    assert gloves.image_url == "https://cdn.example/p2.png"
    # the original order is untouched
    assert order.items[0].category is None


@pytest.mark.asyncio
async def test_present_fields_are_never_overwritten() -> None:
    store = InMemoryOrderStore({"Product": {"p1": {"category": "Other", "cost": 1}}})
    enricher = HydrationEnricher(store)
    order = _order([{"name": "Mask", "productId": "p1", "category": "Masks", "categoryId": "c1", "imageUrl": "x.png"}])

    enriched = await enricher.enrich(order)

    assert enriched.items[0].category == "Masks"
    assert enriched.items[0].cost is None
    assert store.reads == []


@pytest.mark.asyncio
async def test_one_fetch_per_product_per_run() -> None:
    store = InMemoryOrderStore({"Product": {"p1": {"category": "Gloves"}}})
    enricher = HydrationEnricher(store)
    cache = ProductCache()
    orders = [_order([{"name": "A", "productId": "p1"}]), _order([{"name": "B", "productId": "p1"}])]

    results = await asyncio.gather(*(enricher.enrich(o, cache) for o in orders))

    assert [r.items[0].category for r in results] == ["Gloves", "Gloves"]
    assert store.reads.count(("Product", "p1")) == 1
    assert "p1" in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_storage_image_resolved_through_resolver() -> None:
    store = InMemoryOrderStore({"Product": {"p1": {"category": "Gloves", "imageURL": "gs://bucket/p1.png"}}})
    calls: list[str] = []

    async def resolver(path: str) -> str:
        calls.append(path)
        return "https://signed.example/p1.png"

    enriched = await HydrationEnricher(store, url_resolver=resolver).enrich(_order([{"name": "A", "productId": "p1"}]))

    assert enriched.image_url == "https://signed.example/p1.png"
    assert enriched.items[0].image_url == "https://signed.example/p1.png"
    assert set(calls) == {"gs://bucket/p1.png"}


@pytest.mark.asyncio
async def test_unresolvable_image_left_empty() -> None:
    store = InMemoryOrderStore({"Product": {"p1": {"category": "Gloves", "imageURL": "gs://bucket/p1.png"}}})

    async def broken(path: str) -> str:
        raise RuntimeError("signing failed")

    without = await HydrationEnricher(store).enrich(_order([{"name": "A", "productId": "p1"}]))
    failing = await HydrationEnricher(store, url_resolver=broken).enrich(_order([{"name": "A", "productId": "p1"}]))

    for enriched in (without, failing):
        assert enriched.image_url is None
        assert enriched.items[0].image_url is None
        assert enriched.items[0].category == "Gloves"


@pytest.mark.asyncio
async def test_image_from_top_level_product_id() -> None:
    store = InMemoryOrderStore({"Product": {"p9": {"imageUrl": "https://cdn.example/p9.png"}}})
    raw = {"createdAt": 1_700_000_000, "productId": "p9", "items": [{"name": "Kit"}]}

    enriched = await HydrationEnricher(store).enrich(normalize_order("o1", raw), raw=raw)

    assert enriched.image_url == "https://cdn.example/p9.png"


@pytest.mark.asyncio
async def test_product_fetch_failure_leaves_order_unchanged() -> None:
    enricher = HydrationEnricher(_FailingStore())
    order = _order([{"name": "A", "productId": "p1"}])

    assert await enricher.enrich(order) == order


@pytest.mark.asyncio
async def test_missing_product_leaves_item_unchanged() -> None:
    store = InMemoryOrderStore()
    order = _order([{"name": "A", "productId": "ghost"}])

    assert await HydrationEnricher(store).enrich(order) == order
