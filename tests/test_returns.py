from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sellerhub.orders.normalizer import normalize_order
from sellerhub.orders.returns import ReturnRequestLinker
from sellerhub.persistence.order_store import InMemoryOrderStore


class _BrokenStore(InMemoryOrderStore):
    async def get(self, collection, doc_id):
        raise RuntimeError("firestore unavailable")

    async def list(self, collection):
        raise RuntimeError("firestore unavailable")


def _store() -> InMemoryOrderStore:
    return InMemoryOrderStore(
        {
            "Order": {"o1": {"sellerIds": ["s1"]}},
            "orders": {"o2": {"sellerId": "s2"}},
            "ReturnRequest": {
                "r1": {
                    "orderId": "o1",
                    "reason": "damaged",
                    "status": "approved",
                    "requestedAt": datetime(2024, 3, 2, tzinfo=timezone.utc),
                    "orderTotal": "1,500",
                    "itemsToReturn": ["Mask"],
                    "evidenceImages": ["gs://bucket/e1.png"],
                    "evidenceSubmitted": True,
                },
                "r2": {"orderId": "o2", "reason": "wrong item"},
                "r3": {"reason": "orphan"},
                "r4": {"orderId": "gone"},
            },
        }
    )


def _linker(store) -> ReturnRequestLinker:
    return ReturnRequestLinker(store, collections=("Order", "orders"), return_collection="ReturnRequest")


@pytest.mark.asyncio
async def test_fetch_return_request() -> None:
    rr = await _linker(_store()).fetch_return_request("r1")

    assert rr is not None
    assert rr.id == "r1"
    assert rr.order_id == "o1"
    assert rr.reason == "damaged"
    assert rr.status == "approved"
    assert rr.requested_at == "2024-03-02T00:00:00.000+00:00"
    assert rr.order_total == 1500
    assert rr.items_to_return == ("Mask",)
    assert rr.evidence_images == ("gs://bucket/e1.png",)
    assert rr.evidence_submitted is True


@pytest.mark.asyncio
async def test_fetch_return_request_defaults() -> None:
    rr = await _linker(_store()).fetch_return_request("r2")
    assert rr is not None
    assert rr.status == "pending"
    assert rr.items_to_return == ()
    assert rr.evidence_submitted is False


@pytest.mark.asyncio
async def test_missing_or_failing_lookup_is_none() -> None:
    assert await _linker(_store()).fetch_return_request("nope") is None
    assert await _linker(_BrokenStore()).fetch_return_request("r1") is None


@pytest.mark.asyncio
async def test_requests_for_seller_follow_parent_order() -> None:
    linker = _linker(_store())

    assert [r.id for r in await linker.fetch_return_requests_for_seller(["s1"])] == ["r1"]
    assert [r.id for r in await linker.fetch_return_requests_for_seller(["s2"])] == ["r2"]
    assert sorted(r.id for r in await linker.fetch_return_requests_for_seller(["s1", "s2"])) == ["r1", "r2"]
    assert await linker.fetch_return_requests_for_seller([]) == []
    assert await _linker(_BrokenStore()).fetch_return_requests_for_seller(["s1"]) == []


@pytest.mark.asyncio
async def test_attach_return_request() -> None:
    linker = _linker(_store())
    order = normalize_order("o1", {"createdAt": 1_700_000_000, "returnRequestId": "r1"})

    attached = await linker.attach_return_request(order)

    assert attached.return_request is not None
    assert attached.return_request.reason == "damaged"
    assert order.return_request is None


@pytest.mark.asyncio
async def test_attach_without_link_is_a_no_op() -> None:
    linker = _linker(_store())
    plain = normalize_order("o1", {"createdAt": 1_700_000_000})
    dangling = normalize_order("o1", {"createdAt": 1_700_000_000, "returnRequestId": "missing"})

    assert await linker.attach_return_request(plain) is plain
    assert await linker.attach_return_request(dangling) is dangling


@pytest.mark.asyncio
async def test_out_of_range_dates_never_raise() -> None:
    store = InMemoryOrderStore({"ReturnRequest": {"r1": {"orderId": "o1", "requestedAt": 1e17, "reason": "late"}}})

    rr = await _linker(store).fetch_return_request("r1")

    assert rr is not None
    assert rr.reason == "late"
    assert rr.requested_at is None
