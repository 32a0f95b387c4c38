from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from sellerhub.orders.errors import InvalidStageTransitionError, OrderNotFoundError
from sellerhub.orders.fulfillment import FulfillmentStageMachine
from sellerhub.orders.status import FulfillmentStage, OrderStatus
from sellerhub.persistence.order_store import InMemoryOrderStore

NOW = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
EARLIER = {"status": "confirmed", "note": "Order payment confirmed", "timestamp": datetime(2024, 2, 28, tzinfo=timezone.utc)}


class _RecordingReporting:
    def __init__(self, result: bool = True) -> None:
        self.records: list[dict] = []
        self._result = result

    async def sync_order(self, record) -> bool:
        self.records.append(dict(record))
        return self._result


class _ExplodingReporting:
    async def sync_order(self, record) -> bool:
        raise RuntimeError("reporting backend down")


def _machine(store, reporting=None) -> FulfillmentStageMachine:
    return FulfillmentStageMachine(store, collections=("Order", "orders"), reporting=reporting, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_to_ship_without_stage_appends_two_entries() -> None:
    store = InMemoryOrderStore({"orders": {"o1": {"status": "confirmed", "statusHistory": [EARLIER]}}})

    await _machine(store).update_order_status("o1", OrderStatus.TO_SHIP)

    doc = store.snapshot("orders", "o1")
    assert doc["status"] == "to_ship"
    assert doc["fulfillmentStage"] == "to-pack"
    assert doc["statusHistory"] == [
        EARLIER,
        {"status": "to_ship", "note": "Order confirmed and ready to be processed", "timestamp": NOW},
        {"status": "to-pack", "note": "Order is ready to be packed", "timestamp": NOW},
    ]
    assert [w[:2] for w in store.writes] == [("orders", "o1")]


@pytest.mark.asyncio
async def test_to_ship_with_existing_stage_keeps_it() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "pending", "fulfillmentStage": "to-arrangement"}}})

    await _machine(store).update_order_status("o1", "to_ship")

    doc = store.snapshot("Order", "o1")
    assert doc["fulfillmentStage"] == "to-arrangement"
    assert [e["status"] for e in doc["statusHistory"]] == ["to_ship"]


@pytest.mark.asyncio
async def test_status_note_per_status() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "shipping"}}})

    await _machine(store).update_order_status("o1", "completed")

    entry = store.snapshot("Order", "o1")["statusHistory"][-1]
    assert entry == {"status": "completed", "note": "Order delivered successfully", "timestamp": NOW}


@pytest.mark.asyncio
async def test_unknown_status_is_rejected_before_any_io() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {}}})

    with pytest.raises(ValueError):
        await _machine(store).update_order_status("o1", "teleported")
    assert store.reads == []
    assert store.writes == []


@pytest.mark.asyncio
async def test_missing_order_raises_not_found() -> None:
    store = InMemoryOrderStore()

    with pytest.raises(OrderNotFoundError) as excinfo:
        await _machine(store).update_fulfillment_stage("ghost", "to-pack")
    assert str(excinfo.value) == "Order ghost not found"
    assert store.reads == [("Order", "ghost"), ("orders", "ghost")]


@pytest.mark.asyncio
async def test_update_fulfillment_stage_appends_history() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "to_ship", "fulfillmentStage": "to-pack", "statusHistory": [EARLIER]}}})

    await _machine(store).update_fulfillment_stage("o1", FulfillmentStage.TO_ARRANGEMENT)

    doc = store.snapshot("Order", "o1")
    assert doc["fulfillmentStage"] == "to-arrangement"
    assert doc["statusHistory"][0] == EARLIER
    assert doc["statusHistory"][-1] == {
        "status": "to-arrangement",
        "note": "Order is being prepared for arrangement",
        "timestamp": NOW,
    }


@pytest.mark.asyncio
async def test_move_back_one_stage() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "to_ship", "fulfillmentStage": "to-hand-over"}}})

    await _machine(store).move_order_to_previous_stage("o1", "to-hand-over", "to-arrangement")

    doc = store.snapshot("Order", "o1")
    assert doc["fulfillmentStage"] == "to-arrangement"
    assert doc["statusHistory"] == [
        {"status": "to-arrangement", "note": "Order moved back to arrangement stage", "timestamp": NOW}
    ]


@pytest.mark.asyncio
async def test_move_back_from_wrong_stage_writes_nothing() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "to_ship", "fulfillmentStage": "to-arrangement"}}})

    with pytest.raises(InvalidStageTransitionError) as excinfo:
        await _machine(store).move_order_to_previous_stage("o1", "to-hand-over", "to-pack")

    assert str(excinfo.value) == "Order not in expected stage. Current: to-arrangement, Expected: to-hand-over"
    assert store.writes == []


@pytest.mark.asyncio
async def test_move_back_must_go_backwards() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"fulfillmentStage": "to-pack"}}})

    with pytest.raises(ValueError):
        await _machine(store).move_order_to_previous_stage("o1", "to-pack", "to-hand-over")
    assert store.writes == []


@pytest.mark.asyncio
async def test_backfill_missing_to_pack_entry_once() -> None:
    store = InMemoryOrderStore(
        {
            "Order": {
                "o1": {
                    "status": "to_ship",
                    "fulfillmentStage": "to-arrangement",
                    "statusHistory": [{"status": "to_ship", "note": "", "timestamp": NOW}],
                }
            }
        }
    )
    machine = _machine(store)

    assert await machine.backfill_missing_to_pack_history("o1") is True
    assert await machine.backfill_missing_to_pack_history("o1") is False

    history = store.snapshot("Order", "o1")["statusHistory"]
    assert [e["status"] for e in history] == ["to_ship", "to-pack"]
    assert len(store.writes) == 1


@pytest.mark.asyncio
async def test_backfill_skips_orders_not_to_ship() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "shipping", "fulfillmentStage": "to-pack", "statusHistory": []}}})

    assert await _machine(store).backfill_missing_to_pack_history("o1") is False
    assert store.writes == []


@pytest.mark.asyncio
async def test_reporting_receives_updated_record() -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "to_ship", "sellerIds": ["s1"]}}})
    reporting = AsyncMock()
    reporting.sync_order.return_value = True

    await _machine(store, reporting).update_order_status("o1", "shipping")

    reporting.sync_order.assert_awaited_once()
    record = reporting.sync_order.await_args.args[0]
    assert record["id"] == "o1"
    assert record["status"] == "shipping"
    assert record["sellerIds"] == ["s1"]


@pytest.mark.asyncio
@pytest.mark.parametrize("reporting", [_ExplodingReporting(), _RecordingReporting(result=False)])
async def test_reporting_failure_never_fails_the_update(reporting) -> None:
    store = InMemoryOrderStore({"Order": {"o1": {"status": "to_ship"}}})

    await _machine(store, reporting).update_order_status("o1", "shipping")

    assert store.snapshot("Order", "o1")["status"] == "shipping"
