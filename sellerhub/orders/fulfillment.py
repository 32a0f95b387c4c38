from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional

from sellerhub.common.logging import log_event
from sellerhub.common.timeutils import utc_now
from sellerhub.orders.errors import InvalidStageTransitionError, OrderNotFoundError
from sellerhub.orders.reporting import NoopReportingSync, ReportingSync
from sellerhub.orders.schema import COLLECTION_ORDERS, REVERSE_STAGE_NOTES, STAGE_NOTES, STATUS_NOTES
from sellerhub.orders.status import FulfillmentStage, OrderStatus, canonicalize_status, parse_stage
from sellerhub.persistence.order_store import OrderStore

logger = logging.getLogger(__name__)

_STAGE_ORDER: tuple[FulfillmentStage, ...] = (
    FulfillmentStage.TO_PACK,
    FulfillmentStage.TO_ARRANGEMENT,
    FulfillmentStage.TO_HAND_OVER,
)


def _current_history(data: dict[str, Any]) -> list[Any]:
    history = data.get("statusHistory")
    return list(history) if isinstance(history, list) else []


def parse_writable_status(value: Any) -> str:
    s = canonicalize_status(value)
    if s not in STATUS_NOTES:
        raise ValueError(f"unknown order status: {value!r}")
    return s


class FulfillmentStageMachine:
    """
    The only sanctioned writer of `status`, `fulfillmentStage` and `statusHistory`.

    Every operation is a read-modify-write of the stored document: the current
    history is read and the new entries are appended to it, never replacing
    what was there. Two operators acting on the same order at the same time
    race, and the last write wins.
    """

    def __init__(
        self,
        store: OrderStore,
        *,
        collections: tuple[str, ...] = COLLECTION_ORDERS,
        reporting: Optional[ReportingSync] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._collections = tuple(collections)
        self._reporting: ReportingSync = reporting or NoopReportingSync()
        self._clock = clock

    async def _locate(self, order_id: str) -> tuple[str, dict[str, Any]]:
        for coll in self._collections:
            data = await self._store.get(coll, order_id)
            if data is not None:
                return coll, data
        raise OrderNotFoundError(order_id, self._collections)

    def _entry(self, status: str, note: str) -> dict[str, Any]:
        return {"status": status, "note": note, "timestamp": self._clock()}

    async def update_fulfillment_stage(self, order_id: str, stage: FulfillmentStage | str) -> None:
        target = parse_stage(stage)
        try:
            coll, current = await self._locate(order_id)
            history = _current_history(current)
            await self._store.update(
                coll,
                order_id,
                {
                    "fulfillmentStage": target.value,
                    "statusHistory": [*history, self._entry(target.value, STAGE_NOTES[target.value])],
                },
            )
        except Exception as e:
            log_event(
                logger,
                "orders.fulfillment_stage_update_failed",
                severity="ERROR",
                order_id=order_id,
                stage=target.value,
                error=str(e),
            )
            raise
        log_event(logger, "orders.fulfillment_stage_updated", order_id=order_id, collection=coll, stage=target.value)

    async def update_order_status(self, order_id: str, status: OrderStatus | str) -> None:
        """
        Set the top-level status.

        Moving to `to_ship` without an existing stage also starts the order at
        `to-pack`, recorded as its own history entry.
        """
        target = parse_writable_status(status)
        try:
            coll, current = await self._locate(order_id)
            history = _current_history(current)
            appended = [self._entry(target, STATUS_NOTES[target])]
            fields: dict[str, Any] = {"status": target}
            if target == OrderStatus.TO_SHIP.value and not current.get("fulfillmentStage"):
                fields["fulfillmentStage"] = FulfillmentStage.TO_PACK.value
                appended.append(self._entry(FulfillmentStage.TO_PACK.value, STAGE_NOTES[FulfillmentStage.TO_PACK.value]))
            fields["statusHistory"] = [*history, *appended]
            await self._store.update(coll, order_id, fields)
        except Exception as e:
            log_event(
                logger,
                "orders.status_update_failed",
                severity="ERROR",
                order_id=order_id,
                order_status=target,
                error=str(e),
            )
            raise
        log_event(logger, "orders.status_updated", order_id=order_id, collection=coll, order_status=target)

        await self._sync_report({**current, **fields, "id": order_id})

    async def _sync_report(self, record: dict[str, Any]) -> None:
        try:
            ok = await self._reporting.sync_order(record)
        except Exception as e:
            log_event(logger, "orders.reporting.sync_failed", severity="WARNING", order_id=record.get("id"), error=str(e))
            return
        if not ok:
            log_event(logger, "orders.reporting.sync_failed", severity="WARNING", order_id=record.get("id"), error="rejected")

    async def move_order_to_previous_stage(
        self,
        order_id: str,
        from_stage: FulfillmentStage | str,
        to_stage: FulfillmentStage | str,
    ) -> None:
        """
        Move an order back one or more packing stages.

        Unlike the other operations this one checks the current state first:
        when the stored stage is not `from_stage`, nothing is written.
        """
        src = parse_stage(from_stage)
        dst = parse_stage(to_stage)
        if _STAGE_ORDER.index(dst) >= _STAGE_ORDER.index(src):
            raise ValueError(f"{dst.value} is not before {src.value}")
        try:
            coll, current = await self._locate(order_id)
            current_stage = current.get("fulfillmentStage")
            if current_stage != src.value:
                raise InvalidStageTransitionError(order_id, current=current_stage, expected=src.value)
            history = _current_history(current)
            await self._store.update(
                coll,
                order_id,
                {
                    "fulfillmentStage": dst.value,
                    "statusHistory": [*history, self._entry(dst.value, REVERSE_STAGE_NOTES[dst.value])],
                },
            )
        except Exception as e:
            log_event(
                logger,
                "orders.stage_rollback_failed",
                severity="ERROR",
                order_id=order_id,
                from_stage=src.value,
                to_stage=dst.value,
                error=str(e),
            )
            raise
        log_event(logger, "orders.stage_rolled_back", order_id=order_id, from_stage=src.value, to_stage=dst.value)

    async def backfill_missing_to_pack_history(self, order_id: str) -> bool:
        """
        Repair orders that reached `to_ship` with a stage but without the
        `to-pack` history entry. Returns True when an entry was appended.
        """
        try:
            coll, current = await self._locate(order_id)
            history = current.get("statusHistory")
            if current.get("status") != OrderStatus.TO_SHIP.value or not current.get("fulfillmentStage"):
                return False
            if not isinstance(history, list):
                return False
            if any(isinstance(e, dict) and e.get("status") == FulfillmentStage.TO_PACK.value for e in history):
                return False
            entry = self._entry(FulfillmentStage.TO_PACK.value, STAGE_NOTES[FulfillmentStage.TO_PACK.value])
            await self._store.update(coll, order_id, {"statusHistory": [*history, entry]})
        except Exception as e:
            log_event(logger, "orders.backfill_failed", severity="ERROR", order_id=order_id, error=str(e))
            raise
        log_event(logger, "orders.to_pack_history_backfilled", order_id=order_id, collection=coll)
        return True
