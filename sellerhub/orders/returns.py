from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional

from sellerhub.common.logging import log_event
from sellerhub.common.timeutils import to_iso
from sellerhub.orders.fields import optional_str, to_number
from sellerhub.orders.models import Order, ReturnRequest
from sellerhub.orders.schema import COLLECTION_ORDERS, COLLECTION_RETURN_REQUESTS
from sellerhub.persistence.order_store import OrderStore

logger = logging.getLogger(__name__)


def _str_tuple(value: Any) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(str(v) for v in value if v is not None)


def return_request_from_firestore(doc_id: str, data: Mapping[str, Any]) -> ReturnRequest:
    d = dict(data or {})
    return ReturnRequest(
        id=str(doc_id),
        order_id=optional_str(d.get("orderId")),
        reason=str(d.get("reason") or ""),
        custom_reason=optional_str(d.get("customReason")),
        status=str(d.get("status") or "pending"),
        requested_at=to_iso(d.get("requestedAt")),
        delivery_date=to_iso(d.get("deliveryDate")),
        order_total=to_number(d.get("orderTotal")),
        items_to_return=_str_tuple(d.get("itemsToReturn")),
        response_message=optional_str(d.get("responseMessage")),
        responded_at=to_iso(d.get("respondedAt")),
        completed_at=to_iso(d.get("completedAt")),
        evidence_images=_str_tuple(d.get("evidenceImages")),
        evidence_submitted=bool(d.get("evidenceSubmitted") or False),
    )


def order_seller_ids(data: Mapping[str, Any]) -> list[str]:
    seller_ids = data.get("sellerIds")
    if isinstance(seller_ids, list):
        return [str(s) for s in seller_ids]
    legacy = data.get("sellerId")
    return [str(legacy)] if legacy else []


class ReturnRequestLinker:
    """Looks up return/refund requests; lookups never raise."""

    def __init__(
        self,
        store: OrderStore,
        *,
        collections: tuple[str, ...] = COLLECTION_ORDERS,
        return_collection: str = COLLECTION_RETURN_REQUESTS,
    ) -> None:
        self._store = store
        self._collections = tuple(collections)
        self._return_collection = return_collection

    async def fetch_return_request(self, return_request_id: str) -> Optional[ReturnRequest]:
        try:
            data = await self._store.get(self._return_collection, return_request_id)
            if data is None:
                return None
            return return_request_from_firestore(return_request_id, data)
        except Exception as e:
            log_event(
                logger,
                "orders.return_request_fetch_failed",
                severity="ERROR",
                return_request_id=return_request_id,
                error=str(e),
            )
            return None

    async def _order_belongs_to(self, order_id: str, wanted: set[str]) -> bool:
        for coll in self._collections:
            try:
                data = await self._store.get(coll, order_id)
            except Exception as e:
                log_event(
                    logger,
                    "orders.return_parent_lookup_failed",
                    severity="WARNING",
                    order_id=order_id,
                    collection=coll,
                    error=str(e),
                )
                continue
            if data is not None and any(s in wanted for s in order_seller_ids(data)):
                return True
        return False

    async def fetch_return_requests_for_seller(self, seller_ids: Iterable[str]) -> list[ReturnRequest]:
        """
        Every return request whose parent order belongs to one of `seller_ids`.

        Scans the whole return-request collection and looks each parent order
        up in every order collection.
        """
        wanted = {str(s) for s in seller_ids if s}
        if not wanted:
            return []
        try:
            docs = await self._store.list(self._return_collection)
        except Exception as e:
            log_event(logger, "orders.return_requests_scan_failed", severity="ERROR", error=str(e))
            return []

        matches: list[ReturnRequest] = []
        for doc in docs:
            order_id = optional_str(doc.data.get("orderId"))
            if order_id is None:
                continue
            if await self._order_belongs_to(order_id, wanted):
                matches.append(return_request_from_firestore(doc.id, doc.data))
        return matches

    async def attach_return_request(self, order: Order) -> Order:
        if not order.return_request_id:
            return order
        linked = await self.fetch_return_request(order.return_request_id)
        if linked is None:
            return order
        return replace(order, return_request=linked)
