from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class OrderStatus(str, Enum):
    """
    Canonical lifecycle status of a marketplace order.

    Raw documents carry up to three status-like signals (shipping, payment,
    top-level); `resolve_status` reconciles them into exactly one of these.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    TO_SHIP = "to_ship"
    SHIPPING = "shipping"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED_DELIVERY = "failed-delivery"
    RETURN_REQUESTED = "return_requested"
    RETURN_APPROVED = "return_approved"
    RETURN_REJECTED = "return_rejected"
    RETURNED = "returned"
    REFUNDED = "refunded"
    RETURN_REFUND = "return_refund"


class FulfillmentStage(str, Enum):
    """Packing progress while an order is `to_ship`."""

    TO_PACK = "to-pack"
    TO_ARRANGEMENT = "to-arrangement"
    TO_HAND_OVER = "to-hand-over"


class LifecycleStage(str, Enum):
    """Seller-facing order buckets."""

    ALL = "all"
    UNPAID = "unpaid"
    CONFIRMED = "confirmed"
    TO_SHIP = "to-ship"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    UNFULFILLED = "unfulfilled"
    RETURN_REFUND = "return-refund"


RETURN_STATUSES: frozenset[str] = frozenset(
    {"return_requested", "return_approved", "return_rejected", "returned", "refunded", "return_refund"}
)
DELIVERED_SYNONYMS: frozenset[str] = frozenset({"delivered", "completed", "success", "succeeded"})
FAILED_DELIVERY_SYNONYMS: frozenset[str] = frozenset({"failed-delivery", "delivery_failed", "failed_delivery"})
IN_TRANSIT_SYNONYMS: frozenset[str] = frozenset(
    {"shipping", "in_transit", "in-transit", "dispatched", "out_for_delivery", "out-for-delivery"}
)
TOP_LEVEL_SHIPPING: frozenset[str] = frozenset({"shipping", "processing"})
SHIP_READY_SYNONYMS: frozenset[str] = frozenset({"to_ship", "to-ship", "packed", "ready_to_ship"})
PAID_SYNONYMS: frozenset[str] = frozenset({"paid", "success", "succeeded"})
CANCELLED_SYNONYMS: frozenset[str] = frozenset({"cancelled", "canceled"})
PAYMENT_FAILED_SYNONYMS: frozenset[str] = frozenset({"failed", "payment_failed", "refused"})
PENDING_SYNONYMS: frozenset[str] = frozenset({"pending", "unpaid"})

# Labels that mark lifecycle instants inside statusHistory / statusTimestamps.
PACKED_LABELS: tuple[str, ...] = ("packed", "to_ship", "to-ship", "confirmed", "ready_to_ship")
HANDOVER_LABELS: tuple[str, ...] = ("dispatched", "shipped", "in_transit", "in-transit", "out_for_delivery", "out-for-delivery")
DELIVERED_LABELS: tuple[str, ...] = ("delivered", "completed", "success", "succeeded")


def canonicalize_status(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip().lower()


def resolve_status(
    *,
    shipping_status: Any = None,
    payment_status: Any = None,
    top_level_status: Any = None,
) -> OrderStatus:
    """
    Reconcile raw status signals into one canonical status.

    Branch order is fixed and matters because the vocabularies overlap
    (e.g. top-level "processing" wins over an unpaid payment).
    """
    ship = canonicalize_status(shipping_status)
    pay = canonicalize_status(payment_status)
    top = canonicalize_status(top_level_status)

    if top in RETURN_STATUSES:
        return OrderStatus(top)
    if ship in DELIVERED_SYNONYMS or top in DELIVERED_SYNONYMS:
        return OrderStatus.COMPLETED
    if ship in FAILED_DELIVERY_SYNONYMS or top in FAILED_DELIVERY_SYNONYMS:
        return OrderStatus.FAILED_DELIVERY
    if ship in IN_TRANSIT_SYNONYMS or top in TOP_LEVEL_SHIPPING:
        return OrderStatus.SHIPPING
    # A confirmed order has not necessarily been packed yet.
    if top == "confirmed":
        return OrderStatus.CONFIRMED
    if ship in SHIP_READY_SYNONYMS or top in SHIP_READY_SYNONYMS or pay in PAID_SYNONYMS:
        return OrderStatus.TO_SHIP
    if top in CANCELLED_SYNONYMS or pay in PAYMENT_FAILED_SYNONYMS:
        return OrderStatus.CANCELLED
    if pay in PENDING_SYNONYMS or top in PENDING_SYNONYMS:
        return OrderStatus.PENDING
    return OrderStatus.PENDING


def resolve_fulfillment_stage(raw_stage: Any, status: OrderStatus) -> Optional[FulfillmentStage]:
    """
    Stage is only meaningful while the order is `to_ship`; an absent or
    unrecognized raw stage means the order is still waiting to be packed.
    """
    if status != OrderStatus.TO_SHIP:
        return None
    try:
        return FulfillmentStage(canonicalize_status(raw_stage))
    except ValueError:
        return FulfillmentStage.TO_PACK


def parse_stage(value: Any) -> FulfillmentStage:
    try:
        return FulfillmentStage(canonicalize_status(value))
    except ValueError:
        raise ValueError(f"unknown fulfillment stage: {value!r}") from None


_LIFECYCLE_BY_STATUS: dict[str, LifecycleStage] = {
    "pending": LifecycleStage.UNPAID,
    "confirmed": LifecycleStage.CONFIRMED,
    "to_ship": LifecycleStage.TO_SHIP,
    "processing": LifecycleStage.SHIPPING,
    "shipping": LifecycleStage.SHIPPING,
    "shipped": LifecycleStage.DELIVERED,
    "completed": LifecycleStage.COMPLETED,
    "failed-delivery": LifecycleStage.UNFULFILLED,
    "cancelled": LifecycleStage.UNFULFILLED,
    **{s: LifecycleStage.RETURN_REFUND for s in RETURN_STATUSES},
}


def lifecycle_stage(status: Any) -> LifecycleStage:
    """Bucket a status (canonical or stored) into the seller-facing stage."""
    return _LIFECYCLE_BY_STATUS.get(canonicalize_status(status), LifecycleStage.ALL)
