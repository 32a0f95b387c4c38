"""
Firestore collection naming + query shapes for marketplace orders.

Orders live in two physically separate collections ("Order" from the original
checkout service and "orders" from the newer one). A seller's orders are found
either through the `sellerIds` array or the legacy single `sellerId` field.

This file intentionally avoids Firestore reads/writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sellerhub.common.config import (
    DEFAULT_ORDER_COLLECTIONS,
    DEFAULT_PRODUCT_COLLECTION,
    DEFAULT_RETURN_REQUEST_COLLECTION,
)

COLLECTION_ORDERS: tuple[str, ...] = DEFAULT_ORDER_COLLECTIONS
COLLECTION_PRODUCTS = DEFAULT_PRODUCT_COLLECTION
COLLECTION_RETURN_REQUESTS = DEFAULT_RETURN_REQUEST_COLLECTION

FIELD_SELLER_IDS = "sellerIds"
FIELD_SELLER_ID = "sellerId"

# Known category id -> display name (kept in sync with the inventory service).
CATEGORY_ID_TO_NAME: dict[str, str] = {
    "EsDNnmc72LZNMHk3SmeV": "Disposables",
    "PtqCTLGduo6vay2umpMY": "Dental Equipment",
    "iXMJ7vcFIcMjQBVfIHZp": "Consumables",
    "z5BRrsDIy92XEK1PzdM4": "Equipment",
}

STAGE_NOTES: dict[str, str] = {
    "to-pack": "Order is ready to be packed",
    "to-arrangement": "Order is being prepared for arrangement",
    "to-hand-over": "Order is ready to be handed over",
}

STATUS_NOTES: dict[str, str] = {
    "pending": "Order pending payment",
    "confirmed": "Order payment confirmed",
    "to_ship": "Order confirmed and ready to be processed",
    "processing": "Order is being shipped",
    "shipping": "Order is currently shipping",
    "completed": "Order delivered successfully",
    "cancelled": "Order cancelled",
    "returned": "Order returned",
    "refunded": "Order refunded",
    "return_refund": "Order return/refund processed",
    "failed-delivery": "Delivery failed",
    "return_requested": "Return requested by customer",
    "return_approved": "Return request approved",
    "return_rejected": "Return request rejected",
}

REVERSE_STAGE_NOTES: dict[str, str] = {
    "to-pack": "Order moved back to packing stage",
    "to-arrangement": "Order moved back to arrangement stage",
}


@dataclass(frozen=True)
class SourceShape:
    """One (collection x query predicate) combination the aggregator watches."""

    collection: str
    field: Optional[str] = None
    op: Optional[str] = None
    value: Any = None

    @property
    def key(self) -> str:
        if self.field is None:
            return self.collection
        return f"{self.collection}#{self.field}"


def seller_source_shapes(seller_id: str, collections: tuple[str, ...] = COLLECTION_ORDERS) -> list[SourceShape]:
    sid = str(seller_id or "").strip()
    if not sid:
        raise ValueError("seller_id is required")
    shapes: list[SourceShape] = []
    for name in collections:
        shapes.append(SourceShape(collection=name, field=FIELD_SELLER_IDS, op="array_contains", value=sid))
        shapes.append(SourceShape(collection=name, field=FIELD_SELLER_ID, op="==", value=sid))
    return shapes


def all_orders_source_shapes(collections: tuple[str, ...] = COLLECTION_ORDERS) -> list[SourceShape]:
    return [SourceShape(collection=name) for name in collections]
