from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from sellerhub.orders.status import FulfillmentStage, OrderStatus


def _mapping_or_none(v: Any) -> Optional[dict[str, Any]]:
    return dict(v) if isinstance(v, Mapping) else None


class RawOrderDocument(BaseModel):
    """
    Raw order document as written by the checkout pipeline.

    Every field is optional and loosely typed; the validators only make sure
    nested sections have the expected container shape so that one malformed
    section never fails the whole document. Unknown fields are kept
    (`extra=allow`) because the normalizer reads many legacy aliases.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, arbitrary_types_allowed=True)

    status: Any = None
    fulfillment_stage: Any = Field(default=None, alias="fulfillmentStage")
    seller_ids: list[str] = Field(default_factory=list, alias="sellerIds")
    seller_id: Optional[str] = Field(default=None, alias="sellerId")

    shipping_info: Optional[dict[str, Any]] = Field(default=None, alias="shippingInfo")
    payment_info: Optional[dict[str, Any]] = Field(default=None, alias="paymentInfo")
    summary: Optional[dict[str, Any]] = None
    fees: Any = None
    payout: Optional[dict[str, Any]] = None
    paymongo: Optional[dict[str, Any]] = None
    package: Optional[dict[str, Any]] = None

    items: list[dict[str, Any]] = Field(default_factory=list)
    status_history: Any = Field(default=None, alias="statusHistory")
    return_request_id: Optional[str] = Field(default=None, alias="returnRequestId")

    @field_validator("shipping_info", "payment_info", "summary", "payout", "paymongo", "package", mode="before")
    @classmethod
    def _sections_are_mappings(cls, v: Any) -> Optional[dict[str, Any]]:
        return _mapping_or_none(v)

    @field_validator("items", mode="before")
    @classmethod
    def _items_are_mappings(cls, v: Any) -> list[dict[str, Any]]:
        if not isinstance(v, (list, tuple)):
            return []
        return [dict(it) for it in v if isinstance(it, Mapping)]

    @field_validator("seller_ids", mode="before")
    @classmethod
    def _seller_ids_are_strings(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            return []
        out: list[str] = []
        for s in v:
            sid = str(s).strip() if s is not None else ""
            if sid and sid not in out:
                out.append(sid)
        return out

    @field_validator("seller_id", "return_request_id", mode="before")
    @classmethod
    def _optional_id(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, (Mapping, list, tuple)):
            return None
        s = str(v).strip()
        return s or None

    @classmethod
    def from_firestore(cls, data: Mapping[str, Any] | None) -> "RawOrderDocument":
        return cls.model_validate(dict(data or {}))

    def as_mapping(self) -> dict[str, Any]:
        """Sanitized document keyed by the original (camelCase) field names."""
        return self.model_dump(by_alias=True)


@dataclass(frozen=True, slots=True)
class OrderItem:
    name: str
    quantity: float = 0
    price: Optional[float] = None
    product_id: Optional[str] = None
    sku: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    category_id: Optional[str] = None
    cost: Optional[float] = None


@dataclass(frozen=True, slots=True)
class Customer:
    name: str = "Unknown Customer"
    contact: str = ""


@dataclass(frozen=True, slots=True)
class Region:
    barangay: Optional[str] = None
    municipality: Optional[str] = None
    province: Optional[str] = None
    zip: Optional[str] = None


@dataclass(frozen=True, slots=True)
class PackageInfo:
    size: str = "medium"
    dimensions: str = ""
    weight: str = ""


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    status: str
    note: str = ""
    timestamp: Optional[datetime] = None

    def to_firestore(self) -> dict[str, Any]:
        return {"status": self.status, "note": self.note, "timestamp": self.timestamp}


@dataclass(frozen=True, slots=True)
class OrderSummary:
    subtotal: Optional[float] = None
    shipping_cost: Optional[float] = None
    tax_amount: Optional[float] = None
    discount_amount: Optional[float] = None
    total: Optional[float] = None
    total_items: Optional[float] = None
    seller_shipping_charge: Optional[float] = None
    buyer_shipping_charge: Optional[float] = None
    shipping_split_rule: Optional[str] = None


@dataclass(frozen=True, slots=True)
class FeesBreakdown:
    payment_processing_fee: Optional[float] = None
    platform_fee: Optional[float] = None
    total_seller_fees: Optional[float] = None
    payment_method: Optional[str] = None


@dataclass(frozen=True, slots=True)
class Payout:
    net_payout_to_seller: Optional[float] = None
    calculated_at: Optional[str] = None


@dataclass(frozen=True, slots=True)
class CourierInfo:
    tracking_id: Optional[str] = None
    tracking_number: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[str] = None
    pickup_schedule: Optional[str] = None
    courier: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ShippingInfo:
    address_id: Optional[str] = None
    full_name: Optional[str] = None
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    phone_number: Optional[str] = None
    courier: Optional[CourierInfo] = None


@dataclass(frozen=True, slots=True)
class PaymentProviderInfo:
    payment_status: Optional[str] = None
    checkout_session_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    amount: Optional[float] = None
    currency: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ReturnRequest:
    """
    Return/refund request linked to an order.

    Firestore path:
      ReturnRequest/{id}
    """

    id: str
    order_id: Optional[str] = None
    reason: str = ""
    custom_reason: Optional[str] = None
    status: str = "pending"
    requested_at: Optional[str] = None
    delivery_date: Optional[str] = None
    order_total: Optional[float] = None
    items_to_return: tuple[str, ...] = ()
    response_message: Optional[str] = None
    responded_at: Optional[str] = None
    completed_at: Optional[str] = None
    evidence_images: tuple[str, ...] = ()
    evidence_submitted: bool = False


@dataclass(frozen=True, slots=True)
class Order:
    """
    Canonical marketplace order.

    Built only by `normalize_order`; enrichment produces modified copies via
    `dataclasses.replace`.
    """

    id: str
    created_at: datetime
    timestamp: str
    status: OrderStatus
    customer: Customer = field(default_factory=Customer)
    customer_id: Optional[str] = None
    seller_ids: tuple[str, ...] = ()
    seller_name: Optional[str] = None

    items: tuple[OrderItem, ...] = ()
    items_brief: str = ""
    order_count: float = 0
    barcode: str = ""
    image_url: Optional[str] = None

    total: Optional[float] = None
    currency: str = "PHP"
    tax: Optional[float] = None
    discount: Optional[float] = None
    shipping: Optional[float] = None
    fees: Optional[float] = None
    cogs: Optional[float] = None
    gross_margin: Optional[float] = None

    payment_type: Optional[str] = None
    payment_txn_id: Optional[str] = None
    paid_at: Optional[str] = None
    refunded_at: Optional[str] = None

    region: Region = field(default_factory=Region)
    package: PackageInfo = field(default_factory=PackageInfo)
    priority: str = "normal"

    fulfillment_stage: Optional[FulfillmentStage] = None
    status_history: tuple[StatusHistoryEntry, ...] = ()
    packed_at: Optional[datetime] = None
    handover_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    summary: Optional[OrderSummary] = None
    fees_breakdown: Optional[FeesBreakdown] = None
    payout: Optional[Payout] = None
    shipping_info: Optional[ShippingInfo] = None
    paymongo: Optional[PaymentProviderInfo] = None

    return_request_id: Optional[str] = None
    return_request: Optional[ReturnRequest] = None

    @property
    def seller_count(self) -> int:
        return len(self.seller_ids)

    def belongs_to(self, seller_id: str) -> bool:
        return str(seller_id) in self.seller_ids
