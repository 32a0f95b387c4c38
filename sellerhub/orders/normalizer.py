"""
Raw order document -> canonical `Order`.

`normalize_order` is the single conversion boundary between the loosely
shaped documents written by checkout and the rest of the engine. It performs
no I/O and never raises for a malformed field: each field is resolved from an
ordered list of candidate paths and coerced on its own.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Optional

from sellerhub.common.config import DEFAULT_CURRENCY
from sellerhub.common.timeutils import (
    extract_from_history,
    first_epoch_ms,
    ms_to_date,
    ms_to_datetime,
    to_epoch_ms,
    to_iso,
    utc_now,
)
from sellerhub.orders.fields import (
    first_of,
    first_value,
    get_path,
    number_fields,
    number_or_zero,
    optional_str,
    to_number,
)
from sellerhub.orders.models import (
    CourierInfo,
    Customer,
    FeesBreakdown,
    Order,
    OrderItem,
    OrderSummary,
    PackageInfo,
    PaymentProviderInfo,
    Payout,
    RawOrderDocument,
    Region,
    ShippingInfo,
    StatusHistoryEntry,
)
from sellerhub.orders.status import (
    DELIVERED_LABELS,
    HANDOVER_LABELS,
    PACKED_LABELS,
    resolve_fulfillment_stage,
    resolve_status,
)

CREATED_AT_PATHS = ("createdAt", "orderDate", "dateCreated", "timestamp", "created")
ITEM_IMAGE_KEYS = ("imageURL", "imageUrl", "thumbnail", "photoUrl")
PAYMENT_TYPE_PATHS = (
    "paymentInfo.method",
    "paymentInfo.type",
    "paymentInfo.channel",
    "paymentMethod",
    "payment_type",
    "paymentType",
    "paymentChannel",
    "paymentGateway",
    "gateway",
)
PAYMENT_TXN_PATHS = (
    "paymentInfo.transactionId",
    "paymentInfo.txnId",
    "paymentInfo.id",
    "checkoutSessionId",
    "payment_reference",
)
TRACKING_PATHS = (
    "shippingInfo.trackingNumber",
    "trackingNumber",
    "checkoutSessionId",
    "paymentInfo.checkoutSessionId",
)
TOTAL_PATHS = ("summary.total", "paymentInfo.amount", "totalAmount", "total")

_SUMMARY_KEYS = (
    "subtotal",
    "shippingCost",
    "taxAmount",
    "discountAmount",
    "total",
    "totalItems",
    "sellerShippingCharge",
    "buyerShippingCharge",
)
_FEES_KEYS = ("paymentProcessingFee", "platformFee", "totalSellerFees")


def _has_number(value: Any) -> bool:
    return to_number(value) is not None


def _first_number(doc: Mapping[str, Any], *paths: str) -> Optional[float]:
    return to_number(first_of(doc, *paths, accept=_has_number))


def items_brief(items: list[Mapping[str, Any]]) -> str:
    """Brief such as "Mask x 2 + 1 more"."""
    if not items:
        return ""
    first = items[0]
    name = str(first_value(first.get("productName"), first.get("name"), default="Item"))
    qty = number_or_zero(first.get("quantity"))
    more = len(items) - 1
    return f"{name} x {qty} + {more} more" if more > 0 else f"{name} x {qty}"


def map_item(raw: Mapping[str, Any]) -> OrderItem:
    return OrderItem(
        name=str(first_value(raw.get("productName"), raw.get("name"), default="Item")),
        quantity=number_or_zero(raw.get("quantity")),
        price=to_number(raw.get("price")),
        product_id=optional_str(first_of(raw, "productId", "productID", "product.id")),
        sku=optional_str(first_of(raw, "sku", "SKU")),
        image_url=optional_str(first_of(raw, *ITEM_IMAGE_KEYS)),
        category=optional_str(first_of(raw, "category", "Category", "product.category")),
        subcategory=optional_str(first_of(raw, "subcategory", "Subcategory", "product.subcategory")),
        category_id=optional_str(first_of(raw, "categoryID", "categoryId", "CategoryID", "CategoryId")),
        cost=to_number(raw.get("cost")),
    )


def _history(raw_history: Any) -> tuple[StatusHistoryEntry, ...]:
    if not isinstance(raw_history, list):
        return ()
    entries: list[StatusHistoryEntry] = []
    for e in raw_history:
        if not isinstance(e, Mapping):
            continue
        ms = first_epoch_ms(e.get("timestamp"), e.get("at"), e.get("date"))
        entries.append(
            StatusHistoryEntry(
                status=str(e.get("status") or ""),
                note=str(e.get("note") or ""),
                timestamp=ms_to_datetime(ms) if ms is not None else None,
            )
        )
    return tuple(entries)


def _cash_basis_date(value: Any) -> Optional[str]:
    # paidAt/refundedAt are written as timestamps; strings are ignored.
    if isinstance(value, str):
        return None
    ms = to_epoch_ms(value)
    return ms_to_date(ms) if ms else None


def _optional_instant(ms: Optional[int]) -> Optional[datetime]:
    return ms_to_datetime(ms) if ms else None


def _summary(section: Optional[Mapping[str, Any]]) -> Optional[OrderSummary]:
    if section is None:
        return None
    n = number_fields(section, _SUMMARY_KEYS)
    return OrderSummary(
        subtotal=n["subtotal"],
        shipping_cost=n["shippingCost"],
        tax_amount=n["taxAmount"],
        discount_amount=n["discountAmount"],
        total=n["total"],
        total_items=n["totalItems"],
        seller_shipping_charge=n["sellerShippingCharge"],
        buyer_shipping_charge=n["buyerShippingCharge"],
        shipping_split_rule=optional_str(section.get("shippingSplitRule")),
    )


def _fees_breakdown(section: Any) -> Optional[FeesBreakdown]:
    if not isinstance(section, Mapping):
        return None
    n = number_fields(section, _FEES_KEYS)
    return FeesBreakdown(
        payment_processing_fee=n["paymentProcessingFee"],
        platform_fee=n["platformFee"],
        total_seller_fees=n["totalSellerFees"],
        payment_method=optional_str(section.get("paymentMethod")),
    )


def _payout(section: Optional[Mapping[str, Any]]) -> Optional[Payout]:
    if section is None:
        return None
    return Payout(
        net_payout_to_seller=to_number(section.get("netPayoutToSeller")),
        calculated_at=to_iso(section.get("calculatedAt")),
    )


def _shipping_info(section: Optional[Mapping[str, Any]]) -> Optional[ShippingInfo]:
    if section is None:
        return None
    jrs = section.get("jrs")
    courier = None
    if isinstance(jrs, Mapping):
        courier = CourierInfo(
            tracking_id=optional_str(jrs.get("trackingId")),
            tracking_number=optional_str(jrs.get("trackingNumber")),
            status=optional_str(jrs.get("status")),
            created_at=to_iso(jrs.get("createdAt")),
            pickup_schedule=optional_str(jrs.get("pickupSchedule")),
            courier=optional_str(jrs.get("courier")),
        )
    return ShippingInfo(
        address_id=optional_str(section.get("addressId")),
        full_name=optional_str(section.get("fullName")),
        address_line1=optional_str(section.get("addressLine1")),
        address_line2=optional_str(section.get("addressLine2")),
        city=optional_str(section.get("city")),
        state=optional_str(section.get("state")),
        postal_code=optional_str(section.get("postalCode")),
        country=optional_str(section.get("country")),
        phone_number=optional_str(section.get("phoneNumber")),
        courier=courier,
    )


def _paymongo(section: Optional[Mapping[str, Any]]) -> Optional[PaymentProviderInfo]:
    if section is None:
        return None
    return PaymentProviderInfo(
        payment_status=optional_str(section.get("paymentStatus")),
        checkout_session_id=optional_str(section.get("checkoutSessionId")),
        payment_intent_id=optional_str(section.get("paymentIntentId")),
        amount=to_number(section.get("amount")),
        currency=optional_str(section.get("currency")),
    )


def _package(section: Optional[Mapping[str, Any]]) -> PackageInfo:
    if section is None:
        return PackageInfo()
    return PackageInfo(
        size=optional_str(section.get("size")) or "medium",
        dimensions=optional_str(section.get("dimensions")) or "",
        weight=optional_str(section.get("weight")) or "",
    )


def _flat_fees(doc: Mapping[str, Any]) -> Optional[float]:
    # `fees` is a plain number on old documents and a breakdown map on new ones.
    flat = _first_number(doc, "summary.fees", "fees")
    if flat is not None:
        return flat
    return to_number(get_path(doc, "fees.totalSellerFees"))


def normalize_order(
    doc_id: str,
    data: Mapping[str, Any] | None,
    *,
    default_currency: str = DEFAULT_CURRENCY,
    now: Optional[datetime] = None,
) -> Order:
    """
    Map one raw order document (any supported shape) to the canonical `Order`.

    `now` is only used when no creation timestamp can be resolved.
    """
    raw = RawOrderDocument.from_firestore(data)
    doc = raw.as_mapping()
    items_raw = raw.items

    created_ms = first_epoch_ms(*(doc.get(p) for p in CREATED_AT_PATHS))
    if created_ms is None:
        created_ms = to_epoch_ms(now or utc_now())

    packed_ms = first_epoch_ms(
        get_path(doc, "shippingInfo.packedAt"),
        doc.get("packedAt"),
        extract_from_history(doc, PACKED_LABELS),
    )
    handover_ms = first_epoch_ms(
        get_path(doc, "shippingInfo.handoverAt"),
        doc.get("handoverAt"),
        get_path(doc, "shippingInfo.dispatchedAt"),
        doc.get("dispatchedAt"),
        extract_from_history(doc, HANDOVER_LABELS),
    )
    delivered_ms = first_epoch_ms(
        get_path(doc, "shippingInfo.deliveredAt"),
        doc.get("deliveredAt"),
        extract_from_history(doc, DELIVERED_LABELS),
    )

    status = resolve_status(
        shipping_status=get_path(doc, "shippingInfo.status"),
        payment_status=get_path(doc, "paymentInfo.status"),
        top_level_status=raw.status,
    )
    stage = resolve_fulfillment_stage(
        first_value(raw.fulfillment_stage, get_path(doc, "shippingInfo.fulfillmentStage")),
        status,
    )

    # A zero total is treated as unknown, same as a missing one.
    total = _first_number(doc, *TOTAL_PATHS) or None
    cogs = _first_number(doc, "summary.cogs", "cogs")
    gross_margin = total - cogs if total is not None and cogs is not None else None

    seller_ids: tuple[str, ...] = tuple(raw.seller_ids)
    if not seller_ids and raw.seller_id:
        seller_ids = (raw.seller_id,)

    seller_name = optional_str(doc.get("sellerName"))
    if seller_name is None and len(raw.seller_ids) > 1:
        seller_name = "Multiple Sellers"
    if seller_name is None and items_raw:
        seller_name = optional_str(items_raw[0].get("sellerName"))

    items = tuple(map_item(it) for it in items_raw)

    return Order(
        id=str(doc_id),
        created_at=ms_to_datetime(created_ms),
        timestamp=ms_to_date(created_ms),
        status=status,
        customer=Customer(
            name=str(first_of(doc, "shippingInfo.fullName", "customerName", default="Unknown Customer")),
            contact=str(first_of(doc, "shippingInfo.phoneNumber", "customerPhone", default="")),
        ),
        customer_id=optional_str(first_of(doc, "customerId", "customerID", "userId", "userID")),
        seller_ids=seller_ids,
        seller_name=seller_name,
        items=items,
        items_brief=items_brief(items_raw),
        order_count=number_or_zero(first_of(doc, "summary.totalItems", accept=_has_number)) or len(items_raw),
        barcode=str(first_of(doc, *TRACKING_PATHS, default=str(doc_id))),
        image_url=items[0].image_url if items else None,
        total=total,
        currency=str(first_of(doc, "paymentInfo.currency", default=default_currency)),
        tax=_first_number(doc, "summary.tax", "summary.taxAmount", "tax"),
        discount=_first_number(doc, "summary.discount", "summary.discountAmount", "discount"),
        shipping=_first_number(doc, "summary.shipping", "summary.shippingCost", "shipping"),
        fees=_flat_fees(doc),
        cogs=cogs,
        gross_margin=gross_margin,
        payment_type=optional_str(first_of(doc, *PAYMENT_TYPE_PATHS)),
        payment_txn_id=optional_str(first_of(doc, *PAYMENT_TXN_PATHS)),
        paid_at=_cash_basis_date(get_path(doc, "paymentInfo.paidAt")),
        refunded_at=_cash_basis_date(get_path(doc, "paymentInfo.refundedAt")),
        region=Region(
            barangay=optional_str(first_of(doc, "shippingInfo.barangay", "shippingInfo.brgy")),
            municipality=optional_str(first_of(doc, "shippingInfo.municipality", "shippingInfo.city", "shippingInfo.town")),
            province=optional_str(get_path(doc, "shippingInfo.province")),
            zip=optional_str(first_of(doc, "shippingInfo.zip", "shippingInfo.postalCode")),
        ),
        package=_package(raw.package),
        priority=optional_str(doc.get("priority")) or "normal",
        fulfillment_stage=stage,
        status_history=_history(raw.status_history),
        packed_at=_optional_instant(packed_ms),
        handover_at=_optional_instant(handover_ms),
        delivered_at=_optional_instant(delivered_ms),
        summary=_summary(raw.summary),
        fees_breakdown=_fees_breakdown(raw.fees),
        payout=_payout(raw.payout),
        shipping_info=_shipping_info(raw.shipping_info),
        paymongo=_paymongo(raw.paymongo),
        return_request_id=raw.return_request_id,
    )
