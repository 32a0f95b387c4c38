from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_ORDER_COLLECTIONS: tuple[str, ...] = ("Order", "orders")
DEFAULT_PRODUCT_COLLECTION = "Product"
DEFAULT_RETURN_REQUEST_COLLECTION = "ReturnRequest"
DEFAULT_CURRENCY = "PHP"
DEFAULT_SIGNED_URL_TTL_S = 3600


def env_str(name: str, *, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    s = raw.strip()
    return s if s else default


def _parse_int_env(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except Exception:
        return int(default)


def _parse_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return tuple(default)
    parts = tuple(p.strip() for p in raw.split(",") if p.strip())
    return parts or tuple(default)


@dataclass(frozen=True)
class OrdersConfig:
    """
    Runtime configuration for the orders engine.

    Collection names are configurable because the checkout pipeline has
    written orders under more than one casing over time.
    """

    order_collections: tuple[str, ...] = DEFAULT_ORDER_COLLECTIONS
    product_collection: str = DEFAULT_PRODUCT_COLLECTION
    return_request_collection: str = DEFAULT_RETURN_REQUEST_COLLECTION
    default_currency: str = DEFAULT_CURRENCY

    firebase_project_id: Optional[str] = None
    storage_bucket: Optional[str] = None
    signed_url_ttl_s: int = DEFAULT_SIGNED_URL_TTL_S

    service_name: str = "sellerhub-orders"
    env: str = "prod"
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not self.order_collections:
            raise ValueError("order_collections must name at least one collection")
        for name in self.order_collections:
            if not name or "/" in name:
                raise ValueError(f"invalid order collection name: {name!r}")
        if self.signed_url_ttl_s <= 0:
            raise ValueError("signed_url_ttl_s must be > 0")


def load_config() -> OrdersConfig:
    return OrdersConfig(
        order_collections=_parse_csv_env("ORDER_COLLECTIONS", DEFAULT_ORDER_COLLECTIONS),
        product_collection=env_str("PRODUCT_COLLECTION", default=DEFAULT_PRODUCT_COLLECTION) or DEFAULT_PRODUCT_COLLECTION,
        return_request_collection=env_str("RETURN_REQUEST_COLLECTION", default=DEFAULT_RETURN_REQUEST_COLLECTION)
        or DEFAULT_RETURN_REQUEST_COLLECTION,
        default_currency=(env_str("DEFAULT_CURRENCY", default=DEFAULT_CURRENCY) or DEFAULT_CURRENCY).upper(),
        # Back-compat: older env name used by the dashboards
        firebase_project_id=env_str("FIREBASE_PROJECT_ID") or env_str("FIRESTORE_PROJECT_ID") or env_str("GOOGLE_CLOUD_PROJECT"),
        storage_bucket=env_str("FIREBASE_STORAGE_BUCKET"),
        signed_url_ttl_s=_parse_int_env("SIGNED_URL_TTL_S", DEFAULT_SIGNED_URL_TTL_S),
        service_name=env_str("SERVICE_NAME", default="sellerhub-orders") or "sellerhub-orders",
        env=env_str("ENV", default="prod") or "prod",
        log_level=(env_str("LOG_LEVEL", default="INFO") or "INFO").upper(),
    )
