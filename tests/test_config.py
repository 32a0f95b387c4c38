from __future__ import annotations

import pytest

from sellerhub.common.config import DEFAULT_ORDER_COLLECTIONS, OrdersConfig, load_config

_ENV_NAMES = (
    "ORDER_COLLECTIONS",
    "PRODUCT_COLLECTION",
    "RETURN_REQUEST_COLLECTION",
    "DEFAULT_CURRENCY",
    "FIREBASE_PROJECT_ID",
    "FIRESTORE_PROJECT_ID",
    "GOOGLE_CLOUD_PROJECT",
    "FIREBASE_STORAGE_BUCKET",
    "SIGNED_URL_TTL_S",
    "SERVICE_NAME",
    "ENV",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = load_config()
    assert cfg.order_collections == DEFAULT_ORDER_COLLECTIONS == ("Order", "orders")
    assert cfg.product_collection == "Product"
    assert cfg.return_request_collection == "ReturnRequest"
    assert cfg.default_currency == "PHP"
    assert cfg.firebase_project_id is None
    assert cfg.signed_url_ttl_s == 3600
    assert cfg.log_level == "INFO"


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("ORDER_COLLECTIONS", " orders , Order ,, ")
    monkeypatch.setenv("DEFAULT_CURRENCY", "usd")
    monkeypatch.setenv("FIREBASE_STORAGE_BUCKET", "shop.appspot.com")
    monkeypatch.setenv("SIGNED_URL_TTL_S", "600")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    cfg = load_config()

    assert cfg.order_collections == ("orders", "Order")
    assert cfg.default_currency == "USD"
    assert cfg.storage_bucket == "shop.appspot.com"
    assert cfg.signed_url_ttl_s == 600
    assert cfg.log_level == "DEBUG"


def test_project_id_back_compat(monkeypatch) -> None:
    monkeypatch.setenv("FIRESTORE_PROJECT_ID", "legacy-project")
    assert load_config().firebase_project_id == "legacy-project"

    monkeypatch.setenv("FIREBASE_PROJECT_ID", "preferred-project")
    assert load_config().firebase_project_id == "preferred-project"


def test_bad_int_falls_back_to_default(monkeypatch) -> None:
    monkeypatch.setenv("SIGNED_URL_TTL_S", "soon")
    assert load_config().signed_url_ttl_s == 3600


@pytest.mark.parametrize(
    "kwargs",
    [
        {"order_collections": ()},
        {"order_collections": ("Order", "bad/name")},
        {"signed_url_ttl_s": 0},
    ],
)
def test_invalid_config_rejected(kwargs) -> None:
    with pytest.raises(ValueError):
        OrdersConfig(**kwargs)
