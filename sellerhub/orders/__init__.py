"""
Orders engine:
- normalization of raw order documents into `Order`
- product hydration (images, categories, cost)
- live multi-source feeds
- fulfillment stage machine and return-request linking
"""

from __future__ import annotations

from .aggregator import SourceAggregator, merge_batches
from .errors import InvalidStageTransitionError, OrderNotFoundError
from .fulfillment import FulfillmentStageMachine
from .hydration import HydrationEnricher, ProductCache
from .models import Order, OrderItem, ReturnRequest
from .normalizer import normalize_order
from .returns import ReturnRequestLinker
from .service import OrdersService, build_orders_service
from .status import FulfillmentStage, LifecycleStage, OrderStatus, lifecycle_stage, resolve_status

__all__ = [
    "FulfillmentStage",
    "FulfillmentStageMachine",
    "HydrationEnricher",
    "InvalidStageTransitionError",
    "LifecycleStage",
    "Order",
    "OrderItem",
    "OrderNotFoundError",
    "OrderStatus",
    "OrdersService",
    "ProductCache",
    "ReturnRequest",
    "ReturnRequestLinker",
    "SourceAggregator",
    "build_orders_service",
    "lifecycle_stage",
    "merge_batches",
    "normalize_order",
    "resolve_status",
]
