"""
Orders engine facade.

Wires the store, enricher, aggregator, stage machine and return-request linker
together so the dashboard only holds one object.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from sellerhub.common.config import OrdersConfig, load_config
from sellerhub.common.logging import init_structured_logging, log_event
from sellerhub.orders.aggregator import OrdersCallback, SourceAggregator
from sellerhub.orders.fulfillment import FulfillmentStageMachine
from sellerhub.orders.hydration import HydrationEnricher
from sellerhub.orders.models import Order, ReturnRequest
from sellerhub.orders.reporting import ReportingSync
from sellerhub.orders.returns import ReturnRequestLinker
from sellerhub.orders.status import FulfillmentStage, OrderStatus
from sellerhub.persistence.blob_urls import BlobUrlResolver, FirebaseStorageUrlResolver
from sellerhub.persistence.order_store import FirestoreOrderStore, OrderStore, Unsubscribe

logger = logging.getLogger(__name__)


class OrdersService:
    def __init__(
        self,
        store: OrderStore,
        *,
        config: Optional[OrdersConfig] = None,
        url_resolver: Optional[BlobUrlResolver] = None,
        reporting: Optional[ReportingSync] = None,
    ) -> None:
        self.config = config or OrdersConfig()
        self.store = store
        self.enricher = HydrationEnricher(
            store,
            url_resolver=url_resolver,
            product_collection=self.config.product_collection,
        )
        self.aggregator = SourceAggregator(
            store,
            self.enricher,
            collections=self.config.order_collections,
            default_currency=self.config.default_currency,
        )
        self.stages = FulfillmentStageMachine(
            store,
            collections=self.config.order_collections,
            reporting=reporting,
        )
        self.returns = ReturnRequestLinker(
            store,
            collections=self.config.order_collections,
            return_collection=self.config.return_request_collection,
        )

    # --- live feeds ---

    def listen_by_seller(self, seller_id: str, callback: OrdersCallback) -> Unsubscribe:
        return self.aggregator.listen_by_seller(seller_id, callback)

    def listen_all(self, callback: OrdersCallback) -> Unsubscribe:
        return self.aggregator.listen_all(callback)

    # --- mutations ---

    async def update_fulfillment_stage(self, order_id: str, stage: FulfillmentStage | str) -> None:
        await self.stages.update_fulfillment_stage(order_id, stage)

    async def update_order_status(self, order_id: str, status: OrderStatus | str) -> None:
        await self.stages.update_order_status(order_id, status)

    async def move_order_to_previous_stage(
        self,
        order_id: str,
        from_stage: FulfillmentStage | str,
        to_stage: FulfillmentStage | str,
    ) -> None:
        await self.stages.move_order_to_previous_stage(order_id, from_stage, to_stage)

    async def backfill_missing_to_pack_history(self, order_id: str) -> bool:
        return await self.stages.backfill_missing_to_pack_history(order_id)

    # --- return requests ---

    async def fetch_return_request(self, return_request_id: str) -> Optional[ReturnRequest]:
        return await self.returns.fetch_return_request(return_request_id)

    async def fetch_return_requests_for_seller(self, seller_ids: Iterable[str]) -> list[ReturnRequest]:
        return await self.returns.fetch_return_requests_for_seller(seller_ids)

    async def attach_return_request(self, order: Order) -> Order:
        return await self.returns.attach_return_request(order)


def build_orders_service(
    config: Optional[OrdersConfig] = None,
    *,
    reporting: Optional[ReportingSync] = None,
) -> OrdersService:
    """Production wiring: Firestore via Firebase Admin (ADC) plus signed Storage URLs."""
    from sellerhub.persistence.firebase_client import get_firestore_client

    cfg = config or load_config()
    init_structured_logging(service=cfg.service_name, env=cfg.env, level=cfg.log_level)
    client = get_firestore_client(env=cfg.env, project_id=cfg.firebase_project_id, storage_bucket=cfg.storage_bucket)
    service = OrdersService(
        FirestoreOrderStore(client),
        config=cfg,
        url_resolver=FirebaseStorageUrlResolver(ttl_s=cfg.signed_url_ttl_s),
        reporting=reporting,
    )
    log_event(
        logger,
        "orders.service.ready",
        project_id=cfg.firebase_project_id,
        order_collections=list(cfg.order_collections),
        env=cfg.env,
    )
    return service
