from __future__ import annotations

import logging
from typing import Any, Mapping, Protocol

from sellerhub.common.logging import log_event

logger = logging.getLogger(__name__)


class ReportingSync(Protocol):
    """
    Seller-report materializer notified after a successful status change.

    Receives the updated order-shaped record (the stored document merged with
    the written fields, plus `id`). Returns False or raises on failure; callers
    never propagate either.
    """

    async def sync_order(self, record: Mapping[str, Any]) -> bool: ...


class NoopReportingSync:
    """Default collaborator when no reporting backend is wired in."""

    async def sync_order(self, record: Mapping[str, Any]) -> bool:
        log_event(
            logger,
            "orders.reporting.skipped",
            severity="DEBUG",
            order_id=record.get("id"),
            order_status=record.get("status"),
        )
        return True
