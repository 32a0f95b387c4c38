"""
Multi-source live order feed.

Orders for one seller are spread across two collections and two query shapes
(`sellerIds` array membership and the legacy `sellerId` field). The aggregator
watches every combination, keeps the latest normalized+enriched batch per
source key and, whenever any source changes, emits the union of all latest
batches sorted by creation time (newest first).

Orders are not de-duplicated across sources: the shapes are disjoint by field
presence in practice, but nothing here enforces it.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from functools import partial
from typing import Awaitable, Callable, Mapping, Optional, Sequence, Union

from sellerhub.common.config import DEFAULT_CURRENCY
from sellerhub.common.logging import bind_run_id, log_event
from sellerhub.orders.hydration import HydrationEnricher, ProductCache
from sellerhub.orders.models import Order
from sellerhub.orders.normalizer import normalize_order
from sellerhub.orders.schema import COLLECTION_ORDERS, SourceShape, all_orders_source_shapes, seller_source_shapes
from sellerhub.persistence.order_store import OrderStore, StoredDocument, Unsubscribe

logger = logging.getLogger(__name__)

OrdersCallback = Callable[[list[Order]], Union[None, Awaitable[None]]]


def merge_batches(batches: Mapping[str, Sequence[Order]]) -> list[Order]:
    """Flatten per-source batches into one list, newest `created_at` first."""
    merged = [order for batch in batches.values() for order in batch]
    merged.sort(key=lambda o: o.created_at, reverse=True)
    return merged


class _Feed:
    """State of one `listen()` call: its subscriptions, latest batches and in-flight runs."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        callback: OrdersCallback,
        process: Callable[[StoredDocument, ProductCache], Awaitable[Optional[Order]]],
        label: str,
    ) -> None:
        self._loop = loop
        self._callback = callback
        self._process = process
        self._label = label
        self._seq = itertools.count()
        self._latest: dict[str, list[Order]] = {}
        self._applied: dict[str, int] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self.unsubs: list[Unsubscribe] = []
        self.closed = False

    @property
    def latest(self) -> dict[str, list[Order]]:
        return {k: list(v) for k, v in self._latest.items()}

    def on_snapshot(self, key: str, docs: list[StoredDocument]) -> None:
        # May run on the store's listener thread.
        if self.closed:
            return
        seq = next(self._seq)
        try:
            self._loop.call_soon_threadsafe(self._start, key, seq, docs)
        except RuntimeError:
            log_event(logger, "orders.feed.loop_closed", severity="WARNING", feed=self._label, source=key)

    def _start(self, key: str, seq: int, docs: list[StoredDocument]) -> None:
        if self.closed:
            return
        task = self._loop.create_task(self._run(key, seq, docs))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, key: str, seq: int, docs: list[StoredDocument]) -> None:
        with bind_run_id():
            cache = ProductCache()
            results = await asyncio.gather(*(self._process(doc, cache) for doc in docs))
            if self.closed:
                return
            if seq < self._applied.get(key, -1):
                log_event(logger, "orders.feed.stale_batch_dropped", severity="DEBUG", feed=self._label, source=key, seq=seq)
                return
            self._applied[key] = seq
            self._latest[key] = [o for o in results if o is not None]
            merged = merge_batches(self._latest)
            log_event(
                logger,
                "orders.feed.emit",
                severity="DEBUG",
                feed=self._label,
                source=key,
                batch_size=len(self._latest[key]),
                total=len(merged),
                products_fetched=len(cache),
            )
            try:
                result = self._callback(merged)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log_event(logger, "orders.feed.callback_failed", severity="ERROR", exc_info=True, feed=self._label, source=key)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for unsub in self.unsubs:
            try:
                unsub()
            except Exception as e:
                log_event(logger, "orders.feed.unsubscribe_failed", severity="WARNING", feed=self._label, error=str(e))
        self.unsubs.clear()

        tasks = list(self._tasks)
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        for task in tasks:
            if running is self._loop:
                task.cancel()
            elif not self._loop.is_closed():
                self._loop.call_soon_threadsafe(task.cancel)


class SourceAggregator:
    def __init__(
        self,
        store: OrderStore,
        enricher: HydrationEnricher,
        *,
        collections: tuple[str, ...] = COLLECTION_ORDERS,
        default_currency: str = DEFAULT_CURRENCY,
    ) -> None:
        self._store = store
        self._enricher = enricher
        self._collections = tuple(collections)
        self._default_currency = default_currency

    async def _process(self, doc: StoredDocument, cache: ProductCache) -> Optional[Order]:
        try:
            order = normalize_order(doc.id, doc.data, default_currency=self._default_currency)
        except Exception:
            log_event(logger, "orders.normalize_failed", severity="ERROR", exc_info=True, order_id=doc.id)
            return None
        try:
            return await self._enricher.enrich(order, cache, doc.data)
        except Exception:
            log_event(logger, "orders.enrich_failed", severity="ERROR", exc_info=True, order_id=doc.id)
            return order

    def shapes_for(self, seller_id: Optional[str]) -> list[SourceShape]:
        if seller_id is None:
            return all_orders_source_shapes(self._collections)
        return seller_source_shapes(seller_id, self._collections)

    def listen(self, seller_id: Optional[str], callback: OrdersCallback) -> Unsubscribe:
        """
        Start a live feed; `seller_id=None` watches every order (admin view).

        Must be called from a running event loop. The returned handle stops
        every underlying subscription; it is synchronous, idempotent and never
        raises.
        """
        loop = asyncio.get_running_loop()
        shapes = self.shapes_for(seller_id)
        feed = _Feed(loop=loop, callback=callback, process=self._process, label=seller_id or "*")
        for shape in shapes:
            try:
                unsub = self._store.watch(
                    shape.collection,
                    partial(feed.on_snapshot, shape.key),
                    field=shape.field,
                    op=shape.op,  # type: ignore[arg-type]
                    value=shape.value,
                )
            except Exception:
                feed.close()
                raise
            feed.unsubs.append(unsub)
        log_event(logger, "orders.feed.started", feed=seller_id or "*", sources=[s.key for s in shapes])
        return feed.close

    def listen_by_seller(self, seller_id: str, callback: OrdersCallback) -> Unsubscribe:
        return self.listen(seller_id, callback)

    def listen_all(self, callback: OrdersCallback) -> Unsubscribe:
        return self.listen(None, callback)
