from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Mapping, Optional

from sellerhub.common.logging import log_event
from sellerhub.orders.fields import first_of, first_value, optional_str, to_number
from sellerhub.orders.models import Order, OrderItem
from sellerhub.orders.schema import CATEGORY_ID_TO_NAME, COLLECTION_PRODUCTS
from sellerhub.persistence.blob_urls import BlobUrlResolver, is_storage_path
from sellerhub.persistence.order_store import OrderStore

logger = logging.getLogger(__name__)

ProductDoc = Optional[dict[str, Any]]

_PRODUCT_IMAGE_KEYS = ("imageURL", "imageUrl", "thumbnail")
_CATEGORY_ID_KEYS = ("categoryID", "categoryId", "CategoryID", "CategoryId")


class ProductCache:
    """
    Product lookups for one aggregation run.

    Each product id is fetched at most once; concurrent callers asking for the
    same id share the in-flight fetch. A cache must not outlive the run it was
    created for, otherwise category edits would never show up.
    """

    def __init__(self) -> None:
        self._entries: dict[str, asyncio.Future[ProductDoc]] = {}

    def __contains__(self, product_id: object) -> bool:
        return str(product_id) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_or_fetch(self, product_id: str, fetch: Callable[[str], Awaitable[ProductDoc]]) -> asyncio.Future[ProductDoc]:
        pid = str(product_id)
        entry = self._entries.get(pid)
        if entry is None:
            entry = asyncio.ensure_future(fetch(pid))
            self._entries[pid] = entry
        return entry


def _has_category(item: OrderItem) -> bool:
    return bool(item.category and item.category.strip())


class HydrationEnricher:
    """
    Best-effort backfill of fields an order document cannot carry by itself.

    Nothing here raises to the caller: a failed product fetch or URL
    resolution is logged and the affected field is left as it was.
    """

    def __init__(
        self,
        store: OrderStore,
        *,
        url_resolver: Optional[BlobUrlResolver] = None,
        product_collection: str = COLLECTION_PRODUCTS,
        category_names: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._store = store
        self._url_resolver = url_resolver
        self._product_collection = product_collection
        self._category_names = dict(CATEGORY_ID_TO_NAME if category_names is None else category_names)

    async def _fetch_product(self, product_id: str) -> ProductDoc:
        try:
            return await self._store.get(self._product_collection, product_id)
        except Exception as e:
            log_event(
                logger,
                "orders.hydration.product_fetch_failed",
                severity="WARNING",
                product_id=product_id,
                error=str(e),
            )
            return None

    async def resolve_image(self, path: Any) -> Optional[str]:
        img = optional_str(path)
        if img is None:
            return None
        if not is_storage_path(img):
            return img
        if self._url_resolver is None:
            log_event(logger, "orders.hydration.no_url_resolver", severity="WARNING", path=img)
            return None
        try:
            return await self._url_resolver(img)
        except Exception as e:
            log_event(logger, "orders.hydration.image_resolve_failed", severity="WARNING", path=img, error=str(e))
            return None

    async def hydrate_image(
        self,
        order: Order,
        cache: ProductCache,
        raw: Optional[Mapping[str, Any]] = None,
    ) -> Order:
        """Fill the order thumbnail from the first item's product when the item had none."""
        if order.image_url:
            return order
        first = order.items[0] if order.items else None
        pid = first.product_id if first is not None else None
        if not pid and raw is not None:
            pid = optional_str(first_of(raw, "productId", "productID"))
        if not pid:
            return order

        product = await cache.get_or_fetch(pid, self._fetch_product)
        if not product:
            return order
        img = await self.resolve_image(first_of(product, "imageURL", "imageUrl"))
        if not img:
            return order
        return replace(order, image_url=img)

    async def _hydrate_item(self, item: OrderItem, product: ProductDoc) -> OrderItem:
        if not product:
            return item
        label = str(first_value(product.get("category"), product.get("Category"), default="")).strip()
        cat_id = optional_str(first_of(product, *_CATEGORY_ID_KEYS))
        category = label or (self._category_names.get(cat_id, "") if cat_id else "")
        subcategory = optional_str(first_value(product.get("subcategory"), product.get("Subcategory")))
        cost = to_number(product.get("cost"))

        updates: dict[str, Any] = {}
        if category and not _has_category(item):
            updates["category"] = category
        if subcategory and not item.subcategory:
            updates["subcategory"] = subcategory
        if cat_id and not item.category_id:
            updates["category_id"] = cat_id
        if cost is not None and item.cost is None:
            updates["cost"] = cost
        if not item.image_url:
            img = await self.resolve_image(first_of(product, *_PRODUCT_IMAGE_KEYS))
            if img:
                updates["image_url"] = img
        return replace(item, **updates) if updates else item

    async def hydrate_categories(self, order: Order, cache: ProductCache) -> Order:
        """Fill category/subcategory/cost/image on items from their product documents."""
        items = order.items
        categorized = {it.product_id for it in items if it.product_id and _has_category(it)}
        missing: list[str] = []
        for it in items:
            if it.product_id and it.product_id not in categorized and it.product_id not in missing:
                missing.append(it.product_id)
        if not missing:
            return order

        wanted = set(missing)
        await asyncio.gather(*(cache.get_or_fetch(pid, self._fetch_product) for pid in missing))

        async def _one(item: OrderItem) -> OrderItem:
            if _has_category(item) and item.category_id:
                return item
            if not item.product_id or item.product_id not in wanted:
                return item
            product = await cache.get_or_fetch(item.product_id, self._fetch_product)
            return await self._hydrate_item(item, product)

        hydrated = await asyncio.gather(*(_one(it) for it in items))
        return replace(order, items=tuple(hydrated))

    async def enrich(
        self,
        order: Order,
        cache: Optional[ProductCache] = None,
        raw: Optional[Mapping[str, Any]] = None,
    ) -> Order:
        run_cache = cache if cache is not None else ProductCache()
        order = await self.hydrate_image(order, run_cache, raw)
        return await self.hydrate_categories(order, run_cache)
