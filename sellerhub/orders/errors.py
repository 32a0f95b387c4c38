from __future__ import annotations

from typing import Optional


class OrderNotFoundError(LookupError):
    """A mutation targeted an order id present in none of the order collections."""

    def __init__(self, order_id: str, collections: tuple[str, ...] = ()) -> None:
        self.order_id = str(order_id)
        self.collections = tuple(collections)
        super().__init__(f"Order {self.order_id} not found")


class InvalidStageTransitionError(RuntimeError):
    """The order is not in the fulfillment stage the caller expected to move it from."""

    def __init__(self, order_id: str, *, current: Optional[str], expected: str) -> None:
        self.order_id = str(order_id)
        self.current = current
        self.expected = expected
        super().__init__(f"Order not in expected stage. Current: {current}, Expected: {expected}")
