"""
Order freshness filtering

Splits orders into fresh and expired using a safety buffer, so that orders
about to lapse are never offered to a taker.
"""

import time
from typing import Callable, Iterable, List, Optional, Tuple

from .order import Order

ExpiredOrderAlerter = Callable[[List[Order]], object]


def current_timestamp() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def is_fresh(order: Order, buffer_seconds: int, now: Optional[int] = None) -> bool:
    """An order is fresh while its expiry lies strictly beyond now + buffer."""
    if now is None:
        now = current_timestamp()
    return order.expiry > now + buffer_seconds


def group_by_freshness(
    orders: Iterable[Order],
    buffer_seconds: int,
    now: Optional[int] = None,
) -> Tuple[List[Order], List[Order]]:
    """
    Partition orders into (fresh, expired), keeping input order in both.

    Args:
        orders: Orders to partition
        buffer_seconds: Expiry safety margin
        now: Reference unix time, defaults to the current time

    Returns:
        Tuple of (fresh, expired)
    """
    if now is None:
        now = current_timestamp()

    fresh: List[Order] = []
    expired: List[Order] = []
    for order in orders:
        if is_fresh(order, buffer_seconds, now):
            fresh.append(order)
        else:
            expired.append(order)
    return fresh, expired


class FreshnessFilter:
    """
    Drops expired orders and reports them to an alerting hook.

    Attributes:
        buffer_seconds: Expiry safety margin
        alerter: Called with the list of expired orders whenever any are found
    """

    def __init__(
        self,
        buffer_seconds: int,
        alerter: Optional[ExpiredOrderAlerter] = None,
        clock: Callable[[], int] = current_timestamp,
    ):
        self.buffer_seconds = buffer_seconds
        self.alerter = alerter
        self.clock = clock

    def min_expiry(self) -> int:
        """Smallest expiry an order may carry and still count as fresh."""
        return self.clock() + self.buffer_seconds + 1

    def apply(self, orders: Iterable[Order]) -> List[Order]:
        """Return the fresh orders, alerting on the expired ones."""
        fresh, expired = group_by_freshness(orders, self.buffer_seconds, self.clock())
        if expired and self.alerter is not None:
            self.alerter(expired)
        return fresh
