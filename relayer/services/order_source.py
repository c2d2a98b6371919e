"""
Order Source - query interface over the persisted signed-order store.

Filters are an explicit, enumerated set of fields rather than whatever
columns the store happens to expose. Several filters passed together are
OR-ed; fields within one filter are AND-ed.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple

from relayer.core.order import Order, OrderEventEndState
from relayer.utils.exceptions import DuplicateOrderException, OrderNotFoundException
from relayer.utils.validators import normalize_address

logger = logging.getLogger(__name__)

FILTER_FIELDS = ("maker", "taker", "maker_token", "taker_token", "fee_recipient", "pool", "order_hash")


@dataclass(frozen=True)
class OrderFieldFilters:
    """
    Enumerated order filters.

    Attributes:
        maker, taker, maker_token, taker_token, fee_recipient, pool,
        order_hash: Equality filters, None = unconstrained
        maker_tokens, taker_tokens: Membership filters, None = unconstrained
        expiry_gte: Minimum expiry, None = unconstrained
        end_states: For removed orders, the end states to include
    """
    maker: Optional[str] = None
    taker: Optional[str] = None
    maker_token: Optional[str] = None
    taker_token: Optional[str] = None
    fee_recipient: Optional[str] = None
    pool: Optional[str] = None
    order_hash: Optional[str] = None
    maker_tokens: Optional[FrozenSet[str]] = None
    taker_tokens: Optional[FrozenSet[str]] = None
    expiry_gte: Optional[int] = None
    end_states: Optional[FrozenSet[OrderEventEndState]] = None

    def __post_init__(self):
        for name in ("maker", "taker", "maker_token", "taker_token", "fee_recipient"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, normalize_address(value))
        for name in ("pool", "order_hash"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, value.lower())
        for name in ("maker_tokens", "taker_tokens"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, frozenset(normalize_address(t) for t in value))
        if self.end_states is not None:
            object.__setattr__(self, "end_states", frozenset(self.end_states))

    def with_changes(self, **changes) -> "OrderFieldFilters":
        return replace(self, **changes)

    def matches(self, order: Order, end_state: Optional[OrderEventEndState] = None) -> bool:
        """Check whether an order satisfies every set field."""
        for name in FILTER_FIELDS:
            expected = getattr(self, name)
            if expected is not None and getattr(order, name) != expected:
                return False
        if self.maker_tokens is not None and order.maker_token not in self.maker_tokens:
            return False
        if self.taker_tokens is not None and order.taker_token not in self.taker_tokens:
            return False
        if self.expiry_gte is not None and order.expiry < self.expiry_gte:
            return False
        if self.end_states is not None and end_state not in self.end_states:
            return False
        return True


class OrderSource(Protocol):
    """Persisted store of signed orders."""

    async def find(
        self,
        filters: Sequence[OrderFieldFilters],
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        removed: bool = False,
    ) -> List[Order]:
        """Orders matching any filter, sorted by hash ascending."""
        ...

    async def count(self, filters: Sequence[OrderFieldFilters], removed: bool = False) -> int:
        """Number of orders matching any filter."""
        ...

    async def get(self, order_hash: str, removed: bool = False) -> Optional[Order]:
        """Single order by hash, None when absent."""
        ...


class InMemoryOrderSource:
    """
    Order store held in process memory.

    Active orders are what the book aggregates; removed orders keep the
    end state they left the book with and are only served on request.
    """

    def __init__(self, orders: Optional[Iterable[Order]] = None):
        self._active: Dict[str, Order] = {}
        self._removed: Dict[str, Tuple[Order, OrderEventEndState]] = {}
        for order in orders or ():
            self.add_order(order)

    def add_order(self, order: Order) -> Order:
        """
        Add an active order.

        Raises:
            DuplicateOrderException: If the hash is already active
        """
        if order.order_hash in self._active:
            raise DuplicateOrderException(
                f"Order {order.order_hash} already exists",
                details={"order_hash": order.order_hash}
            )
        self._removed.pop(order.order_hash, None)
        self._active[order.order_hash] = order
        return order

    def remove_order(self, order_hash: str, end_state: OrderEventEndState) -> Order:
        """
        Move an active order to the removed set.

        Raises:
            OrderNotFoundException: If no active order has the hash
        """
        order = self._active.pop(order_hash.lower(), None)
        if order is None:
            raise OrderNotFoundException(
                f"Order {order_hash} not found",
                details={"order_hash": order_hash}
            )
        self._removed[order.order_hash] = (order, end_state)
        logger.debug(f"Order {order.order_hash} removed with state {end_state}")
        return order

    def _matching(self, filters: Sequence[OrderFieldFilters], removed: bool) -> List[Order]:
        if removed:
            candidates = [(o, state) for o, state in self._removed.values()]
        else:
            candidates = [(o, None) for o in self._active.values()]
        matched = [
            order for order, state in candidates
            if any(f.matches(order, state) for f in filters)
        ]
        return sorted(matched, key=lambda o: o.order_hash)

    async def find(
        self,
        filters: Sequence[OrderFieldFilters],
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        removed: bool = False,
    ) -> List[Order]:
        matched = self._matching(filters, removed)
        start = offset or 0
        end = None if limit is None else start + limit
        return matched[start:end]

    async def count(self, filters: Sequence[OrderFieldFilters], removed: bool = False) -> int:
        return len(self._matching(filters, removed))

    async def get(self, order_hash: str, removed: bool = False) -> Optional[Order]:
        order_hash = order_hash.lower()
        if removed:
            entry = self._removed.get(order_hash)
            return entry[0] if entry else None
        return self._active.get(order_hash)

    def __len__(self) -> int:
        return len(self._active)
