"""
Deterministic bid/ask ranking

Ranks orders by exact implied price with the order hash as tie-break.
The same ranking decides display order and which order gets first claim
on a maker's shared collateral.
"""

from fractions import Fraction
from typing import Iterable, List, Tuple

from sortedcontainers import SortedKeyList

from .market import OrderSide
from .order import Order


def bid_price(order: Order) -> Fraction:
    """Quote paid per unit of base: maker_amount / taker_amount."""
    return Fraction(order.maker_amount, order.taker_amount)


def ask_price(order: Order) -> Fraction:
    """Quote asked per unit of base: taker_amount / maker_amount."""
    return Fraction(order.taker_amount, order.maker_amount)


def bid_sort_key(order: Order) -> Tuple[Fraction, str]:
    # Highest price first, then ascending hash
    return (-bid_price(order), order.order_hash)


def ask_sort_key(order: Order) -> Tuple[Fraction, str]:
    # Lowest price first, then ascending hash
    return (ask_price(order), order.order_hash)


class OrderRanker:
    """
    Ranks the orders of one market side.

    Bids are kept in a SortedKeyList keyed by (-price, hash) and asks by
    (price, hash). Hashes are unique within a pass so the key is a strict
    total order and the result never depends on input order.
    """

    @staticmethod
    def rank(orders: Iterable[Order], side: OrderSide) -> List[Order]:
        """
        Rank orders for a side of the book.

        Args:
            orders: Orders resting on the given side
            side: BID or ASK

        Returns:
            Orders in priority order, best first
        """
        key = bid_sort_key if side == OrderSide.BID else ask_sort_key
        return list(SortedKeyList(orders, key=key))

    @classmethod
    def rank_bids(cls, orders: Iterable[Order]) -> List[Order]:
        return cls.rank(orders, OrderSide.BID)

    @classmethod
    def rank_asks(cls, orders: Iterable[Order]) -> List[Order]:
        return cls.rank(orders, OrderSide.ASK)
