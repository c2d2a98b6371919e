"""
Request-level filtering of fillability-adjusted orders

Applies the caller's constraints to one order after the fillability fold:
fee tolerance, taker, fee recipient and liquidity floor, in that order.
"""

from fractions import Fraction

from .market import MarketQuery
from .order import AnnotatedOrder, Order
from ..utils.validators import NULL_ADDRESS, normalize_address

# One fee unit is 0.001% of the taker amount
FEE_UNIT_DENOMINATOR = 100000
FEE_TOLERANCE = 1
DUST_FLOOR = 100


def expected_taker_fee(order: Order, fee_unit: int) -> Fraction:
    """Exact fee expected for an order at the given fee unit."""
    return Fraction(order.taker_amount * fee_unit, FEE_UNIT_DENOMINATOR)


def fee_within_tolerance(order: Order, fee_unit: int) -> bool:
    """True when the order's taker fee lies in [expected - 1, expected + 1]."""
    expected = expected_taker_fee(order, fee_unit)
    return abs(order.taker_token_fee_amount - expected) <= FEE_TOLERANCE


class RequestFilter:
    """
    Decides whether an adjusted order satisfies a MarketQuery.

    Attributes:
        governance_address: Fee recipient that triggers the governance
            fee pre-check for open orders
    """

    def __init__(self, governance_address: str = NULL_ADDRESS):
        self.governance_address = normalize_address(governance_address)

    def _governance_fee_rejects(self, order: Order, fee_unit: int) -> bool:
        # Open orders paying governance are checked on their own first
        return (
            order.taker == NULL_ADDRESS
            and order.fee_recipient == self.governance_address
            and not fee_within_tolerance(order, fee_unit)
        )

    def accepts(self, annotated: AnnotatedOrder, query: MarketQuery) -> bool:
        """
        Check an order against the query; the first failing check rejects.

        Args:
            annotated: Order after the fillability fold
            query: Caller constraints

        Returns:
            True if the order should be shown
        """
        order = annotated.order

        if query.taker_token_fee is not None:
            if self._governance_fee_rejects(order, query.taker_token_fee):
                return False
            if not fee_within_tolerance(order, query.taker_token_fee):
                return False

        if query.taker is not None and query.taker != order.taker:
            return False

        if query.fee_recipient is not None and query.fee_recipient != order.fee_recipient:
            return False

        remaining = annotated.remaining_fillable_taker_amount
        if query.threshold is not None and remaining <= query.threshold:
            return False
        if remaining <= DUST_FLOOR:
            return False

        return True

    __call__ = accepts
