"""
Collateral ledger and the fillability fold

The ledger holds, per (maker, maker_token), how much collateral is still
unclaimed in the current pass. Orders are folded over it one at a time in
priority order; each order draws on the ledger before the next one sees it.
"""

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .order import AnnotatedOrder

CollateralKey = Tuple[str, str]


class CollateralLedger:
    """
    Request-scoped map of (holder, token) -> available collateral.

    Values are ints and never negative: a consumption larger than what is
    left floors the entry at zero.
    """

    def __init__(self, balances: Optional[Dict[CollateralKey, int]] = None):
        self._balances: Dict[CollateralKey, int] = {}
        for (holder, token), amount in (balances or {}).items():
            self.set(holder, token, amount)

    @staticmethod
    def key(holder: str, token: str) -> CollateralKey:
        return holder.lower(), token.lower()

    def set(self, holder: str, token: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"Collateral cannot be negative, got {amount}")
        self._balances[self.key(holder, token)] = amount

    def available(self, holder: str, token: str) -> int:
        """Collateral left for the pair; unknown pairs have none."""
        return self._balances.get(self.key(holder, token), 0)

    def consume(self, holder: str, token: str, amount: int) -> int:
        """
        Reduce the pair's collateral by amount, flooring at zero.

        Returns:
            The new available amount
        """
        key = self.key(holder, token)
        remaining = max(self._balances.get(key, 0) - amount, 0)
        self._balances[key] = remaining
        return remaining

    def copy(self) -> "CollateralLedger":
        return CollateralLedger(dict(self._balances))

    def as_dict(self) -> Dict[CollateralKey, int]:
        return dict(self._balances)

    def __contains__(self, key: CollateralKey) -> bool:
        return self.key(*key) in self._balances

    def __iter__(self) -> Iterator[CollateralKey]:
        return iter(self._balances)

    def __len__(self) -> int:
        return len(self._balances)

    def __repr__(self) -> str:
        return f"CollateralLedger({len(self._balances)} pairs)"


def implied_maker_amount(annotated: AnnotatedOrder) -> int:
    """Maker amount needed to fill the remaining taker amount at the order's price."""
    order = annotated.order
    return order.maker_amount * annotated.remaining_fillable_taker_amount // order.taker_amount


def apply_fillability(
    annotated: AnnotatedOrder,
    ledger: CollateralLedger,
) -> Tuple[AnnotatedOrder, CollateralLedger]:
    """
    Fold one order over the ledger.

    The order's remaining taker amount is clipped to what the maker's
    collateral can cover at the order's price. When the maker has collateral
    left, the ledger is charged the full pre-clip implied maker amount. When
    it has none, the order becomes unfillable and the ledger is untouched.

    Args:
        annotated: Order to size; its state is updated in place
        ledger: Shared collateral ledger; mutated in place

    Returns:
        The updated order and the ledger to hand to the next order
    """
    order = annotated.order
    implied = implied_maker_amount(annotated)
    available = ledger.available(order.maker, order.maker_token)

    if available > 0:
        if implied > available:
            annotated.state.remaining_fillable_taker_amount = (
                available * order.taker_amount // order.maker_amount
            )
        # Charged the pre-clip amount even when clipped
        ledger.consume(order.maker, order.maker_token, implied)
    else:
        annotated.state.remaining_fillable_taker_amount = 0

    return annotated, ledger


def fold_fillability(
    orders: Iterable[AnnotatedOrder],
    ledger: CollateralLedger,
) -> Tuple[List[AnnotatedOrder], CollateralLedger]:
    """
    Fold a ranked sequence of orders over the ledger, left to right.

    Args:
        orders: Orders in priority order
        ledger: Collateral snapshot; mutated in place

    Returns:
        Tuple of (updated orders in the same order, residual ledger)
    """
    result: List[AnnotatedOrder] = []
    for annotated in orders:
        annotated, ledger = apply_fillability(annotated, ledger)
        result.append(annotated)
    return result, ledger
