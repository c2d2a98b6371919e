"""
Market and query value objects

A market is a (base, quote) token pair. Bids are orders whose maker pays
quote for base; asks are orders whose maker sells base for quote.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .order import Order
from ..utils.validators import normalize_address


class OrderSide(Enum):
    """Side of a market an order rests on."""
    BID = "BID"
    ASK = "ASK"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Market:
    """
    A (base_token, quote_token) pair.

    Attributes:
        base_token: Token being bought or sold
        quote_token: Token prices are expressed in
    """
    base_token: str
    quote_token: str

    def __post_init__(self):
        object.__setattr__(self, "base_token", normalize_address(self.base_token))
        object.__setattr__(self, "quote_token", normalize_address(self.quote_token))

    def side_of(self, order: Order) -> Optional[OrderSide]:
        """Return which side of this market the order rests on, if any."""
        if order.taker_token == self.base_token and order.maker_token == self.quote_token:
            return OrderSide.BID
        if order.taker_token == self.quote_token and order.maker_token == self.base_token:
            return OrderSide.ASK
        return None

    @property
    def tokens(self) -> List[str]:
        return [self.base_token, self.quote_token]

    def __str__(self) -> str:
        return f"{self.base_token}/{self.quote_token}"


@dataclass(frozen=True, slots=True)
class Pool:
    """
    A position-token pool discovered from the pool source.

    Each pool lists two tradable markets: its long token and its short token,
    both quoted in the pool's collateral token.
    """
    pool_id: str
    long_token: str
    short_token: str
    collateral_token: str

    def markets(self) -> List[Market]:
        return [
            Market(self.long_token, self.collateral_token),
            Market(self.short_token, self.collateral_token),
        ]


def markets_from_pools(pools: Iterable[Pool]) -> List[Market]:
    """Expand pools into markets, long before short, in pool order."""
    markets: List[Market] = []
    for pool in pools:
        markets.extend(pool.markets())
    return markets


@dataclass(frozen=True, slots=True)
class MarketQuery:
    """
    Caller constraints for one aggregation request.

    Attributes:
        page: 1-based page number
        per_page: Page size
        taker: Only include orders reserved for this taker (None = any)
        fee_recipient: Only include orders paying this recipient (None = any)
        taker_token_fee: Expected fee in hundred-thousandths of taker_amount
            (1 = 0.001%), None = unconstrained
        threshold: Exclude orders whose fillable amount is at or below this
            (None = not configured)
        created_by: Pool creator filter used by pool discovery
    """
    page: int = 1
    per_page: int = 20
    taker: Optional[str] = None
    fee_recipient: Optional[str] = None
    taker_token_fee: Optional[int] = None
    threshold: Optional[int] = None
    created_by: Optional[str] = None

    def __post_init__(self):
        if self.taker is not None:
            object.__setattr__(self, "taker", normalize_address(self.taker))
        if self.fee_recipient is not None:
            object.__setattr__(self, "fee_recipient", normalize_address(self.fee_recipient))
        if self.created_by is not None:
            object.__setattr__(self, "created_by", normalize_address(self.created_by))
