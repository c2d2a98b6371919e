"""
Signed order domain model

This module defines the immutable Order record read from the order store,
the per-pass OrderState that tracks how much of it is fillable, and the
AnnotatedOrder pairing the two.
"""

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from ..utils.exceptions import InvalidOrderException
from ..utils.validators import NULL_ADDRESS, normalize_address, sanitize_amount

NULL_POOL = "0x" + "0" * 64

_ADDRESS_FIELDS = ("maker", "taker", "maker_token", "taker_token", "fee_recipient")
_AMOUNT_FIELDS = ("maker_amount", "taker_amount", "taker_token_fee_amount", "expiry", "salt")


class OrderEventEndState(Enum):
    """Terminal states of orders removed from the active book."""
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"
    FULLY_FILLED = "FULLY_FILLED"
    INVALID = "INVALID"
    STOPPED_WATCHING = "STOPPED_WATCHING"
    UNFUNDED = "UNFUNDED"

    def __str__(self) -> str:
        return self.value


def compute_order_hash(order: "Order") -> str:
    """
    Derive a content hash for an order.

    The digest covers every field that defines the order's terms, so two
    records with identical terms always share a hash.
    """
    payload = "|".join(
        str(getattr(order, name))
        for name in _ADDRESS_FIELDS + _AMOUNT_FIELDS + ("pool",)
    )
    return "0x" + hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class Order:
    """
    A signed limit order as persisted by order intake.

    Immutable (frozen=True): nothing in an aggregation pass may alter the
    maker's signed terms. Addresses are normalized to lowercase on creation
    and amounts are plain ints.

    Attributes:
        maker: Address whose collateral backs the order
        taker: Address allowed to fill, or the null address for anyone
        maker_token: Token the maker gives
        taker_token: Token the maker receives
        maker_amount: Total maker_token amount offered
        taker_amount: Total taker_token amount requested
        taker_token_fee_amount: Fee paid by the taker in taker_token
        fee_recipient: Address receiving the taker fee
        expiry: Unix timestamp (seconds) after which the order is dead
        salt: Arbitrary number making the hash unique
        pool: Staking pool identifier
        order_hash: Unique content-derived hash
        remaining_fillable_taker_amount: Unfilled taker amount recorded by
            the store; defaults to taker_amount and is not part of the hash
    """

    maker: str
    maker_token: str
    taker_token: str
    maker_amount: int
    taker_amount: int
    expiry: int
    taker: str = NULL_ADDRESS
    fee_recipient: str = NULL_ADDRESS
    taker_token_fee_amount: int = 0
    salt: int = 0
    pool: str = NULL_POOL
    order_hash: str = ""
    remaining_fillable_taker_amount: Optional[int] = None

    def __post_init__(self):
        """
        Normalize fields and validate the order.

        Raises:
            InvalidOrderException: If the record violates order invariants
        """
        for name in _ADDRESS_FIELDS:
            object.__setattr__(self, name, normalize_address(getattr(self, name)))
        for name in _AMOUNT_FIELDS:
            object.__setattr__(self, name, sanitize_amount(getattr(self, name), name))

        if self.maker_amount <= 0:
            raise InvalidOrderException(
                f"maker_amount must be positive, got {self.maker_amount}",
                details={"maker_amount": self.maker_amount}
            )
        if self.taker_amount <= 0:
            raise InvalidOrderException(
                f"taker_amount must be positive, got {self.taker_amount}",
                details={"taker_amount": self.taker_amount}
            )

        if self.remaining_fillable_taker_amount is None:
            object.__setattr__(self, "remaining_fillable_taker_amount", self.taker_amount)
        else:
            remaining = sanitize_amount(
                self.remaining_fillable_taker_amount, "remaining_fillable_taker_amount"
            )
            if remaining > self.taker_amount:
                raise InvalidOrderException(
                    f"Remaining fillable amount {remaining} exceeds taker_amount {self.taker_amount}",
                    details={"remaining": remaining, "taker_amount": self.taker_amount}
                )
            object.__setattr__(self, "remaining_fillable_taker_amount", remaining)

        if self.order_hash:
            object.__setattr__(self, "order_hash", self.order_hash.lower())
        else:
            object.__setattr__(self, "order_hash", compute_order_hash(self))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Build an order from a persisted record with camelCase or snake_case keys.

        Accepts flat records as well as the {"order": ..., "metaData": ...}
        shape, where metaData may carry orderHash and
        remainingFillableTakerAmount.
        """
        if isinstance(data.get("order"), dict):
            data = {**data["order"], **(data.get("metaData") or {})}

        aliases = {
            "makerToken": "maker_token",
            "takerToken": "taker_token",
            "makerAmount": "maker_amount",
            "takerAmount": "taker_amount",
            "takerTokenFeeAmount": "taker_token_fee_amount",
            "feeRecipient": "fee_recipient",
            "hash": "order_hash",
            "orderHash": "order_hash",
            "remainingFillableTakerAmount": "remaining_fillable_taker_amount",
        }
        known = set(cls.__dataclass_fields__)
        kwargs = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in known and value is not None:
                kwargs[name] = value
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise InvalidOrderException(
                f"Incomplete order record: {e}",
                details={"record": data}
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert order to dictionary for API serialization."""
        return {
            "maker": self.maker,
            "taker": self.taker,
            "makerToken": self.maker_token,
            "takerToken": self.taker_token,
            "makerAmount": str(self.maker_amount),
            "takerAmount": str(self.taker_amount),
            "takerTokenFeeAmount": str(self.taker_token_fee_amount),
            "feeRecipient": self.fee_recipient,
            "expiry": str(self.expiry),
            "salt": str(self.salt),
            "pool": self.pool,
        }

    def __repr__(self) -> str:
        return (
            f"Order({self.order_hash[:10]}..., maker={self.maker[:10]}..., "
            f"{self.maker_amount} {self.maker_token[:10]}... for "
            f"{self.taker_amount} {self.taker_token[:10]}...)"
        )


class OrderState:
    """
    Mutable per-pass state of an order.

    The setter enforces 0 <= remaining_fillable_taker_amount <= taker_amount.
    """

    __slots__ = ("taker_amount", "_remaining")

    def __init__(self, taker_amount: int, remaining_fillable_taker_amount: Optional[int] = None):
        self.taker_amount = taker_amount
        self._remaining = 0
        if remaining_fillable_taker_amount is None:
            remaining_fillable_taker_amount = taker_amount
        self.remaining_fillable_taker_amount = remaining_fillable_taker_amount

    @property
    def remaining_fillable_taker_amount(self) -> int:
        return self._remaining

    @remaining_fillable_taker_amount.setter
    def remaining_fillable_taker_amount(self, value: int) -> None:
        if value < 0 or value > self.taker_amount:
            raise InvalidOrderException(
                f"Remaining fillable amount {value} outside [0, {self.taker_amount}]",
                details={"remaining": value, "taker_amount": self.taker_amount}
            )
        self._remaining = value

    def __repr__(self) -> str:
        return f"OrderState(remaining={self._remaining}/{self.taker_amount})"


@dataclass(slots=True)
class AnnotatedOrder:
    """
    An order together with its fillability state for the current pass.

    Attributes:
        order: The signed order
        state: Mutable fillability state
    """
    order: Order
    state: OrderState = field(default=None)

    def __post_init__(self):
        if self.state is None:
            self.state = OrderState(
                self.order.taker_amount, self.order.remaining_fillable_taker_amount
            )

    @classmethod
    def fresh(cls, order: Order) -> "AnnotatedOrder":
        """Annotate an order starting from the remaining amount the store recorded."""
        return cls(
            order=order,
            state=OrderState(order.taker_amount, order.remaining_fillable_taker_amount),
        )

    @property
    def order_hash(self) -> str:
        return self.order.order_hash

    @property
    def remaining_fillable_taker_amount(self) -> int:
        return self.state.remaining_fillable_taker_amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the SRA wire shape: order plus metaData."""
        return {
            "order": self.order.to_dict(),
            "metaData": {
                "orderHash": self.order.order_hash,
                "remainingFillableTakerAmount": str(self.remaining_fillable_taker_amount),
            },
        }
