"""
Shared fixtures for the relayer test suite.
"""

import pytest

from relayer.config import Settings
from relayer.core.order import Order
from relayer.services.collateral import InMemoryCollateralOracle
from relayer.services.order_source import InMemoryOrderSource
from relayer.services.orderbook_service import OrderBookService

NOW = 1_700_000_000
FAR_EXPIRY = NOW + 86_400


def addr(n: int) -> str:
    """Deterministic test address for a small integer."""
    return "0x" + f"{n:040x}"


MAKER = addr(0xA1)
OTHER_MAKER = addr(0xA2)
TAKER = addr(0xB1)
BASE = addr(0xC1)
QUOTE = addr(0xC2)
OTHER_BASE = addr(0xC3)
FEE_RECIPIENT = addr(0xD1)
GOVERNANCE = addr(0xD2)


def make_order(**overrides) -> Order:
    """Build an order with sensible defaults; any field can be overridden."""
    fields = {
        "maker": MAKER,
        "maker_token": QUOTE,
        "taker_token": BASE,
        "maker_amount": 1_000_000,
        "taker_amount": 1_000_000,
        "expiry": FAR_EXPIRY,
        "salt": 1,
    }
    fields.update(overrides)
    return Order(**fields)


def make_bid(maker_amount: int, taker_amount: int, **overrides) -> Order:
    """Bid on BASE/QUOTE: maker pays QUOTE for BASE."""
    return make_order(
        maker_token=QUOTE,
        taker_token=BASE,
        maker_amount=maker_amount,
        taker_amount=taker_amount,
        **overrides,
    )


def make_ask(maker_amount: int, taker_amount: int, **overrides) -> Order:
    """Ask on BASE/QUOTE: maker sells BASE for QUOTE."""
    return make_order(
        maker_token=BASE,
        taker_token=QUOTE,
        maker_amount=maker_amount,
        taker_amount=taker_amount,
        **overrides,
    )


@pytest.fixture
def settings():
    """Settings isolated from the environment defaults used in production."""
    return Settings(
        order_expiration_buffer_seconds=10,
        collateral_batch_limit=400,
        fee_recipient_address=FEE_RECIPIENT,
        taker_fee_unit_amount=0,
        governance_address=GOVERNANCE,
        max_per_page=1000,
    )


@pytest.fixture
def order_source():
    return InMemoryOrderSource()


@pytest.fixture
def oracle():
    return InMemoryCollateralOracle()


@pytest.fixture
def service(order_source, oracle, settings):
    """Order book service over in-memory collaborators with a frozen clock."""
    return OrderBookService(order_source, oracle, settings, clock=lambda: NOW)
