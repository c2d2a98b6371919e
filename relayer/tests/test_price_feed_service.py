"""
Tests for PriceFeedService

Focus on collateral shared across markets and on market discovery.
"""

import asyncio

import pytest

from relayer.core.market import Market, MarketQuery, Pool
from relayer.services.pool_source import InMemoryPoolSource
from relayer.services.price_feed_service import PriceFeedService, PriceRecord
from relayer.utils.exceptions import PoolSourceException, ValidationException

from conftest import BASE, MAKER, OTHER_BASE, QUOTE, TAKER, addr, make_order

COLLATERAL = QUOTE
LONG = addr(0xF1)
SHORT = addr(0xF2)
CREATOR = addr(0xF3)


class BrokenPoolSource:
    async def fetch_pools(self, page, per_page, created_by=None):
        raise TimeoutError("indexer timed out")


def bid_on(base, maker_amount, taker_amount, **overrides):
    return make_order(
        maker_token=QUOTE,
        taker_token=base,
        maker_amount=maker_amount,
        taker_amount=taker_amount,
        **overrides,
    )


@pytest.fixture
def price_feed(service):
    return PriceFeedService(service)


class TestSharedCollateral:
    """Test cases for the cross-market collateral fold."""

    def test_collateral_claimed_by_first_market(self, price_feed, order_source, oracle):
        """A maker's collateral committed in one market is gone for the next."""
        order_source.add_order(bid_on(BASE, 1_000, 1_000, salt=1))
        order_source.add_order(bid_on(OTHER_BASE, 1_000, 1_000, salt=2))
        oracle.set_balance(MAKER, QUOTE, 1_000)
        markets = [Market(BASE, QUOTE), Market(OTHER_BASE, QUOTE)]

        prices = asyncio.run(price_feed.get_prices(MarketQuery(), markets))
        first, second = prices.records

        assert first.bid.remaining_fillable_taker_amount == 1_000
        assert second.bid is None
        assert len(oracle.calls) == 1

    def test_market_order_decides_priority(self, price_feed, order_source, oracle):
        order_source.add_order(bid_on(BASE, 1_000, 1_000, salt=1))
        order_source.add_order(bid_on(OTHER_BASE, 1_000, 1_000, salt=2))
        oracle.set_balance(MAKER, QUOTE, 1_000)
        markets = [Market(OTHER_BASE, QUOTE), Market(BASE, QUOTE)]

        first, second = asyncio.run(price_feed.get_prices(MarketQuery(), markets)).records

        assert first.base_token == OTHER_BASE
        assert first.bid is not None
        assert second.bid is None

    def test_rejected_order_still_consumes(self, price_feed, order_source, oracle):
        """An order failing the query draws collateral before the next one is tried."""
        best = bid_on(BASE, 2_000, 1_000, salt=1)
        reserved = bid_on(BASE, 1_500, 1_000, salt=2, taker=TAKER)
        order_source.add_order(best)
        order_source.add_order(reserved)
        oracle.set_balance(MAKER, QUOTE, 2_500)

        record, = asyncio.run(
            price_feed.get_prices(MarketQuery(taker=TAKER), [Market(BASE, QUOTE)])
        ).records

        # 500 left after the open order, at 1.5 quote per base
        assert record.bid.order == reserved
        assert record.bid.remaining_fillable_taker_amount == 333
        assert record.ask is None

    def test_caller_markets_paginated(self, price_feed):
        markets = [Market(addr(0x500 + i), QUOTE) for i in range(5)]
        prices = asyncio.run(price_feed.get_prices(MarketQuery(page=2, per_page=2), markets))

        assert prices.total == 5
        assert [r.base_token for r in prices.records] == [addr(0x502), addr(0x503)]

    def test_record_serialization(self):
        record = PriceRecord(BASE, QUOTE)
        assert record.to_dict() == {"baseToken": BASE, "quoteToken": QUOTE, "bid": {}, "ask": {}}

    def test_pagination_validated(self, price_feed):
        with pytest.raises(ValidationException):
            asyncio.run(price_feed.get_prices(MarketQuery(page=0), []))


class TestMarketDiscovery:
    """Test cases for pool-driven market discovery."""

    def test_two_markets_per_pool(self, service, order_source, oracle):
        pools = InMemoryPoolSource([Pool("1", LONG, SHORT, COLLATERAL)])
        order_source.add_order(bid_on(LONG, 1_000, 1_000, salt=1))
        oracle.set_balance(MAKER, COLLATERAL, 5_000)
        feed = PriceFeedService(service, pools)

        prices = asyncio.run(feed.get_prices(MarketQuery()))

        assert prices.total == 2
        long_record, short_record = prices.records
        assert (long_record.base_token, long_record.quote_token) == (LONG, COLLATERAL)
        assert (short_record.base_token, short_record.quote_token) == (SHORT, COLLATERAL)
        assert long_record.bid is not None
        assert short_record.bid is None

    def test_discovery_by_creator_and_page(self, service):
        pools = InMemoryPoolSource()
        for i in range(3):
            pools.add_pool(Pool(str(i), addr(0x600 + i), addr(0x700 + i), COLLATERAL), CREATOR)
        pools.add_pool(Pool("x", addr(0x800), addr(0x801), COLLATERAL), addr(0xF4))
        feed = PriceFeedService(service, pools)

        markets = asyncio.run(feed.discover_markets(MarketQuery(page=2, per_page=2, created_by=CREATOR)))

        assert markets == [Market(addr(0x602), COLLATERAL), Market(addr(0x702), COLLATERAL)]

    def test_missing_pool_source(self, price_feed):
        with pytest.raises(PoolSourceException):
            asyncio.run(price_feed.get_prices(MarketQuery()))

    def test_pool_source_failure_wrapped(self, service):
        feed = PriceFeedService(service, BrokenPoolSource())
        with pytest.raises(PoolSourceException) as exc_info:
            asyncio.run(feed.get_prices(MarketQuery()))
        assert isinstance(exc_info.value.__cause__, TimeoutError)
