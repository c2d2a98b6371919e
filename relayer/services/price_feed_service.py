"""
Price Feed Service - best bid and ask across many markets.

All markets share one collateral snapshot: collateral a maker commits to
its best bid in one market is no longer available to its orders in the
markets scanned after it.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from relayer.core.market import Market, MarketQuery, markets_from_pools
from relayer.core.order import AnnotatedOrder
from relayer.core.pagination import PaginatedCollection, paginate
from relayer.services.orderbook_service import OrderBookService, RankedMarket
from relayer.services.pool_source import PoolSource
from relayer.utils.exceptions import BaseRelayerException, PoolSourceException
from relayer.utils.logger import get_logger
from relayer.utils.validators import validate_pagination


@dataclass
class PriceRecord:
    """Best bid and ask of one market; either may be absent."""
    base_token: str
    quote_token: str
    bid: Optional[AnnotatedOrder] = None
    ask: Optional[AnnotatedOrder] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "baseToken": self.base_token,
            "quoteToken": self.quote_token,
            "bid": self.bid.to_dict() if self.bid else {},
            "ask": self.ask.to_dict() if self.ask else {},
        }


class PriceFeedService:
    """
    Service class computing the best fillable prices of many markets.

    Market loading may run concurrently; the collateral fold across markets
    always runs sequentially in market order.
    """

    def __init__(
        self,
        orderbook_service: OrderBookService,
        pool_source: Optional[PoolSource] = None,
    ):
        """
        Initialize price feed service.

        Args:
            orderbook_service: Provides market loading, collateral and filtering
            pool_source: Market discovery used when no markets are supplied
        """
        self.orderbook_service = orderbook_service
        self.pool_source = pool_source
        self.logger = logging.getLogger(f"{__name__}.PriceFeedService")
        self.logger.info("PriceFeedService initialized")

    async def discover_markets(self, query: MarketQuery) -> List[Market]:
        """
        Discover markets from the pool index, two per pool.

        Raises:
            PoolSourceException: If there is no pool source or it fails
        """
        if self.pool_source is None:
            raise PoolSourceException("No pool source configured for market discovery")
        try:
            pools = await self.pool_source.fetch_pools(query.page, query.per_page, query.created_by)
        except BaseRelayerException:
            raise
        except Exception as e:
            self.logger.error(f"Pool discovery failed: {str(e)}", exc_info=True)
            raise PoolSourceException(f"Pool discovery failed: {str(e)}") from e
        return markets_from_pools(pools)

    async def get_prices(
        self,
        query: MarketQuery,
        markets: Optional[Sequence[Market]] = None,
    ) -> PaginatedCollection[PriceRecord]:
        """
        Find the best fillable bid and ask of every market.

        Args:
            query: Caller constraints shared by all markets
            markets: Markets in scan order; discovered from pools when None

        Returns:
            One PriceRecord per market

        Raises:
            ValidationException: If pagination is out of range
            CollaboratorException: If any collaborator fails
        """
        settings = self.orderbook_service.settings
        validate_pagination(query.page, query.per_page, settings.max_per_page)
        start_time = time.time()

        discovered = markets is None
        if discovered:
            markets = await self.discover_markets(query)

        ranked: List[RankedMarket] = list(await asyncio.gather(
            *(self.orderbook_service.load_ranked_market(m) for m in markets)
        ))

        universe = [order for r in ranked for order in r.orders]
        ledger = await self.orderbook_service.snapshot_collateral(universe)

        records: List[PriceRecord] = []
        for r in ranked:
            bid, ledger = self.orderbook_service.first_accepted(r.bids, ledger, query)
            ask, ledger = self.orderbook_service.first_accepted(r.asks, ledger, query)
            records.append(PriceRecord(r.market.base_token, r.market.quote_token, bid, ask))

        get_logger().info(
            f"Price feed computed for {len(records)} markets",
            execution_time_ms=(time.time() - start_time) * 1000,
        )

        if discovered:
            # Discovery already applied the page window
            return PaginatedCollection(
                total=len(records),
                page=query.page,
                per_page=query.per_page,
                records=records,
            )
        return paginate(records, query.page, query.per_page)
