"""
Order Book Service - collateral-adjusted order book and order queries.

This service loads a market's resting orders from the order store, drops
expired ones, ranks both sides, snapshots maker collateral once and folds
it across bids and then asks, so that the book only shows what makers can
actually deliver right now.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from relayer.config import Settings, get_settings
from relayer.core.fillability import CollateralLedger, apply_fillability, fold_fillability
from relayer.core.freshness import FreshnessFilter, current_timestamp
from relayer.core.market import Market, MarketQuery, OrderSide
from relayer.core.order import AnnotatedOrder, Order, OrderEventEndState
from relayer.core.pagination import PaginatedCollection, page_window, paginate
from relayer.core.ranking import OrderRanker
from relayer.core.request_filter import RequestFilter
from relayer.services.collateral import (
    CollateralOracle,
    collect_collateral_pairs,
    fetch_collateral_ledger,
)
from relayer.services.order_source import OrderFieldFilters, OrderSource
from relayer.utils.exceptions import (
    BaseRelayerException,
    OrderSourceException,
    ValidationErrorCodes,
    ValidationErrorReasons,
    ValidationException,
)
from relayer.utils.logger import get_logger
from relayer.utils.validators import NULL_ADDRESS, validate_address, validate_pagination

REMOVED_END_STATES = frozenset(OrderEventEndState)


@dataclass
class RankedMarket:
    """Fresh, ranked orders of one market, before any collateral is applied."""
    market: Market
    bids: List[Order]
    asks: List[Order]

    @property
    def orders(self) -> List[Order]:
        return self.bids + self.asks


@dataclass
class OrderbookResult:
    """Paginated bid and ask collections of one market."""
    bids: PaginatedCollection[AnnotatedOrder]
    asks: PaginatedCollection[AnnotatedOrder]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bids": self.bids.to_dict(AnnotatedOrder.to_dict),
            "asks": self.asks.to_dict(AnnotatedOrder.to_dict),
        }


class OrderBookService:
    """
    Service class for order book aggregation and order lookups.

    Sits between the API layer and the external order store and collateral
    oracle. Every call builds its own collateral ledger; nothing is shared
    between requests.
    """

    def __init__(
        self,
        order_source: OrderSource,
        collateral_oracle: CollateralOracle,
        settings: Optional[Settings] = None,
        clock: Callable[[], int] = current_timestamp,
    ):
        """
        Initialize order book service.

        Args:
            order_source: Persisted order store
            collateral_oracle: Balance/allowance oracle
            settings: Configuration, defaults to the global settings
            clock: Source of the current unix time in seconds
        """
        self.order_source = order_source
        self.collateral_oracle = collateral_oracle
        self.settings = settings or get_settings()
        self.clock = clock
        self.request_filter = RequestFilter(self.settings.governance_address)
        self.freshness = FreshnessFilter(
            self.settings.order_expiration_buffer_seconds,
            alerter=get_logger().log_expired_orders,
            clock=clock,
        )
        self.logger = logging.getLogger(f"{__name__}.OrderBookService")
        self.logger.info("OrderBookService initialized")

    # ------------------------------------------------------------------
    # Collaborator access
    # ------------------------------------------------------------------

    async def _query(self, call: Awaitable, description: str):
        """Await an order store call, wrapping any failure."""
        try:
            return await call
        except BaseRelayerException:
            raise
        except Exception as e:
            self.logger.error(f"Order store {description} failed: {str(e)}", exc_info=True)
            raise OrderSourceException(
                f"Order store {description} failed: {str(e)}",
                details={"operation": description}
            ) from e

    async def load_ranked_market(self, market: Market) -> RankedMarket:
        """
        Load, freshness-filter and rank both sides of a market.

        Args:
            market: Market to load

        Returns:
            RankedMarket with bids and asks in priority order
        """
        tokens = frozenset(market.tokens)
        candidates = await self._query(
            self.order_source.find([OrderFieldFilters(maker_tokens=tokens, taker_tokens=tokens)]),
            "find",
        )

        bids = [o for o in candidates if market.side_of(o) == OrderSide.BID]
        asks = [o for o in candidates if market.side_of(o) == OrderSide.ASK]

        return RankedMarket(
            market=market,
            bids=OrderRanker.rank_bids(self.freshness.apply(bids)),
            asks=OrderRanker.rank_asks(self.freshness.apply(asks)),
        )

    async def snapshot_collateral(self, orders: Sequence[Order]) -> CollateralLedger:
        """Fetch one collateral ledger covering every maker/token in orders."""
        return await fetch_collateral_ledger(
            self.collateral_oracle,
            collect_collateral_pairs(orders),
            self.settings.exchange_proxy_address,
            batch_size=self.settings.collateral_batch_limit,
        )

    # ------------------------------------------------------------------
    # Folding
    # ------------------------------------------------------------------

    def fold_and_filter(
        self,
        orders: Sequence[Order],
        ledger: CollateralLedger,
        query: MarketQuery,
    ) -> Tuple[List[AnnotatedOrder], CollateralLedger]:
        """
        Fold every order over the ledger and keep those the query accepts.

        Every order draws on the ledger, accepted or not.
        """
        folded, ledger = fold_fillability((AnnotatedOrder.fresh(o) for o in orders), ledger)
        accepted = [a for a in folded if self.request_filter.accepts(a, query)]
        return accepted, ledger

    def first_accepted(
        self,
        orders: Sequence[Order],
        ledger: CollateralLedger,
        query: MarketQuery,
    ) -> Tuple[Optional[AnnotatedOrder], CollateralLedger]:
        """
        Fold orders over the ledger until one passes the query.

        Orders after the first accepted one are not folded and draw nothing.
        """
        for order in orders:
            annotated, ledger = apply_fillability(AnnotatedOrder.fresh(order), ledger)
            if self.request_filter.accepts(annotated, query):
                return annotated, ledger
        return None, ledger

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def _market_from_request(self, base_token: str, quote_token: str) -> Market:
        base = validate_address(base_token, "baseToken")
        quote = validate_address(quote_token, "quoteToken")
        if base == quote:
            raise ValidationException.for_field(
                "quoteToken",
                ValidationErrorCodes.VALUE_OUT_OF_RANGE,
                ValidationErrorReasons.TOKENS_MUST_DIFFER,
            )
        return Market(base, quote)

    async def get_order_book(
        self,
        page: int,
        per_page: int,
        base_token: str,
        quote_token: str,
    ) -> OrderbookResult:
        """
        Build the collateral-adjusted order book of one market.

        Bids draw on the collateral snapshot first; asks see what is left.

        Args:
            page: 1-based page number
            per_page: Page size, applied to bids and asks independently
            base_token: Base token address
            quote_token: Quote token address

        Returns:
            OrderbookResult with paginated bids and asks

        Raises:
            ValidationException: If the request is malformed
            CollaboratorException: If the store or oracle fails
        """
        validate_pagination(page, per_page, self.settings.max_per_page)
        market = self._market_from_request(base_token, quote_token)
        start_time = time.time()

        ranked = await self.load_ranked_market(market)
        ledger = await self.snapshot_collateral(ranked.orders)

        query = MarketQuery(page=page, per_page=per_page)
        bids, ledger = self.fold_and_filter(ranked.bids, ledger, query)
        asks, ledger = self.fold_and_filter(ranked.asks, ledger, query)

        get_logger().log_aggregation(
            str(market),
            len(bids),
            len(asks),
            execution_time_ms=(time.time() - start_time) * 1000,
        )

        return OrderbookResult(
            bids=paginate(bids, page, per_page),
            asks=paginate(asks, page, per_page),
        )

    async def get_orders(
        self,
        page: int,
        per_page: int,
        filters: Optional[OrderFieldFilters] = None,
        trader: Optional[str] = None,
        unfillable: bool = False,
    ) -> PaginatedCollection[Order]:
        """
        List orders matching field filters, sorted by hash.

        Args:
            page: 1-based page number
            per_page: Page size
            filters: Field filters
            trader: Match orders where this address is maker or taker
            unfillable: Also include orders removed from the book; requires
                filters.maker

        Returns:
            Paginated orders; removed orders follow the active page

        Raises:
            ValidationException: If unfillable is set without a maker
        """
        filters = filters or OrderFieldFilters()
        if unfillable and filters.maker is None:
            raise ValidationException.for_field(
                "maker",
                ValidationErrorCodes.REQUIRED_FIELD,
                ValidationErrorReasons.UNFILLABLE_REQUIRES_MAKER_ADDRESS,
            )
        validate_pagination(page, per_page, self.settings.max_per_page)

        if trader:
            trader = validate_address(trader, "trader")
            subqueries = [filters.with_changes(maker=trader), filters.with_changes(taker=trader)]
        else:
            subqueries = [filters]

        min_expiry = self.freshness.min_expiry()
        active_filters = [f.with_changes(expiry_gte=min_expiry) for f in subqueries]
        offset, limit = page_window(page, per_page)

        total = await self._query(self.order_source.count(active_filters), "count")
        orders = await self._query(
            self.order_source.find(active_filters, offset=offset, limit=limit),
            "find",
        )

        if unfillable:
            removed_filters = [f.with_changes(end_states=REMOVED_END_STATES) for f in subqueries]
            total += await self._query(
                self.order_source.count(removed_filters, removed=True), "count"
            )
            orders = orders + await self._query(
                self.order_source.find(removed_filters, offset=offset, limit=limit, removed=True),
                "find",
            )

        return PaginatedCollection(total=total, page=page, per_page=per_page, records=orders)

    async def get_order_by_hash(self, order_hash: str) -> Optional[Order]:
        """
        Look an order up by hash, active orders first, then removed ones.

        Returns:
            The order, or None if the store has never seen it
        """
        order = await self._query(self.order_source.get(order_hash), "get")
        if order is None:
            order = await self._query(self.order_source.get(order_hash, removed=True), "get")
        return order

    async def get_batch_orders(
        self,
        page: int,
        per_page: int,
        maker_tokens: Sequence[str],
        taker_tokens: Sequence[str],
    ) -> PaginatedCollection[Order]:
        """
        List fresh orders trading any of maker_tokens for any of taker_tokens.

        Expired orders are reported to the alert log and left out.
        """
        validate_pagination(page, per_page, self.settings.max_per_page)
        filters = OrderFieldFilters(
            maker_tokens=frozenset(validate_address(t, "makerToken") for t in maker_tokens),
            taker_tokens=frozenset(validate_address(t, "takerToken") for t in taker_tokens),
        )
        orders = await self._query(self.order_source.find([filters]), "find")
        return paginate(self.freshness.apply(orders), page, per_page)

    def fee_recipients(self, page: int, per_page: int) -> PaginatedCollection[str]:
        """The relayer's fee recipients, paginated."""
        validate_pagination(page, per_page, self.settings.max_per_page)
        return paginate([self.settings.fee_recipient_address.lower()], page, per_page)

    def order_config(self) -> Dict[str, str]:
        """Order parameters makers should sign to be accepted by this relayer."""
        return {
            "sender": NULL_ADDRESS,
            "feeRecipient": self.settings.fee_recipient_address.lower(),
            "takerTokenFeeAmount": str(self.settings.taker_fee_unit_amount),
        }
