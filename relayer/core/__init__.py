"""
Core domain models and order book aggregation logic
"""

from .order import Order, OrderState, AnnotatedOrder, OrderEventEndState
from .market import Market, MarketQuery, OrderSide, Pool, markets_from_pools
from .pagination import PaginatedCollection, paginate
from .freshness import FreshnessFilter, group_by_freshness
from .ranking import OrderRanker
from .fillability import CollateralLedger, apply_fillability, fold_fillability
from .request_filter import RequestFilter, DUST_FLOOR

__all__ = [
    "Order",
    "OrderState",
    "AnnotatedOrder",
    "OrderEventEndState",
    "Market",
    "MarketQuery",
    "OrderSide",
    "Pool",
    "markets_from_pools",
    "PaginatedCollection",
    "paginate",
    "FreshnessFilter",
    "group_by_freshness",
    "OrderRanker",
    "CollateralLedger",
    "apply_fillability",
    "fold_fillability",
    "RequestFilter",
    "DUST_FLOOR",
]
