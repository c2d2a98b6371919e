"""
REST API endpoints for the order book and order queries.

Provides the collateral-adjusted order book, order listings and the
relayer's fee configuration.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Depends, Query, status

from relayer.config import get_settings
from relayer.api.models import (
    ErrorResponse,
    FeeRecipientsResponse,
    OrderConfigRequest,
    OrderConfigResponse,
    OrderbookResponse,
    PaginatedOrdersResponse,
    SRAOrderModel,
)
from relayer.services.order_source import OrderFieldFilters
from relayer.services.orderbook_service import OrderBookService
from relayer.utils.exceptions import OrderNotFoundException
from relayer.utils.validators import validate_address

logger = logging.getLogger(__name__)
settings = get_settings()

# Create router
router = APIRouter(prefix="/sra/v4", tags=["orderbook"])


# Dependency injection for OrderBookService
# This will be overridden in main.py with actual instance
_orderbook_service: OrderBookService = None


def get_orderbook_service() -> OrderBookService:
    """Dependency to get OrderBookService instance."""
    if _orderbook_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Order book service not initialized"
        )
    return _orderbook_service


def set_orderbook_service(service: OrderBookService) -> None:
    """Set the global OrderBookService instance."""
    global _orderbook_service
    _orderbook_service = service


def _optional_address(value: Optional[str], field: str) -> Optional[str]:
    return validate_address(value, field) if value is not None else None


ERROR_RESPONSES = {
    400: {"description": "Invalid request", "model": ErrorResponse},
    502: {"description": "Order store or collateral oracle failed", "model": ErrorResponse},
    503: {"description": "Service unavailable"},
}


@router.get(
    "/orderbook",
    response_model=OrderbookResponse,
    summary="Get collateral-adjusted order book",
    description="Bids and asks of a market, sized to what makers can fill right now",
    responses=ERROR_RESPONSES,
)
async def get_orderbook(
    base_token: str = Query(..., alias="baseToken", description="Base token address"),
    quote_token: str = Query(..., alias="quoteToken", description="Quote token address"),
    page: int = Query(default=settings.default_page, description="1-based page number"),
    per_page: int = Query(default=settings.default_per_page, alias="perPage", description="Page size"),
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> OrderbookResponse:
    """
    Get the order book of a market.

    **Query Parameters:**
    - `baseToken`, `quoteToken`: Market token addresses
    - `page`, `perPage`: Pagination, applied to bids and asks separately

    **Example:**
    ```
    GET /sra/v4/orderbook?baseToken=0x...&quoteToken=0x...&page=1&perPage=20
    ```
    """
    logger.debug(f"Order book request {base_token}/{quote_token} page={page} perPage={per_page}")

    result = await orderbook_service.get_order_book(page, per_page, base_token, quote_token)

    return OrderbookResponse(
        bids=PaginatedOrdersResponse.from_annotated(result.bids),
        asks=PaginatedOrdersResponse.from_annotated(result.asks),
    )


@router.get(
    "/orders",
    response_model=PaginatedOrdersResponse,
    summary="List orders",
    description="Fresh orders matching field filters, sorted by order hash",
    responses=ERROR_RESPONSES,
)
async def get_orders(
    page: int = Query(default=settings.default_page),
    per_page: int = Query(default=settings.default_per_page, alias="perPage"),
    maker: Optional[str] = Query(None),
    taker: Optional[str] = Query(None),
    maker_token: Optional[str] = Query(None, alias="makerToken"),
    taker_token: Optional[str] = Query(None, alias="takerToken"),
    fee_recipient: Optional[str] = Query(None, alias="feeRecipient"),
    trader: Optional[str] = Query(None, description="Maker or taker address"),
    unfillable: bool = Query(False, description="Include orders removed from the book"),
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> PaginatedOrdersResponse:
    """List orders; `unfillable=true` requires `maker`."""
    filters = OrderFieldFilters(
        maker=_optional_address(maker, "maker"),
        taker=_optional_address(taker, "taker"),
        maker_token=_optional_address(maker_token, "makerToken"),
        taker_token=_optional_address(taker_token, "takerToken"),
        fee_recipient=_optional_address(fee_recipient, "feeRecipient"),
    )

    orders = await orderbook_service.get_orders(
        page,
        per_page,
        filters,
        trader=trader,
        unfillable=unfillable,
    )
    return PaginatedOrdersResponse.from_orders(orders)


@router.get(
    "/orders/batch",
    response_model=PaginatedOrdersResponse,
    summary="List orders for token sets",
    responses=ERROR_RESPONSES,
)
async def get_batch_orders(
    maker_tokens: List[str] = Query(..., alias="makerTokens"),
    taker_tokens: List[str] = Query(..., alias="takerTokens"),
    page: int = Query(default=settings.default_page),
    per_page: int = Query(default=settings.default_per_page, alias="perPage"),
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> PaginatedOrdersResponse:
    """Fresh orders trading any of `makerTokens` for any of `takerTokens`."""
    orders = await orderbook_service.get_batch_orders(page, per_page, maker_tokens, taker_tokens)
    return PaginatedOrdersResponse.from_orders(orders)


@router.get(
    "/order/{order_hash}",
    response_model=SRAOrderModel,
    summary="Get order by hash",
    responses={
        404: {"description": "Order not found", "model": ErrorResponse},
        502: ERROR_RESPONSES[502],
    },
)
async def get_order(
    order_hash: str,
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> SRAOrderModel:
    """Get a single order, active or removed, by its hash."""
    order = await orderbook_service.get_order_by_hash(order_hash)
    if order is None:
        raise OrderNotFoundException(
            f"Order {order_hash} not found",
            details={"order_hash": order_hash}
        )
    return SRAOrderModel.from_order(order)


@router.get(
    "/fee_recipients",
    response_model=FeeRecipientsResponse,
    summary="List fee recipients",
)
async def get_fee_recipients(
    page: int = Query(default=settings.default_page),
    per_page: int = Query(default=settings.default_per_page, alias="perPage"),
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> FeeRecipientsResponse:
    """Fee recipients used by this relayer."""
    recipients = orderbook_service.fee_recipients(page, per_page)
    return FeeRecipientsResponse(**recipients.to_dict())


@router.post(
    "/order_config",
    response_model=OrderConfigResponse,
    summary="Get order config",
    description="Sender, fee recipient and taker fee a maker should sign",
)
async def post_order_config(
    order_config_request: OrderConfigRequest,
    orderbook_service: OrderBookService = Depends(get_orderbook_service),
) -> OrderConfigResponse:
    """Order config for a prospective order; independent of the order's terms."""
    logger.debug(f"Order config requested by {order_config_request.maker}")
    return OrderConfigResponse(**orderbook_service.order_config())
