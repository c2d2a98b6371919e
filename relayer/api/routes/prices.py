"""
REST API endpoint for the multi-market price feed.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Depends, Query, status

from relayer.config import get_settings
from relayer.api.models import ErrorResponse, PaginatedPricesResponse, PriceRecordModel
from relayer.core.market import MarketQuery
from relayer.services.price_feed_service import PriceFeedService
from relayer.utils.validators import validate_optional_address

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/sra/v4", tags=["prices"])


_price_feed_service: PriceFeedService = None


def get_price_feed_service() -> PriceFeedService:
    """Dependency to get PriceFeedService instance."""
    if _price_feed_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Price feed service not initialized"
        )
    return _price_feed_service


def set_price_feed_service(service: PriceFeedService) -> None:
    """Set the global PriceFeedService instance."""
    global _price_feed_service
    _price_feed_service = service


def _unset_if_negative(value: Optional[int]) -> Optional[int]:
    # -1 is the legacy "not set" marker
    return None if value is None or value < 0 else value


@router.get(
    "/prices",
    response_model=PaginatedPricesResponse,
    summary="Best bid and ask per market",
    description="Best fillable bid and ask of every discovered market, "
                "with collateral shared across markets",
    responses={
        400: {"description": "Invalid request", "model": ErrorResponse},
        502: {"description": "A collaborator failed", "model": ErrorResponse},
    },
)
async def get_prices(
    page: int = Query(default=settings.default_page),
    per_page: int = Query(default=settings.default_per_page, alias="perPage"),
    created_by: Optional[str] = Query(None, alias="createdBy", description="Pool creator"),
    taker: Optional[str] = Query(None, description="Only orders reserved for this taker"),
    fee_recipient: Optional[str] = Query(None, alias="feeRecipient"),
    taker_token_fee: Optional[int] = Query(
        None, alias="takerTokenFee", description="Expected fee in units of 0.001%"
    ),
    threshold: Optional[int] = Query(None, description="Minimum fillable taker amount"),
    price_feed_service: PriceFeedService = Depends(get_price_feed_service),
) -> PaginatedPricesResponse:
    """
    Get best prices.

    **Query Parameters:**
    - `page`, `perPage`: Pool page to scan (two markets per pool)
    - `taker`, `feeRecipient`: Order constraints (null address = any)
    - `takerTokenFee`: Fee tolerance unit; omit or -1 to skip the fee check
    - `threshold`: Liquidity floor in taker token units; omit or -1 to skip
    """
    query = MarketQuery(
        page=page,
        per_page=per_page,
        taker=validate_optional_address(taker, "taker"),
        fee_recipient=validate_optional_address(fee_recipient, "feeRecipient"),
        taker_token_fee=_unset_if_negative(taker_token_fee),
        threshold=_unset_if_negative(threshold),
        created_by=validate_optional_address(created_by, "createdBy"),
    )

    prices = await price_feed_service.get_prices(query)
    return PaginatedPricesResponse(
        total=prices.total,
        page=prices.page,
        per_page=prices.per_page,
        records=[PriceRecordModel(**record.to_dict()) for record in prices.records],
    )
