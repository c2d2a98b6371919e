"""
Pydantic models for API request/response validation.

This module defines all data models used in the REST API. Token amounts
travel as base-10 strings so no client ever parses them as floats.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, ConfigDict

from relayer.core.order import AnnotatedOrder, Order
from relayer.core.pagination import PaginatedCollection

ADDRESS_PATTERN = r'^0x[0-9a-fA-F]{40}$'


# ============================================================================
# Request Models
# ============================================================================

class OrderConfigRequest(BaseModel):
    """Request model for the order config endpoint."""

    model_config = ConfigDict(populate_by_name=True, json_schema_extra={
        "example": {
            "maker": "0x9e56625509c2f60af937f23b7b532600390e8c8b",
            "taker": "0x0000000000000000000000000000000000000000",
            "makerAmount": "1000000000000000000",
            "takerAmount": "2000000000000000000",
            "makerToken": "0xe41d2489571d322189246dafa5ebde1f4699f498",
            "takerToken": "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",
            "expiry": "1532560590"
        }
    })

    maker: str = Field(..., pattern=ADDRESS_PATTERN)
    taker: Optional[str] = Field(None, pattern=ADDRESS_PATTERN)
    maker_amount: str = Field(..., alias="makerAmount", pattern=r'^\d+$')
    taker_amount: str = Field(..., alias="takerAmount", pattern=r'^\d+$')
    maker_token: str = Field(..., alias="makerToken", pattern=ADDRESS_PATTERN)
    taker_token: str = Field(..., alias="takerToken", pattern=ADDRESS_PATTERN)
    expiry: str = Field(..., pattern=r'^\d+$')


# ============================================================================
# Response Models
# ============================================================================

class OrderModel(BaseModel):
    """A signed order on the wire."""

    model_config = ConfigDict(populate_by_name=True)

    maker: str
    taker: str
    maker_token: str = Field(..., alias="makerToken")
    taker_token: str = Field(..., alias="takerToken")
    maker_amount: str = Field(..., alias="makerAmount")
    taker_amount: str = Field(..., alias="takerAmount")
    taker_token_fee_amount: str = Field(..., alias="takerTokenFeeAmount")
    fee_recipient: str = Field(..., alias="feeRecipient")
    expiry: str
    salt: str
    pool: str

    @classmethod
    def from_order(cls, order: Order) -> 'OrderModel':
        """Create from Order object."""
        return cls(**order.to_dict())


class OrderMetaDataModel(BaseModel):
    """Per-order metadata computed by the relayer."""

    model_config = ConfigDict(populate_by_name=True)

    order_hash: str = Field(..., alias="orderHash")
    remaining_fillable_taker_amount: str = Field(..., alias="remainingFillableTakerAmount")


class SRAOrderModel(BaseModel):
    """An order with its metadata."""

    order: OrderModel
    meta_data: OrderMetaDataModel = Field(..., alias="metaData")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_annotated(cls, annotated: AnnotatedOrder) -> 'SRAOrderModel':
        """Create from an AnnotatedOrder, keeping its adjusted fillable amount."""
        return cls.model_validate(annotated.to_dict())

    @classmethod
    def from_order(cls, order: Order) -> 'SRAOrderModel':
        """Create from a stored Order with the remaining amount the store recorded."""
        return cls.from_annotated(AnnotatedOrder.fresh(order))


class PaginatedOrdersResponse(BaseModel):
    """Paginated collection of orders."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    per_page: int = Field(..., alias="perPage")
    records: List[SRAOrderModel]

    @classmethod
    def from_annotated(cls, collection: PaginatedCollection) -> 'PaginatedOrdersResponse':
        return cls(
            total=collection.total,
            page=collection.page,
            per_page=collection.per_page,
            records=[SRAOrderModel.from_annotated(a) for a in collection.records],
        )

    @classmethod
    def from_orders(cls, collection: PaginatedCollection) -> 'PaginatedOrdersResponse':
        return cls(
            total=collection.total,
            page=collection.page,
            per_page=collection.per_page,
            records=[SRAOrderModel.from_order(o) for o in collection.records],
        )


class OrderbookResponse(BaseModel):
    """Response model for an order book."""

    bids: PaginatedOrdersResponse
    asks: PaginatedOrdersResponse


class PriceRecordModel(BaseModel):
    """Best bid and ask of one market; empty objects when absent."""

    model_config = ConfigDict(populate_by_name=True)

    base_token: str = Field(..., alias="baseToken")
    quote_token: str = Field(..., alias="quoteToken")
    bid: Dict[str, Any] = Field(default_factory=dict)
    ask: Dict[str, Any] = Field(default_factory=dict)


class PaginatedPricesResponse(BaseModel):
    """Paginated price feed."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    per_page: int = Field(..., alias="perPage")
    records: List[PriceRecordModel]


class FeeRecipientsResponse(BaseModel):
    """Paginated fee recipients."""

    model_config = ConfigDict(populate_by_name=True)

    total: int
    page: int
    per_page: int = Field(..., alias="perPage")
    records: List[str]


class OrderConfigResponse(BaseModel):
    """Order parameters the relayer expects."""

    model_config = ConfigDict(populate_by_name=True)

    sender: str
    fee_recipient: str = Field(..., alias="feeRecipient")
    taker_token_fee_amount: str = Field(..., alias="takerTokenFeeAmount")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Check timestamp")
    version: str = Field(..., description="API version")
    orders: int = Field(..., description="Active orders in the store, -1 if unknown")


class ValidationErrorItem(BaseModel):
    """One field-level validation failure."""

    field: str
    code: str
    reason: str


class ErrorResponse(BaseModel):
    """Response model for errors."""

    error: str = Field(..., description="Error type")
    message: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    validation_errors: List[ValidationErrorItem] = Field(
        default_factory=list,
        alias="validationErrors",
        description="Field-level validation failures"
    )
    timestamp: datetime = Field(..., description="Error timestamp")

    model_config = ConfigDict(populate_by_name=True)
