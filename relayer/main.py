"""
FastAPI Application - Main Entry Point

REST API for the collateral-adjusted order book relayer.
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from relayer.config import get_settings
from relayer.services.collateral import CollateralOracle, InMemoryCollateralOracle
from relayer.services.order_source import InMemoryOrderSource, OrderSource
from relayer.services.orderbook_service import OrderBookService
from relayer.services.pool_source import InMemoryPoolSource, PoolSource
from relayer.services.price_feed_service import PriceFeedService
from relayer.utils.exceptions import (
    CollaboratorException,
    InvalidOrderException,
    OrderNotFoundException,
    ValidationException,
)
from relayer.utils.logger import get_logger

# Import routers
from relayer.api.routes import orderbook, prices
from relayer.api.models import HealthResponse, ErrorResponse

API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Global instances
order_source: OrderSource = None
collateral_oracle: CollateralOracle = None
pool_source: PoolSource = None
orderbook_service: OrderBookService = None
price_feed_service: PriceFeedService = None


def configure_services(
    source: OrderSource,
    oracle: CollateralOracle,
    pools: PoolSource,
) -> None:
    """
    Wire collaborators into the services and routers.

    Deployments swap the in-memory collaborators for database, RPC and
    pool-index backed ones by calling this before serving.
    """
    global order_source, collateral_oracle, pool_source, orderbook_service, price_feed_service

    settings = get_settings()
    order_source = source
    collateral_oracle = oracle
    pool_source = pools
    orderbook_service = OrderBookService(order_source, collateral_oracle, settings)
    price_feed_service = PriceFeedService(orderbook_service, pool_source)

    orderbook.set_orderbook_service(orderbook_service)
    prices.set_price_feed_service(price_feed_service)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.

    Initializes global services on startup unless they were configured
    beforehand.
    """
    settings = get_settings()
    get_logger(
        log_level=settings.log_level,
        log_dir=settings.log_dir or None,
        use_json=settings.use_json_logs,
    )

    logger.info("Starting order book relayer API")
    if orderbook_service is None:
        logger.info("No collaborators configured, using in-memory stores")
        configure_services(
            InMemoryOrderSource(),
            InMemoryCollateralOracle(max_batch_size=settings.collateral_batch_limit),
            InMemoryPoolSource(),
        )
    logger.info("API startup complete")

    yield

    logger.info("API shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Order Book Relayer API",
    description="""
    Collateral-adjusted order book and price feed for signed off-chain orders.

    ## Endpoints
    * **GET /sra/v4/orderbook**: Bids and asks sized to maker collateral
    * **GET /sra/v4/prices**: Best fillable bid/ask per market
    * **GET /sra/v4/orders**: Orders by field filters
    * **GET /sra/v4/orders/batch**: Orders by token sets
    * **GET /sra/v4/order/{order_hash}**: Order by hash
    * **GET /sra/v4/fee_recipients**: Fee recipients
    * **POST /sra/v4/order_config**: Order config
    """,
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request ID middleware
@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add unique request ID to each request for tracking."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id

    return response


def _error_response(status_code: int, error: str, message: str, **kwargs) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            message=message,
            timestamp=datetime.now(timezone.utc),
            **kwargs
        ).model_dump(mode='json', by_alias=True)
    )


# Exception handlers
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Validation error [{request_id}]: {exc.errors()}")

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "Request validation failed",
        detail=str(exc.errors()),
    )


@app.exception_handler(ValidationException)
async def constraint_violation_handler(request: Request, exc: ValidationException):
    """Handle structurally invalid queries."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Constraint violation [{request_id}]: {str(exc)}")

    return _error_response(
        status.HTTP_400_BAD_REQUEST,
        "ValidationError",
        str(exc),
        validation_errors=exc.errors,
    )


@app.exception_handler(InvalidOrderException)
async def invalid_order_exception_handler(request: Request, exc: InvalidOrderException):
    """Handle malformed order records or parameters."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Invalid order [{request_id}]: {str(exc)}")

    return _error_response(status.HTTP_400_BAD_REQUEST, "InvalidOrderException", str(exc))


@app.exception_handler(OrderNotFoundException)
async def order_not_found_exception_handler(request: Request, exc: OrderNotFoundException):
    """Handle order not found exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.warning(f"Order not found [{request_id}]: {str(exc)}")

    return _error_response(status.HTTP_404_NOT_FOUND, "OrderNotFoundException", str(exc))


@app.exception_handler(CollaboratorException)
async def collaborator_exception_handler(request: Request, exc: CollaboratorException):
    """Handle order store, oracle and discovery failures."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Collaborator failure [{request_id}]: {str(exc)}", exc_info=exc)

    return _error_response(
        status.HTTP_502_BAD_GATEWAY,
        type(exc).__name__,
        "An upstream dependency failed",
        detail="Contact support with request ID: " + request_id,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(f"Unhandled exception [{request_id}]: {str(exc)}", exc_info=True)

    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An internal error occurred",
        detail="Contact support with request ID: " + request_id,
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    """Health check endpoint."""
    order_count = len(order_source) if isinstance(order_source, InMemoryOrderSource) else -1

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=API_VERSION,
        orders=order_count,
    )


# Include routers
app.include_router(orderbook.router)
app.include_router(prices.router)


@app.get("/", tags=["root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Order Book Relayer API",
        "version": API_VERSION,
        "status": "operational",
        "docs": "/docs",
        "health": "/health"
    }


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(
        "relayer.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
        reload=False,
        log_level="info"
    )
