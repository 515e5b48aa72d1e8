# wealthdesk/main.py
"""
FastAPI application entry point.

This file:
- Configures application-wide logging
- Creates the FastAPI application
- Registers global exception handlers
- Registers all routers
- Defines global endpoints (health checks)
"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from wealthdesk.config import settings
from wealthdesk.database import get_db
from wealthdesk.middleware import CorrelationIdMiddleware
from wealthdesk.routers import market_data_router, portfolio_router, transactions_router
from wealthdesk.schemas.errors import ErrorDetail, ValidationErrorDetail
from wealthdesk.services.exceptions import (
    HistoryRangeTooLargeError,
    InvalidCalendarError,
    MarketDataError,
    NotFoundError,
    OversellError,
    ProviderUnavailableError,
    RateLimitError,
    ServiceError,
    TickerNotFoundError,
    ValidationError,
)
from wealthdesk.utils import setup_logging

logger = logging.getLogger(__name__)

# =============================================================================
# LOGGING SETUP (must be before app creation)
# =============================================================================

setup_logging()

# =============================================================================
# APPLICATION SETUP
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Portfolio holdings and valuation engine for client profiles",
    version="0.1.0",
)

# =============================================================================
# MIDDLEWARE (order matters: last added = first executed)
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Correlation-ID"],
)

app.add_middleware(CorrelationIdMiddleware)


# =============================================================================
# GLOBAL EXCEPTION HANDLERS
# =============================================================================
# Service-layer exceptions carry no HTTP knowledge; these handlers map them
# to consistent ErrorDetail responses. The most specific handler wins.
# =============================================================================

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    """Handle missing profiles, accounts and transactions (404)."""
    logger.warning(f"Not found: {exc}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={
                "resource_type": exc.resource_type,
                "resource_id": exc.resource_id,
            },
        ).model_dump(),
    )


@app.exception_handler(OversellError)
async def oversell_handler(request: Request, exc: OversellError) -> JSONResponse:
    """Handle rejected ledger writes (400)."""
    logger.warning(f"Oversell rejected: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="OversellError",
            message=str(exc),
            details={
                "ticker": exc.ticker,
                "trade_date": exc.trade_date.isoformat(),
                "requested": str(exc.requested),
                "available": str(exc.available),
            },
        ).model_dump(),
    )


@app.exception_handler(InvalidCalendarError)
async def invalid_calendar_handler(request: Request, exc: InvalidCalendarError) -> JSONResponse:
    """Handle unknown history calendars (400)."""
    logger.warning(f"Invalid calendar: {exc.calendar}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="InvalidCalendarError",
            message=str(exc),
            details={
                "calendar": exc.calendar,
                "valid_options": ["trading", "daily", "weekly", "monthly"],
            },
        ).model_dump(),
    )


@app.exception_handler(HistoryRangeTooLargeError)
async def history_range_handler(request: Request, exc: HistoryRangeTooLargeError) -> JSONResponse:
    """Handle history ranges over the configured maximum (400)."""
    logger.warning(f"History range too large: {exc.days} days")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error="HistoryRangeTooLargeError",
            message=str(exc),
            details={"days": exc.days, "max_days": exc.max_days},
        ).model_dump(),
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Handle other validation errors (400)."""
    logger.warning(f"Validation error: {exc}")
    return JSONResponse(
        status_code=400,
        content=ErrorDetail(
            error=type(exc).__name__,
            message=str(exc),
            details={"field": exc.field} if exc.field else None,
        ).model_dump(),
    )


@app.exception_handler(TickerNotFoundError)
async def ticker_not_found_handler(request: Request, exc: TickerNotFoundError) -> JSONResponse:
    """Handle ticker not found on market data provider (404)."""
    logger.warning(f"Ticker not found on provider: {exc.ticker}")
    return JSONResponse(
        status_code=404,
        content=ErrorDetail(
            error="TickerNotFoundError",
            message=str(exc),
            details={"ticker": exc.ticker},
        ).model_dump(),
    )


@app.exception_handler(ProviderUnavailableError)
async def provider_unavailable_handler(request: Request, exc: ProviderUnavailableError) -> JSONResponse:
    """Handle market data provider unavailable (503)."""
    logger.error(f"Provider unavailable: {exc}")
    return JSONResponse(
        status_code=503,
        content=ErrorDetail(
            error="ProviderUnavailableError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(RateLimitError)
async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
    """Handle provider rate limit exceeded (429)."""
    logger.warning(f"Rate limit exceeded: {exc}")
    return JSONResponse(
        status_code=429,
        content=ErrorDetail(
            error="RateLimitError",
            message=str(exc),
            details={"retry_after": exc.retry_after} if exc.retry_after else None,
        ).model_dump(),
    )


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    """Handle generic market data errors (503)."""
    logger.error(f"Market data error: {exc}")
    return JSONResponse(
        status_code=503,
        content=ErrorDetail(
            error="MarketDataError",
            message=str(exc),
            details={"provider": exc.provider} if exc.provider else None,
        ).model_dump(),
    )


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle generic service errors (500)."""
    logger.error(f"Service error: {exc}")
    return JSONResponse(
        status_code=500,
        content=ErrorDetail(
            error="ServiceError",
            message=str(exc),
            details=None,
        ).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Convert FastAPI's default 422 body to ValidationErrorDetail."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=422,
        content=ValidationErrorDetail(details=errors).model_dump(),
    )


# =============================================================================
# ROUTER REGISTRATION
# =============================================================================

app.include_router(portfolio_router)  # /profiles/{id}/portfolio/*
app.include_router(transactions_router)  # /profiles/{id}/transactions/*
app.include_router(market_data_router)  # /profiles/{id}/market-data/*


# =============================================================================
# GLOBAL ENDPOINTS
# =============================================================================

@app.get("/", tags=["Health"])
def root():
    return {
        "message": f"Welcome to {settings.app_name}!",
        "docs": "/docs",
    }


@app.get("/health", tags=["Health"])
def health_check(db: Session = Depends(get_db)):
    """
    Returns HTTP 503 when the database is unreachable, so load balancers
    can take the instance out of rotation.
    """
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "checks": {"database": {"status": "unhealthy", "error": str(e)}},
            },
        )

    return {
        "status": "healthy",
        "checks": {
            "database": {
                "status": "healthy",
                "backend": "sqlite" if settings.is_sqlite else "postgresql",
            },
        },
    }
