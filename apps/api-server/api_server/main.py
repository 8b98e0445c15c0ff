"""FastAPI application for the Market Pulse API server.

Stateless proxy over public market data and news sources.  Routers live in
``api_server.routers``; core parsing, provider adapters and analytics live
in the ``marketdata`` package.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api_server.config import get_settings
from api_server.logging import configure_logging
from api_server.routers import market, news
from marketdata.errors import (
    InsufficientData,
    MarketDataError,
    MissingRequiredInput,
    NoUsableSource,
    UnsupportedCapability,
    UpstreamError,
)

logger = structlog.get_logger(__name__)

_ERROR_TEXT_LIMIT = 200


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Configure logging and report which provider keys are present."""
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
    logger.info(
        "api_server_starting",
        finnhub_key=bool(settings.FINNHUB_API_KEY),
        alpha_vantage_key=bool(settings.ALPHA_VANTAGE_API_KEY),
        news_api_key=bool(settings.NEWS_API_KEY),
    )

    yield

    logger.info("shutdown_complete")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(title="Market Pulse API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(news.router)
app.include_router(market.router)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _status_for(exc: MarketDataError) -> int:
    if isinstance(exc, (MissingRequiredInput, UnsupportedCapability)):
        return 400
    if isinstance(exc, InsufficientData):
        return 422
    if isinstance(exc, (UpstreamError, NoUsableSource)):
        return 502
    return 500


@app.exception_handler(MarketDataError)
async def market_data_error_handler(request: Request, exc: MarketDataError) -> JSONResponse:
    status_code = _status_for(exc)
    logger.warning(
        "request_failed",
        path=request.url.path,
        status_code=status_code,
        error_type=type(exc).__name__,
        error=str(exc)[:_ERROR_TEXT_LIMIT],
    )
    return JSONResponse(status_code=status_code, content={"error": str(exc)[:_ERROR_TEXT_LIMIT]})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


# ---------------------------------------------------------------------------
# REST endpoints
# ---------------------------------------------------------------------------


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness / readiness probe."""
    return {"status": "ok"}


@app.get("/config/keys")
async def configured_keys() -> dict[str, bool]:
    """Which provider keys the server holds (never the keys themselves)."""
    settings = get_settings()
    return {
        "alphaVantage": bool(settings.ALPHA_VANTAGE_API_KEY),
        "finnhub": bool(settings.FINNHUB_API_KEY),
        "newsApi": bool(settings.NEWS_API_KEY),
    }


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT, log_config=None)
