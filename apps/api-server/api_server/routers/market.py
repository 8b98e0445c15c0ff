"""Market data API endpoints.

Quotes, price history, fundamentals, technical analysis, valuation,
sector performance, analyst consensus, news sentiment and the valuation
screener.  Each endpoint has a single upstream source; upstream failures
surface as 502 with the upstream message (see ``api_server.main`` for the
error mapping).
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Query

from api_server.config import Settings, get_settings
from api_server.deps import (
    get_alpha_vantage,
    get_finnhub,
    get_selected_provider,
    get_yahoo,
    require_symbol,
)
from marketdata.analytics.technical import analyze
from marketdata.analytics.valuation import score
from marketdata.data.screener import screen_symbols
from marketdata.data.sectors import merge_sector_performance
from marketdata.models import SectorRecord
from marketdata.providers import AlphaVantageProvider, FinnhubProvider, MarketDataProvider, YahooProvider

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/market", tags=["market"])

HISTORY_RANGE = "10d"
MAX_HISTORY_DAYS = 20


# ---------------------------------------------------------------------------
# Quotes and history
# ---------------------------------------------------------------------------


@router.get("/quote")
async def quote(
    ticker: str | None = None,
    finnhub: FinnhubProvider = Depends(get_finnhub),
) -> dict[str, Any]:
    """Latest stock quote from Finnhub."""
    symbol = require_symbol(ticker)
    result = await finnhub.fetch_quote(symbol)
    return result.to_dict()


@router.get("/index-quote")
async def index_quote(
    ticker: str | None = None,
    yahoo: YahooProvider = Depends(get_yahoo),
) -> dict[str, Any]:
    """Index or ETF quote (``^GSPC``, ``SPY``) from Yahoo chart metadata."""
    symbol = require_symbol(ticker)
    result = await yahoo.fetch_quote(symbol)
    return result.to_dict()


@router.get("/history")
async def history(
    ticker: str | None = None,
    days: int = Query(5, ge=1, le=MAX_HISTORY_DAYS),
    yahoo: YahooProvider = Depends(get_yahoo),
) -> dict[str, Any]:
    """Last ``days + 1`` daily closes, enough for ``days`` day-over-day moves."""
    symbol = require_symbol(ticker)
    range_ = HISTORY_RANGE if days < 6 else "1mo"
    series = await yahoo.fetch_series(symbol, range_)
    closes = series[-(days + 1):]
    return {"symbol": symbol, "closes": [point.to_dict() for point in closes]}


@router.get("/series")
async def series(
    ticker: str | None = None,
    range_: str = Query("1y", alias="range"),
    provider: MarketDataProvider = Depends(get_selected_provider),
) -> dict[str, Any]:
    """Ascending daily close series from the selected provider."""
    symbol = require_symbol(ticker)
    points = await provider.fetch_series(symbol, range_)
    return {
        "symbol": symbol,
        "provider": provider.name,
        "series": [point.to_dict() for point in points],
    }


# ---------------------------------------------------------------------------
# Fundamentals and analytics
# ---------------------------------------------------------------------------


@router.get("/overview")
async def overview(
    ticker: str | None = None,
    provider: MarketDataProvider = Depends(get_selected_provider),
) -> dict[str, Any]:
    """Normalised fundamentals overview; unavailable metrics are null."""
    symbol = require_symbol(ticker)
    result = await provider.fetch_fundamentals(symbol)
    return result.to_dict()


@router.get("/valuation")
async def valuation(
    ticker: str | None = None,
    provider: MarketDataProvider = Depends(get_selected_provider),
) -> dict[str, Any]:
    """Fundamentals plus ranking score, valuation bucket and flags."""
    symbol = require_symbol(ticker)
    fundamentals = await provider.fetch_fundamentals(symbol)
    result = score(fundamentals)
    logger.info(
        "valuation_scored",
        symbol=symbol,
        provider=provider.name,
        valuation=result.valuation.value,
        metrics_used=result.metrics_used,
    )
    return result.to_dict()


@router.get("/chart-analysis")
async def chart_analysis(
    ticker: str | None = None,
    range_: str = Query("1y", alias="range"),
    provider: MarketDataProvider = Depends(get_selected_provider),
) -> dict[str, Any]:
    """Support/resistance, pattern, trend and moving averages for a symbol."""
    symbol = require_symbol(ticker)
    points = await provider.fetch_series(symbol, range_)
    analysis = analyze(points, symbol=symbol)
    return {
        **analysis.to_dict(),
        "series": [point.to_dict() for point in points],
    }


@router.get("/recommendation")
async def recommendation(
    ticker: str | None = None,
    finnhub: FinnhubProvider = Depends(get_finnhub),
) -> dict[str, Any]:
    """Analyst consensus (BUY / HOLD / SELL) from the latest Finnhub period."""
    symbol = require_symbol(ticker)
    result = await finnhub.fetch_recommendations(symbol)
    return result.to_dict()


@router.get("/news-sentiment")
async def news_sentiment(
    ticker: str | None = None,
    finnhub: FinnhubProvider = Depends(get_finnhub),
) -> dict[str, Any]:
    """Finnhub company news sentiment: bullish share, news score and buzz."""
    symbol = require_symbol(ticker)
    result = await finnhub.fetch_news_sentiment(symbol)
    return result.to_dict()


# ---------------------------------------------------------------------------
# Sectors
# ---------------------------------------------------------------------------


@router.get("/sectors")
async def sectors(alpha_vantage: AlphaVantageProvider = Depends(get_alpha_vantage)) -> dict[str, Any]:
    """Live 1w / 1m / 3m sector performance keyed by provider label."""
    live = await alpha_vantage.fetch_sector_performance()
    return {"sectors": {label: perf.to_dict() for label, perf in live.items()}}


@router.post("/sectors/merge")
async def sectors_merge(
    static_sectors: list[SectorRecord],
    alpha_vantage: AlphaVantageProvider = Depends(get_alpha_vantage),
) -> dict[str, Any]:
    """Overlay live performance onto the caller's static sector list."""
    live = await alpha_vantage.fetch_sector_performance()
    merged = merge_sector_performance(static_sectors, live)
    return {"sectors": [record.to_dict() for record in merged]}


# ---------------------------------------------------------------------------
# Screener
# ---------------------------------------------------------------------------


@router.get("/screener")
async def screener(
    symbols: str | None = None,
    provider: MarketDataProvider = Depends(get_selected_provider),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Score and rank fundamentals for a comma-separated symbol list.

    Defaults to ``SCREENER_SYMBOLS``.  Symbols are fetched sequentially;
    Alpha Vantage calls are spaced by the shared rate limiter.
    """
    requested = [s for s in (symbols or "").split(",") if s.strip()] or settings.screener_symbols
    result = await screen_symbols(provider, requested)
    return result.to_dict()
