"""Yahoo Finance adapter (chart and quoteSummary JSON endpoints).

Both endpoints are unauthenticated but reject non-browser user agents, so
requests go out with the browser User-Agent from :mod:`marketdata.http`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from urllib.parse import quote

import structlog

from marketdata.errors import MalformedUpstreamPayload
from marketdata.models import FundamentalsOverview, NormalizedQuote, NormalizedSeries, PricePoint
from marketdata.providers.base import MarketDataProvider

logger = structlog.get_logger(__name__)

CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
QUOTE_SUMMARY_URL = "https://query1.finance.yahoo.com/v10/finance/quoteSummary/{symbol}"
QUOTE_SUMMARY_MODULES = "summaryDetail,defaultKeyStatistics,financialData,price"

PROVIDER = "yahoo"


# ---------------------------------------------------------------------------
# Mapping functions
# ---------------------------------------------------------------------------


def unix_to_date(ts: int | float) -> str:
    """Unix seconds -> ``YYYY-MM-DD`` (UTC calendar date)."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).date().isoformat()


def _chart_result(payload: Any) -> dict[str, Any]:
    try:
        result = payload["chart"]["result"][0]
    except (KeyError, IndexError, TypeError) as exc:
        error = None
        if isinstance(payload, dict) and isinstance(payload.get("chart"), dict):
            error = payload["chart"].get("error")
        raise MalformedUpstreamPayload(
            PROVIDER, f"missing chart.result[0]{f' ({error})' if error else ''}"
        ) from exc
    if not isinstance(result, dict):
        raise MalformedUpstreamPayload(PROVIDER, "chart.result[0] is not an object")
    return result


def parse_chart_series(payload: Any) -> NormalizedSeries:
    """Map a chart response to ascending ``{date, close}`` points.

    Null closes (holidays, halted sessions) are dropped, never zero-filled.
    """
    result = _chart_result(payload)
    timestamps = result.get("timestamp") or []
    try:
        closes = result["indicators"]["quote"][0].get("close") or []
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedUpstreamPayload(PROVIDER, "missing indicators.quote[0].close") from exc

    points = [
        PricePoint(date=unix_to_date(ts), close=float(close))
        for ts, close in zip(timestamps, closes)
        if ts is not None and close is not None
    ]
    points.sort(key=lambda p: p.date)
    return points


def _closes(result: dict[str, Any]) -> list[float]:
    try:
        closes = result["indicators"]["quote"][0].get("close") or []
    except (KeyError, IndexError, TypeError, AttributeError):
        return []
    return [float(c) for c in closes if c is not None]


def previous_session_close(result: dict[str, Any]) -> float | None:
    """Close of the session before the latest one.

    ``chartPreviousClose`` is the close before the chart *window* starts, so
    it only stands in for the previous session when the window has one bar.
    """
    meta = result.get("meta") or {}
    if meta.get("previousClose"):
        return float(meta["previousClose"])
    closes = _closes(result)
    if len(closes) >= 2:
        return closes[-2]
    if meta.get("chartPreviousClose"):
        return float(meta["chartPreviousClose"])
    return None


def parse_chart_quote(payload: Any, symbol: str = "") -> NormalizedQuote:
    """Map chart ``meta`` to a quote, deriving change from the previous session."""
    result = _chart_result(payload)
    meta = result.get("meta") or {}
    price = meta.get("regularMarketPrice")
    if price is None:
        raise MalformedUpstreamPayload(PROVIDER, "meta.regularMarketPrice missing")

    change = meta.get("regularMarketChange")
    change_percent = meta.get("regularMarketChangePercent")
    if change is None or change_percent is None:
        previous = previous_session_close(result)
        if change is None and previous:
            change = price - previous
        if change_percent is None and previous:
            change_percent = (price - previous) / previous * 100

    return NormalizedQuote(
        symbol=meta.get("symbol") or symbol,
        price=float(price),
        change=float(change or 0.0),
        change_percent=float(change_percent or 0.0),
    )


def raw(container: Any, key: str) -> float | None:
    """``container[key].raw`` or None when either level is absent."""
    if not isinstance(container, dict):
        return None
    field = container.get(key)
    if isinstance(field, dict):
        value = field.get("raw")
        return float(value) if isinstance(value, (int, float)) else None
    return None


def parse_quote_summary(payload: Any, symbol: str) -> FundamentalsOverview:
    """Map a quoteSummary response to a fundamentals overview."""
    try:
        result = payload["quoteSummary"]["result"][0]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedUpstreamPayload(PROVIDER, "missing quoteSummary.result[0]") from exc

    price = result.get("price") or {}
    summary = result.get("summaryDetail") or {}
    key_stats = result.get("defaultKeyStatistics") or {}
    financial = result.get("financialData") or {}

    debt_to_equity = raw(financial, "debtToEquity")
    if debt_to_equity is not None:
        # Yahoo reports debt/equity in percent (150.3 == 1.503x).
        debt_to_equity = debt_to_equity / 100

    return FundamentalsOverview(
        symbol=symbol.upper(),
        name=price.get("longName") or price.get("shortName") or symbol.upper(),
        market_cap=raw(price, "marketCap"),
        pe_ratio=raw(summary, "trailingPE"),
        peg_ratio=raw(key_stats, "pegRatio"),
        price_to_book=raw(key_stats, "priceToBook"),
        price_to_sales=raw(summary, "priceToSalesTrailing12Months"),
        eps=raw(key_stats, "trailingEps"),
        quarterly_earnings_growth_yoy=raw(key_stats, "earningsQuarterlyGrowth"),
        profit_margin=raw(financial, "profitMargins"),
        ebitda=raw(financial, "ebitda"),
        revenue_ttm=raw(financial, "totalRevenue"),
        debt_to_equity=debt_to_equity,
    )


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------


class YahooProvider(MarketDataProvider):
    name = PROVIDER

    async def _chart(self, symbol: str, range_: str) -> Any:
        return await self._get_json(
            CHART_URL.format(symbol=quote(symbol, safe="")),
            params={"interval": "1d", "range": range_},
        )

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        payload = await self._chart(symbol, "5d")
        return parse_chart_quote(payload, symbol)

    async def fetch_series(self, symbol: str, range_: str = "1y") -> NormalizedSeries:
        payload = await self._chart(symbol, range_)
        series = parse_chart_series(payload)
        logger.debug("yahoo_series_fetched", symbol=symbol, range=range_, points=len(series))
        return series

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsOverview:
        payload = await self._get_json(
            QUOTE_SUMMARY_URL.format(symbol=quote(symbol, safe="")),
            params={"modules": QUOTE_SUMMARY_MODULES},
        )
        return parse_quote_summary(payload, symbol)
