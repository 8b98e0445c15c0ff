"""Alpha Vantage adapter (GLOBAL_QUOTE, TIME_SERIES_DAILY, OVERVIEW, SECTOR).

Every value arrives as a string.  ``"None"``, ``"-"`` and ``""`` mean the
metric is unavailable.  Rate-limit and bad-key responses come back with HTTP
200 and a ``Note`` / ``Information`` / ``Error Message`` body, so each payload
is checked before mapping.

The free tier allows a handful of calls per minute; all calls from one
provider instance share a :class:`RateLimiter`.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import structlog

from marketdata.errors import MalformedUpstreamPayload
from marketdata.models import (
    FundamentalsOverview,
    NormalizedQuote,
    NormalizedSeries,
    PricePoint,
    SectorPerformance,
)
from marketdata.providers.base import MarketDataProvider
from marketdata.ratelimit import RateLimiter

logger = structlog.get_logger(__name__)

BASE_URL = "https://www.alphavantage.co/query"
PROVIDER = "alpha_vantage"

NULL_STRINGS = frozenset({"", "None", "-", "none", "null"})
ERROR_KEYS = ("Error Message", "Note", "Information")

# SECTOR report sections -> performance window.
RANK_PERIODS: dict[str, str] = {
    "Rank C: 5 Day Performance": "1w",
    "Rank D: 1 Month Performance": "1m",
    "Rank E: 3 Month Performance": "3m",
}

_RANGE_DAYS = {"5d": 7, "10d": 14, "1mo": 31, "3mo": 93, "6mo": 186, "1y": 366, "2y": 731, "5y": 1827}
_COMPACT_POINTS = 100


def _num(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    text = str(value).strip()
    if text in NULL_STRINGS:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_percent(value: Any) -> float | None:
    """``"12.34%"`` -> ``12.34`` (percentage points, not a fraction)."""
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    return _num(value)


def check_payload(payload: Any) -> dict[str, Any]:
    """Return *payload* as a dict or raise on an in-band error message."""
    if not isinstance(payload, dict):
        raise MalformedUpstreamPayload(PROVIDER, "payload is not an object")
    for key in ERROR_KEYS:
        if key in payload:
            logger.warning("alpha_vantage_error_payload", kind=key, message=str(payload[key])[:200])
            raise MalformedUpstreamPayload(PROVIDER, str(payload[key]))
    return payload


def parse_global_quote(payload: Any, symbol: str = "") -> NormalizedQuote:
    quote = check_payload(payload).get("Global Quote") or {}
    price = _num(quote.get("05. price"))
    if price is None:
        raise MalformedUpstreamPayload(PROVIDER, f"no quote for {symbol or 'symbol'}")
    return NormalizedQuote(
        symbol=quote.get("01. symbol") or symbol.upper(),
        price=price,
        change=_num(quote.get("09. change")) or 0.0,
        change_percent=parse_percent(quote.get("10. change percent")) or 0.0,
    )


def parse_daily_series(payload: Any) -> NormalizedSeries:
    days = check_payload(payload).get("Time Series (Daily)")
    if not isinstance(days, dict):
        raise MalformedUpstreamPayload(PROVIDER, "missing Time Series (Daily)")
    points = []
    for day, bar in days.items():
        close = _num(bar.get("4. close")) if isinstance(bar, dict) else None
        if close is not None:
            points.append(PricePoint(date=day, close=close))
    points.sort(key=lambda p: p.date)
    return points


def parse_overview(payload: Any, symbol: str) -> FundamentalsOverview:
    """OVERVIEW strings -> fundamentals.  ProfitMargin and growth are fractions already."""
    data = check_payload(payload)
    if not data.get("Symbol"):
        raise MalformedUpstreamPayload(PROVIDER, f"empty overview for {symbol}")
    return FundamentalsOverview(
        symbol=data["Symbol"].upper(),
        name=data.get("Name") or data["Symbol"].upper(),
        market_cap=_num(data.get("MarketCapitalization")),
        pe_ratio=_num(data.get("PERatio")),
        peg_ratio=_num(data.get("PEGRatio")),
        price_to_book=_num(data.get("PriceToBookRatio")),
        price_to_sales=_num(data.get("PriceToSalesRatioTTM")),
        eps=_num(data.get("EPS")),
        quarterly_earnings_growth_yoy=_num(data.get("QuarterlyEarningsGrowthYOY")),
        profit_margin=_num(data.get("ProfitMargin")),
        ebitda=_num(data.get("EBITDA")),
        revenue_ttm=_num(data.get("RevenueTTM")),
        debt_to_equity=_num(data.get("DebtToEquity")),
    )


def parse_sector_performance(payload: Any) -> dict[str, SectorPerformance]:
    """SECTOR report -> ``{provider label: {1w, 1m, 3m}}`` in percentage points."""
    data = check_payload(payload)
    windows: dict[str, dict[str, float | None]] = {}
    for section, period in RANK_PERIODS.items():
        for label, value in (data.get(section) or {}).items():
            windows.setdefault(label, {})[period] = parse_percent(value)
    if not windows:
        raise MalformedUpstreamPayload(PROVIDER, "no sector ranks in payload")
    return {label: SectorPerformance.model_validate(perf) for label, perf in windows.items()}


class AlphaVantageProvider(MarketDataProvider):
    name = PROVIDER

    def __init__(self, api_key: str, limiter: RateLimiter | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.limiter = limiter or RateLimiter(0.0, name=PROVIDER)

    async def _query(self, function: str, **params: Any) -> Any:
        query = {"function": function, "apikey": self.api_key, **params}
        async with self.limiter:
            return await self._get_json(BASE_URL, params=query)

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        payload = await self._query("GLOBAL_QUOTE", symbol=symbol.upper())
        return parse_global_quote(payload, symbol)

    async def fetch_series(self, symbol: str, range_: str = "1y") -> NormalizedSeries:
        days = _RANGE_DAYS.get(range_, 366)
        outputsize = "compact" if days <= _COMPACT_POINTS else "full"
        payload = await self._query("TIME_SERIES_DAILY", symbol=symbol.upper(), outputsize=outputsize)
        cutoff = (date.today() - timedelta(days=days)).isoformat()
        return [point for point in parse_daily_series(payload) if point.date >= cutoff]

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsOverview:
        payload = await self._query("OVERVIEW", symbol=symbol.upper())
        return parse_overview(payload, symbol)

    async def fetch_sector_performance(self) -> dict[str, SectorPerformance]:
        payload = await self._query("SECTOR")
        return parse_sector_performance(payload)
