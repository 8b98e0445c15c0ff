"""Finnhub adapter: quotes, candles, the metric map and analyst and news sentiment.

Finnhub's ``/stock/metric`` response is a flat map whose key names differ
between companies and plan tiers for the same economic figure (``peTTM`` vs
``peBasicExclExtraTTM`` ...).  :data:`METRIC_FALLBACKS` lists, per logical
field, the keys to try in order; :func:`first_present` walks one list.
"""

from __future__ import annotations

import time
from typing import Any, Mapping, Sequence

import structlog

from marketdata.errors import MalformedUpstreamPayload, UpstreamError
from marketdata.models import (
    FundamentalsOverview,
    NormalizedQuote,
    NormalizedSeries,
    NewsSentimentSummary,
    PricePoint,
    RecommendationSummary,
)
from marketdata.providers.base import MarketDataProvider
from marketdata.providers.yahoo import unix_to_date

logger = structlog.get_logger(__name__)

BASE_URL = "https://finnhub.io/api/v1"
PROVIDER = "finnhub"

# Logical field -> Finnhub metric keys, most preferred first.
METRIC_FALLBACKS: dict[str, tuple[str, ...]] = {
    "pe_ratio": ("peTTM", "peBasicExclExtraTTM", "peExclExtraTTM", "peNormalizedAnnual", "peAnnual"),
    "peg_ratio": ("pegTTM", "pegRatio"),
    "price_to_book": ("pbQuarterly", "pbAnnual", "ptbvQuarterly", "ptbvAnnual"),
    "price_to_sales": ("psTTM", "psAnnual"),
    "eps": (
        "epsTTM",
        "epsBasicExclExtraItemsTTM",
        "epsExclExtraItemsTTM",
        "epsInclExtraItemsTTM",
        "epsAnnual",
    ),
    "quarterly_earnings_growth_yoy": ("epsGrowthQuarterlyYoy", "epsGrowthTTMYoy"),
    "profit_margin": ("netProfitMarginTTM", "netProfitMarginAnnual"),
    "debt_to_equity": (
        "totalDebt/totalEquityQuarterly",
        "totalDebt/totalEquityAnnual",
        "longTermDebt/equityQuarterly",
        "longTermDebt/equityAnnual",
    ),
    "market_cap": ("marketCapitalization",),
    "revenue_ttm": ("revenueTTM",),
    "ebitda": ("ebitdaTTM", "ebitdTTM"),
    "enterprise_value": ("enterpriseValue",),
    "ev_revenue": ("evRevenueTTM", "currentEv/revenueTTM"),
    "ev_ebitda": ("evEbitdaTTM", "currentEv/ebitdaTTM"),
}

# Finnhub reports these as whole percentages (12.3 == 12.3 %).  Converted to
# fractions in parse_metrics and nowhere else.
PERCENT_FIELDS: frozenset[str] = frozenset({"quarterly_earnings_growth_yoy", "profit_margin"})

# Reported in millions of USD.
MILLIONS_FIELDS: frozenset[str] = frozenset({"market_cap", "enterprise_value", "revenue_ttm", "ebitda"})

BUY_THRESHOLD = 60.0
SELL_THRESHOLD = 40.0


# ---------------------------------------------------------------------------
# Mapping functions
# ---------------------------------------------------------------------------


def first_present(metrics: Mapping[str, Any], keys: Sequence[str]) -> float | None:
    """Value of the first key in *keys* that holds a number."""
    for key in keys:
        value = metrics.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
    return None


def parse_metrics(metrics: Mapping[str, Any]) -> dict[str, float | None]:
    """Resolve every logical field through its fallback chain.

    Applies the percent -> fraction and millions -> units conversions, then
    back-fills revenue, EBITDA and PEG from ratios when Finnhub omitted them.
    Back-filled figures are estimates.
    """
    fields: dict[str, float | None] = {
        name: first_present(metrics, keys) for name, keys in METRIC_FALLBACKS.items()
    }

    growth_pct = fields["quarterly_earnings_growth_yoy"]

    for name in PERCENT_FIELDS:
        if fields[name] is not None:
            fields[name] = fields[name] / 100
    for name in MILLIONS_FIELDS:
        if fields[name] is not None:
            fields[name] = fields[name] * 1_000_000

    ev = fields["enterprise_value"]
    if fields["revenue_ttm"] is None and ev and fields["ev_revenue"]:
        fields["revenue_ttm"] = ev / fields["ev_revenue"]
    if fields["ebitda"] is None and ev and fields["ev_ebitda"]:
        fields["ebitda"] = ev / fields["ev_ebitda"]
    if fields["peg_ratio"] is None and fields["pe_ratio"] and growth_pct and growth_pct > 0:
        fields["peg_ratio"] = fields["pe_ratio"] / growth_pct

    return fields


def parse_fundamentals(
    metric_payload: Any,
    profile_payload: Any,
    symbol: str,
) -> FundamentalsOverview:
    if not isinstance(metric_payload, dict) or not isinstance(metric_payload.get("metric"), dict):
        raise MalformedUpstreamPayload(PROVIDER, "missing metric map")
    fields = parse_metrics(metric_payload["metric"])
    profile = profile_payload if isinstance(profile_payload, dict) else {}

    market_cap = fields["market_cap"]
    if market_cap is None:
        profile_cap = first_present(profile, ("marketCapitalization",))
        market_cap = profile_cap * 1_000_000 if profile_cap is not None else None

    return FundamentalsOverview(
        symbol=symbol.upper(),
        name=profile.get("name") or symbol.upper(),
        market_cap=market_cap,
        pe_ratio=fields["pe_ratio"],
        peg_ratio=fields["peg_ratio"],
        price_to_book=fields["price_to_book"],
        price_to_sales=fields["price_to_sales"],
        eps=fields["eps"],
        quarterly_earnings_growth_yoy=fields["quarterly_earnings_growth_yoy"],
        profit_margin=fields["profit_margin"],
        ebitda=fields["ebitda"],
        revenue_ttm=fields["revenue_ttm"],
        debt_to_equity=fields["debt_to_equity"],
    )


def parse_quote(payload: Any, symbol: str = "") -> NormalizedQuote:
    """``{c, d, dp, pc}`` -> quote.  A zero current price means unknown symbol."""
    if not isinstance(payload, dict) or not payload.get("c"):
        raise MalformedUpstreamPayload(PROVIDER, f"no quote for {symbol or 'symbol'}")
    price = float(payload["c"])
    previous = payload.get("pc")
    change = payload.get("d")
    change_percent = payload.get("dp")
    if change is None and previous:
        change = price - previous
    if change_percent is None and previous:
        change_percent = (price - previous) / previous * 100
    return NormalizedQuote(
        symbol=symbol.upper(),
        price=price,
        change=float(change or 0.0),
        change_percent=float(change_percent or 0.0),
    )


def parse_candles(payload: Any) -> NormalizedSeries:
    if not isinstance(payload, dict):
        raise MalformedUpstreamPayload(PROVIDER, "candle payload is not an object")
    if payload.get("s") == "no_data":
        return []
    if payload.get("s") != "ok":
        raise MalformedUpstreamPayload(PROVIDER, f"candle status {payload.get('s')!r}")
    points = [
        PricePoint(date=unix_to_date(ts), close=float(close))
        for ts, close in zip(payload.get("t") or [], payload.get("c") or [])
        if ts is not None and close is not None
    ]
    points.sort(key=lambda p: p.date)
    return points


def summarize_recommendations(payload: Any, symbol: str) -> RecommendationSummary:
    """Latest analyst period -> buy share of ratings and a BUY/HOLD/SELL call."""
    if not isinstance(payload, list) or not payload:
        raise MalformedUpstreamPayload(PROVIDER, f"no recommendations for {symbol}")
    latest = max(payload, key=lambda row: row.get("period") or "")
    buy = int(latest.get("buy") or 0) + int(latest.get("strongBuy") or 0)
    hold = int(latest.get("hold") or 0)
    sell = int(latest.get("sell") or 0) + int(latest.get("strongSell") or 0)
    total = buy + hold + sell
    if total == 0:
        raise MalformedUpstreamPayload(PROVIDER, f"empty recommendation period for {symbol}")

    buy_score = buy / total * 100
    if buy_score > BUY_THRESHOLD:
        overall = "BUY"
    elif buy_score < SELL_THRESHOLD:
        overall = "SELL"
    else:
        overall = "HOLD"

    return RecommendationSummary(
        symbol=symbol.upper(),
        period=latest.get("period"),
        buy=buy,
        hold=hold,
        sell=sell,
        buy_score=round(buy_score, 1),
        overall=overall,
    )


def parse_news_sentiment(payload: Any, symbol: str) -> NewsSentimentSummary:
    """``/news-sentiment`` -> bullish/bearish shares, news scores and buzz.

    Finnhub answers ``{}`` (or all-null sections) for symbols it does not
    cover; that is reported as malformed rather than as a neutral reading.
    """
    if not isinstance(payload, dict):
        raise MalformedUpstreamPayload(PROVIDER, "news sentiment payload is not an object")
    sentiment = payload.get("sentiment") if isinstance(payload.get("sentiment"), dict) else {}
    buzz = payload.get("buzz") if isinstance(payload.get("buzz"), dict) else {}

    articles = first_present(buzz, ("articlesInLastWeek",))
    summary = NewsSentimentSummary(
        symbol=(payload.get("symbol") or symbol).upper(),
        bullish_percent=first_present(sentiment, ("bullishPercent",)),
        bearish_percent=first_present(sentiment, ("bearishPercent",)),
        company_news_score=first_present(payload, ("companyNewsScore",)),
        sector_average_bullish_percent=first_present(payload, ("sectorAverageBullishPercent",)),
        sector_average_news_score=first_present(payload, ("sectorAverageNewsScore",)),
        articles_in_last_week=int(articles) if articles is not None else None,
        weekly_average=first_present(buzz, ("weeklyAverage",)),
        buzz=first_present(buzz, ("buzz",)),
    )
    if summary.bullish_percent is None and summary.company_news_score is None:
        raise MalformedUpstreamPayload(PROVIDER, f"no news sentiment for {symbol}")
    return summary


# ---------------------------------------------------------------------------
# Provider
# ---------------------------------------------------------------------------

_RANGE_DAYS = {"5d": 7, "10d": 14, "1mo": 31, "3mo": 93, "6mo": 186, "1y": 366, "2y": 731, "5y": 1827}


class FinnhubProvider(MarketDataProvider):
    name = PROVIDER

    def __init__(self, api_key: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key

    async def _call(self, endpoint: str, params: dict[str, Any]) -> Any:
        query = dict(params)
        query["token"] = self.api_key
        return await self._get_json(f"{BASE_URL}/{endpoint}", params=query)

    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        payload = await self._call("quote", {"symbol": symbol.upper()})
        return parse_quote(payload, symbol)

    async def fetch_series(self, symbol: str, range_: str = "1y") -> NormalizedSeries:
        now = int(time.time())
        days = _RANGE_DAYS.get(range_, 366)
        payload = await self._call(
            "stock/candle",
            {"symbol": symbol.upper(), "resolution": "D", "from": now - days * 86400, "to": now},
        )
        return parse_candles(payload)

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsOverview:
        metric_payload = await self._call("stock/metric", {"symbol": symbol.upper(), "metric": "all"})
        try:
            profile_payload = await self._call("stock/profile2", {"symbol": symbol.upper()})
        except UpstreamError as exc:
            logger.info("finnhub_profile_unavailable", symbol=symbol, error=str(exc))
            profile_payload = {}
        return parse_fundamentals(metric_payload, profile_payload, symbol)

    async def fetch_recommendations(self, symbol: str) -> RecommendationSummary:
        payload = await self._call("stock/recommendation", {"symbol": symbol.upper()})
        return summarize_recommendations(payload, symbol)

    async def fetch_news_sentiment(self, symbol: str) -> NewsSentimentSummary:
        payload = await self._call("news-sentiment", {"symbol": symbol.upper()})
        return parse_news_sentiment(payload, symbol)
