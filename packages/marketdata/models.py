"""Request-scoped models shared by providers, analytics and the API.

Every model serialises with camelCase keys (``publishedAt``,
``changePercent``) so responses keep the wire shape the dashboard expects,
while Python code uses snake_case attributes.  Metrics that a provider did
not supply are ``None``; zero always means an actual zero.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from marketdata.dates import parse_feed_date


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class Pattern(str, Enum):
    ASCENDING_CHANNEL = "Ascending Channel"
    DESCENDING_CHANNEL = "Descending Channel"
    CONSOLIDATION = "Consolidation / Range-Bound"


class Trend(str, Enum):
    BULLISH = "Bullish"
    BEARISH = "Bearish"


class ValuationBucket(str, Enum):
    UNDERVALUED = "Undervalued"
    FAIRLY_VALUED = "Fairly Valued"
    OVERVALUED = "Overvalued"


# ---------------------------------------------------------------------------
# News
# ---------------------------------------------------------------------------


class ArticleRecord(_WireModel):
    """One parsed feed ``<item>`` / ``<entry>`` (or fallback API article)."""

    title: str = Field(min_length=1)
    url: str = ""
    published_at: str = ""  # provider-native, parsed lazily
    summary: str = ""
    source: str = ""
    sentiment: Sentiment | None = None

    def published_datetime(self) -> datetime | None:
        return parse_feed_date(self.published_at)

    def sort_key(self) -> datetime:
        return self.published_datetime() or datetime.min.replace(tzinfo=timezone.utc)


class AggregateResult(_WireModel):
    items: list[ArticleRecord] = Field(default_factory=list)
    succeeded_count: int = 0
    source: str = "rss"
    error: str | None = None


# ---------------------------------------------------------------------------
# Prices
# ---------------------------------------------------------------------------


class NormalizedQuote(_WireModel):
    symbol: str = ""
    price: float
    change: float
    change_percent: float


class PricePoint(_WireModel):
    date: str  # YYYY-MM-DD
    close: float


NormalizedSeries = list[PricePoint]


# ---------------------------------------------------------------------------
# Fundamentals
# ---------------------------------------------------------------------------


class FundamentalsOverview(_WireModel):
    """Provider-agnostic fundamentals.

    Ratios (profit margin, growth) are fractional: 0.123 means 12.3 %.
    """

    symbol: str
    name: str | None = None
    market_cap: float | None = None
    pe_ratio: float | None = None
    peg_ratio: float | None = None
    price_to_book: float | None = None
    price_to_sales: float | None = None
    eps: float | None = None
    quarterly_earnings_growth_yoy: float | None = None
    profit_margin: float | None = None
    ebitda: float | None = None
    revenue_ttm: float | None = None
    debt_to_equity: float | None = None


class ValuationResult(FundamentalsOverview):
    score: float
    valuation: ValuationBucket
    valuation_score: float | None = None  # weighted sub-score average
    metrics_used: int = 0
    undervalued: bool
    earnings_good: bool
    low_debt: bool
    reasons: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Technicals
# ---------------------------------------------------------------------------


class SupportResistanceBand(_WireModel):
    support: float
    resistance: float


class TechnicalAnalysis(_WireModel):
    symbol: str = ""
    current_price: float
    supports: list[float]
    resistances: list[float]
    pattern: Pattern
    trend: Trend
    sr_band: SupportResistanceBand
    sma50: float | None = None
    sma200: float | None = None
    signals: list[str] = Field(default_factory=list)
    recommendation: str = ""


# ---------------------------------------------------------------------------
# Misc contracts
# ---------------------------------------------------------------------------


class Credentials(_WireModel):
    """Per-user or default API keys. Empty string means "not configured"."""

    alpha_vantage: str = ""
    finnhub: str = ""
    news_api: str = ""


class SectorPerformance(_WireModel):
    one_week: float | None = Field(default=None, alias="1w")
    one_month: float | None = Field(default=None, alias="1m")
    three_month: float | None = Field(default=None, alias="3m")


class SectorRecord(_WireModel):
    id: str
    name: str
    drivers: str = ""
    perf: SectorPerformance = Field(default_factory=SectorPerformance)
    live: bool = False


class RecommendationSummary(_WireModel):
    symbol: str
    period: str | None = None
    buy: int = 0
    hold: int = 0
    sell: int = 0
    buy_score: float
    overall: str  # BUY / HOLD / SELL


class NewsSentimentSummary(_WireModel):
    """Finnhub company news sentiment; bullish/bearish shares are fractions 0..1."""

    symbol: str
    bullish_percent: float | None = None
    bearish_percent: float | None = None
    company_news_score: float | None = None
    sector_average_bullish_percent: float | None = None
    sector_average_news_score: float | None = None
    articles_in_last_week: int | None = None
    weekly_average: float | None = None
    buzz: float | None = None
