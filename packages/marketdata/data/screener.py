"""Valuation screener: fundamentals for many symbols, scored and ranked.

Symbols are fetched one at a time.  When the provider is rate limited
(Alpha Vantage free tier) its own :class:`RateLimiter` spaces the calls;
the screener adds an optional limiter for providers that have none.
"""

from __future__ import annotations

from typing import Iterable

import structlog
from pydantic import BaseModel, Field

from marketdata.analytics.valuation import rank, score
from marketdata.errors import MarketDataError
from marketdata.models import ValuationResult
from marketdata.providers.base import MarketDataProvider
from marketdata.ratelimit import RateLimiter

logger = structlog.get_logger(__name__)

DEFAULT_SCREENER_SYMBOLS: tuple[str, ...] = (
    "AAPL", "MSFT", "GOOGL", "AMZN", "META",
    "NVDA", "JPM", "JNJ", "XOM", "PG",
)


class ScreenerFailure(BaseModel):
    symbol: str
    error: str


class ScreenerResult(BaseModel):
    results: list[ValuationResult] = Field(default_factory=list)
    failures: list[ScreenerFailure] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "results": [r.to_dict() for r in self.results],
            "failures": [f.model_dump() for f in self.failures],
        }


async def screen_symbols(
    provider: MarketDataProvider,
    symbols: Iterable[str],
    *,
    limiter: RateLimiter | None = None,
) -> ScreenerResult:
    """Fetch, score and rank fundamentals for *symbols*.

    A symbol whose fetch or parse fails is recorded in ``failures`` and the
    scan continues.  Duplicate symbols are screened once.
    """
    seen: set[str] = set()
    scored: list[ValuationResult] = []
    failures: list[ScreenerFailure] = []

    for raw_symbol in symbols:
        symbol = raw_symbol.strip().upper()
        if not symbol or symbol in seen:
            continue
        seen.add(symbol)

        try:
            if limiter is not None:
                await limiter.acquire()
            overview = await provider.fetch_fundamentals(symbol)
        except MarketDataError as exc:
            logger.warning("screener_symbol_failed", symbol=symbol, provider=provider.name, error=str(exc))
            failures.append(ScreenerFailure(symbol=symbol, error=str(exc)[:200]))
            continue

        scored.append(score(overview))

    ranked = rank(scored)
    logger.info(
        "screener_complete",
        provider=provider.name,
        screened=len(seen),
        scored=len(ranked),
        failed=len(failures),
    )
    return ScreenerResult(results=ranked, failures=failures)
