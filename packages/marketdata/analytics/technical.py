"""
Technical Analysis Engine

Pure functions over a normalised close series: moving averages,
support/resistance levels (pivot and percentile strategies), a recent-range
band, a coarse channel pattern, and a trend label.  No I/O.

Chosen definitions:
- Trend compares the latest close with the mean of the trailing 20 closes
  (the window includes the latest close).
- ``analyze`` prefers neighbourhood-extremum pivots and fills any missing
  level from the percentile strategy, so both lists always hold two values.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import structlog

from marketdata.errors import InsufficientData
from marketdata.models import (
    Pattern,
    PricePoint,
    SupportResistanceBand,
    TechnicalAnalysis,
    Trend,
)

logger = structlog.get_logger(__name__)

PIVOT_WINDOW = 10
MAX_LEVELS = 2
BAND_LOOKBACK = 30
PATTERN_LOOKBACK = 10
PATTERN_THRESHOLD = 0.02
TREND_LOOKBACK = 20
SUPPORT_PERCENTILES = (10, 20)
RESISTANCE_PERCENTILES = (80, 90)


def closes_of(series: Sequence[PricePoint]) -> list[float]:
    return [point.close for point in series]


# ---------------------------------------------------------------------------
# Moving averages
# ---------------------------------------------------------------------------


def moving_average(closes: Sequence[float], period: int) -> list[float | None]:
    """Simple moving average aligned with *closes*.

    Positions with fewer than *period* observations up to and including
    them are None; partial windows are never averaged.
    """
    if period < 1:
        raise ValueError("period must be >= 1")
    if not closes:
        return []
    rolled = pd.Series(closes, dtype="float64").rolling(window=period, min_periods=period).mean()
    return [None if pd.isna(v) else float(v) for v in rolled]


def latest_moving_average(closes: Sequence[float], period: int) -> float | None:
    values = moving_average(closes, period)
    return values[-1] if values else None


# ---------------------------------------------------------------------------
# Support / resistance
# ---------------------------------------------------------------------------


def pivot_levels(
    closes: Sequence[float],
    window: int = PIVOT_WINDOW,
    keep: int = MAX_LEVELS,
) -> tuple[list[float], list[float]]:
    """Neighbourhood-extremum pivots.

    For every index with *window* points on both sides, the close is a
    support pivot when it equals the minimum of ``closes[i-window:i+window+1]``
    and a resistance pivot when it equals the maximum (a flat neighbourhood
    is both).  Prices are deduplicated and at most *keep* of each are
    returned, most recent first.
    """
    supports: list[float] = []
    resistances: list[float] = []
    n = len(closes)

    for i in range(n - window - 1, window - 1, -1):
        neighbourhood = closes[i - window : i + window + 1]
        price = closes[i]
        level = round(float(price), 2)
        if price == min(neighbourhood) and level not in supports and len(supports) < keep:
            supports.append(level)
        if price == max(neighbourhood) and level not in resistances and len(resistances) < keep:
            resistances.append(level)
        if len(supports) >= keep and len(resistances) >= keep:
            break

    return supports, resistances


def percentile_levels(closes: Sequence[float]) -> tuple[list[float], list[float]]:
    """Percentile levels: 10th/20th as supports, 80th/90th as resistances."""
    if not closes:
        raise InsufficientData("percentile levels need at least one close")
    values = np.sort(np.asarray(closes, dtype="float64"))
    supports = [round(float(v), 2) for v in np.percentile(values, SUPPORT_PERCENTILES)]
    resistances = [round(float(v), 2) for v in np.percentile(values, RESISTANCE_PERCENTILES)]
    return supports, resistances


def sr_band(closes: Sequence[float], lookback: int = BAND_LOOKBACK) -> SupportResistanceBand:
    """Min/max of the last *lookback* closes, for range shading."""
    if not closes:
        raise InsufficientData("band needs at least one close")
    recent = closes[-lookback:]
    return SupportResistanceBand(support=float(min(recent)), resistance=float(max(recent)))


def _fill_levels(primary: list[float], fallback: list[float], size: int = MAX_LEVELS) -> list[float]:
    levels = list(primary[:size])
    for value in fallback:
        if len(levels) >= size:
            break
        if value not in levels:
            levels.append(value)
    while len(levels) < size:
        levels.append(levels[-1] if levels else fallback[-1])
    return levels


# ---------------------------------------------------------------------------
# Pattern and trend
# ---------------------------------------------------------------------------


def classify_pattern(
    closes: Sequence[float],
    lookback: int = PATTERN_LOOKBACK,
    threshold: float = PATTERN_THRESHOLD,
) -> Pattern:
    """Compare the average of the two halves of the last *lookback* closes."""
    recent = list(closes[-lookback:])
    if len(recent) < 2:
        return Pattern.CONSOLIDATION

    half = len(recent) // 2
    first = float(np.mean(recent[:half]))
    second = float(np.mean(recent[half:]))
    if first == 0:
        return Pattern.CONSOLIDATION

    change = (second - first) / first
    if change > threshold:
        return Pattern.ASCENDING_CHANNEL
    if change < -threshold:
        return Pattern.DESCENDING_CHANNEL
    return Pattern.CONSOLIDATION


def trend_label(closes: Sequence[float], lookback: int = TREND_LOOKBACK) -> Trend:
    """Bullish when the latest close is above the trailing-*lookback* mean."""
    if not closes:
        raise InsufficientData("trend needs at least one close")
    mean = float(np.mean(closes[-lookback:]))
    return Trend.BULLISH if closes[-1] > mean else Trend.BEARISH


# ---------------------------------------------------------------------------
# Narrative
# ---------------------------------------------------------------------------


def _fmt(levels: Sequence[float]) -> str:
    return ", $".join(f"{v:.2f}" for v in levels)


def build_signals(
    current: float,
    sma50: float | None,
    supports: Sequence[float],
    resistances: Sequence[float],
    trend: Trend,
) -> list[str]:
    signals = []
    if sma50 is not None:
        side = "above" if current > sma50 else "below"
        signals.append(f"Price is {side} the 50-day average (${sma50:.2f})")
    signals.append(f"Support levels identified at ${_fmt(supports)}")
    signals.append(f"Resistance levels at ${_fmt(resistances)}")
    signals.append(f"Momentum indicators suggest {trend.value.lower()} bias")
    return signals


def build_recommendation(supports: Sequence[float], resistances: Sequence[float]) -> str:
    return (
        f"Consider entry near ${supports[0]:.2f}. "
        f"Target ${resistances[0]:.2f} on breakout. "
        f"Stop loss below ${supports[-1]:.2f}."
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def analyze(series: Sequence[PricePoint], symbol: str = "") -> TechnicalAnalysis:
    """Run the full technical pass over an ascending close series.

    Raises:
        InsufficientData: when *series* is empty.
    """
    closes = closes_of(series)
    if not closes:
        raise InsufficientData("cannot analyse an empty series")

    pivot_supports, pivot_resistances = pivot_levels(closes)
    pct_supports, pct_resistances = percentile_levels(closes)
    supports = _fill_levels(pivot_supports, pct_supports)
    resistances = _fill_levels(pivot_resistances, pct_resistances)

    current = float(closes[-1])
    sma50 = latest_moving_average(closes, 50)
    sma200 = latest_moving_average(closes, 200)
    trend = trend_label(closes)

    logger.debug(
        "technical_analysis_computed",
        symbol=symbol,
        points=len(closes),
        pivot_supports=len(pivot_supports),
        pivot_resistances=len(pivot_resistances),
    )

    return TechnicalAnalysis(
        symbol=symbol,
        current_price=round(current, 2),
        supports=supports,
        resistances=resistances,
        pattern=classify_pattern(closes),
        trend=trend,
        sr_band=sr_band(closes),
        sma50=round(sma50, 2) if sma50 is not None else None,
        sma200=round(sma200, 2) if sma200 is not None else None,
        signals=build_signals(current, sma50, supports, resistances, trend),
        recommendation=build_recommendation(supports, resistances),
    )
