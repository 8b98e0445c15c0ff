"""Heuristic valuation scoring from a normalised fundamentals overview.

Two independent outputs are produced:

1. A ranking ``score``: the sum of additive, saturating terms, one per
   metric that is present and meaningful.  Absent metrics add nothing.
2. A valuation bucket: each present metric is mapped to a sub-score
   (+1 cheap/excellent, 0 fair, -1 expensive/poor) and the weighted average
   over the *present* metrics decides Undervalued / Fairly Valued /
   Overvalued.

Classification thresholds:

    PEG            < 1 cheap (strong signal, weight 2) | 1-2 fair | > 2 expensive
    P/E            < 15 cheap | 15-25 fair | > 25 expensive
    P/B            < 1 cheap  | 1-3 fair   | > 3 expensive
    Profit margin  > 20% excellent (+1) | 10-20% good (+0.5) | 0-10% fair (0) | < 0 poor (-1)
"""

from __future__ import annotations

from typing import Iterable

import structlog

from marketdata.models import FundamentalsOverview, ValuationBucket, ValuationResult

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

PEG_CHEAP = 1.0
PEG_EXPENSIVE = 2.0
PE_CHEAP = 15.0
PE_EXPENSIVE = 25.0
PB_CHEAP = 1.0
PB_EXPENSIVE = 3.0
MARGIN_EXCELLENT = 0.20
MARGIN_GOOD = 0.10

EARNINGS_GOOD_GROWTH = 0.10
LOW_DEBT_RATIO = 1.0

BUCKET_THRESHOLD = 0.25

METRIC_WEIGHTS: dict[str, float] = {
    "peg_ratio": 2.0,
    "pe_ratio": 1.0,
    "price_to_book": 1.0,
    "profit_margin": 1.0,
}

# ---------------------------------------------------------------------------
# Ranking terms
# ---------------------------------------------------------------------------


def _ranking_terms(o: FundamentalsOverview) -> dict[str, float]:
    terms: dict[str, float] = {}
    if o.pe_ratio is not None and o.pe_ratio > 0:
        terms["pe_ratio"] = max(0.0, 20.0 - o.pe_ratio)
    if o.peg_ratio is not None and o.peg_ratio > 0:
        terms["peg_ratio"] = max(0.0, 2.0 - o.peg_ratio) * 5.0
    if o.price_to_book is not None and o.price_to_book > 0:
        terms["price_to_book"] = max(0.0, 3.0 - o.price_to_book) * 2.0
    if o.profit_margin is not None and o.profit_margin > 0:
        terms["profit_margin"] = min(o.profit_margin, 0.30) * 30.0
    if o.quarterly_earnings_growth_yoy is not None and o.quarterly_earnings_growth_yoy > 0:
        terms["quarterly_earnings_growth_yoy"] = min(o.quarterly_earnings_growth_yoy, 0.50) * 20.0
    if o.debt_to_equity is not None and o.debt_to_equity >= 0:
        terms["debt_to_equity"] = max(0.0, 2.0 - o.debt_to_equity) * 2.0
    return terms


# ---------------------------------------------------------------------------
# Classification sub-scores
# ---------------------------------------------------------------------------


def _tiered(value: float, cheap: float, expensive: float) -> float:
    if value < cheap:
        return 1.0
    if value > expensive:
        return -1.0
    return 0.0


def _margin_subscore(margin: float) -> float:
    if margin > MARGIN_EXCELLENT:
        return 1.0
    if margin >= MARGIN_GOOD:
        return 0.5
    if margin >= 0:
        return 0.0
    return -1.0


def classification_subscores(o: FundamentalsOverview) -> dict[str, float]:
    """Per-metric sub-scores for the metrics that are present.

    Non-positive P/E, PEG or P/B (loss-making companies) are treated as
    expensive rather than cheap.
    """
    subs: dict[str, float] = {}
    if o.peg_ratio is not None:
        subs["peg_ratio"] = -1.0 if o.peg_ratio <= 0 else _tiered(o.peg_ratio, PEG_CHEAP, PEG_EXPENSIVE)
    if o.pe_ratio is not None:
        subs["pe_ratio"] = -1.0 if o.pe_ratio <= 0 else _tiered(o.pe_ratio, PE_CHEAP, PE_EXPENSIVE)
    if o.price_to_book is not None:
        subs["price_to_book"] = (
            -1.0 if o.price_to_book <= 0 else _tiered(o.price_to_book, PB_CHEAP, PB_EXPENSIVE)
        )
    if o.profit_margin is not None:
        subs["profit_margin"] = _margin_subscore(o.profit_margin)
    return subs


def weighted_valuation_score(subs: dict[str, float]) -> float | None:
    """Weighted mean over present metrics only; None when nothing is present."""
    if not subs:
        return None
    total_weight = sum(METRIC_WEIGHTS[name] for name in subs)
    return sum(METRIC_WEIGHTS[name] * value for name, value in subs.items()) / total_weight


def bucket_for(valuation_score: float | None) -> ValuationBucket:
    if valuation_score is None:
        return ValuationBucket.FAIRLY_VALUED
    if valuation_score > BUCKET_THRESHOLD:
        return ValuationBucket.UNDERVALUED
    if valuation_score < -BUCKET_THRESHOLD:
        return ValuationBucket.OVERVALUED
    return ValuationBucket.FAIRLY_VALUED


def _reasons(o: FundamentalsOverview, earnings_good: bool, low_debt: bool) -> list[str]:
    reasons = []
    if o.pe_ratio is not None and 0 < o.pe_ratio < 20:
        reasons.append("attractive valuation")
    if o.peg_ratio is not None and 0 < o.peg_ratio < PEG_CHEAP:
        reasons.append("growth-adjusted discount")
    if low_debt:
        reasons.append("low debt levels")
    if earnings_good:
        reasons.append("strong earnings growth")
    if o.profit_margin is not None and o.profit_margin > MARGIN_EXCELLENT:
        reasons.append("excellent margins")
    return reasons


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def score(overview: FundamentalsOverview) -> ValuationResult:
    """Score one overview; raw metrics are carried through unchanged."""
    terms = _ranking_terms(overview)
    subs = classification_subscores(overview)
    valuation_score = weighted_valuation_score(subs)
    bucket = bucket_for(valuation_score)

    growth = overview.quarterly_earnings_growth_yoy
    earnings_good = growth is not None and growth > EARNINGS_GOOD_GROWTH
    low_debt = overview.debt_to_equity is not None and overview.debt_to_equity < LOW_DEBT_RATIO

    return ValuationResult(
        **overview.model_dump(),
        score=round(sum(terms.values()), 2),
        valuation=bucket,
        valuation_score=round(valuation_score, 4) if valuation_score is not None else None,
        metrics_used=len(subs),
        undervalued=bucket is ValuationBucket.UNDERVALUED,
        earnings_good=earnings_good,
        low_debt=low_debt,
        reasons=_reasons(overview, earnings_good, low_debt),
    )


def rank(results: Iterable[ValuationResult]) -> list[ValuationResult]:
    """Highest ranking score first; ties keep input order."""
    return sorted(results, key=lambda r: r.score, reverse=True)
