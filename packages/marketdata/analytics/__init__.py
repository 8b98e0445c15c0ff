"""
Market Analytics

Pure computation over normalised models; no I/O.

Modules:
- sentiment: keyword sentiment tagging for headlines
- technical: moving averages, support/resistance, pattern and trend
- valuation: fundamentals scoring and valuation buckets
"""

from .sentiment import classify

from .technical import (
    analyze,
    moving_average,
    pivot_levels,
    percentile_levels,
    sr_band,
    classify_pattern,
    trend_label,
)

from .valuation import (
    score,
    rank,
    classification_subscores,
    weighted_valuation_score,
    bucket_for,
)

__all__ = [
    # Sentiment
    'classify',
    # Technical
    'analyze',
    'moving_average',
    'pivot_levels',
    'percentile_levels',
    'sr_band',
    'classify_pattern',
    'trend_label',
    # Valuation
    'score',
    'rank',
    'classification_subscores',
    'weighted_valuation_score',
    'bucket_for',
]
