"""Keyword-count sentiment tagging for headlines and summaries."""

from __future__ import annotations

from marketdata.models import Sentiment

POSITIVE_KEYWORDS: frozenset[str] = frozenset({
    "gains", "surge", "profit", "growth", "strong",
    "positive", "rise", "rally", "up", "beat",
})

NEGATIVE_KEYWORDS: frozenset[str] = frozenset({
    "loss", "decline", "fall", "weak", "concern",
    "risk", "down", "drop", "miss", "cut",
})


def keyword_hits(text: str, keywords: frozenset[str]) -> int:
    """Number of *keywords* that occur anywhere in *text* (case-insensitive).

    Plain substring containment: "upgrade" counts for "up".
    """
    lower = (text or "").lower()
    return sum(1 for word in keywords if word in lower)


def classify(text: str) -> Sentiment:
    """Tag *text* as positive, negative or neutral.

    The side with strictly more keyword hits wins; ties, including no hits
    at all, are neutral.
    """
    pos = keyword_hits(text, POSITIVE_KEYWORDS)
    neg = keyword_hits(text, NEGATIVE_KEYWORDS)
    if pos > neg:
        return Sentiment.POSITIVE
    if neg > pos:
        return Sentiment.NEGATIVE
    return Sentiment.NEUTRAL
