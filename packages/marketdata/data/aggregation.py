"""
News Aggregation

Fans out to a list of feed sources concurrently, tolerates partial failure,
optionally falls back to a secondary provider when every source failed,
then merges, orders, truncates and sentiment-tags the result.

Flow:
1. fetch every source with asyncio.gather(return_exceptions=True)
2. a source succeeds only when it returns at least one article
3. no successes -> fallback() if the caller supplied one
4. concat -> filter -> newest first -> truncate -> tag sentiment
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Sequence

import httpx
import structlog

from marketdata.analytics.sentiment import classify
from marketdata.data.rss_feeds import AI_FEEDS, FINANCIAL_FEEDS, fetch_feed, is_ai_related
from marketdata.http import DEFAULT_TIMEOUT
from marketdata.models import AggregateResult, ArticleRecord
from marketdata.providers.newsapi import NewsApiProvider

logger = structlog.get_logger(__name__)

FINANCIAL_NEWS_LIMIT = 50
AI_NEWS_LIMIT = 30

NO_FALLBACK_ERROR = "All RSS feeds failed and no API key provided"
FALLBACK_FAILED_ERROR = "All RSS feeds failed and the fallback source failed"

FetchFn = Callable[[dict[str, Any]], Awaitable[list[ArticleRecord]]]
FallbackFn = Callable[[], Awaitable[list[ArticleRecord]]]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def sentiment_text(article: ArticleRecord) -> str:
    return f"{article.title} {article.summary}"


def tag_sentiment(articles: Sequence[ArticleRecord]) -> list[ArticleRecord]:
    """Attach a sentiment label to each article (new copies)."""
    return [a.model_copy(update={"sentiment": classify(sentiment_text(a))}) for a in articles]


def order_and_limit(
    articles: Sequence[ArticleRecord],
    limit: int,
    item_filter: Callable[[ArticleRecord], bool] | None = None,
) -> list[ArticleRecord]:
    """Filter, sort newest first (unparseable dates last), truncate.

    Python's sort is stable so articles sharing a timestamp keep source order.
    """
    kept = [a for a in articles if item_filter is None or item_filter(a)]
    kept.sort(key=lambda a: a.sort_key(), reverse=True)
    return kept[: max(limit, 0)]


async def _run_fallback(fallback: FallbackFn | None) -> AggregateResult:
    if fallback is None:
        logger.warning("aggregation_all_sources_failed", fallback=False)
        return AggregateResult(items=[], succeeded_count=0, source="rss", error=NO_FALLBACK_ERROR)

    try:
        articles = await fallback()
    except Exception as exc:
        logger.error("aggregation_fallback_failed", error=str(exc))
        return AggregateResult(
            items=[],
            succeeded_count=0,
            source="fallback",
            error=f"{FALLBACK_FAILED_ERROR}: {str(exc)[:200]}",
        )

    logger.info("aggregation_fallback_used", articles_count=len(articles))
    return AggregateResult(items=articles, succeeded_count=0, source="fallback")


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


async def aggregate(
    sources: Sequence[dict[str, Any]],
    fetch: FetchFn,
    *,
    limit: int,
    fallback: FallbackFn | None = None,
    item_filter: Callable[[ArticleRecord], bool] | None = None,
) -> AggregateResult:
    """Aggregate articles from *sources*.  Never raises for upstream failures.

    Args:
        sources: Feed configs, each with at least a ``name`` key.
        fetch: Coroutine function fetching one source.
        limit: Maximum number of articles returned.
        fallback: Secondary fetch used only when every source failed.
        item_filter: Predicate applied before ordering.
    """
    results = await asyncio.gather(*(fetch(source) for source in sources), return_exceptions=True)

    collected: list[ArticleRecord] = []
    succeeded = 0
    for source, result in zip(sources, results):
        name = source.get("name", "?")
        if isinstance(result, BaseException):
            logger.warning("aggregation_source_failed", source=name, error=str(result))
            continue
        if not result:
            logger.info("aggregation_source_empty", source=name)
            continue
        collected.extend(result)
        succeeded += 1

    if succeeded == 0:
        outcome = await _run_fallback(fallback)
        items = order_and_limit(outcome.items, limit, item_filter)
        return outcome.model_copy(update={"items": tag_sentiment(items)})

    items = order_and_limit(collected, limit, item_filter)
    logger.info(
        "aggregation_complete",
        sources=len(sources),
        succeeded=succeeded,
        collected=len(collected),
        returned=len(items),
    )
    return AggregateResult(items=tag_sentiment(items), succeeded_count=succeeded, source="rss")


# ---------------------------------------------------------------------------
# Configured aggregators
# ---------------------------------------------------------------------------


def _feed_fetcher(timeout: float, transport: httpx.AsyncBaseTransport | None) -> FetchFn:
    async def _fetch(feed: dict[str, Any]) -> list[ArticleRecord]:
        return await fetch_feed(feed, timeout=timeout, transport=transport)

    return _fetch


async def aggregate_financial_news(
    *,
    news_api_key: str = "",
    limit: int = FINANCIAL_NEWS_LIMIT,
    feeds: Sequence[dict[str, Any]] = FINANCIAL_FEEDS,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AggregateResult:
    """Financial RSS feeds with NewsAPI top headlines as the fallback."""
    fallback = None
    if news_api_key:
        provider = NewsApiProvider(news_api_key, timeout=timeout, transport=transport)
        fallback = provider.fetch_top_headlines

    return await aggregate(feeds, _feed_fetcher(timeout, transport), limit=limit, fallback=fallback)


async def aggregate_ai_news(
    *,
    limit: int = AI_NEWS_LIMIT,
    feeds: Sequence[dict[str, Any]] = AI_FEEDS,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AggregateResult:
    """AI/technology feeds, keyword-filtered to AI-relevant stories."""
    return await aggregate(
        feeds,
        _feed_fetcher(timeout, transport),
        limit=limit,
        item_filter=is_ai_related,
    )
