"""News feed API endpoints.

Aggregated financial and AI news from public RSS/Atom feeds, plus a raw
NewsAPI headline proxy.  The aggregation endpoints always answer 200; when
every feed fails the body carries an empty ``articles`` list and ``error``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Depends

from api_server.config import Settings, get_settings
from api_server.deps import resolve_credentials
from marketdata.data.aggregation import aggregate_ai_news, aggregate_financial_news
from marketdata.errors import MissingRequiredInput
from marketdata.models import AggregateResult
from marketdata.providers.newsapi import NewsApiProvider

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/news", tags=["news"])


def _feed_response(result: AggregateResult) -> dict[str, Any]:
    body: dict[str, Any] = {
        "articles": [article.to_dict() for article in result.items],
        "source": result.source,
        "feedsLoaded": result.succeeded_count,
    }
    if result.error:
        body["error"] = result.error
    return body


@router.get("/financial")
async def financial_news(
    apikey: str | None = None,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Return the merged financial news tape, newest first, sentiment-tagged.

    ``apikey`` overrides the configured NewsAPI key used as the fallback.
    """
    creds = resolve_credentials(settings, apikey, provider="news_api")
    result = await aggregate_financial_news(
        news_api_key=creds.news_api,
        limit=settings.FINANCIAL_NEWS_LIMIT,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    logger.info(
        "financial_news_request",
        articles_count=len(result.items),
        source=result.source,
        feeds_loaded=result.succeeded_count,
    )
    return _feed_response(result)


@router.get("/ai")
async def ai_news(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Return AI-related stories from technology feeds."""
    result = await aggregate_ai_news(
        limit=settings.AI_NEWS_LIMIT,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )
    logger.info("ai_news_request", articles_count=len(result.items), feeds_loaded=result.succeeded_count)
    return _feed_response(result)


@router.get("/headlines")
async def headlines(
    apikey: str | None = None,
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """Proxy NewsAPI ``/everything`` market headlines unchanged."""
    creds = resolve_credentials(settings, apikey, provider="news_api")
    if not creds.news_api:
        raise MissingRequiredInput("news_api apikey")
    provider = NewsApiProvider(creds.news_api, timeout=settings.HTTP_TIMEOUT_SECONDS)
    return await provider.fetch_everything()
