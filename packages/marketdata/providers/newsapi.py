"""NewsAPI adapter: the secondary news source behind the RSS aggregator."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from marketdata.data.rss_feeds import clean_summary
from marketdata.errors import MalformedUpstreamPayload
from marketdata.http import DEFAULT_TIMEOUT, fetch_json
from marketdata.models import ArticleRecord

logger = structlog.get_logger(__name__)

BASE_URL = "https://newsapi.org/v2"
PROVIDER = "newsapi"

DEFAULT_SOURCE_NAME = "News API"
# Market-wide query used by the raw headline proxy.
EVERYTHING_QUERY = "stock OR market OR finance OR economy OR trading OR wall street"
EVERYTHING_SOURCES = "cnbc,bloomberg,the-wall-street-journal"


def parse_articles(payload: Any) -> list[ArticleRecord]:
    """NewsAPI ``articles`` -> records.  Untitled and ``[Removed]`` items are dropped."""
    if not isinstance(payload, dict):
        raise MalformedUpstreamPayload(PROVIDER, "payload is not an object")
    if payload.get("status") == "error":
        raise MalformedUpstreamPayload(PROVIDER, payload.get("message") or payload.get("code") or "error")
    articles = payload.get("articles")
    if not isinstance(articles, list):
        raise MalformedUpstreamPayload(PROVIDER, "missing articles")

    records = []
    for article in articles:
        if not isinstance(article, dict):
            continue
        title = (article.get("title") or "").strip()
        if not title or title == "[Removed]":
            continue
        source = article.get("source") or {}
        records.append(
            ArticleRecord(
                title=title,
                url=article.get("url") or "",
                published_at=article.get("publishedAt") or "",
                summary=clean_summary(article.get("description") or ""),
                source=(source.get("name") if isinstance(source, dict) else None) or DEFAULT_SOURCE_NAME,
            )
        )
    return records


class NewsApiProvider:
    name = PROVIDER

    def __init__(
        self,
        api_key: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def _call(self, endpoint: str, params: dict[str, Any]) -> Any:
        # Key goes in a header so it never lands in logged URLs.
        return await fetch_json(
            f"{BASE_URL}/{endpoint}",
            provider=PROVIDER,
            params=params,
            headers={"X-Api-Key": self.api_key},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def fetch_top_headlines(self, page_size: int = 30) -> list[ArticleRecord]:
        payload = await self._call(
            "top-headlines",
            {"category": "business", "language": "en", "pageSize": page_size},
        )
        records = parse_articles(payload)
        logger.info("newsapi_headlines_fetched", count=len(records))
        return records

    async def fetch_everything(self, page_size: int = 20) -> dict[str, Any]:
        """Raw ``/everything`` payload for the headline proxy endpoint."""
        payload = await self._call(
            "everything",
            {
                "q": EVERYTHING_QUERY,
                "sources": EVERYTHING_SOURCES,
                "language": "en",
                "sortBy": "publishedAt",
                "pageSize": page_size,
            },
        )
        if not isinstance(payload, dict):
            raise MalformedUpstreamPayload(PROVIDER, "payload is not an object")
        if payload.get("status") == "error":
            raise MalformedUpstreamPayload(PROVIDER, payload.get("message") or "error")
        return payload
