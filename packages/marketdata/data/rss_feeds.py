"""RSS / Atom feed catalogues and parsing.

Parses RSS 2.0, RSS 1.0 (RDF) and Atom documents into uniform
:class:`ArticleRecord` lists.  Uses stdlib xml.etree.ElementTree for
well-formed documents and falls back to a tolerant entry-boundary scanner
for the many real-world feeds that are not valid XML (stray ``&``, HTML
entities, truncated bodies).  Fetching uses httpx via :mod:`marketdata.http`.
"""

from __future__ import annotations

import html
import re
import xml.etree.ElementTree as ET
from typing import Any

import httpx
import structlog

from marketdata.http import DEFAULT_TIMEOUT, FEED_ACCEPT, fetch_text
from marketdata.models import ArticleRecord

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Feed catalogues (all free, public feeds)
# ---------------------------------------------------------------------------

FINANCIAL_FEEDS: list[dict[str, Any]] = [
    {"name": "Reuters", "url": "https://feeds.reuters.com/reuters/businessNews"},
    {"name": "MarketWatch", "url": "https://feeds.marketwatch.com/marketwatch/topstories/"},
    {
        "name": "CNBC",
        "url": "https://search.cnbc.com/rs/search/combinedcms/view.xml?partnerId=wrss01&id=10000664",
    },
    {"name": "Seeking Alpha", "url": "https://seekingalpha.com/feed.xml"},
    {"name": "AP Business", "url": "https://feeds.apnews.com/rss/business"},
    {"name": "Motley Fool", "url": "https://www.fool.com/feeds/index.aspx"},
    {"name": "Barron's", "url": "https://www.barrons.com/xml/rss/3_7551.xml"},
    {"name": "Financial Times", "url": "https://www.ft.com/rss/home"},
]

AI_FEEDS: list[dict[str, Any]] = [
    {"name": "TechCrunch", "url": "https://techcrunch.com/feed/"},
    {"name": "The Verge", "url": "https://www.theverge.com/rss/index.xml"},
    {"name": "Wired", "url": "https://www.wired.com/feed/rss"},
    {"name": "Ars Technica", "url": "https://feeds.arstechnica.com/arstechnica/index"},
    {"name": "VentureBeat", "url": "https://venturebeat.com/feed/"},
    {"name": "MIT Tech Review", "url": "https://www.technologyreview.com/feed/"},
    {"name": "AI News", "url": "https://www.artificialintelligence-news.com/feed/"},
    {"name": "IEEE Spectrum", "url": "https://spectrum.ieee.org/feeds/feed.rss"},
    {"name": "The Batch", "url": "https://www.deeplearning.ai/the-batch/feed/"},
    {"name": "Reuters Tech", "url": "https://feeds.reuters.com/reuters/technologyNews"},
    {"name": "Bloomberg Tech", "url": "https://feeds.bloomberg.com/technology/news.rss"},
]

# Plain substring match on lowercased title + summary; "ai" also hits "said".
AI_KEYWORDS: tuple[str, ...] = (
    "ai", "artificial intelligence", "machine learning", "llm", "gpt",
    "nvidia", "chip", "semiconductor", "deep learning", "neural", "openai",
    "anthropic", "gemini", "model", "inference", "gpu", "data center",
)

SUMMARY_MAX_CHARS = 300

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
_FEED_ROOT_RE = re.compile(r"<feed\b", re.IGNORECASE)
_ENTRY_RE = re.compile(r"<entry\b[^>]*>(.*?)</entry>", re.DOTALL | re.IGNORECASE)
_ITEM_RE = re.compile(r"<item\b[^>]*>(.*?)</item>", re.DOTALL | re.IGNORECASE)
_LINK_TAG_RE = re.compile(r"<link\b([^>]*)>", re.IGNORECASE)
_ATTR_RE = re.compile(r"([\w:-]+)\s*=\s*[\"']([^\"']*)[\"']")


# ---------------------------------------------------------------------------
# Text cleaning
# ---------------------------------------------------------------------------


def _unwrap_cdata(text_val: str) -> str:
    return _CDATA_RE.sub(lambda m: m.group(1), text_val)


def _strip_html(text_val: str) -> str:
    """Strip HTML tags and decode HTML entities from a string.

    Entities are decoded before tags are removed because most feeds escape
    their HTML (``&lt;p&gt;``).  Any angle bracket left over afterwards is
    dropped as well.
    """
    if not text_val:
        return ""
    cleaned = html.unescape(_unwrap_cdata(text_val))
    cleaned = _HTML_TAG_RE.sub(" ", cleaned)
    cleaned = cleaned.replace("<", " ").replace(">", " ")
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def clean_summary(text_val: str, limit: int = SUMMARY_MAX_CHARS) -> str:
    return _strip_html(text_val)[:limit].rstrip()


def _clean_title(text_val: str) -> str:
    return _strip_html(text_val)


# ---------------------------------------------------------------------------
# ElementTree parsing
# ---------------------------------------------------------------------------


def _local(tag: str) -> str:
    """Return the local part of a possibly namespaced tag."""
    return tag.rsplit("}", 1)[-1] if "}" in tag else tag


def _child(element: ET.Element, *names: str) -> ET.Element | None:
    """First direct child whose local tag name is one of *names*, in order."""
    for name in names:
        for child in element:
            if isinstance(child.tag, str) and _local(child.tag) == name:
                return child
    return None


def _get_text(element: ET.Element | None) -> str:
    """Text content of an element including nested markup, stripped."""
    if element is None:
        return ""
    return "".join(element.itertext()).strip()


def _first_text(element: ET.Element, *names: str) -> str:
    for name in names:
        value = _get_text(_child(element, name))
        if value:
            return value
    return ""


def _parse_rss_item(item: ET.Element, source_name: str) -> ArticleRecord | None:
    title = _clean_title(_first_text(item, "title"))
    if not title:
        return None

    link = _first_text(item, "link") or _first_text(item, "guid")
    published = _first_text(item, "pubDate", "date")
    description = _first_text(item, "description", "encoded")

    return ArticleRecord(
        title=title,
        url=link,
        published_at=published,
        summary=clean_summary(description),
        source=source_name,
    )


def _atom_link(entry: ET.Element) -> str:
    links = [c for c in entry if isinstance(c.tag, str) and _local(c.tag) == "link"]
    for link_elem in links:
        if link_elem.get("rel", "alternate") == "alternate" and link_elem.get("href"):
            return link_elem.get("href", "")
    for link_elem in links:
        if link_elem.get("href"):
            return link_elem.get("href", "")
    for link_elem in links:
        text_val = _get_text(link_elem)
        if text_val:
            return text_val
    return ""


def _parse_atom_entry(entry: ET.Element, source_name: str) -> ArticleRecord | None:
    title = _clean_title(_first_text(entry, "title"))
    if not title:
        return None

    return ArticleRecord(
        title=title,
        url=_atom_link(entry),
        published_at=_first_text(entry, "published", "updated"),
        summary=clean_summary(_first_text(entry, "summary", "content")),
        source=source_name,
    )


def _parse_tree(root: ET.Element, source_name: str) -> list[ArticleRecord]:
    articles: list[ArticleRecord] = []

    if _local(root.tag) == "feed":
        for entry in root:
            if isinstance(entry.tag, str) and _local(entry.tag) == "entry":
                article = _parse_atom_entry(entry, source_name)
                if article:
                    articles.append(article)
        return articles

    # RSS 2.0 (<rss><channel><item>) and RSS 1.0 / RDF (<rdf:RDF><item>)
    for item in root.iter():
        if isinstance(item.tag, str) and _local(item.tag) == "item":
            article = _parse_rss_item(item, source_name)
            if article:
                articles.append(article)
    return articles


# ---------------------------------------------------------------------------
# Tolerant scanner for documents that are not well-formed XML
# ---------------------------------------------------------------------------


def _scan_tag(block: str, tag: str) -> str:
    match = re.search(
        rf"<{re.escape(tag)}\b[^>]*>(.*?)</{re.escape(tag)}>",
        block,
        re.DOTALL | re.IGNORECASE,
    )
    if not match:
        return ""
    return _unwrap_cdata(match.group(1)).strip()


def _scan_first(block: str, *tags: str) -> str:
    for tag in tags:
        value = _scan_tag(block, tag)
        if value:
            return value
    return ""


def _scan_atom_link(block: str) -> str:
    candidates: list[dict[str, str]] = []
    for match in _LINK_TAG_RE.finditer(block):
        attrs = {k.lower(): v for k, v in _ATTR_RE.findall(match.group(1))}
        if attrs.get("href"):
            candidates.append(attrs)
    for attrs in candidates:
        if attrs.get("rel", "alternate") == "alternate":
            return html.unescape(attrs["href"])
    if candidates:
        return html.unescape(candidates[0]["href"])
    return html.unescape(_scan_tag(block, "link"))


def _scan_feed(xml_text: str, source_name: str) -> list[ArticleRecord]:
    articles: list[ArticleRecord] = []

    if _FEED_ROOT_RE.search(xml_text):
        for match in _ENTRY_RE.finditer(xml_text):
            block = match.group(1)
            title = _clean_title(_scan_tag(block, "title"))
            if not title:
                continue
            articles.append(
                ArticleRecord(
                    title=title,
                    url=_scan_atom_link(block),
                    published_at=_scan_first(block, "published", "updated"),
                    summary=clean_summary(_scan_first(block, "summary", "content")),
                    source=source_name,
                )
            )
        return articles

    for match in _ITEM_RE.finditer(xml_text):
        block = match.group(1)
        title = _clean_title(_scan_tag(block, "title"))
        if not title:
            continue
        link = _scan_tag(block, "link") or _scan_tag(block, "guid")
        articles.append(
            ArticleRecord(
                title=title,
                url=html.unescape(link),
                published_at=_scan_first(block, "pubDate", "dc:date"),
                summary=clean_summary(_scan_first(block, "description", "content:encoded")),
                source=source_name,
            )
        )
    return articles


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_feed(xml_text: str, source_name: str) -> list[ArticleRecord]:
    """Parse an RSS or Atom document into article records.

    Never raises: a document in which no entry boundaries can be found
    yields an empty list, which callers treat as a soft failure.

    Args:
        xml_text: Raw feed body.
        source_name: Display name stamped on every record.

    Returns:
        Records in document order.  Entries without a title are dropped.
    """
    if not xml_text or not xml_text.strip():
        return []

    try:
        root = ET.fromstring(xml_text.strip())
    except ET.ParseError as exc:
        logger.debug("xml_parse_error_scanning", source=source_name, error=str(exc))
        return _scan_feed(xml_text, source_name)

    return _parse_tree(root, source_name)


def is_ai_related(article: ArticleRecord) -> bool:
    text_val = f"{article.title} {article.summary}".lower()
    return any(keyword in text_val for keyword in AI_KEYWORDS)


async def fetch_feed(
    feed: dict[str, Any],
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[ArticleRecord]:
    """Fetch and parse a single feed.

    Args:
        feed: Feed config dict with 'name' and 'url' keys.

    Raises:
        UpstreamUnavailable: the feed could not be retrieved.
    """
    xml_text = await fetch_text(
        feed["url"],
        provider=feed["name"],
        headers={"Accept": FEED_ACCEPT},
        timeout=timeout,
        transport=transport,
    )
    articles = parse_feed(xml_text, feed["name"])
    logger.debug("rss_feed_fetched", feed=feed["name"], articles_count=len(articles))
    return articles
