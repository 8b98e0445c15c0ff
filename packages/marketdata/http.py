"""Outbound HTTP for every provider adapter.

All upstream calls funnel through :func:`fetch_text` / :func:`fetch_json` so
that timeouts, headers and error mapping are applied identically.  Transport
failures, timeouts and non-2xx responses surface as
:class:`UpstreamUnavailable`; bodies that are not JSON surface as
:class:`MalformedUpstreamPayload`.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import structlog

from marketdata.errors import MalformedUpstreamPayload, UpstreamUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 6.0

# Yahoo and several RSS hosts reject non-browser agents.
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

JSON_ACCEPT = "application/json"
FEED_ACCEPT = "application/rss+xml, application/xml, text/xml, */*"

_BODY_PREVIEW_CHARS = 200


async def fetch_text(
    url: str,
    *,
    provider: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """GET *url* and return the decoded body.

    Args:
        url: Absolute upstream URL.
        provider: Provider name used in errors and log events.
        params: Optional query parameters.
        headers: Extra headers merged over the browser defaults.
        timeout: Per-call timeout in seconds.
        transport: Optional httpx transport (tests inject a MockTransport).

    Raises:
        UpstreamUnavailable: on timeout, transport error, or non-2xx status.
    """
    merged_headers = {"User-Agent": BROWSER_USER_AGENT, "Accept": JSON_ACCEPT}
    if headers:
        merged_headers.update(headers)

    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers=merged_headers,
            transport=transport,
        ) as client:
            response = await client.get(url, params=params)
            response.raise_for_status()
    except httpx.TimeoutException as exc:
        logger.warning("upstream_timeout", provider=provider, url=url)
        raise UpstreamUnavailable(provider, f"timed out after {timeout}s") from exc
    except httpx.HTTPStatusError as exc:
        body = exc.response.text[:_BODY_PREVIEW_CHARS]
        logger.warning(
            "upstream_http_error",
            provider=provider,
            status_code=exc.response.status_code,
            url=url,
        )
        raise UpstreamUnavailable(
            provider,
            f"HTTP {exc.response.status_code}: {body}" if body else f"HTTP {exc.response.status_code}",
            status_code=exc.response.status_code,
            body=body,
        ) from exc
    except httpx.RequestError as exc:
        logger.warning("upstream_request_error", provider=provider, url=url, error=str(exc))
        raise UpstreamUnavailable(provider, f"request failed: {exc}") from exc

    return response.text


async def fetch_json(
    url: str,
    *,
    provider: str,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Any:
    """GET *url* and decode the body as JSON.

    Raises:
        UpstreamUnavailable: see :func:`fetch_text`.
        MalformedUpstreamPayload: when the body is not valid JSON.
    """
    body = await fetch_text(
        url,
        provider=provider,
        params=params,
        headers=headers,
        timeout=timeout,
        transport=transport,
    )
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        logger.warning("upstream_invalid_json", provider=provider, url=url)
        raise MalformedUpstreamPayload(provider, "response body is not valid JSON") from exc
