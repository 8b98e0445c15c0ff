"""Abstract base class for quote / series / fundamentals providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import httpx

from marketdata.errors import UnsupportedCapability
from marketdata.http import DEFAULT_TIMEOUT, fetch_json
from marketdata.models import FundamentalsOverview, NormalizedQuote, NormalizedSeries


class MarketDataProvider(ABC):
    """Provider interface consumed by the API and the screener.

    Callers only ever see the normalised models; provider-specific field
    names stay inside each adapter's ``parse_*`` functions.  Every method
    raises :class:`UpstreamError` subclasses on failure.
    """

    name: str = "provider"

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    async def _get_json(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        return await fetch_json(
            url,
            provider=self.name,
            params=params,
            headers=headers,
            timeout=self.timeout,
            transport=self.transport,
        )

    @abstractmethod
    async def fetch_quote(self, symbol: str) -> NormalizedQuote:
        ...

    @abstractmethod
    async def fetch_series(self, symbol: str, range_: str = "1y") -> NormalizedSeries:
        ...

    async def fetch_fundamentals(self, symbol: str) -> FundamentalsOverview:
        raise UnsupportedCapability(self.name, "fundamentals")
