"""Upstream market data providers behind a common capability interface."""

from __future__ import annotations

from typing import Any

from marketdata.errors import MissingRequiredInput
from marketdata.models import Credentials
from marketdata.providers.alpha_vantage import AlphaVantageProvider
from marketdata.providers.base import MarketDataProvider
from marketdata.providers.finnhub import FinnhubProvider
from marketdata.providers.yahoo import YahooProvider


def build_provider(name: str, credentials: Credentials, **kwargs: Any) -> MarketDataProvider:
    """Construct a provider by name.

    Raises:
        ValueError: unknown provider name.
        MissingRequiredInput: the provider needs a key that is not configured.
    """
    key = name.strip().lower()
    if key == "yahoo":
        return YahooProvider(**kwargs)
    if key == "finnhub":
        if not credentials.finnhub:
            raise MissingRequiredInput("finnhub apikey")
        return FinnhubProvider(credentials.finnhub, **kwargs)
    if key in ("alpha_vantage", "alphavantage"):
        if not credentials.alpha_vantage:
            raise MissingRequiredInput("alpha_vantage apikey")
        return AlphaVantageProvider(credentials.alpha_vantage, **kwargs)
    raise ValueError(f"Unknown provider: {name}")


PROVIDER_NAMES: tuple[str, ...] = ("yahoo", "finnhub", "alpha_vantage")

__all__ = [
    "AlphaVantageProvider",
    "FinnhubProvider",
    "MarketDataProvider",
    "YahooProvider",
    "PROVIDER_NAMES",
    "build_provider",
]
