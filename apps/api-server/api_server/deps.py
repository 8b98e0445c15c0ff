"""Request dependencies: credentials, providers and the shared rate limiter."""

from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, HTTPException

from api_server.config import Settings, get_settings
from marketdata.errors import MissingRequiredInput
from marketdata.models import Credentials
from marketdata.providers import (
    AlphaVantageProvider,
    FinnhubProvider,
    PROVIDER_NAMES,
    MarketDataProvider,
    YahooProvider,
    build_provider,
)
from marketdata.ratelimit import RateLimiter


def resolve_credentials(settings: Settings, apikey: str | None = None, *, provider: str = "") -> Credentials:
    """Environment keys, with a per-request ``apikey`` overriding *provider*'s key."""
    creds = Credentials(
        alpha_vantage=settings.ALPHA_VANTAGE_API_KEY,
        finnhub=settings.FINNHUB_API_KEY,
        news_api=settings.NEWS_API_KEY,
    )
    if apikey and provider:
        field = {"alphavantage": "alpha_vantage"}.get(provider, provider)
        if field in Credentials.model_fields:
            creds = creds.model_copy(update={field: apikey})
    return creds


@lru_cache
def get_alpha_vantage_limiter() -> RateLimiter:
    """Process-wide limiter shared by every Alpha Vantage call."""
    settings = get_settings()
    return RateLimiter(settings.ALPHA_VANTAGE_MIN_INTERVAL_SECONDS, name="alpha_vantage")


def require_symbol(symbol: str | None) -> str:
    if symbol is None or not symbol.strip():
        raise MissingRequiredInput("symbol")
    return symbol.strip().upper()


def get_yahoo(settings: Settings = Depends(get_settings)) -> YahooProvider:
    return YahooProvider(timeout=settings.HTTP_TIMEOUT_SECONDS)


def get_finnhub(
    apikey: str | None = None,
    settings: Settings = Depends(get_settings),
) -> FinnhubProvider:
    creds = resolve_credentials(settings, apikey, provider="finnhub")
    if not creds.finnhub:
        raise MissingRequiredInput("finnhub apikey")
    return FinnhubProvider(creds.finnhub, timeout=settings.HTTP_TIMEOUT_SECONDS)


def get_alpha_vantage(
    apikey: str | None = None,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_alpha_vantage_limiter),
) -> AlphaVantageProvider:
    creds = resolve_credentials(settings, apikey, provider="alpha_vantage")
    if not creds.alpha_vantage:
        raise MissingRequiredInput("alpha_vantage apikey")
    return AlphaVantageProvider(creds.alpha_vantage, limiter, timeout=settings.HTTP_TIMEOUT_SECONDS)


def get_selected_provider(
    provider: str = "yahoo",
    apikey: str | None = None,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_alpha_vantage_limiter),
) -> MarketDataProvider:
    """Provider picked by the ``provider`` query parameter (default Yahoo)."""
    name = provider.strip().lower()
    if name not in PROVIDER_NAMES and name != "alphavantage":
        raise HTTPException(status_code=400, detail=f"Unknown provider: {provider}")
    creds = resolve_credentials(settings, apikey, provider=name)
    if name in ("alpha_vantage", "alphavantage"):
        return build_provider(name, creds, limiter=limiter, timeout=settings.HTTP_TIMEOUT_SECONDS)
    return build_provider(name, creds, timeout=settings.HTTP_TIMEOUT_SECONDS)
