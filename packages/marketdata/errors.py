"""Error taxonomy for upstream fetching, normalisation and analytics."""

from __future__ import annotations


class MarketDataError(Exception):
    """Base class for every error raised by the marketdata package."""


class UpstreamError(MarketDataError):
    """A single provider call failed; callers isolate it and move on."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.message = message


class UpstreamUnavailable(UpstreamError):
    """Network failure, timeout, or non-2xx response from a provider."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(provider, message)
        self.status_code = status_code
        self.body = body


class MalformedUpstreamPayload(UpstreamError):
    """Body could not be decoded or lacks the expected nested path."""


class NoUsableSource(MarketDataError):
    """Every configured source failed and no fallback produced data."""


class MissingRequiredInput(MarketDataError):
    """A required parameter (symbol, credential) was not supplied."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing required input: {name}")
        self.name = name


class UnsupportedCapability(MarketDataError):
    """The selected provider does not offer the requested data."""

    def __init__(self, provider: str, capability: str) -> None:
        super().__init__(f"{provider} does not support {capability}")
        self.provider = provider
        self.capability = capability


class InsufficientData(MarketDataError, ValueError):
    """Input series is too short for the requested computation."""
