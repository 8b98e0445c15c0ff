"""Configuration for api-server service loaded from environment variables."""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """API server configuration.

    All fields are loaded from environment variables (or ``.env``).  Provider
    keys are optional: a missing key skips that provider in the aggregators
    and makes single-source endpoints answer 400 unless the request carries
    an ``apikey`` query parameter.
    """

    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    FINNHUB_API_KEY: str = ""
    ALPHA_VANTAGE_API_KEY: str = ""
    NEWS_API_KEY: str = ""  # Fallback source when every financial RSS feed fails

    HTTP_TIMEOUT_SECONDS: float = 6.0
    AI_NEWS_LIMIT: int = 30
    FINANCIAL_NEWS_LIMIT: int = 50
    ALPHA_VANTAGE_MIN_INTERVAL_SECONDS: float = 12.0  # Free tier: 5 calls/minute
    SCREENER_SYMBOLS: str = "AAPL,MSFT,GOOGL,AMZN,META,NVDA,JPM,JNJ,XOM,PG"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def screener_symbols(self) -> list[str]:
        return [s.strip().upper() for s in self.SCREENER_SYMBOLS.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()
