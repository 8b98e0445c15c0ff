"""Fixtures for api-server endpoint tests."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api_server.config import Settings, get_settings
from api_server.deps import get_alpha_vantage_limiter
from api_server.main import app
from marketdata.ratelimit import RateLimiter


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        FINNHUB_API_KEY="",
        ALPHA_VANTAGE_API_KEY="",
        NEWS_API_KEY="",
        SCREENER_SYMBOLS="AAA,BBB",
    )


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_alpha_vantage_limiter] = lambda: RateLimiter(0.0)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def json_transport():
    """MockTransport factory answering every request with one JSON body."""

    def factory(body, status=200):
        def handler(request):
            return httpx.Response(status, content=json.dumps(body).encode(),
                                  headers={"content-type": "application/json"})

        return httpx.MockTransport(handler)

    return factory
