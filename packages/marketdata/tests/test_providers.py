"""Tests for the provider adapters' JSON mapping and HTTP behaviour."""

import httpx
import pytest

from marketdata.errors import (
    MalformedUpstreamPayload,
    MissingRequiredInput,
    UnsupportedCapability,
    UpstreamUnavailable,
)
from marketdata.models import Credentials
from marketdata.providers import build_provider
from marketdata.providers.alpha_vantage import (
    AlphaVantageProvider,
    parse_daily_series,
    parse_global_quote,
    parse_overview,
    parse_percent,
    parse_sector_performance,
)
from marketdata.providers.finnhub import (
    FinnhubProvider,
    first_present,
    parse_candles,
    parse_fundamentals,
    parse_metrics,
    parse_news_sentiment,
    parse_quote,
    summarize_recommendations,
)
from marketdata.providers.newsapi import NewsApiProvider, parse_articles
from marketdata.providers.yahoo import (
    YahooProvider,
    parse_chart_quote,
    parse_chart_series,
    parse_quote_summary,
    unix_to_date,
)


CHART_PAYLOAD = {
    "chart": {
        "result": [
            {
                "meta": {
                    "symbol": "^GSPC",
                    "regularMarketPrice": 4800.0,
                    "chartPreviousClose": 4750.0,
                },
                # 2024-01-02, 2024-01-03, 2024-01-04 (UTC midnight + 14:30)
                "timestamp": [1704205800, 1704292200, 1704378600],
                "indicators": {"quote": [{"close": [4700.5, None, 4800.0]}]},
            }
        ],
        "error": None,
    }
}

QUOTE_SUMMARY_PAYLOAD = {
    "quoteSummary": {
        "result": [
            {
                "price": {"longName": "Apple Inc.", "marketCap": {"raw": 3.0e12, "fmt": "3T"}},
                "summaryDetail": {
                    "trailingPE": {"raw": 30.5, "fmt": "30.50"},
                    "priceToSalesTrailing12Months": {"raw": 7.8},
                },
                "defaultKeyStatistics": {
                    "pegRatio": {"raw": 2.1},
                    "priceToBook": {"raw": 45.0},
                    "trailingEps": {"raw": 6.1},
                    "earningsQuarterlyGrowth": {},
                },
                "financialData": {
                    "profitMargins": {"raw": 0.26},
                    "debtToEquity": {"raw": 150.0},
                    "ebitda": {"raw": 1.3e11},
                    "totalRevenue": {"raw": 3.8e11},
                },
            }
        ]
    }
}


# ---------------------------------------------------------------------------
# Yahoo
# ---------------------------------------------------------------------------


def test_unix_to_date_is_utc():
    assert unix_to_date(1704067200) == "2024-01-01"
    assert unix_to_date(1704153599) == "2024-01-01"


def test_chart_series_drops_null_closes():
    series = parse_chart_series(CHART_PAYLOAD)

    assert [p.date for p in series] == ["2024-01-02", "2024-01-04"]
    assert [p.close for p in series] == [4700.5, 4800.0]


def test_chart_quote_change_is_against_previous_session():
    quote = parse_chart_quote(CHART_PAYLOAD)

    assert quote.symbol == "^GSPC"
    assert quote.price == 4800.0
    # last non-null close before today is 4700.5, not chartPreviousClose
    assert quote.change == pytest.approx(99.5)
    assert quote.change_percent == pytest.approx(99.5 / 4700.5 * 100)


def _chart(meta, closes):
    timestamps = [1704205800 + i * 86400 for i in range(len(closes))]
    return {
        "chart": {
            "result": [
                {"meta": meta, "timestamp": timestamps, "indicators": {"quote": [{"close": closes}]}}
            ]
        }
    }


def test_chart_quote_ignores_window_start_close():
    payload = _chart(
        {"regularMarketPrice": 110.0, "chartPreviousClose": 100.0},
        [101.0, 104.0, 106.0, 108.0, 110.0],
    )
    quote = parse_chart_quote(payload, "SPY")

    assert quote.change == pytest.approx(2.0)
    assert quote.change_percent == pytest.approx(2 / 108 * 100)


def test_chart_quote_prefers_reported_change():
    payload = _chart(
        {
            "regularMarketPrice": 110.0,
            "regularMarketChange": 1.5,
            "regularMarketChangePercent": 1.38,
            "previousClose": 90.0,
        },
        [100.0, 108.0, 110.0],
    )
    quote = parse_chart_quote(payload)

    assert quote.change == 1.5
    assert quote.change_percent == 1.38


def test_chart_quote_previous_close_before_closes():
    payload = _chart({"regularMarketPrice": 110.0, "previousClose": 100.0}, [105.0, 108.0, 110.0])
    assert parse_chart_quote(payload).change == pytest.approx(10.0)


def test_chart_quote_single_bar_uses_chart_previous_close():
    payload = _chart({"regularMarketPrice": 110.0, "chartPreviousClose": 100.0}, [110.0])
    quote = parse_chart_quote(payload)

    assert quote.change == pytest.approx(10.0)
    assert quote.change_percent == pytest.approx(10.0)


@pytest.mark.parametrize(
    "payload",
    [{}, {"chart": {"result": []}}, {"chart": {"result": None, "error": {"code": "Not Found"}}}, []],
)
def test_chart_missing_result_is_malformed(payload):
    with pytest.raises(MalformedUpstreamPayload):
        parse_chart_series(payload)


def test_quote_summary_mapping():
    overview = parse_quote_summary(QUOTE_SUMMARY_PAYLOAD, "aapl")

    assert overview.symbol == "AAPL"
    assert overview.name == "Apple Inc."
    assert overview.market_cap == 3.0e12
    assert overview.pe_ratio == 30.5
    assert overview.peg_ratio == 2.1
    assert overview.debt_to_equity == pytest.approx(1.5)
    assert overview.profit_margin == 0.26
    # empty {raw, fmt} container and absent fields are null, never zero
    assert overview.quarterly_earnings_growth_yoy is None


@pytest.mark.asyncio
async def test_yahoo_fetch_series_over_http(transport_factory):
    transport = transport_factory({"/v8/finance/chart/SPY": (200, CHART_PAYLOAD)})
    provider = YahooProvider(transport=transport)

    series = await provider.fetch_series("SPY", "1mo")
    assert len(series) == 2


@pytest.mark.asyncio
async def test_yahoo_http_error_is_unavailable(transport_factory):
    transport = transport_factory({"/v8/finance/chart/": (500, "boom")})
    provider = YahooProvider(transport=transport)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await provider.fetch_quote("SPY")
    assert exc_info.value.status_code == 500
    assert "boom" in str(exc_info.value)


@pytest.mark.asyncio
async def test_yahoo_invalid_json_is_malformed(transport_factory):
    transport = transport_factory({"/v10/finance/quoteSummary/": (200, "<html>consent</html>")})
    provider = YahooProvider(transport=transport)

    with pytest.raises(MalformedUpstreamPayload):
        await provider.fetch_fundamentals("AAPL")


# ---------------------------------------------------------------------------
# Finnhub
# ---------------------------------------------------------------------------


def test_first_present_walks_in_order():
    metrics = {"peTTM": None, "peBasicExclExtraTTM": 21.0, "peAnnual": 25.0}
    assert first_present(metrics, ("peTTM", "peBasicExclExtraTTM", "peAnnual")) == 21.0
    assert first_present(metrics, ("missing",)) is None


def test_parse_metrics_converts_percent_once():
    fields = parse_metrics({"netProfitMarginTTM": 25.0, "epsGrowthQuarterlyYoy": 12.0})

    assert fields["profit_margin"] == pytest.approx(0.25)
    assert fields["quarterly_earnings_growth_yoy"] == pytest.approx(0.12)


def test_parse_metrics_back_computes_from_ratios():
    fields = parse_metrics(
        {
            "enterpriseValue": 1000.0,  # millions
            "evRevenueTTM": 4.0,
            "evEbitdaTTM": 10.0,
            "peTTM": 24.0,
            "epsGrowthQuarterlyYoy": 12.0,
        }
    )

    assert fields["revenue_ttm"] == pytest.approx(250e6)
    assert fields["ebitda"] == pytest.approx(100e6)
    assert fields["peg_ratio"] == pytest.approx(2.0)


def test_parse_metrics_no_peg_for_negative_growth():
    fields = parse_metrics({"peTTM": 24.0, "epsGrowthQuarterlyYoy": -5.0})
    assert fields["peg_ratio"] is None


def test_parse_fundamentals_market_cap_in_millions():
    overview = parse_fundamentals(
        {"metric": {"marketCapitalization": 2500.0, "peTTM": 14.0}},
        {"name": "Example Co"},
        "exm",
    )

    assert overview.symbol == "EXM"
    assert overview.name == "Example Co"
    assert overview.market_cap == pytest.approx(2.5e9)
    assert overview.debt_to_equity is None


def test_parse_fundamentals_without_metric_map():
    with pytest.raises(MalformedUpstreamPayload):
        parse_fundamentals({}, {}, "X")


def test_finnhub_quote():
    quote = parse_quote({"c": 110.0, "d": 10.0, "dp": 10.0, "pc": 100.0}, "abc")

    assert quote.symbol == "ABC"
    assert quote.change_percent == 10.0


def test_finnhub_quote_unknown_symbol():
    with pytest.raises(MalformedUpstreamPayload):
        parse_quote({"c": 0, "d": None, "dp": None, "pc": 0}, "NOPE")


def test_finnhub_candles():
    series = parse_candles({"s": "ok", "t": [1704240000, 1704153600], "c": [11.0, 10.0]})
    assert [p.close for p in series] == [10.0, 11.0]
    assert parse_candles({"s": "no_data"}) == []


@pytest.mark.parametrize(
    "counts, overall",
    [
        ({"strongBuy": 5, "buy": 3, "hold": 1, "sell": 1, "strongSell": 0}, "BUY"),
        ({"strongBuy": 0, "buy": 2, "hold": 5, "sell": 3, "strongSell": 0}, "SELL"),
        ({"strongBuy": 1, "buy": 4, "hold": 4, "sell": 1, "strongSell": 0}, "HOLD"),
    ],
)
def test_recommendation_consensus(counts, overall):
    payload = [
        {"period": "2024-01-01", "strongBuy": 0, "buy": 0, "hold": 10, "sell": 0, "strongSell": 0},
        {"period": "2024-02-01", **counts},
    ]
    summary = summarize_recommendations(payload, "aapl")

    assert summary.period == "2024-02-01"
    assert summary.overall == overall


@pytest.mark.asyncio
async def test_finnhub_sends_token():
    seen = {}

    def handler(request):
        seen["token"] = request.url.params.get("token")
        return httpx.Response(200, json={"c": 5.0, "d": 0.1, "dp": 2.0, "pc": 4.9})

    provider = FinnhubProvider("secret", transport=httpx.MockTransport(handler))
    quote = await provider.fetch_quote("msft")

    assert seen["token"] == "secret"
    assert quote.price == 5.0


@pytest.mark.asyncio
async def test_finnhub_fundamentals_survive_malformed_profile(transport_factory):
    transport = transport_factory(
        {
            "stock/metric": (200, {"metric": {"peTTM": 20.0}}),
            "stock/profile2": (200, "<html>gateway</html>"),
        }
    )
    overview = await FinnhubProvider("k", transport=transport).fetch_fundamentals("abc")

    assert overview.pe_ratio == 20.0
    assert overview.name == "ABC"


@pytest.mark.asyncio
async def test_finnhub_fundamentals_survive_profile_outage(transport_factory):
    transport = transport_factory(
        {
            "stock/metric": (200, {"metric": {"peTTM": 20.0}}),
            "stock/profile2": (503, "unavailable"),
        }
    )
    overview = await FinnhubProvider("k", transport=transport).fetch_fundamentals("abc")

    assert overview.pe_ratio == 20.0


def test_news_sentiment_mapping():
    summary = parse_news_sentiment(
        {
            "symbol": "AAPL",
            "buzz": {"articlesInLastWeek": 120, "buzz": 1.2, "weeklyAverage": 100.0},
            "companyNewsScore": 0.72,
            "sectorAverageBullishPercent": 0.61,
            "sectorAverageNewsScore": 0.55,
            "sentiment": {"bearishPercent": 0.2, "bullishPercent": 0.8},
        },
        "aapl",
    )

    assert summary.symbol == "AAPL"
    assert summary.bullish_percent == 0.8
    assert summary.bearish_percent == 0.2
    assert summary.company_news_score == 0.72
    assert summary.articles_in_last_week == 120
    assert summary.to_dict()["sectorAverageBullishPercent"] == 0.61


def test_news_sentiment_partial_payload_keeps_nulls():
    summary = parse_news_sentiment({"companyNewsScore": 0.4, "buzz": None}, "xyz")

    assert summary.symbol == "XYZ"
    assert summary.bullish_percent is None
    assert summary.buzz is None


@pytest.mark.parametrize("payload", [{}, {"sentiment": None, "buzz": {}}, [], None])
def test_news_sentiment_without_data_is_malformed(payload):
    with pytest.raises(MalformedUpstreamPayload):
        parse_news_sentiment(payload, "NOPE")


@pytest.mark.asyncio
async def test_finnhub_fetch_news_sentiment(transport_factory):
    transport = transport_factory(
        {"news-sentiment": (200, {"sentiment": {"bullishPercent": 0.65, "bearishPercent": 0.35}})}
    )
    summary = await FinnhubProvider("k", transport=transport).fetch_news_sentiment("msft")

    assert summary.symbol == "MSFT"
    assert summary.bullish_percent == 0.65


# ---------------------------------------------------------------------------
# Alpha Vantage
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "value, expected",
    [("12.34%", 12.34), ("-0.5%", -0.5), ("None", None), ("-", None), ("", None), (None, None)],
)
def test_parse_percent(value, expected):
    assert parse_percent(value) == expected


def test_global_quote():
    quote = parse_global_quote(
        {
            "Global Quote": {
                "01. symbol": "IBM",
                "05. price": "180.50",
                "09. change": "-1.25",
                "10. change percent": "-0.6878%",
            }
        }
    )

    assert quote.symbol == "IBM"
    assert quote.price == 180.5
    assert quote.change == -1.25
    assert quote.change_percent == pytest.approx(-0.6878)


@pytest.mark.parametrize("key", ["Note", "Information", "Error Message"])
def test_in_band_errors_are_malformed(key):
    with pytest.raises(MalformedUpstreamPayload):
        parse_global_quote({key: "Thank you for using Alpha Vantage!"})


def test_daily_series_sorted_ascending():
    series = parse_daily_series(
        {
            "Time Series (Daily)": {
                "2024-01-03": {"4. close": "12.0"},
                "2024-01-02": {"4. close": "11.0"},
                "2024-01-04": {"4. close": "None"},
            }
        }
    )
    assert [(p.date, p.close) for p in series] == [("2024-01-02", 11.0), ("2024-01-03", 12.0)]


def test_overview_none_strings_are_null():
    overview = parse_overview(
        {
            "Symbol": "IBM",
            "Name": "International Business Machines",
            "PERatio": "22.1",
            "PEGRatio": "None",
            "PriceToBookRatio": "-",
            "ProfitMargin": "0.091",
            "QuarterlyEarningsGrowthYOY": "0.15",
        },
        "IBM",
    )

    assert overview.pe_ratio == 22.1
    assert overview.peg_ratio is None
    assert overview.price_to_book is None
    assert overview.profit_margin == pytest.approx(0.091)


def test_overview_empty_payload_is_malformed():
    with pytest.raises(MalformedUpstreamPayload):
        parse_overview({}, "NOPE")


def test_sector_performance_ranks():
    perf = parse_sector_performance(
        {
            "Rank C: 5 Day Performance": {"Energy": "-1.20%", "Information Technology": "2.80%"},
            "Rank D: 1 Month Performance": {"Energy": "3.50%"},
            "Rank E: 3 Month Performance": {"Energy": "6.10%"},
        }
    )

    assert perf["Energy"].one_week == pytest.approx(-1.2)
    assert perf["Energy"].three_month == pytest.approx(6.1)
    assert perf["Information Technology"].one_month is None


@pytest.mark.asyncio
async def test_alpha_vantage_calls_go_through_limiter(transport_factory):
    class CountingLimiter:
        calls = 0

        async def __aenter__(self):
            CountingLimiter.calls += 1
            return self

        async def __aexit__(self, *exc_info):
            return None

    transport = transport_factory(
        {"function=GLOBAL_QUOTE": (200, {"Global Quote": {"05. price": "10", "01. symbol": "X"}})}
    )
    provider = AlphaVantageProvider("key", CountingLimiter(), transport=transport)
    await provider.fetch_quote("X")
    await provider.fetch_quote("X")

    assert CountingLimiter.calls == 2


# ---------------------------------------------------------------------------
# NewsAPI
# ---------------------------------------------------------------------------


def test_newsapi_articles():
    records = parse_articles(
        {
            "status": "ok",
            "articles": [
                {
                    "title": "Markets rise",
                    "url": "https://n.example/1",
                    "publishedAt": "2024-01-01T10:00:00Z",
                    "description": "<b>Stocks</b> up",
                    "source": {"name": "Wire"},
                },
                {"title": "[Removed]", "url": "", "source": {}},
                {"title": None},
                {"title": "No source", "description": None, "source": None},
            ],
        }
    )

    assert [r.title for r in records] == ["Markets rise", "No source"]
    assert records[0].summary == "Stocks up"
    assert records[1].source == "News API"


def test_newsapi_error_status():
    with pytest.raises(MalformedUpstreamPayload):
        parse_articles({"status": "error", "code": "apiKeyInvalid", "message": "bad key"})


@pytest.mark.asyncio
async def test_newsapi_top_headlines(transport_factory):
    transport = transport_factory(
        {"top-headlines": (200, {"status": "ok", "articles": [{"title": "A", "source": {"name": "S"}}]})}
    )
    records = await NewsApiProvider("k", transport=transport).fetch_top_headlines()
    assert [r.title for r in records] == ["A"]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


def test_build_provider():
    assert isinstance(build_provider("yahoo", Credentials()), YahooProvider)
    assert isinstance(build_provider("finnhub", Credentials(finnhub="k")), FinnhubProvider)
    with pytest.raises(ValueError):
        build_provider("bloomberg", Credentials())


def test_build_provider_without_key():
    with pytest.raises(MissingRequiredInput):
        build_provider("alpha_vantage", Credentials())


@pytest.mark.asyncio
async def test_fundamentals_unsupported_by_default():
    class QuotesOnly(YahooProvider):
        async def fetch_fundamentals(self, symbol):
            return await super(YahooProvider, self).fetch_fundamentals(symbol)

    with pytest.raises(UnsupportedCapability):
        await QuotesOnly().fetch_fundamentals("X")
