"""
Shared test fixtures for the marketdata test suite.

Provides:
- RSS 2.0 and Atom feed documents (well-formed and broken)
- Price series builders
- An httpx.MockTransport factory routing by URL substring
"""

import json
from datetime import date, timedelta

import httpx
import pytest

from marketdata.models import PricePoint


RSS_SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Sample Markets</title>
    <item>
      <title>Fed raises rates</title>
      <link>https://example.com/fed</link>
      <description>Markets see decline amid growth concerns</description>
      <pubDate>Mon, 01 Jan 2024 00:00:00 GMT</pubDate>
    </item>
    <item>
      <title><![CDATA[Stocks rally on <b>strong</b> earnings]]></title>
      <guid>https://example.com/rally</guid>
      <description><![CDATA[<p>Shares &amp; bonds <a href="x">surge</a> higher.</p>]]></description>
      <dc:date>2024-01-02T10:00:00Z</dc:date>
    </item>
    <item>
      <title></title>
      <link>https://example.com/untitled</link>
    </item>
  </channel>
</rss>
"""

ATOM_SAMPLE = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>AI Lab Blog</title>
  <entry>
    <title>New machine learning model released</title>
    <link rel="self" href="https://example.com/self"/>
    <link rel="alternate" href="https://example.com/model"/>
    <updated>2024-03-05T12:00:00Z</updated>
    <summary type="html">&lt;p&gt;A bigger &lt;em&gt;neural network&lt;/em&gt;.&lt;/p&gt;</summary>
  </entry>
  <entry>
    <title>Quarterly update</title>
    <link href="https://example.com/quarterly"/>
    <published>2024-03-01T08:00:00Z</published>
    <content>Nothing about robots here.</content>
  </entry>
</feed>
"""

# Unescaped ampersand makes this invalid XML.
BROKEN_RSS = """<rss><channel>
<item><title>Oil & gas slump</title><link>https://example.com/oil</link>
<pubDate>Tue, 02 Jan 2024 09:00:00 GMT</pubDate>
<description>Prices fall & drop</description></item>
<item><title>Second & story</title><link>https://example.com/second</link></item>
</channel></rss>
"""


def make_series(closes, start=date(2024, 1, 1)):
    """Build an ascending PricePoint list from closes, one point per day."""
    return [
        PricePoint(date=(start + timedelta(days=i)).isoformat(), close=float(close))
        for i, close in enumerate(closes)
    ]


def mock_transport(routes):
    """MockTransport answering by the first URL substring found in *routes*.

    Route values are ``(status, body)`` where body is a str or JSON-able
    object, or an exception instance to raise.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        for fragment, reply in routes.items():
            if fragment in url:
                if isinstance(reply, Exception):
                    raise reply
                status, body = reply
                if isinstance(body, str):
                    return httpx.Response(status, text=body)
                return httpx.Response(status, content=json.dumps(body).encode(),
                                      headers={"content-type": "application/json"})
        return httpx.Response(404, text="not found")

    return httpx.MockTransport(handler)


@pytest.fixture
def rss_sample():
    return RSS_SAMPLE


@pytest.fixture
def atom_sample():
    return ATOM_SAMPLE


@pytest.fixture
def broken_rss():
    return BROKEN_RSS


@pytest.fixture
def rising_series():
    """250 strictly increasing closes."""
    return make_series([100 + i * 0.5 for i in range(250)])


@pytest.fixture
def series_factory():
    return make_series


@pytest.fixture
def transport_factory():
    return mock_transport
