"""Tests for news adapters."""

import asyncio
import json
from typing import Any
from unittest.mock import AsyncMock, patch

import httpx

from market_mcp.data.news import FinnhubNewsSource, YahooNewsSource

FINNHUB_PAYLOAD = [
    {
        "headline": "Gold &amp; silver slide as dollar firms",
        "source": "Reuters",
        "datetime": 1704290400,  # 2024-01-03 14:00 UTC
        "url": "https://example.com/a",
        "summary": "<p>Metals fell.</p>",
    },
    {"headline": "", "source": "Reuters", "datetime": 1704290400},
    {"headline": "No timestamp", "source": "Reuters"},
    {"headline": "Oil steady", "source": "CNBC", "datetime": 1704286800},
]

YAHOO_PAYLOAD: list[dict[str, Any]] = [
    {
        "content": {
            "title": "Older story",
            "pubDate": "2024-01-03T10:00:00Z",
            "provider": {"displayName": "Yahoo Finance"},
            "canonicalUrl": {"url": "https://example.com/old"},
        }
    },
    {
        "content": {
            "title": "Newer story",
            "pubDate": "2024-01-03T13:00:00Z",
            "provider": {"displayName": "Barron's"},
        }
    },
    {"content": {"title": "Bad date", "pubDate": "yesterday"}},
    {"content": {"title": "No date"}},
]


def _recording_transport(payload: object, seen: list[httpx.Request]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=json.dumps(payload).encode())

    return httpx.MockTransport(handler)


class TestFinnhubNewsSource:
    """Tests for FinnhubNewsSource."""

    def test_parses_and_sanitizes(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport(FINNHUB_PAYLOAD, seen))
        result = asyncio.run(source.execute(symbol="XAUUSD", limit=10))

        news = result.data
        assert news.source == "Finnhub News"
        assert [i.title for i in news.items] == ["Gold & silver slide as dollar firms", "Oil steady"]
        assert news.items[0].summary == "Metals fell."
        assert news.items[0].published_at.isoformat() == "2024-01-03T14:00:00+00:00"

    def test_category_for_metals(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport([], seen))
        asyncio.run(source.execute(symbol="XAUUSD"))

        assert seen[0].url.path == "/api/v1/news"
        assert seen[0].url.params["category"] == "forex"

    def test_company_news_for_stocks(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport([], seen))
        asyncio.run(source.execute(symbol="AAPL"))

        assert seen[0].url.path == "/api/v1/company-news"
        assert seen[0].url.params["symbol"] == "AAPL"
        assert "from" in seen[0].url.params

    def test_general_without_symbol(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport([], seen))
        result = asyncio.run(source.execute(symbol=None))

        assert seen[0].url.params["category"] == "general"
        assert result.ok
        assert result.data.items == ()

    def test_limit(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport(FINNHUB_PAYLOAD, seen))
        result = asyncio.run(source.execute(symbol="EURUSD", limit=1))
        assert len(result.data.items) == 1

    def test_unexpected_payload(self) -> None:
        seen: list[httpx.Request] = []
        source = FinnhubNewsSource(api_key="k", transport=_recording_transport({"error": "x"}, seen))
        result = asyncio.run(source.execute(symbol="EURUSD"))
        assert result.error == "Finnhub news: expected a list"


class TestYahooNewsSource:
    """Tests for YahooNewsSource."""

    def test_parses_newest_first(self) -> None:
        mock_news = AsyncMock(return_value=YAHOO_PAYLOAD)
        with patch("market_mcp.data.news.fetch_ticker_news", new=mock_news):
            result = asyncio.run(YahooNewsSource().execute(symbol="XAUUSD", limit=5))

        mock_news.assert_awaited_once_with("GC=F")
        items = result.data.items
        assert [i.title for i in items] == ["Newer story", "Older story"]
        assert items[0].source == "Barron's"
        assert items[1].url == "https://example.com/old"

    def test_market_news_without_symbol(self) -> None:
        mock_news = AsyncMock(return_value=[])
        with patch("market_mcp.data.news.fetch_ticker_news", new=mock_news):
            result = asyncio.run(YahooNewsSource().execute())

        mock_news.assert_awaited_once_with("^GSPC")
        assert result.ok

    def test_always_configured(self) -> None:
        assert YahooNewsSource().is_configured()
