"""News adapters: Finnhub first, yfinance ticker news as the keyless fallback."""

import dataclasses
import logging
import os
from datetime import datetime, timedelta
from typing import Any

import httpx
import pytz

from market_mcp.data.adapters import CACHE_TTL_NEWS, HTTP_TIMEOUT, DataAdapter
from market_mcp.data.price_sources import YahooFinanceSource
from market_mcp.data.yfinance_client import fetch_ticker_news
from market_mcp.models import InstrumentType, NewsItem, NewsResult, as_utc, utc_now
from market_mcp.reasoning.instruments import get_instrument_type
from market_mcp.utils.sanitize import sanitize_text

logger = logging.getLogger(__name__)

DEFAULT_NEWS_LIMIT = 10

_FINNHUB_CATEGORIES = {
    InstrumentType.FOREX: "forex",
    InstrumentType.PRECIOUS_METAL: "forex",
    InstrumentType.CRYPTO: "crypto",
}


def _news_item(
    title: Any, source: Any, published_at: datetime, url: Any = None, summary: Any = None
) -> NewsItem | None:
    title = sanitize_text(title, max_length=200) if isinstance(title, str) else None
    if not title:
        return None
    return NewsItem(
        title=title,
        source=sanitize_text(source, max_length=50) if isinstance(source, str) else "Unknown",
        published_at=published_at,
        url=url if isinstance(url, str) else None,
        summary=sanitize_text(summary, max_length=500) if isinstance(summary, str) else None,
    )


class NewsSource(DataAdapter):
    """Base for headline adapters. An empty result is a valid answer."""

    cache_ttl = CACHE_TTL_NEWS

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._transport = transport

    def normalize_params(self, **params: Any) -> dict[str, Any]:
        symbol = params.get("symbol")
        return {
            "symbol": str(symbol).upper().strip() if symbol else None,
            "limit": int(params.get("limit") or DEFAULT_NEWS_LIMIT),
        }

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, NewsResult)

    def mark_cached(self, value: Any) -> Any:
        return dataclasses.replace(value, cached=True)


class FinnhubNewsSource(NewsSource):
    """
    Finnhub headlines.

    Stocks use the company-news endpoint over the last week; everything else
    uses the category feed (forex, crypto or general).
    """

    name = "Finnhub News"
    base_url = "https://finnhub.io/api/v1"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.environ.get("FINNHUB_API_KEY")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, symbol: str | None, limit: int) -> NewsResult:
        kind = get_instrument_type(symbol) if symbol else None
        if kind is InstrumentType.STOCK:
            today = utc_now().date()
            url = f"{self.base_url}/company-news"
            params = {
                "symbol": symbol,
                "from": (today - timedelta(days=7)).isoformat(),
                "to": today.isoformat(),
                "token": self.api_key,
            }
        else:
            url = f"{self.base_url}/news"
            params = {"category": _FINNHUB_CATEGORIES.get(kind, "general"), "token": self.api_key}

        async with httpx.AsyncClient(transport=self._transport, timeout=HTTP_TIMEOUT) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            payload = resp.json()

        if not isinstance(payload, list):
            raise ValueError("Finnhub news: expected a list")

        items: list[NewsItem] = []
        for raw in payload:
            if not isinstance(raw, dict) or not raw.get("datetime"):
                continue
            published = datetime.fromtimestamp(int(raw["datetime"]), tz=pytz.utc)
            item = _news_item(
                raw.get("headline"), raw.get("source"), published, raw.get("url"), raw.get("summary")
            )
            if item is not None:
                items.append(item)
            if len(items) >= limit:
                break

        return NewsResult(items=tuple(items), source=self.name)


class YahooNewsSource(NewsSource):
    """yfinance ticker news. Needs no key."""

    name = "Yahoo Finance News"

    async def fetch(self, symbol: str | None, limit: int) -> NewsResult:
        # Without a symbol, S&P 500 headlines stand in for "the market"
        yahoo_symbol = YahooFinanceSource.yahoo_symbol(symbol) if symbol else "^GSPC"
        raw_items = await fetch_ticker_news(yahoo_symbol)

        items: list[NewsItem] = []
        for raw in raw_items:
            content = raw.get("content", {}) if isinstance(raw, dict) else {}
            pub_date_str = content.get("pubDate")
            if not pub_date_str:
                continue

            try:
                published = as_utc(datetime.fromisoformat(pub_date_str.replace("Z", "+00:00")))
            except (ValueError, AttributeError):
                continue

            canonical = content.get("canonicalUrl") or {}
            item = _news_item(
                content.get("title"),
                (content.get("provider") or {}).get("displayName", "Unknown"),
                published,
                canonical.get("url"),
                content.get("summary"),
            )
            if item is not None:
                items.append(item)

        items.sort(key=lambda i: i.published_at, reverse=True)
        return NewsResult(items=tuple(items[:limit]), source=self.name)


def default_news_sources(transport: httpx.AsyncBaseTransport | None = None) -> list[NewsSource]:
    """News sources in the order they are tried."""
    return [FinnhubNewsSource(transport=transport), YahooNewsSource(transport=transport)]
