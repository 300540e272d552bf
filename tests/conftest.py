"""Pytest configuration and fixtures."""

import asyncio
from datetime import datetime, timedelta
from typing import Any

import pandas as pd
import pytest
import pytz

from market_mcp.data.circuit_breaker import CircuitBreaker
from market_mcp.data.price_sources import PriceSource, build_snapshot
from market_mcp.models import (
    CalendarResult,
    EconomicEvent,
    InstrumentType,
    MarketDataSnapshot,
    NewsItem,
    NewsResult,
)

# Wednesday, mid London/New York overlap
FIXED_NOW = datetime(2024, 1, 3, 14, 0, tzinfo=pytz.utc)


class FakePriceSource(PriceSource):
    """Price source with scripted behaviour; counts how often fetch runs."""

    def __init__(
        self,
        name: str,
        price: float | None = 100.0,
        delay: float = 0.0,
        error: Exception | None = None,
        supports: frozenset[InstrumentType] | None = None,
        timestamp: datetime | None = None,
        configured: bool = True,
        **kwargs: Any,
    ):
        kwargs.setdefault("breaker", CircuitBreaker(name))
        super().__init__(name=name, **kwargs)
        self.price = price
        self.delay = delay
        self.error = error
        self.timestamp = timestamp
        self.configured = configured
        if supports is not None:
            self.supports = supports
        self.calls = 0

    def is_configured(self) -> bool:
        return self.configured

    async def fetch(self, symbol: str) -> MarketDataSnapshot | None:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.price is None:
            return None
        return build_snapshot(
            symbol,
            self.price,
            self.name,
            high=self.price * 1.01,
            low=self.price * 0.99,
            previous_close=self.price * 0.995,
            timestamp=self.timestamp,
        )


class StubDataProvider:
    """Stands in for DataFetchCoordinator inside the pipeline."""

    def __init__(
        self,
        market_data: MarketDataSnapshot | None = None,
        news: NewsResult | None = None,
        calendar: CalendarResult | None = None,
        error: Exception | None = None,
    ):
        self.market_data = market_data
        self.news = news or NewsResult(source="Finnhub News")
        self.calendar = calendar or CalendarResult(source="Forex Factory")
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def get_all_data_for_symbol(
        self,
        symbol: str | None,
        request_id: str | None = None,
        include_price: bool = True,
        include_news: bool = True,
        include_calendar: bool = True,
        news_limit: int = 5,
    ) -> dict[str, Any]:
        self.calls.append({
            "symbol": symbol,
            "include_price": include_price,
            "include_news": include_news,
            "include_calendar": include_calendar,
        })
        if self.error is not None:
            raise self.error
        return {
            "market_data": self.market_data if include_price else None,
            "news": self.news if include_news else None,
            "calendar": self.calendar if include_calendar else None,
            "request_id": request_id,
        }


@pytest.fixture
def fixed_now() -> datetime:
    """Deterministic 'now' for scoring and session tests."""
    return FIXED_NOW


@pytest.fixture
def gold_snapshot() -> MarketDataSnapshot:
    """Live gold quote."""
    return MarketDataSnapshot(
        symbol="XAUUSD",
        price=2645.50,
        open=2660.0,
        high=2665.0,
        low=2640.0,
        previous_close=2662.0,
        change=-16.5,
        change_percent=-0.62,
        timestamp=FIXED_NOW,
        source="Finnhub",
    )


@pytest.fixture
def eurusd_snapshot() -> MarketDataSnapshot:
    """Live EURUSD quote."""
    return MarketDataSnapshot(
        symbol="EURUSD",
        price=1.0850,
        high=1.0880,
        low=1.0820,
        previous_close=1.0830,
        change=0.002,
        change_percent=0.18,
        timestamp=FIXED_NOW,
        source="Finnhub",
    )


@pytest.fixture
def sample_news() -> NewsResult:
    """Fresh headlines, including a near-duplicate pair."""
    return NewsResult(
        items=(
            NewsItem(
                title="Gold slides as Fed signals higher rates for longer",
                source="Reuters",
                published_at=FIXED_NOW - timedelta(minutes=30),
            ),
            NewsItem(
                title="Gold slides as Fed signals higher rate for longer",
                source="Bloomberg",
                published_at=FIXED_NOW - timedelta(minutes=40),
            ),
            NewsItem(
                title="Equities mixed ahead of earnings season",
                source="CNBC",
                published_at=FIXED_NOW - timedelta(hours=6),
            ),
        ),
        source="Finnhub News",
    )


@pytest.fixture
def sample_calendar() -> CalendarResult:
    """A just-released US print and a later EUR event."""
    return CalendarResult(
        events=(
            EconomicEvent(
                title="CPI m/m",
                currency="USD",
                impact="high",
                time=FIXED_NOW - timedelta(minutes=10),
                actual="0.4%",
                forecast="0.2%",
                previous="0.1%",
                source="Forex Factory",
            ),
            EconomicEvent(
                title="ECB President Speaks",
                currency="EUR",
                impact="medium",
                time=FIXED_NOW + timedelta(hours=5),
                source="Forex Factory",
            ),
        ),
        source="Forex Factory",
    )


@pytest.fixture
def sample_daily_bars() -> pd.DataFrame:
    """Five daily bars shaped like yfinance history output."""
    return pd.DataFrame(
        {
            "Date": pd.date_range("2024-01-01", periods=5, freq="D", tz="America/New_York"),
            "Open": [2050.0, 2060.0, 2045.0, 2040.0, 2055.0],
            "High": [2065.0, 2070.0, 2055.0, 2060.0, 2068.0],
            "Low": [2045.0, 2040.0, 2030.0, 2035.0, 2050.0],
            "Close": [2060.0, 2045.0, 2040.0, 2055.0, 2062.5],
            "Volume": [1000] * 5,
        }
    ).set_index("Date")
