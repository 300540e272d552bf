"""Data layer: upstream adapters, caching, circuit breaking and coordination."""

from market_mcp.data.adapters import ConfigurationError, DataAdapter, ServerShuttingDownError
from market_mcp.data.cache import TTLCache
from market_mcp.data.calendar import ForexFactoryCalendar, generate_calendar
from market_mcp.data.circuit_breaker import CircuitBreaker
from market_mcp.data.coordinator import (
    SOURCE_PRIORITY,
    DataFetchCoordinator,
    close_coordinator,
    get_coordinator,
)
from market_mcp.data.news import FinnhubNewsSource, YahooNewsSource
from market_mcp.data.price_sources import (
    FinnhubSource,
    MetalsLiveSource,
    PriceSource,
    TwelveDataSource,
    YahooFinanceSource,
)
from market_mcp.data.yfinance_client import shutdown_executor

__all__ = [
    # Adapter plumbing
    "CircuitBreaker",
    "ConfigurationError",
    "DataAdapter",
    "ServerShuttingDownError",
    "TTLCache",
    # Sources
    "FinnhubNewsSource",
    "FinnhubSource",
    "ForexFactoryCalendar",
    "MetalsLiveSource",
    "PriceSource",
    "TwelveDataSource",
    "YahooFinanceSource",
    "YahooNewsSource",
    "generate_calendar",
    # Coordination
    "SOURCE_PRIORITY",
    "DataFetchCoordinator",
    "close_coordinator",
    "get_coordinator",
    "shutdown_executor",
]
