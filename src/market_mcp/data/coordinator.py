"""
Data fetch coordinator.

Owns every adapter (and so every cache and circuit breaker) for the life of
the process. All public methods always return a usable value: upstream
failures become labelled fallbacks, never exceptions.
"""

import asyncio
import dataclasses
import logging
from datetime import date
from time import perf_counter
from typing import Any

import httpx

from market_mcp.data.adapters import ADAPTER_TIMEOUT, ConfigurationError
from market_mcp.data.calendar import (
    ForexFactoryCalendar,
    filter_events,
    generated_calendar_result,
)
from market_mcp.data.news import DEFAULT_NEWS_LIMIT, NewsSource, default_news_sources
from market_mcp.data.price_sources import PriceSource, default_price_sources
from market_mcp.models import (
    CalendarResult,
    CircuitState,
    FetchResult,
    InstrumentType,
    MarketDataSnapshot,
    NewsResult,
    utc_now,
)
from market_mcp.reasoning.instruments import get_instrument_type
from market_mcp.utils.request_id import new_request_id

logger = logging.getLogger(__name__)

# Whole-call budget on top of the per-adapter timeout
COORDINATOR_TIMEOUT = ADAPTER_TIMEOUT + 1.0

POPULAR_SYMBOLS = ("XAUUSD", "EURUSD", "BTCUSD", "SPY", "AAPL")

# Most trusted first. Sources missing from a list rank after all listed ones.
SOURCE_PRIORITY: dict[InstrumentType, tuple[str, ...]] = {
    InstrumentType.PRECIOUS_METAL: ("Metals Live", "Finnhub", "Yahoo Finance", "Twelve Data"),
    InstrumentType.FOREX: ("Finnhub", "Twelve Data", "Yahoo Finance"),
    InstrumentType.CRYPTO: ("Yahoo Finance", "Twelve Data", "Finnhub"),
    InstrumentType.INDEX: ("Yahoo Finance", "Twelve Data"),
    InstrumentType.ENERGY: ("Yahoo Finance", "Twelve Data"),
    InstrumentType.STOCK: ("Finnhub", "Yahoo Finance", "Twelve Data"),
}


def fallback_label(results: list[FetchResult]) -> str:
    """
    Source label for a query no adapter could answer.

    timeout_fallback: every attempt timed out
    error_fallback: at least one attempt failed with an error
    fallback: nothing was attempted or upstreams simply had no data
    """
    attempted = [r for r in results if not r.circuit_open]
    if attempted and all(r.timed_out for r in attempted):
        return "timeout_fallback"
    if any(r.error and not r.timed_out and r.error != "Invalid response" for r in attempted):
        return "error_fallback"
    return "fallback"


def _summarize_errors(results: list[FetchResult]) -> str | None:
    errors = [f"{r.source}: {r.error}" for r in results if r.error]
    return "; ".join(errors) if errors else None


class DataFetchCoordinator:
    """
    Fans queries out to adapters and picks the answer.

    Args:
        price_sources: Quote adapters (default: every known source)
        news_sources: Headline adapters, tried in order
        calendar: Economic calendar adapter
        source_priority: Per-instrument-class priority table; every name must
            belong to a wired price source
        timeout: Whole-call budget per public method
        transport: httpx transport shared by default adapters (tests)
    """

    def __init__(
        self,
        price_sources: list[PriceSource] | None = None,
        news_sources: list[NewsSource] | None = None,
        calendar: ForexFactoryCalendar | None = None,
        source_priority: dict[InstrumentType, tuple[str, ...]] | None = None,
        timeout: float = COORDINATOR_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.price_sources = (
            price_sources if price_sources is not None else default_price_sources(transport)
        )
        self.news_sources = (
            news_sources if news_sources is not None else default_news_sources(transport)
        )
        self.calendar = calendar or ForexFactoryCalendar(transport=transport)
        if source_priority is None:
            # Built-in table, restricted to the sources actually wired in
            known = {s.name for s in self.price_sources}
            source_priority = {
                kind: tuple(n for n in order if n in known)
                for kind, order in SOURCE_PRIORITY.items()
            }
        self.source_priority = dict(source_priority)
        self.timeout = timeout
        self._validate()

    def _validate(self) -> None:
        if self.timeout <= 0:
            raise ConfigurationError(f"Coordinator timeout must be positive, got {self.timeout}")

        names = [s.name for s in self.price_sources]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ConfigurationError(f"Duplicate price source names: {sorted(duplicates)}")

        known = set(names)
        for kind, order in self.source_priority.items():
            if not isinstance(kind, InstrumentType):
                raise ConfigurationError(f"Priority table key must be an InstrumentType: {kind!r}")
            unknown = [n for n in order if n not in known]
            if unknown:
                raise ConfigurationError(
                    f"Priority table for {kind.value} names unknown sources: {unknown}"
                )
            if len(set(order)) != len(order):
                raise ConfigurationError(f"Priority table for {kind.value} repeats a source")

    def _adapters(self) -> list[Any]:
        return [*self.price_sources, *self.news_sources, self.calendar]

    # ------------------------------------------------------------------ price

    def eligible_price_sources(self, symbol: str) -> list[PriceSource]:
        return [s for s in self.price_sources if s.is_configured() and s.supports_symbol(symbol)]

    def select_snapshot(
        self, kind: InstrumentType, candidates: list[MarketDataSnapshot]
    ) -> MarketDataSnapshot:
        """Highest-priority source wins; ties go to the most recent quote."""
        order = self.source_priority.get(kind, ())

        def rank(snapshot: MarketDataSnapshot) -> tuple[int, float]:
            position = order.index(snapshot.source) if snapshot.source in order else len(order)
            return position, -snapshot.timestamp.timestamp()

        return min(candidates, key=rank)

    async def _fetch_market_data(self, symbol: str) -> MarketDataSnapshot:
        sources = self.eligible_price_sources(symbol)
        if not sources:
            return MarketDataSnapshot.fallback(
                symbol, "fallback", error=f"No configured price source supports {symbol}"
            )

        results = list(await asyncio.gather(*(s.execute(symbol=symbol) for s in sources)))
        candidates = [r.data for r in results if r.ok]
        if candidates:
            return self.select_snapshot(get_instrument_type(symbol), candidates)

        snapshot = MarketDataSnapshot.fallback(
            symbol, fallback_label(results), error=_summarize_errors(results) or "No data"
        )
        if all(r.circuit_open for r in results):
            return dataclasses.replace(snapshot, circuit_open=True)
        return snapshot

    async def get_market_data(self, symbol: str, request_id: str | None = None) -> MarketDataSnapshot:
        """Best available quote for `symbol`; price 0 with a fallback source when none."""
        rid = request_id or new_request_id("ds")
        symbol = symbol.upper().strip()
        start = perf_counter()

        try:
            snapshot = await asyncio.wait_for(self._fetch_market_data(symbol), timeout=self.timeout)
        except asyncio.TimeoutError:
            snapshot = MarketDataSnapshot.fallback(symbol, "timeout_fallback", error="Timeout")
        except Exception as e:
            logger.exception(f"[{rid}] market data for {symbol} failed")
            snapshot = MarketDataSnapshot.fallback(symbol, "error_fallback", error=f"Failed to fetch: {e}")

        logger.info(
            f"[{rid}] adapter=market_data symbol={symbol} "
            f"duration_ms={(perf_counter() - start) * 1000:.0f} "
            f"cached={snapshot.cached} source={snapshot.source}"
        )
        return snapshot

    # ------------------------------------------------------------------- news

    async def _fetch_news(self, symbol: str | None, limit: int) -> NewsResult:
        results: list[FetchResult] = []
        empty: NewsResult | None = None

        for source in self.news_sources:
            if not source.is_configured():
                continue
            result = await source.execute(symbol=symbol, limit=limit)
            results.append(result)
            if result.ok:
                if result.data.items:
                    return result.data
                empty = empty or result.data

        if empty is not None:
            return empty
        return NewsResult(source=fallback_label(results), error=_summarize_errors(results))

    async def get_news(
        self, symbol: str | None = None, limit: int = DEFAULT_NEWS_LIMIT, request_id: str | None = None
    ) -> NewsResult:
        """Recent headlines, most relevant source first. Empty list when unavailable."""
        rid = request_id or new_request_id("ds")
        start = perf_counter()

        try:
            news = await asyncio.wait_for(self._fetch_news(symbol, limit), timeout=self.timeout)
        except asyncio.TimeoutError:
            news = NewsResult(source="timeout_fallback", error="Timeout")
        except Exception as e:
            logger.exception(f"[{rid}] news for {symbol or 'general'} failed")
            news = NewsResult(source="error_fallback", error=f"Failed to fetch: {e}")

        logger.info(
            f"[{rid}] adapter=news symbol={symbol or 'general'} count={len(news.items)} "
            f"duration_ms={(perf_counter() - start) * 1000:.0f} "
            f"cached={news.cached} source={news.source}"
        )
        return news

    # --------------------------------------------------------------- calendar

    async def _fetch_calendar(self, impact: str | None, day: date | None) -> CalendarResult:
        result = await self.calendar.execute()
        if result.ok:
            calendar: CalendarResult = result.data
        else:
            calendar = generated_calendar_result(day, error=result.error)
        return CalendarResult(
            events=filter_events(calendar.events, impact=impact, day=day),
            source=calendar.source,
            cached=calendar.cached,
            error=calendar.error,
            note=calendar.note,
        )

    async def get_calendar(
        self, impact: str | None = None, day: date | None = None, request_id: str | None = None
    ) -> CalendarResult:
        """Economic events this week (or on `day`), generated estimates when the feed is down."""
        rid = request_id or new_request_id("ds")
        start = perf_counter()

        try:
            calendar = await asyncio.wait_for(self._fetch_calendar(impact, day), timeout=self.timeout)
        except asyncio.TimeoutError:
            calendar = CalendarResult(source="timeout_fallback", error="Timeout")
        except Exception as e:
            logger.exception(f"[{rid}] calendar failed")
            calendar = CalendarResult(source="error_fallback", error=f"Failed to fetch: {e}")

        logger.info(
            f"[{rid}] adapter=calendar day={day or 'week'} count={len(calendar.events)} "
            f"duration_ms={(perf_counter() - start) * 1000:.0f} "
            f"cached={calendar.cached} source={calendar.source}"
        )
        return calendar

    # -------------------------------------------------------------- combined

    async def get_all_data_for_symbol(
        self,
        symbol: str | None,
        request_id: str | None = None,
        include_price: bool = True,
        include_news: bool = True,
        include_calendar: bool = True,
        news_limit: int = 5,
    ) -> dict[str, Any]:
        """
        Fetch price, news and calendar concurrently, each branch time-boxed.

        Skipped branches come back as None. A slow branch never cancels its
        siblings.
        """
        rid = request_id or new_request_id("ds")
        start = perf_counter()

        async def _none() -> None:
            return None

        market_data, news, calendar = await asyncio.gather(
            self.get_market_data(symbol, rid) if include_price and symbol else _none(),
            self.get_news(symbol, news_limit, rid) if include_news else _none(),
            self.get_calendar(request_id=rid) if include_calendar else _none(),
        )

        duration_ms = (perf_counter() - start) * 1000
        logger.info(
            f"[{rid}] operation=get_all_data_for_symbol symbol={symbol} "
            f"duration_ms={duration_ms:.0f} "
            f"has_price={bool(market_data and market_data.has_price)}"
        )
        return {
            "market_data": market_data,
            "news": news,
            "calendar": calendar,
            "fetch_duration_ms": round(duration_ms, 1),
            "request_id": rid,
        }

    async def prefetch(self, symbols: tuple[str, ...] = POPULAR_SYMBOLS) -> int:
        """Warm the price caches. Returns how many symbols got a live quote."""
        snapshots = await asyncio.gather(*(self.get_market_data(s) for s in symbols))
        return sum(1 for s in snapshots if s.has_price)

    # ----------------------------------------------------------------- health

    def get_health(self) -> dict[str, Any]:
        """Overall status from breaker states: degraded > recovering > healthy."""
        adapters = {a.name: a.get_status() for a in self._adapters()}
        states = {a.breaker.state for a in self._adapters()}

        if CircuitState.OPEN in states:
            status = "degraded"
        elif CircuitState.HALF_OPEN in states:
            status = "recovering"
        else:
            status = "healthy"

        return {
            "healthy": status != "degraded",
            "status": status,
            "adapters": adapters,
            "timestamp": utc_now().isoformat(),
        }

    def close(self) -> None:
        for adapter in self._adapters():
            adapter.close()


_coordinator: DataFetchCoordinator | None = None


def get_coordinator() -> DataFetchCoordinator:
    """Process-wide coordinator, created on first use."""
    global _coordinator
    if _coordinator is None:
        _coordinator = DataFetchCoordinator()
    return _coordinator


def close_coordinator() -> None:
    global _coordinator
    if _coordinator is not None:
        _coordinator.close()
        _coordinator = None
