"""Price quote adapters.

Each source declares which instrument classes it can quote and whether it is
configured. The coordinator decides which answer to trust.
"""

import dataclasses
import os
from typing import Any

import httpx

from market_mcp.data.adapters import CACHE_TTL_PRICE, HTTP_TIMEOUT, DataAdapter
from market_mcp.data.yfinance_client import bars_to_quote, fetch_daily_bars
from market_mcp.models import InstrumentType, MarketDataSnapshot, utc_now
from market_mcp.reasoning.instruments import get_instrument_type

_ALL_TYPES = frozenset(InstrumentType)

_YAHOO_SYMBOLS = {
    # Metals and energy quote off front-month futures on Yahoo
    "XAUUSD": "GC=F",
    "XAGUSD": "SI=F",
    "USOIL": "CL=F",
    "UKOIL": "BZ=F",
    "NATGAS": "NG=F",
    "SPX500": "^GSPC",
    "NAS100": "^NDX",
    "US30": "^DJI",
    "GER40": "^GDAXI",
    "UK100": "^FTSE",
    "JPN225": "^N225",
    "DXY": "DX-Y.NYB",
}

_TWELVE_DATA_INDICES = {"SPX500": "SPX", "NAS100": "NDX", "US30": "DJI"}


def build_snapshot(
    symbol: str,
    price: float,
    source: str,
    open_: float | None = None,
    high: float | None = None,
    low: float | None = None,
    previous_close: float | None = None,
    timestamp: Any = None,
) -> MarketDataSnapshot:
    """Assemble a snapshot, deriving change fields from previous close."""
    change = change_percent = None
    if previous_close:
        change = price - previous_close
        change_percent = round(change / previous_close * 100, 2)
    return MarketDataSnapshot(
        symbol=symbol,
        price=price,
        open=open_,
        high=high,
        low=low,
        previous_close=previous_close,
        change=change,
        change_percent=change_percent,
        timestamp=timestamp or utc_now(),
        source=source,
    )


def _float_or_none(value: Any) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result == result else None  # NaN check


class PriceSource(DataAdapter):
    """Base for quote adapters. `fetch(symbol=...)` returns a snapshot or None."""

    cache_ttl = CACHE_TTL_PRICE
    supports: frozenset[InstrumentType] = _ALL_TYPES

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._transport = transport

    def supports_symbol(self, symbol: str) -> bool:
        return get_instrument_type(symbol) in self.supports

    def normalize_params(self, **params: Any) -> dict[str, Any]:
        return {"symbol": str(params["symbol"]).upper().strip()}

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, MarketDataSnapshot) and output.has_price

    def mark_cached(self, value: Any) -> Any:
        return dataclasses.replace(value, cached=True)

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        async with httpx.AsyncClient(transport=self._transport, timeout=HTTP_TIMEOUT) as client:
            resp = await client.get(url, **kwargs)
            resp.raise_for_status()
            return resp.json()


class YahooFinanceSource(PriceSource):
    """Free generic quotes via yfinance. Futures contracts for metals and energy."""

    name = "Yahoo Finance"

    @staticmethod
    def yahoo_symbol(symbol: str) -> str:
        if symbol in _YAHOO_SYMBOLS:
            return _YAHOO_SYMBOLS[symbol]
        kind = get_instrument_type(symbol)
        if kind is InstrumentType.FOREX:
            return f"{symbol}=X"
        if kind is InstrumentType.CRYPTO and symbol.endswith("USD"):
            return f"{symbol[:-3]}-USD"
        return symbol

    async def fetch(self, symbol: str) -> MarketDataSnapshot | None:
        df = await fetch_daily_bars(self.yahoo_symbol(symbol))
        quote = bars_to_quote(df)
        if quote is None:
            return None
        return build_snapshot(
            symbol,
            quote["price"],
            self.name,
            open_=quote["open"],
            high=quote["high"],
            low=quote["low"],
            previous_close=quote["previous_close"],
            timestamp=quote["timestamp"],
        )


class FinnhubSource(PriceSource):
    """Finnhub quotes; OANDA spot feed for FX and metals."""

    name = "Finnhub"
    supports = frozenset({
        InstrumentType.FOREX,
        InstrumentType.PRECIOUS_METAL,
        InstrumentType.CRYPTO,
        InstrumentType.STOCK,
    })
    url = "https://finnhub.io/api/v1/quote"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.environ.get("FINNHUB_API_KEY")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def finnhub_symbol(symbol: str) -> str:
        kind = get_instrument_type(symbol)
        if kind in (InstrumentType.FOREX, InstrumentType.PRECIOUS_METAL):
            return f"OANDA:{symbol[:3]}_{symbol[3:]}"
        if kind is InstrumentType.CRYPTO and symbol.endswith("USD"):
            return f"BINANCE:{symbol[:-3]}USDT"
        return symbol

    async def fetch(self, symbol: str) -> MarketDataSnapshot | None:
        q = await self._get_json(
            self.url, params={"symbol": self.finnhub_symbol(symbol), "token": self.api_key}
        )
        price = _float_or_none(q.get("c")) if isinstance(q, dict) else None
        if not price or price <= 0:
            return None
        return build_snapshot(
            symbol,
            price,
            self.name,
            open_=_float_or_none(q.get("o")),
            high=_float_or_none(q.get("h")),
            low=_float_or_none(q.get("l")),
            previous_close=_float_or_none(q.get("pc")),
        )


class TwelveDataSource(PriceSource):
    """Twelve Data generic quote API."""

    name = "Twelve Data"
    supports = frozenset({
        InstrumentType.FOREX,
        InstrumentType.PRECIOUS_METAL,
        InstrumentType.CRYPTO,
        InstrumentType.INDEX,
        InstrumentType.STOCK,
    })
    url = "https://api.twelvedata.com/quote"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.environ.get("TWELVE_DATA_API_KEY")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @staticmethod
    def twelve_data_symbol(symbol: str) -> str:
        if symbol in _TWELVE_DATA_INDICES:
            return _TWELVE_DATA_INDICES[symbol]
        kind = get_instrument_type(symbol)
        if kind in (InstrumentType.FOREX, InstrumentType.PRECIOUS_METAL):
            return f"{symbol[:3]}/{symbol[3:]}"
        if kind is InstrumentType.CRYPTO and symbol.endswith("USD"):
            return f"{symbol[:-3]}/USD"
        return symbol

    async def fetch(self, symbol: str) -> MarketDataSnapshot | None:
        q = await self._get_json(
            self.url, params={"symbol": self.twelve_data_symbol(symbol), "apikey": self.api_key}
        )
        if not isinstance(q, dict) or q.get("status") == "error":
            message = q.get("message") if isinstance(q, dict) else "unexpected payload"
            raise ValueError(f"Twelve Data error: {message}")
        price = _float_or_none(q.get("close"))
        if not price or price <= 0:
            return None
        return build_snapshot(
            symbol,
            price,
            self.name,
            open_=_float_or_none(q.get("open")),
            high=_float_or_none(q.get("high")),
            low=_float_or_none(q.get("low")),
            previous_close=_float_or_none(q.get("previous_close")),
        )


class MetalsLiveSource(PriceSource):
    """Dedicated spot feed for gold and silver."""

    name = "Metals Live"
    supports = frozenset({InstrumentType.PRECIOUS_METAL})
    url = "https://api.metals.live/v1/spot"

    def __init__(self, api_key: str | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.api_key = api_key if api_key is not None else os.environ.get("METALS_API_KEY")

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def fetch(self, symbol: str) -> MarketDataSnapshot | None:
        metal = "gold" if symbol.startswith("XAU") else "silver"
        data = await self._get_json(
            f"{self.url}/{metal}", headers={"x-rapidapi-key": self.api_key}
        )
        # Payload is either {"price": ..} or a list of such entries
        if isinstance(data, list):
            data = data[-1] if data else {}
        price = _float_or_none(data.get("price")) if isinstance(data, dict) else None
        if not price or price <= 0:
            return None
        return build_snapshot(symbol, price, self.name)


def default_price_sources(transport: httpx.AsyncBaseTransport | None = None) -> list[PriceSource]:
    """One instance of every known price source."""
    return [
        MetalsLiveSource(transport=transport),
        FinnhubSource(transport=transport),
        YahooFinanceSource(transport=transport),
        TwelveDataSource(transport=transport),
    ]
