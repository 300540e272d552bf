"""Async yfinance access with bounded concurrency."""

import asyncio
import logging
import math
import os
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, TypeVar

import pandas as pd
import pytz
import yfinance as yf

from market_mcp.data.adapters import ServerShuttingDownError

logger = logging.getLogger(__name__)

# Bounded concurrency for yfinance calls
_max_workers = int(os.environ.get("YF_MAX_WORKERS", "4"))
_executor = ThreadPoolExecutor(max_workers=_max_workers)
_fetch_semaphore = asyncio.Semaphore(_max_workers)

# Shutdown coordination
shutdown_event = asyncio.Event()

T = TypeVar("T")


def _has_value(v: Any) -> bool:
    """
    Check if a value is truly present (not None or NaN).

    yfinance often uses float("nan") for missing numerics, which passes
    `is not None` but should be treated as missing.
    """
    if v is None:
        return False
    if isinstance(v, float) and math.isnan(v):
        return False
    return True


async def _run(operation_name: str, sync_func: Callable[[], T]) -> T:
    """Run a blocking yfinance call on the bounded executor."""
    if shutdown_event.is_set():
        raise ServerShuttingDownError("Server is shutting down")

    async with _fetch_semaphore:
        loop = asyncio.get_running_loop()
        logger.debug(f"{operation_name}: dispatching to executor")
        return await loop.run_in_executor(_executor, sync_func)


async def fetch_daily_bars(yahoo_symbol: str) -> pd.DataFrame:
    """
    Fetch the last few daily bars for a Yahoo symbol.

    Raises:
        ServerShuttingDownError: If server is shutting down
        ValueError: If no data returned
    """

    def _fetch() -> pd.DataFrame:
        df = yf.Ticker(yahoo_symbol).history(period="5d", interval="1d", auto_adjust=False)
        if df is None or df.empty:
            raise ValueError(f"No data returned for {yahoo_symbol}")
        return df

    return await _run(f"fetch_daily_bars({yahoo_symbol})", _fetch)


def bars_to_quote(df: pd.DataFrame) -> dict[str, Any] | None:
    """
    Reduce daily bars to the latest quote fields.

    Returns:
        Dict with price/open/high/low/previous_close/timestamp, or None
        when the last close is missing.
    """
    df = df.dropna(subset=["Close"])
    if df.empty:
        return None

    last = df.iloc[-1]
    previous_close = float(df["Close"].iloc[-2]) if len(df) > 1 else None

    def _num(v: Any) -> float | None:
        return float(v) if _has_value(v) else None

    return {
        "price": float(last["Close"]),
        "open": _num(last.get("Open")),
        "high": _num(last.get("High")),
        "low": _num(last.get("Low")),
        "previous_close": previous_close,
        # Daily bars carry the session date only; stamp with fetch time
        "timestamp": datetime.now(pytz.utc),
    }


async def fetch_ticker_news(yahoo_symbol: str) -> list[dict[str, Any]]:
    """Raw yfinance news entries for a symbol (may be empty)."""

    def _fetch() -> list[dict[str, Any]]:
        return list(yf.Ticker(yahoo_symbol).news or [])

    return await _run(f"fetch_ticker_news({yahoo_symbol})", _fetch)


async def shutdown_executor() -> None:
    """Cleanup on server shutdown."""
    shutdown_event.set()
    _executor.shutdown(wait=False, cancel_futures=True)
