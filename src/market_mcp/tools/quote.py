"""Market quote tool."""

from time import perf_counter
from typing import Any

from market_mcp.data.coordinator import get_coordinator
from market_mcp.reasoning.instruments import format_price, get_instrument_specs, resolve_symbol
from market_mcp.reasoning.levels import calculate_levels
from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance


async def market_quote(symbol: str) -> dict[str, Any]:
    """
    Get the best available quote for an instrument.

    Args:
        symbol: Ticker or alias (EURUSD, gold, cable, BTC, AAPL)

    Returns:
        Dict with price, change, source, instrument conventions and key levels.
        price == 0 means no live quote; check data_provenance.
    """
    start_time = perf_counter()

    resolved = resolve_symbol(symbol)
    if resolved is None:
        return build_error_response(
            error_type="invalid_symbol",
            message=f"Unrecognized instrument: {symbol!r}",
            symbol=symbol,
        )

    snapshot = await get_coordinator().get_market_data(resolved)
    levels = calculate_levels(snapshot)

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("market_quote", duration_ms),
        "data_provenance": {
            "price": build_provenance(
                source=snapshot.source,
                as_of=snapshot.timestamp,
                cached=snapshot.cached,
                error=snapshot.error,
                circuit_open=snapshot.circuit_open,
            ),
        },
        "symbol": resolved,
        "quote": snapshot.to_dict(),
        "formatted_price": format_price(snapshot.price, resolved),
        "instrument": get_instrument_specs(resolved).to_dict(),
        "levels": levels.to_dict() if levels else None,
    }
