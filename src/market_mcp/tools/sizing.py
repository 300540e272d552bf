"""Position size tool."""

from time import perf_counter
from typing import Any

from market_mcp.data.coordinator import get_coordinator
from market_mcp.reasoning.instruments import resolve_symbol
from market_mcp.reasoning.sizing import calculate_position_size
from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance


async def position_size(
    account_size: float,
    stop_loss: float,
    instrument: str,
    entry_price: float | None = None,
    risk_percent: float = 1.0,
) -> dict[str, Any]:
    """
    Size a position so that hitting the stop loses `risk_percent` of the account.

    Args:
        account_size: Account equity
        stop_loss: Stop-loss price
        instrument: Symbol or alias (drives pip size and lot conventions)
        entry_price: Planned entry (default: current quote)
        risk_percent: Percent of equity to risk (default 1)

    Returns:
        Dict with risk amount, stop distance in pips, lots, units and the formula
    """
    start_time = perf_counter()

    symbol = resolve_symbol(instrument)
    if symbol is None:
        return build_error_response(
            error_type="invalid_symbol",
            message=f"Unrecognized instrument: {instrument!r}",
            symbol=instrument,
        )

    provenance: dict[str, Any] = {"entry_price": build_provenance(source="user", as_of=None)}
    if entry_price is None:
        snapshot = await get_coordinator().get_market_data(symbol)
        if not snapshot.has_price:
            return build_error_response(
                error_type="data_unavailable",
                message=f"No entry_price given and no live quote for {symbol} ({snapshot.source})",
                symbol=symbol,
            )
        entry_price = snapshot.price
        provenance["entry_price"] = build_provenance(
            source=snapshot.source, as_of=snapshot.timestamp, cached=snapshot.cached
        )

    result = calculate_position_size(
        account_size=account_size,
        entry_price=entry_price,
        stop_loss=stop_loss,
        instrument=symbol,
        risk_percent=risk_percent,
    )
    if not result.ok:
        return build_error_response(
            error_type="invalid_parameters",
            message=result.error,
            symbol=symbol,
        )

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("position_size", duration_ms),
        "data_provenance": provenance,
        **result.to_dict(),
    }
