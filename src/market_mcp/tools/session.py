"""Market session tool."""

from datetime import datetime
from time import perf_counter
from typing import Any

from market_mcp.reasoning.session import get_market_session
from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance


async def market_session(at: str | None = None) -> dict[str, Any]:
    """
    Describe the trading session at a UTC instant.

    Args:
        at: ISO-8601 timestamp (default: now). Naive values are read as UTC.

    Returns:
        Dict with active sessions, liquidity, volatility and kill zone
    """
    start_time = perf_counter()

    when = None
    if at:
        try:
            when = datetime.fromisoformat(at.strip().replace("Z", "+00:00"))
        except ValueError:
            return build_error_response(
                error_type="invalid_parameters",
                message=f"Invalid timestamp: {at}. Expected ISO-8601, e.g. 2024-01-01T14:00:00Z",
            )

    session = get_market_session(when)

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("market_session", duration_ms),
        "data_provenance": {
            "session": build_provenance(source="session_clock", as_of=session.timestamp),
        },
        **session.to_dict(),
    }
