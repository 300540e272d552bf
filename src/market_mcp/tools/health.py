"""Data source health tool."""

from time import perf_counter
from typing import Any

from market_mcp.data.coordinator import get_coordinator
from market_mcp.utils.provenance import build_meta


async def data_health() -> dict[str, Any]:
    """Circuit breaker state of every upstream source, rolled up to healthy/recovering/degraded."""
    start_time = perf_counter()
    health = get_coordinator().get_health()
    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("data_health", duration_ms),
        **health,
    }
