"""Ranked catalysts tool."""

import asyncio
from time import perf_counter
from typing import Any

from market_mcp.data.coordinator import get_coordinator
from market_mcp.reasoning.catalysts import rank_catalysts
from market_mcp.reasoning.instruments import resolve_symbol
from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance

MAX_LIMIT = 50
_IMPACTS = ("high", "medium", "low")


async def ranked_catalysts(
    instrument: str | None = None,
    limit: int = 10,
    impact: str | None = None,
) -> dict[str, Any]:
    """
    Rank current headlines and economic events by likely market impact.

    Args:
        instrument: Symbol or alias to score relevance against (optional)
        limit: Maximum catalysts returned (1-50, default 10)
        impact: Only keep calendar events of this impact (high/medium/low)

    Returns:
        Dict with catalysts sorted by score, plus news and calendar sources
    """
    start_time = perf_counter()

    if not 1 <= limit <= MAX_LIMIT:
        return build_error_response(
            error_type="invalid_parameters",
            message=f"limit must be between 1 and {MAX_LIMIT}, got {limit}",
        )
    if impact is not None and impact.lower() not in _IMPACTS:
        return build_error_response(
            error_type="invalid_parameters",
            message=f"impact must be one of {', '.join(_IMPACTS)}",
        )

    symbol = None
    if instrument:
        symbol = resolve_symbol(instrument)
        if symbol is None:
            return build_error_response(
                error_type="invalid_symbol",
                message=f"Unrecognized instrument: {instrument!r}",
                symbol=instrument,
            )

    coordinator = get_coordinator()
    news, calendar = await asyncio.gather(
        coordinator.get_news(symbol),
        coordinator.get_calendar(impact=impact),
    )
    catalysts = rank_catalysts(news.items, calendar.events, symbol)

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("ranked_catalysts", duration_ms),
        "data_provenance": {
            "news": build_provenance(source=news.source, cached=news.cached, error=news.error),
            "calendar": build_provenance(
                source=calendar.source,
                cached=calendar.cached,
                error=calendar.error,
                note=calendar.note,
            ),
        },
        "instrument": symbol,
        "catalysts": [c.to_dict() for c in catalysts[:limit]],
        "total_found": len(catalysts),
    }
