"""Market brief tool: the full reasoning pipeline behind one question."""

from time import perf_counter
from typing import Any

from market_mcp.data.coordinator import get_coordinator
from market_mcp.reasoning.pipeline import ReasoningPipeline
from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance

MAX_MESSAGE_LENGTH = 2000


async def market_brief(
    message: str,
    instrument: str | None = None,
    timeframe: str | None = None,
    account_size: float | None = None,
    risk_percent: float | None = None,
    stop_loss: float | None = None,
    entry_price: float | None = None,
) -> dict[str, Any]:
    """
    Answer a free-text market question with a structured brief.

    Args:
        message: The trader's question
        instrument: Explicit symbol (overrides what the message mentions)
        timeframe: Explicit timeframe (e.g. H1, D1)
        account_size: Account equity for sizing
        risk_percent: Percent of equity to risk (default 1)
        stop_loss: Stop-loss price
        entry_price: Planned entry (defaults to the live price)

    Returns:
        Dict with rendered text, sections, ranked catalysts, market data,
        position size, validation warnings and a step trace
    """
    start_time = perf_counter()

    if not message or not message.strip():
        return build_error_response(
            error_type="invalid_parameters",
            message="message must not be empty",
        )
    if len(message) > MAX_MESSAGE_LENGTH:
        return build_error_response(
            error_type="invalid_parameters",
            message=f"message exceeds {MAX_MESSAGE_LENGTH} characters",
        )

    pipeline = ReasoningPipeline(get_coordinator())
    result = await pipeline.process(
        message,
        {
            "instrument": instrument,
            "timeframe": timeframe,
            "account_size": account_size,
            "risk_percent": risk_percent,
            "stop_loss": stop_loss,
            "entry_price": entry_price,
        },
    )

    md = result.market_data
    provenance: dict[str, Any] = {}
    if md is not None:
        provenance["market_data"] = build_provenance(
            source=md.source, as_of=md.timestamp, cached=md.cached, error=md.error
        )

    duration_ms = (perf_counter() - start_time) * 1000
    return {
        "meta": build_meta("market_brief", duration_ms, request_id=result.request_id),
        "data_provenance": provenance,
        **result.to_dict(),
    }
