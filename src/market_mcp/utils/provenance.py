"""Response metadata and data provenance blocks."""

from datetime import datetime
from typing import Any

from market_mcp import SCHEMA_VERSION, SERVER_VERSION
from market_mcp.models import FALLBACK_SOURCES


def build_meta(tool: str, duration_ms: float | None = None, request_id: str | None = None) -> dict[str, Any]:
    """
    Build standard metadata block for responses.

    Args:
        tool: Name of the tool producing this response
        duration_ms: Execution time in milliseconds (optional)
        request_id: Pipeline/coordinator request id, for log correlation

    Returns:
        Metadata dict with version info
    """
    meta: dict[str, Any] = {
        "server_version": SERVER_VERSION,
        "schema_version": SCHEMA_VERSION,
        "tool": tool,
    }
    if duration_ms is not None:
        meta["duration_ms"] = round(duration_ms, 1)
    if request_id is not None:
        meta["request_id"] = request_id
    return meta


def build_provenance(
    source: str | None,
    as_of: datetime | str | None = None,
    cached: bool = False,
    error: str | None = None,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Build data provenance block for a single data source.

    A missing or fallback source is flagged and gets a warning, so consumers
    never mistake placeholder values for market data.

    Args:
        source: Upstream that produced the data, or a fallback label
        as_of: Timestamp of data freshness
        cached: Served from the adapter cache
        error: Upstream error, if any
        **kwargs: Additional provenance fields

    Returns:
        Provenance dict for this data source
    """
    prov: dict[str, Any] = {
        "source": source or "unavailable",
        "fallback": source is None or source in FALLBACK_SOURCES,
        "cached": cached,
    }

    if as_of is not None:
        prov["as_of"] = as_of.isoformat() if isinstance(as_of, datetime) else as_of
    if error:
        prov["error"] = error

    prov.update(kwargs)

    warnings = list(prov.get("warnings", []))
    if prov["fallback"]:
        warnings.append(f"No live data: {prov['source']}")
    if cached:
        warnings.append("Served from cache")
    prov["warnings"] = warnings

    return prov


def build_error_response(
    error_type: str,
    message: str,
    symbol: str | None = None,
) -> dict[str, Any]:
    """
    Build standardized error response.

    Args:
        error_type: Type of error (invalid_parameters, invalid_symbol, data_unavailable)
        message: Human-readable error message
        symbol: Symbol that caused the error (if applicable)

    Returns:
        Error response dict
    """
    response: dict[str, Any] = {
        "error": True,
        "error_type": error_type,
        "message": message,
        "meta": build_meta("error"),
    }

    if symbol is not None:
        response["symbol"] = symbol

    return response
