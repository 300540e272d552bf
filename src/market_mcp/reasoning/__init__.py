"""Pure reasoning steps: intents, instruments, session, catalysts, sizing, levels, response."""

from market_mcp.reasoning.catalysts import DEFAULT_WEIGHTS, CatalystWeights, rank_catalysts
from market_mcp.reasoning.instruments import (
    extract_instrument,
    extract_timeframe,
    format_price,
    get_instrument_specs,
    get_instrument_type,
)
from market_mcp.reasoning.intents import detect_intents, required_data
from market_mcp.reasoning.levels import calculate_levels
from market_mcp.reasoning.response import ResponseContext, build_response, validate_response
from market_mcp.reasoning.session import get_market_session
from market_mcp.reasoning.sizing import calculate_position_size, extract_sizing_params

__all__ = [
    "DEFAULT_WEIGHTS",
    "CatalystWeights",
    "ResponseContext",
    "build_response",
    "calculate_levels",
    "calculate_position_size",
    "detect_intents",
    "extract_instrument",
    "extract_sizing_params",
    "extract_timeframe",
    "format_price",
    "get_instrument_specs",
    "get_instrument_type",
    "get_market_session",
    "rank_catalysts",
    "required_data",
    "validate_response",
]
