"""Utility modules."""

from market_mcp.utils.provenance import build_error_response, build_meta, build_provenance
from market_mcp.utils.request_id import new_request_id
from market_mcp.utils.sanitize import sanitize_text

__all__ = [
    "build_error_response",
    "build_meta",
    "build_provenance",
    "new_request_id",
    "sanitize_text",
]
