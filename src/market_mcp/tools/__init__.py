"""Market reasoning tools."""

from market_mcp.tools.brief import market_brief
from market_mcp.tools.catalysts import ranked_catalysts
from market_mcp.tools.health import data_health
from market_mcp.tools.quote import market_quote
from market_mcp.tools.session import market_session
from market_mcp.tools.sizing import position_size

__all__ = [
    "data_health",
    "market_brief",
    "market_quote",
    "market_session",
    "position_size",
    "ranked_catalysts",
]
