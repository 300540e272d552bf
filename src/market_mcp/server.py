"""Market Reasoning MCP Server using FastMCP."""

import asyncio
import json
import logging
import os

from fastmcp import FastMCP

from market_mcp import SCHEMA_VERSION, SERVER_VERSION, tools
from market_mcp.data.coordinator import close_coordinator
from market_mcp.data.yfinance_client import shutdown_executor
from market_mcp.prompts.templates import get_prompt

# Configure logging
log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, log_level, logging.INFO))
logger = logging.getLogger(__name__)

# Create FastMCP server instance
mcp = FastMCP(
    name="market-reasoning",
)


# ============================================================================
# TOOLS
# ============================================================================


@mcp.tool
async def market_brief(
    message: str,
    instrument: str | None = None,
    timeframe: str | None = None,
    account_size: float | None = None,
    risk_percent: float | None = None,
    stop_loss: float | None = None,
    entry_price: float | None = None,
) -> str:
    """
    Answer a free-text market question with a structured, source-labelled brief.

    Detects intent (why did it move, bias, levels, position size, strategy,
    news, price, education, analysis), resolves the instrument from aliases
    ("gold", "cable", "BTC"), fetches price/news/calendar in parallel with
    fallbacks, ranks catalysts and assembles sections.

    Render the `text` field as-is. If `validation_warnings` is non-empty,
    mention the relevant ones. A price of 0 means no live quote.

    Args:
        message: The trader's question
        instrument: Explicit symbol, overrides the message (e.g. XAUUSD)
        timeframe: Explicit timeframe, overrides the message (e.g. H1, D1)
        account_size: Account equity for position sizing
        risk_percent: Percent of equity to risk (default 1)
        stop_loss: Stop-loss price
        entry_price: Planned entry (default: live price)

    Returns:
        JSON with text, sections, catalysts, market data, sizing, warnings and step trace
    """
    result = await tools.market_brief(
        message=message,
        instrument=instrument,
        timeframe=timeframe,
        account_size=account_size,
        risk_percent=risk_percent,
        stop_loss=stop_loss,
        entry_price=entry_price,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def market_quote(symbol: str) -> str:
    """
    Get the best available quote for a forex pair, metal, energy, crypto, index or stock.

    Sources are queried in parallel and chosen by per-asset-class priority.

    Args:
        symbol: Ticker or alias (EURUSD, gold, cable, BTC, SPX500, AAPL)

    Returns:
        JSON with quote, source, instrument conventions (pip size, lot) and key levels
    """
    result = await tools.market_quote(symbol=symbol)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def market_session(at: str | None = None) -> str:
    """
    Describe the active trading sessions, liquidity and kill zone.

    Args:
        at: ISO-8601 UTC timestamp (default: now)

    Returns:
        JSON with sessions, liquidity/volatility tiers and weekend status
    """
    result = await tools.market_session(at=at)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def position_size(
    account_size: float,
    stop_loss: float,
    instrument: str,
    entry_price: float | None = None,
    risk_percent: float = 1.0,
) -> str:
    """
    Calculate a position size from account size, risk percent and stop distance.

    Args:
        account_size: Account equity
        stop_loss: Stop-loss price
        instrument: Symbol or alias
        entry_price: Planned entry (default: current quote)
        risk_percent: Percent of equity to risk (default 1)

    Returns:
        JSON with risk amount, stop pips, lots, units and the formula used
    """
    result = await tools.position_size(
        account_size=account_size,
        stop_loss=stop_loss,
        instrument=instrument,
        entry_price=entry_price,
        risk_percent=risk_percent,
    )
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def ranked_catalysts(
    instrument: str | None = None,
    limit: int = 10,
    impact: str | None = None,
) -> str:
    """
    Rank current headlines and economic calendar events by likely impact.

    Args:
        instrument: Symbol or alias to score relevance against (optional)
        limit: Maximum catalysts (1-50, default 10)
        impact: Calendar impact filter - high, medium or low

    Returns:
        JSON with catalysts sorted by score and the news/calendar sources used
    """
    result = await tools.ranked_catalysts(instrument=instrument, limit=limit, impact=impact)
    return json.dumps(result, indent=2, default=str)


@mcp.tool
async def data_health() -> str:
    """
    Report circuit breaker state for every upstream data source.

    Returns:
        JSON with overall status (healthy, recovering, degraded) and per-adapter detail
    """
    result = await tools.data_health()
    return json.dumps(result, indent=2, default=str)


# ============================================================================
# PROMPTS
# ============================================================================


@mcp.prompt
def trading_assistant(question: str, instrument: str | None = None) -> str:
    """Answer a market question grounded in the market_brief tool output."""
    result = get_prompt("trading_assistant", {"question": question, "instrument": instrument or ""})
    if result:
        return result["messages"][0]["content"]
    return f"Answer using the market_brief tool: {question}"


# ============================================================================
# ENTRY POINT
# ============================================================================


def main() -> None:
    """Run the MCP server."""
    logger.info(f"Starting Market Reasoning MCP Server v{SERVER_VERSION} (schema v{SCHEMA_VERSION})")
    try:
        mcp.run()
    finally:
        close_coordinator()
        asyncio.run(shutdown_executor())


if __name__ == "__main__":
    main()
