"""Structured response assembly and advisory validation."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from market_mcp.models import (
    Catalyst,
    Intent,
    IntentType,
    KeyLevels,
    MarketDataSnapshot,
    MarketSession,
    PositionSizeResult,
    ResponseSection,
    SectionType,
    as_utc,
    utc_now,
)
from market_mcp.reasoning.instruments import format_price, get_instrument_specs

DRIVER_MIN_SCORE = 50
FACTOR_MIN_SCORE = 35
MAX_FACTORS = 3
EXTENDED_MOVE_PCT = 2.0

_SCENARIO_INTENTS = {IntentType.BIAS, IntentType.ANALYSIS, IntentType.WHY_MOVED, IntentType.STRATEGY}
_LIVE_RE = re.compile(r"\blive\b", re.IGNORECASE)


@dataclass
class ResponseContext:
    """Everything the assembler and validator look at."""

    session: MarketSession
    instrument: str | None = None
    timeframe: str | None = None
    market_data: MarketDataSnapshot | None = None
    catalysts: list[Catalyst] = field(default_factory=list)
    levels: KeyLevels | None = None
    position_size: PositionSizeResult | None = None
    sizing_params: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    now: datetime = field(default_factory=utc_now)

    @property
    def has_price(self) -> bool:
        return self.market_data is not None and self.market_data.has_price

    @property
    def data_source(self) -> str | None:
        return self.market_data.source if self.market_data is not None else None

    @property
    def is_live(self) -> bool:
        """Fresh quote from a real upstream (not a fallback, not served from cache)."""
        md = self.market_data
        return md is not None and md.has_price and md.is_live and not md.cached

    @property
    def data_age(self) -> str:
        if self.is_live:
            return "live"
        if self.has_price and self.market_data.cached:
            return "cached"
        return "unavailable"

    def upcoming_events(self) -> list[Catalyst]:
        return [
            c for c in self.catalysts
            if c.type == "economic" and c.time is not None and as_utc(c.time) > self.now
        ]


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _signed_change(md: MarketDataSnapshot, instrument: str | None) -> str:
    change = md.change or 0.0
    arrow = "▲" if change >= 0 else "▼"
    decimals = get_instrument_specs(instrument).decimal_places if instrument else 2
    pct = md.change_percent if md.change_percent is not None else 0.0
    return f"{arrow} {abs(change):.{decimals}f} ({pct:+.2f}%)"


def _driver_section(ctx: ResponseContext, intents: list[Intent]) -> ResponseSection | None:
    top = ctx.catalysts[0] if ctx.catalysts else None
    if top is not None and top.score > DRIVER_MIN_SCORE:
        lines = ["**MAIN DRIVER**", top.title]
        if top.type == "economic" and any(v is not None for v in (top.actual, top.forecast, top.previous)):
            lines.append(
                f"Actual: {top.actual or '—'} | Forecast: {top.forecast or '—'} | Prior: {top.previous or '—'}"
            )
        if top.source:
            lines.append(f"_Source: {top.source}_")
        return ResponseSection(SectionType.DRIVER, "\n".join(lines))

    needs_driver = any({"catalyst", "driver"} & i.must_include for i in intents)
    if needs_driver:
        return ResponseSection(
            SectionType.DRIVER,
            "**MAIN DRIVER**\nNo dominant catalyst identified in current headlines or the "
            "economic calendar. The move may be technical or flow-driven.",
        )
    return None


def _sizing_section(ctx: ResponseContext, intents: list[Intent]) -> ResponseSection | None:
    ps = ctx.position_size
    if ps is not None and ps.ok:
        lines = [
            "**POSITION SIZING**",
            f"Account: {_money(ps.account_size)} | Risk: {ps.risk_percent:g}% ({_money(ps.risk_amount)})",
            f"Entry: {ps.entry_price:g} | Stop: {ps.stop_loss:g}",
            f"Stop Distance: {ps.stop_pips:g} {ps.pip_name}s",
            f"**Position Size: {ps.lot_size:g} lots ({ps.position_size:,g} units)**",
            f"_{ps.formula}_",
        ]
        return ResponseSection(SectionType.SIZING, "\n".join(lines))

    if not any(i.type is IntentType.POSITION_SIZE for i in intents):
        return None

    if ps is not None and ps.error:
        detail = ps.error
    else:
        missing = [
            label
            for key, label in (("account_size", "account size"), ("stop_loss", "stop loss"))
            if not ctx.sizing_params.get(key)
        ]
        if not ctx.sizing_params.get("entry_price") and not ctx.has_price:
            missing.append("entry price")
        detail = f"Provide {', '.join(missing)} to calculate a size." if missing else "Inputs incomplete."
    return ResponseSection(
        SectionType.SIZING,
        f"**POSITION SIZING**\nNeeds inputs: {detail}\nDefault risk is 1% of the account.",
    )


def build_response(ctx: ResponseContext, intents: list[Intent]) -> list[ResponseSection]:
    """
    Assemble sections in a fixed order:
    header, driver, factors, mechanics, levels, scenarios, sizing, risk, watch, footer.

    Risk, watch and footer are always present; the rest depend on data.
    """
    sections: list[ResponseSection] = []
    instrument = ctx.instrument
    md = ctx.market_data
    session = ctx.session

    if instrument:
        timeframe = f" ({ctx.timeframe})" if ctx.timeframe else ""
        sections.append(ResponseSection(SectionType.HEADER, f"## {instrument} Analysis{timeframe}"))

    driver = _driver_section(ctx, intents)
    if driver is not None:
        sections.append(driver)

    supporting = [c for c in ctx.catalysts[1:1 + MAX_FACTORS] if c.score > FACTOR_MIN_SCORE]
    if supporting:
        sections.append(ResponseSection(
            SectionType.FACTORS,
            "**SUPPORTING FACTORS**\n" + "\n".join(f"• {c.title}" for c in supporting),
        ))

    if ctx.has_price:
        lines = ["**CURRENT MARKET**", f"Price: {format_price(md.price, instrument)} {_signed_change(md, instrument)}"]
        if md.high and md.low:
            lines.append(f"Range: {format_price(md.low, instrument)} - {format_price(md.high, instrument)}")
        session_line = f"Session: {session.name} | Liquidity: {session.liquidity}"
        if session.kill_zone:
            session_line += f" | {session.kill_zone}"
        lines.append(session_line)
        sections.append(ResponseSection(SectionType.MECHANICS, "\n".join(lines)))

    levels = ctx.levels
    if levels is not None:
        sections.append(ResponseSection(
            SectionType.LEVELS,
            "\n".join([
                "**KEY LEVELS**",
                f"Resistance 2: {format_price(levels.resistance2, instrument)}",
                f"Resistance 1: {format_price(levels.resistance1, instrument)}",
                f"Current: {format_price(levels.current, instrument)}",
                f"Support 1: {format_price(levels.support1, instrument)}",
                f"Support 2: {format_price(levels.support2, instrument)}",
            ]),
        ))

        if any(i.type in _SCENARIO_INTENTS for i in intents):
            sections.append(ResponseSection(
                SectionType.SCENARIOS,
                "\n".join([
                    "**SCENARIOS**",
                    f"BULL: Break above {format_price(levels.resistance1, instrument)}"
                    f" targets {format_price(levels.resistance2, instrument)}",
                    f"BEAR: Break below {format_price(levels.support1, instrument)}"
                    f" targets {format_price(levels.support2, instrument)}",
                    "RANGE: Consolidation within the day range if catalysts fade",
                ]),
            ))

    sizing = _sizing_section(ctx, intents)
    if sizing is not None:
        sections.append(sizing)

    risks: list[str] = []
    upcoming = ctx.upcoming_events()
    upcoming_high = next((c for c in upcoming if c.impact == "high"), None)
    if upcoming_high is not None:
        risks.append(f"Upcoming: {upcoming_high.title}")
    if session.warning:
        risks.append(session.warning)
    if session.liquidity in ("low", "none"):
        risks.append("Low liquidity - wider spreads expected")
    if session.volatility == "high":
        risks.append("High volatility - reduce position size")
    if ctx.has_price and md.change_percent is not None and abs(md.change_percent) > EXTENDED_MOVE_PCT:
        risks.append(f"Extended move ({md.change_percent:+.2f}%) - reversal risk elevated")
    if instrument and md is not None and not md.has_price:
        risks.append(f"No current quote ({md.source}) - verify price before trading")
    if not risks:
        risks.append("Standard risk management applies")
    sections.append(ResponseSection(SectionType.RISK, "**RISK NOTES**\n" + "\n".join(risks)))

    watch = [f"{c.title} ({c.impact} impact)" for c in upcoming[:2]]
    if levels is not None:
        watch.append(
            f"Break of {format_price(levels.resistance1, instrument)}"
            f" or {format_price(levels.support1, instrument)}"
        )
    if session.kill_zone:
        watch.append(f"{session.kill_zone} price action")
    if not watch:
        watch.append("Continue monitoring price action and news")
    sections.append(ResponseSection(SectionType.WATCH, "**WATCH NEXT**\n" + "\n".join(f"• {w}" for w in watch)))

    sections.append(ResponseSection(
        SectionType.FOOTER,
        f"---\n_Data: {ctx.data_age} | Source: {ctx.data_source or 'n/a'}"
        f" | Request: {ctx.request_id or 'n/a'}_",
    ))
    return sections


def render_text(sections: list[ResponseSection]) -> str:
    return "\n\n".join(s.content for s in sections)


def validate_response(
    sections: list[ResponseSection], intents: list[Intent], ctx: ResponseContext
) -> list[str]:
    """
    Check the assembled response against what the intents asked for.

    Advisory only: returns warnings, never blocks the response.
    """
    warnings: list[str] = []
    present = {s.type for s in sections}
    required = set().union(*(i.must_include for i in intents)) if intents else set()
    categories = {i.category for i in intents}

    def warn(message: str) -> None:
        if message not in warnings:
            warnings.append(message)

    if "catalyst" in required and not ctx.catalysts:
        if "catalyst_analysis" in categories:
            warn('No catalyst found for "why moved" question')
        else:
            warn("No catalyst found")

    if "source" in required and ctx.instrument and not ctx.data_source:
        warn("Data source not labeled")

    if ctx.market_data is not None and not ctx.market_data.is_live:
        warn(f"Price data is a fallback ({ctx.market_data.source})")

    if "price" in required and not ctx.has_price:
        warn("No live price available")

    if "levels" in required and ctx.levels is None:
        if ctx.has_price:
            warn("Levels not calculated despite having price data")
        elif ctx.instrument:
            warn("Levels unavailable without a price")

    if "scenarios" in required and ctx.levels is not None and SectionType.SCENARIOS not in present:
        warn("Scenarios missing")

    if "sizing_math" in required:
        ps = ctx.position_size
        if ps is not None and ps.error:
            warn(f"Position sizing failed: {ps.error}")
        elif ps is None and ctx.sizing_params.get("account_size") and ctx.sizing_params.get("stop_loss"):
            warn("Position sizing not calculated despite having required inputs")
        elif ps is None:
            warn("Position sizing needs account size and stop loss")

    if ctx.market_data is not None and ctx.market_data.cached:
        warn("Price served from cache")

    if _LIVE_RE.search(render_text(sections)) and not ctx.is_live:
        warn('Response mentions "live" but data is not live')

    return warnings
