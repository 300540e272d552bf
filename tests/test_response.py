"""Tests for response assembly and validation."""

import dataclasses
from datetime import datetime

import pytest

from market_mcp.models import (
    CalendarResult,
    IntentType,
    MarketDataSnapshot,
    NewsResult,
    ResponseSection,
    SectionType,
)
from market_mcp.reasoning.catalysts import rank_catalysts
from market_mcp.reasoning.intents import detect_intents
from market_mcp.reasoning.levels import calculate_levels
from market_mcp.reasoning.response import (
    ResponseContext,
    build_response,
    render_text,
    validate_response,
)
from market_mcp.reasoning.session import get_market_session
from market_mcp.reasoning.sizing import calculate_position_size

WHY_AND_SIZE = "Why is gold dropping and what's my position size?"


@pytest.fixture
def gold_context(
    gold_snapshot: MarketDataSnapshot,
    sample_news: NewsResult,
    sample_calendar: CalendarResult,
    fixed_now: datetime,
) -> ResponseContext:
    """Context with a live quote, ranked catalysts and a computed size."""
    return ResponseContext(
        session=get_market_session(fixed_now),
        instrument="XAUUSD",
        timeframe="H1",
        market_data=gold_snapshot,
        catalysts=rank_catalysts(sample_news.items, sample_calendar.events, "XAUUSD", now=fixed_now),
        levels=calculate_levels(gold_snapshot),
        position_size=calculate_position_size(5_000, 2650, 2640, "XAUUSD", 2),
        sizing_params={"account_size": 5_000, "stop_loss": 2640, "entry_price": 2650, "risk_percent": 2},
        request_id="rp_test_1",
        now=fixed_now,
    )


@pytest.fixture
def bare_context(fixed_now: datetime) -> ResponseContext:
    """Context for an instrument with no data at all."""
    return ResponseContext(
        session=get_market_session(fixed_now),
        instrument="XAUUSD",
        timeframe="H1",
        market_data=MarketDataSnapshot.fallback("XAUUSD", "timeout_fallback", error="Timeout"),
        request_id="rp_test_2",
        now=fixed_now,
    )


def _section(sections: list[ResponseSection], kind: SectionType) -> ResponseSection:
    return next(s for s in sections if s.type is kind)


class TestBuildResponse:
    """Tests for build_response."""

    def test_section_order(self, gold_context: ResponseContext) -> None:
        sections = build_response(gold_context, detect_intents(WHY_AND_SIZE))
        assert [s.type for s in sections] == [
            SectionType.HEADER,
            SectionType.DRIVER,
            SectionType.FACTORS,
            SectionType.MECHANICS,
            SectionType.LEVELS,
            SectionType.SCENARIOS,
            SectionType.SIZING,
            SectionType.RISK,
            SectionType.WATCH,
            SectionType.FOOTER,
        ]

    def test_header(self, gold_context: ResponseContext) -> None:
        sections = build_response(gold_context, detect_intents(WHY_AND_SIZE))
        assert sections[0].content == "## XAUUSD Analysis (H1)"

    def test_driver_is_top_catalyst(self, gold_context: ResponseContext) -> None:
        driver = _section(build_response(gold_context, detect_intents(WHY_AND_SIZE)), SectionType.DRIVER)
        assert "CPI m/m" in driver.content
        assert "Actual: 0.4% | Forecast: 0.2% | Prior: 0.1%" in driver.content
        assert "_Source: Forex Factory_" in driver.content

    def test_factors_are_next_three(self, gold_context: ResponseContext) -> None:
        factors = _section(build_response(gold_context, detect_intents(WHY_AND_SIZE)), SectionType.FACTORS)
        assert factors.content.count("•") == 3
        assert "Gold slides" in factors.content

    def test_sizing_section(self, gold_context: ResponseContext) -> None:
        sizing = _section(build_response(gold_context, detect_intents(WHY_AND_SIZE)), SectionType.SIZING)
        assert "Position Size: 0.1 lots (10 units)" in sizing.content
        assert "Risk: 2% ($100.00)" in sizing.content
        assert "Lots = Risk $100.00" in sizing.content

    def test_mechanics(self, gold_context: ResponseContext) -> None:
        mechanics = _section(build_response(gold_context, detect_intents(WHY_AND_SIZE)), SectionType.MECHANICS)
        assert "Price: 2645.50 ▼ 16.50 (-0.62%)" in mechanics.content
        assert "Session: London + New York | Liquidity: very_high | New York Open Kill Zone" in mechanics.content

    def test_risk_and_watch(self, gold_context: ResponseContext) -> None:
        sections = build_response(gold_context, detect_intents(WHY_AND_SIZE))
        assert "High volatility - reduce position size" in _section(sections, SectionType.RISK).content
        watch = _section(sections, SectionType.WATCH).content
        assert "ECB President Speaks (medium impact)" in watch
        assert "Break of 2670.50 or 2620.50" in watch

    def test_footer_live(self, gold_context: ResponseContext) -> None:
        footer = build_response(gold_context, detect_intents(WHY_AND_SIZE))[-1]
        assert footer.content == "---\n_Data: live | Source: Finnhub | Request: rp_test_1_"

    def test_footer_cached(self, gold_context: ResponseContext) -> None:
        gold_context.market_data = dataclasses.replace(gold_context.market_data, cached=True)
        footer = build_response(gold_context, detect_intents(WHY_AND_SIZE))[-1]
        assert "_Data: cached | Source: Finnhub" in footer.content

    def test_generic_driver_without_catalysts(self, bare_context: ResponseContext) -> None:
        sections = build_response(bare_context, detect_intents("why did gold crash?"))
        driver = _section(sections, SectionType.DRIVER)
        assert "No dominant catalyst identified" in driver.content
        assert SectionType.MECHANICS not in {s.type for s in sections}
        assert SectionType.LEVELS not in {s.type for s in sections}

    def test_no_driver_for_price_check(self, bare_context: ResponseContext) -> None:
        sections = build_response(bare_context, detect_intents("gold quote"))
        assert SectionType.DRIVER not in {s.type for s in sections}

    def test_sizing_needs_inputs(self, bare_context: ResponseContext) -> None:
        sizing = _section(build_response(bare_context, detect_intents("position size for gold")), SectionType.SIZING)
        assert "Needs inputs: Provide account size, stop loss, entry price" in sizing.content

    def test_sizing_reports_calculation_error(self, bare_context: ResponseContext) -> None:
        bare_context.position_size = calculate_position_size(5_000, 2640, 2640, "XAUUSD")
        sizing = _section(build_response(bare_context, detect_intents("position size for gold")), SectionType.SIZING)
        assert "stop_loss must differ from entry_price" in sizing.content

    def test_fallback_quote_risk_note(self, bare_context: ResponseContext) -> None:
        risk = _section(build_response(bare_context, detect_intents("gold quote")), SectionType.RISK)
        assert "No current quote (timeout_fallback)" in risk.content

    def test_no_instrument(self, fixed_now: datetime) -> None:
        ctx = ResponseContext(session=get_market_session(fixed_now), now=fixed_now)
        sections = build_response(ctx, detect_intents("what is a pip"))
        assert [s.type for s in sections] == [SectionType.RISK, SectionType.WATCH, SectionType.FOOTER]
        assert "_Data: unavailable | Source: n/a" in sections[-1].content

    def test_render_text(self) -> None:
        sections = [ResponseSection(SectionType.HEADER, "a"), ResponseSection(SectionType.FOOTER, "b")]
        assert render_text(sections) == "a\n\nb"


class TestValidateResponse:
    """Tests for validate_response."""

    def test_clean_response(self, gold_context: ResponseContext) -> None:
        intents = detect_intents(WHY_AND_SIZE)
        assert validate_response(build_response(gold_context, intents), intents, gold_context) == []

    def test_missing_catalyst_for_why_question(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("why did gold crash?")
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert 'No catalyst found for "why moved" question' in warnings
        assert "Price data is a fallback (timeout_fallback)" in warnings

    def test_no_live_price_for_price_check(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("gold quote")
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert "No live price available" in warnings

    def test_levels_unavailable(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("key levels on gold")
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert "Levels unavailable without a price" in warnings

    def test_scenarios_missing(self, gold_context: ResponseContext) -> None:
        intents = detect_intents("what's the bias on gold")
        sections = [s for s in build_response(gold_context, intents) if s.type is not SectionType.SCENARIOS]
        assert "Scenarios missing" in validate_response(sections, intents, gold_context)

    def test_sizing_inputs_missing(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("position size for gold")
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert "Position sizing needs account size and stop loss" in warnings

    def test_sizing_not_calculated(self, bare_context: ResponseContext) -> None:
        bare_context.sizing_params = {"account_size": 5_000, "stop_loss": 2640}
        intents = detect_intents("position size for gold")
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert "Position sizing not calculated despite having required inputs" in warnings

    def test_cached_price(self, gold_context: ResponseContext) -> None:
        gold_context.market_data = dataclasses.replace(gold_context.market_data, cached=True)
        intents = detect_intents(WHY_AND_SIZE)
        warnings = validate_response(build_response(gold_context, intents), intents, gold_context)
        assert warnings == ["Price served from cache"]

    def test_live_claim_without_live_data(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("gold quote")
        sections = build_response(bare_context, intents)
        sections.insert(0, ResponseSection(SectionType.HEADER, "Live gold update"))
        warnings = validate_response(sections, intents, bare_context)
        assert 'Response mentions "live" but data is not live' in warnings

    def test_live_word_boundary(self, bare_context: ResponseContext) -> None:
        """Test 'delivery' or 'liveliness' do not trip the live check."""
        intents = detect_intents("gold quote")
        sections = [ResponseSection(SectionType.HEADER, "Physical delivery and liveliness")]
        warnings = validate_response(sections, intents, bare_context)
        assert 'Response mentions "live" but data is not live' not in warnings

    def test_warnings_not_duplicated(self, bare_context: ResponseContext) -> None:
        intents = detect_intents("why did gold crash? any news? analysis please")
        assert {i.type for i in intents} >= {IntentType.WHY_MOVED, IntentType.NEWS, IntentType.ANALYSIS}
        warnings = validate_response(build_response(bare_context, intents), intents, bare_context)
        assert len(warnings) == len(set(warnings))
