"""End-to-end tests for the reasoning pipeline."""

import asyncio
from datetime import datetime

from market_mcp.models import (
    CalendarResult,
    IntentType,
    MarketDataSnapshot,
    NewsResult,
    SectionType,
)
from market_mcp.reasoning.pipeline import ReasoningPipeline
from tests.conftest import FIXED_NOW, StubDataProvider

GOLD_QUESTION = (
    "Why is gold dropping and what's my position size for a $5000 account "
    "risking 2% with stop at 2640 and entry 2650?"
)


def _pipeline(data: StubDataProvider) -> ReasoningPipeline:
    return ReasoningPipeline(data, clock=lambda: FIXED_NOW)


def _types(sections: list) -> list[SectionType]:
    return [s.type for s in sections]


class TestReasoningPipeline:
    """Tests for ReasoningPipeline.process."""

    def test_gold_why_and_size(self, gold_snapshot: MarketDataSnapshot) -> None:
        """Test the compound gold question with no catalysts available."""
        data = StubDataProvider(market_data=gold_snapshot)
        result = asyncio.run(_pipeline(data).process(GOLD_QUESTION))

        assert result.success
        assert [i.type for i in result.intents] == [IntentType.WHY_MOVED, IntentType.POSITION_SIZE]
        assert result.instrument == "XAUUSD"

        ps = result.position_size
        assert ps.risk_amount == 100
        assert ps.lot_size == 0.1
        assert ps.entry_price == 2650  # stated entry beats the live quote

        assert SectionType.DRIVER in _types(result.sections)
        assert "Position Size: 0.1 lots" in result.text
        assert 'No catalyst found for "why moved" question' in result.validation_warnings

    def test_data_requested_per_intent(self, gold_snapshot: MarketDataSnapshot) -> None:
        data = StubDataProvider(market_data=gold_snapshot)
        asyncio.run(_pipeline(data).process(GOLD_QUESTION))

        assert data.calls == [
            {"symbol": "XAUUSD", "include_price": True, "include_news": True, "include_calendar": True}
        ]

    def test_education_fetches_nothing(self) -> None:
        data = StubDataProvider()
        result = asyncio.run(_pipeline(data).process("define leverage"))

        assert result.success
        assert data.calls[0]["include_price"] is False
        assert data.calls[0]["include_news"] is False
        assert result.market_data is None

    def test_catalysts_ranked_into_driver(
        self, gold_snapshot: MarketDataSnapshot, sample_news: NewsResult, sample_calendar: CalendarResult
    ) -> None:
        data = StubDataProvider(market_data=gold_snapshot, news=sample_news, calendar=sample_calendar)
        result = asyncio.run(_pipeline(data).process("why did gold drop?"))

        assert result.catalysts[0].title == "CPI m/m"
        assert "CPI m/m" in result.text
        assert result.validation_warnings == []

    def test_context_overrides(self, eurusd_snapshot: MarketDataSnapshot) -> None:
        data = StubDataProvider(market_data=eurusd_snapshot)
        result = asyncio.run(
            _pipeline(data).process(
                "position size for gold",
                {"instrument": "eurusd", "timeframe": "M15", "account_size": 10_000, "stop_loss": 1.0800},
            )
        )

        assert result.instrument == "EURUSD"
        assert result.timeframe == "M15"
        # No stated entry, so the live quote is used
        assert result.position_size.entry_price == 1.0850
        assert result.position_size.position_size == 20_000

    def test_context_overrides_normalized(self, gold_snapshot: MarketDataSnapshot) -> None:
        """Test aliases in explicit overrides resolve to canonical values."""
        data = StubDataProvider(market_data=gold_snapshot)
        result = asyncio.run(
            _pipeline(data).process("what's the price?", {"instrument": "gold", "timeframe": "1h"})
        )

        assert result.instrument == "XAUUSD"
        assert result.timeframe == "H1"
        assert data.calls[0]["symbol"] == "XAUUSD"

    def test_unusable_overrides_fall_back_to_message(self, eurusd_snapshot: MarketDataSnapshot) -> None:
        data = StubDataProvider(market_data=eurusd_snapshot)
        result = asyncio.run(
            _pipeline(data).process("eurusd on the 4h", {"instrument": "not a symbol!", "timeframe": "soon"})
        )

        assert result.instrument == "EURUSD"
        assert result.timeframe == "H4"

    def test_sizing_without_inputs(self, gold_snapshot: MarketDataSnapshot) -> None:
        data = StubDataProvider(market_data=gold_snapshot)
        result = asyncio.run(_pipeline(data).process("position size for gold"))

        assert result.position_size is None
        assert "Needs inputs" in result.text

    def test_fallback_price(self) -> None:
        data = StubDataProvider(market_data=MarketDataSnapshot.fallback("XAUUSD", "timeout_fallback"))
        result = asyncio.run(_pipeline(data).process("gold price now"))

        assert result.success
        assert "Price data is a fallback (timeout_fallback)" in result.validation_warnings
        assert "No live price available" in result.validation_warnings
        assert "_Data: unavailable | Source: timeout_fallback" in result.text

    def test_unrecognised_message(self) -> None:
        result = asyncio.run(_pipeline(StubDataProvider()).process("asdfqwerty"))

        assert result.success
        assert [i.type for i in result.intents] == [IntentType.ANALYSIS]
        assert result.instrument is None
        assert result.timeframe == "H1"

    def test_steps_recorded(self, gold_snapshot: MarketDataSnapshot) -> None:
        result = asyncio.run(_pipeline(StubDataProvider(market_data=gold_snapshot)).process(GOLD_QUESTION))

        assert [s.name for s in result.steps] == [
            "intent_detection",
            "normalization",
            "session_context",
            "data_fetch",
            "catalyst_ranking",
            "levels",
            "position_sizing",
            "response_assembly",
            "validation",
        ]
        assert result.steps[1].details == {"instrument": "XAUUSD", "timeframe": "D1"}
        assert result.processing_time_ms >= 0

    def test_provider_error_reported(self) -> None:
        data = StubDataProvider(error=RuntimeError("coordinator exploded"))
        result = asyncio.run(_pipeline(data).process("why is gold down"))

        assert not result.success
        assert result.error == "coordinator exploded"
        assert result.request_id.startswith("rp_")

    def test_to_dict(self, gold_snapshot: MarketDataSnapshot) -> None:
        result = asyncio.run(_pipeline(StubDataProvider(market_data=gold_snapshot)).process(GOLD_QUESTION))
        data = result.to_dict()

        assert data["success"] is True
        assert data["instrument"] == "XAUUSD"
        assert data["market_data"]["source"] == "Finnhub"
        assert data["position_size"]["lot_size"] == 0.1
        assert data["intents"][0]["type"] == "WHY_MOVED"
        assert data["sections"][0] == {"type": "header", "content": "## XAUUSD Analysis (D1)"}

    def test_uses_clock(self, gold_snapshot: MarketDataSnapshot) -> None:
        """Test the session comes from the injected clock (a Saturday here)."""
        saturday = datetime(2024, 1, 6, 12, tzinfo=FIXED_NOW.tzinfo)
        pipeline = ReasoningPipeline(StubDataProvider(market_data=gold_snapshot), clock=lambda: saturday)
        result = asyncio.run(pipeline.process("gold price"))

        assert result.steps[2].details == {"session": "Weekend"}
        assert "Markets closed" in result.text
