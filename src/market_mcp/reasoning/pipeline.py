"""
Market-query reasoning pipeline.

intents -> normalization -> session -> data fetch -> catalyst ranking
-> levels -> sizing -> response assembly -> validation
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from time import perf_counter
from typing import Any, Protocol

from market_mcp.models import (
    CalendarResult,
    Catalyst,
    Intent,
    MarketDataSnapshot,
    NewsResult,
    PositionSizeResult,
    ResponseSection,
    as_utc,
    utc_now,
)
from market_mcp.reasoning.catalysts import rank_catalysts
from market_mcp.reasoning.instruments import (
    extract_instrument,
    extract_timeframe,
    get_instrument_specs,
    normalize_timeframe,
    resolve_symbol,
)
from market_mcp.reasoning.intents import detect_intents, required_data
from market_mcp.reasoning.levels import calculate_levels
from market_mcp.reasoning.response import (
    ResponseContext,
    build_response,
    render_text,
    validate_response,
)
from market_mcp.reasoning.session import get_market_session
from market_mcp.reasoning.sizing import calculate_position_size, extract_sizing_params
from market_mcp.utils.request_id import new_request_id

logger = logging.getLogger(__name__)

NEWS_LIMIT = 10


class DataProvider(Protocol):
    """The part of DataFetchCoordinator the pipeline depends on."""

    async def get_all_data_for_symbol(
        self,
        symbol: str | None,
        request_id: str | None = None,
        include_price: bool = True,
        include_news: bool = True,
        include_calendar: bool = True,
        news_limit: int = 5,
    ) -> dict[str, Any]: ...


@dataclass
class PipelineStep:
    name: str
    duration_ms: float
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "duration_ms": round(self.duration_ms, 1), **self.details}


@dataclass
class PipelineResult:
    """Outcome of one `process` call. Returned even when a step blew up."""

    request_id: str
    success: bool = False
    text: str = ""
    sections: list[ResponseSection] = field(default_factory=list)
    intents: list[Intent] = field(default_factory=list)
    instrument: str | None = None
    timeframe: str | None = None
    catalysts: list[Catalyst] = field(default_factory=list)
    market_data: MarketDataSnapshot | None = None
    position_size: PositionSizeResult | None = None
    validation_warnings: list[str] = field(default_factory=list)
    steps: list[PipelineStep] = field(default_factory=list)
    error: str | None = None
    processing_time_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "success": self.success,
            "text": self.text,
            "sections": [s.to_dict() for s in self.sections],
            "intents": [i.to_dict() for i in self.intents],
            "instrument": self.instrument,
            "timeframe": self.timeframe,
            "catalysts": [c.to_dict() for c in self.catalysts],
            "market_data": self.market_data.to_dict() if self.market_data else None,
            "position_size": self.position_size.to_dict() if self.position_size else None,
            "validation_warnings": self.validation_warnings,
            "steps": [s.to_dict() for s in self.steps],
            "error": self.error,
            "processing_time_ms": round(self.processing_time_ms, 1),
        }


class ReasoningPipeline:
    """
    Turns a free-text market question into a structured, validated answer.

    Args:
        data: Data provider (normally the process-wide DataFetchCoordinator)
        clock: Returns "now"; injectable for deterministic sessions and scoring
    """

    def __init__(self, data: DataProvider, clock: Any = utc_now):
        self.data = data
        self._clock = clock

    async def process(self, message: str, context: dict[str, Any] | None = None) -> PipelineResult:
        """
        Run every step for `message`.

        `context` may carry explicit overrides: instrument, timeframe,
        account_size, risk_percent, stop_loss, entry_price.
        """
        context = context or {}
        request_id = new_request_id("rp")
        result = PipelineResult(request_id=request_id)
        start = perf_counter()
        logger.info(f"[{request_id}] Starting reasoning pipeline")

        def step(name: str, began: float, **details: Any) -> None:
            result.steps.append(PipelineStep(name, (perf_counter() - began) * 1000, details))

        try:
            now: datetime = as_utc(self._clock())

            t = perf_counter()
            intents = detect_intents(message)
            result.intents = intents
            step("intent_detection", t, intents=[i.type.value for i in intents])
            logger.info(f"[{request_id}] Intents: {', '.join(i.type.value for i in intents)}")

            t = perf_counter()
            # Unusable overrides fall back to what the message says
            instrument = resolve_symbol(context.get("instrument")) or extract_instrument(message)
            timeframe = normalize_timeframe(context.get("timeframe")) or extract_timeframe(message)
            result.instrument = instrument
            result.timeframe = timeframe
            step("normalization", t, instrument=instrument, timeframe=timeframe)

            t = perf_counter()
            session = get_market_session(now)
            step("session_context", t, session=session.name)

            t = perf_counter()
            needs = required_data(intents)
            fetched = await self.data.get_all_data_for_symbol(
                instrument,
                request_id=request_id,
                include_price=needs["price"] and instrument is not None,
                include_news=needs["news"],
                include_calendar=needs["news"],
                news_limit=NEWS_LIMIT,
            )
            market_data: MarketDataSnapshot | None = fetched.get("market_data")
            news: NewsResult | None = fetched.get("news")
            calendar: CalendarResult | None = fetched.get("calendar")
            result.market_data = market_data
            step(
                "data_fetch",
                t,
                has_price=bool(market_data and market_data.has_price),
                source=market_data.source if market_data else None,
                news_count=len(news.items) if news else 0,
                events_count=len(calendar.events) if calendar else 0,
            )

            t = perf_counter()
            catalysts = rank_catalysts(
                news.items if news else (),
                calendar.events if calendar else (),
                instrument,
                now=now,
            )
            result.catalysts = catalysts
            step("catalyst_ranking", t, count=len(catalysts))

            t = perf_counter()
            levels = calculate_levels(market_data)
            step("levels", t, calculated=levels is not None)

            t = perf_counter()
            overrides = {
                k: context.get(k) for k in ("account_size", "risk_percent", "stop_loss", "entry_price")
            }
            sizing_params = extract_sizing_params(message, overrides)
            position_size = None
            if sizing_params.get("account_size") and sizing_params.get("stop_loss"):
                # An entry the user stated beats the live quote
                entry = sizing_params.get("entry_price") or (
                    market_data.price if market_data and market_data.has_price else None
                )
                position_size = calculate_position_size(
                    account_size=sizing_params["account_size"],
                    entry_price=entry,
                    stop_loss=sizing_params["stop_loss"],
                    instrument=instrument,
                    risk_percent=sizing_params.get("risk_percent"),
                )
            result.position_size = position_size
            step(
                "position_sizing",
                t,
                calculated=bool(position_size and position_size.ok),
                instrument_type=get_instrument_specs(instrument).type.value if instrument else None,
            )

            t = perf_counter()
            response_ctx = ResponseContext(
                session=session,
                instrument=instrument,
                timeframe=timeframe,
                market_data=market_data,
                catalysts=catalysts,
                levels=levels,
                position_size=position_size,
                sizing_params=sizing_params,
                request_id=request_id,
                now=now,
            )
            sections = build_response(response_ctx, intents)
            result.sections = sections
            result.text = render_text(sections)
            step("response_assembly", t, sections=[s.type.value for s in sections])

            t = perf_counter()
            result.validation_warnings = validate_response(sections, intents, response_ctx)
            step("validation", t, warnings=len(result.validation_warnings))
            if result.validation_warnings:
                logger.warning(f"[{request_id}] Validation: {'; '.join(result.validation_warnings)}")

            result.success = True
        except Exception as e:
            logger.exception(f"[{request_id}] Pipeline error")
            result.error = str(e) or type(e).__name__

        result.processing_time_ms = (perf_counter() - start) * 1000
        logger.info(f"[{request_id}] Pipeline finished in {result.processing_time_ms:.0f}ms")
        return result
