"""Economic calendar: Forex Factory weekly feed with a generated fallback."""

import dataclasses
import logging
from datetime import date, datetime, time, timedelta
from typing import Any

import httpx
import pytz

from market_mcp.data.adapters import CACHE_TTL_CALENDAR, HTTP_TIMEOUT, DataAdapter
from market_mcp.models import CalendarResult, EconomicEvent, as_utc, utc_now
from market_mcp.utils.sanitize import sanitize_text

logger = logging.getLogger(__name__)

GENERATED_SOURCE = "Generated fallback"
GENERATED_NOTE = (
    "This is an estimated calendar. Verify events with official sources like ForexFactory.com"
)

_EASTERN = pytz.timezone("America/New_York")

# Recurring US releases by weekday (Mon=0), times in US Eastern.
# (hour, minute, title, impact, first_friday_only)
_RECURRING_EVENTS: dict[int, list[tuple[int, int, str, str, bool]]] = {
    0: [(10, 0, "Manufacturing PMI", "medium", False)],
    1: [
        (10, 0, "Services PMI", "medium", False),
        (14, 0, "JOLTS Job Openings", "medium", False),
    ],
    2: [
        (10, 30, "Crude Oil Inventories", "medium", False),
        (14, 0, "FOMC Meeting Minutes", "high", False),
    ],
    3: [
        (8, 30, "Initial Jobless Claims", "medium", False),
        (8, 30, "Continuing Jobless Claims", "low", False),
    ],
    4: [
        (8, 30, "Nonfarm Payrolls", "high", True),
        (8, 30, "Unemployment Rate", "high", True),
        (10, 0, "Consumer Sentiment", "medium", False),
    ],
}


def normalize_impact(value: Any) -> str:
    """Map free-form impact labels onto high/medium/low."""
    text = str(value or "").lower()
    if "high" in text:
        return "high"
    if "medium" in text or "moderate" in text:
        return "medium"
    return "low"


def _eastern_to_utc(day: date, hour: int, minute: int) -> datetime:
    return _EASTERN.localize(datetime.combine(day, time(hour, minute))).astimezone(pytz.utc)


def generate_calendar(day: date | None = None) -> list[EconomicEvent]:
    """
    Estimated US calendar for one day from recurring release patterns.

    Payrolls and unemployment only on the first Friday of the month; CPI on
    weekdays between the 10th and 15th. Weekends are empty.
    """
    day = day or utc_now().date()
    weekday = day.weekday()
    events: list[EconomicEvent] = []

    for hour, minute, title, impact, first_friday in _RECURRING_EVENTS.get(weekday, []):
        if first_friday and day.day > 7:
            continue
        events.append(
            EconomicEvent(
                title=title,
                currency="USD",
                impact=impact,
                time=_eastern_to_utc(day, hour, minute),
                source=GENERATED_SOURCE,
            )
        )

    if weekday < 5 and 10 <= day.day <= 15:
        events.append(
            EconomicEvent(
                title="CPI m/m",
                currency="USD",
                impact="high",
                time=_eastern_to_utc(day, 8, 30),
                source=GENERATED_SOURCE,
            )
        )

    return sorted(events, key=lambda e: e.time)


def filter_events(
    events: tuple[EconomicEvent, ...] | list[EconomicEvent],
    impact: str | None = None,
    day: date | None = None,
) -> tuple[EconomicEvent, ...]:
    """Keep events matching an impact level and/or UTC calendar day."""
    wanted_impact = impact.lower() if impact else None
    return tuple(
        e
        for e in events
        if (wanted_impact is None or e.impact == wanted_impact)
        and (day is None or e.time.date() == day)
    )


class ForexFactoryCalendar(DataAdapter):
    """This week's events from the Forex Factory JSON export."""

    name = "Forex Factory"
    cache_ttl = CACHE_TTL_CALENDAR
    url = "https://nfs.faireconomy.media/ff_calendar_thisweek.json"

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, **kwargs: Any):
        super().__init__(**kwargs)
        self._transport = transport

    def normalize_params(self, **params: Any) -> dict[str, Any]:
        # One feed per week; filters are applied after the cache
        return {"feed": "thisweek"}

    def validate_output(self, output: Any) -> bool:
        return isinstance(output, CalendarResult) and len(output.events) > 0

    def mark_cached(self, value: Any) -> Any:
        return dataclasses.replace(value, cached=True)

    @staticmethod
    def parse_event(raw: dict[str, Any]) -> EconomicEvent | None:
        title = sanitize_text(raw.get("title"), max_length=120) if isinstance(raw.get("title"), str) else None
        when = raw.get("date")
        if not title or not isinstance(when, str):
            return None
        try:
            event_time = as_utc(datetime.fromisoformat(when.replace("Z", "+00:00")))
        except ValueError:
            return None
        return EconomicEvent(
            title=title,
            currency=str(raw.get("country") or "").upper(),
            impact=normalize_impact(raw.get("impact")),
            time=event_time,
            actual=raw.get("actual") or None,
            forecast=raw.get("forecast") or None,
            previous=raw.get("previous") or None,
            source="Forex Factory",
        )

    async def fetch(self, feed: str) -> CalendarResult | None:
        async with httpx.AsyncClient(transport=self._transport, timeout=HTTP_TIMEOUT) as client:
            resp = await client.get(self.url)
            resp.raise_for_status()
            payload = resp.json()

        if not isinstance(payload, list):
            raise ValueError("Forex Factory: expected a list of events")

        events = [e for e in (self.parse_event(raw) for raw in payload if isinstance(raw, dict)) if e]
        if not events:
            return None
        logger.debug(f"Forex Factory: parsed {len(events)} of {len(payload)} events")
        return CalendarResult(events=tuple(sorted(events, key=lambda e: e.time)), source=self.name)


def generated_calendar_result(
    day: date | None = None, error: str | None = None, source: str = GENERATED_SOURCE
) -> CalendarResult:
    """Labelled fallback result built from `generate_calendar`."""
    day = day or utc_now().date()
    # Include tomorrow so late-session "upcoming" events are not lost at midnight
    events = generate_calendar(day) + generate_calendar(day + timedelta(days=1))
    return CalendarResult(events=tuple(events), source=source, error=error, note=GENERATED_NOTE)
