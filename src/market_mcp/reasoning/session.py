"""Trading session context. Pure function of UTC wall-clock time."""

from datetime import datetime

from market_mcp.models import MarketSession, as_utc, utc_now

# (name, start hour inclusive, end hour exclusive) in UTC; Sydney wraps midnight
SESSIONS: tuple[tuple[str, int, int], ...] = (
    ("Sydney", 22, 7),
    ("Tokyo", 0, 9),
    ("London", 8, 17),
    ("New York", 13, 22),
)
OVERLAP_HOURS = (13, 17)
KILL_ZONES: tuple[tuple[str, int, int], ...] = (
    ("London Open Kill Zone", 7, 10),
    ("New York Open Kill Zone", 12, 15),
)
# FX week closes Friday 22:00 UTC and reopens Sunday 22:00 UTC
WEEKEND_CLOSE_HOUR = 22


def _in_window(hour: int, start: int, end: int) -> bool:
    if start <= end:
        return start <= hour < end
    return hour >= start or hour < end


def _is_weekend(now: datetime) -> bool:
    weekday = now.weekday()  # Monday=0
    if weekday == 5:
        return True
    if weekday == 4 and now.hour >= WEEKEND_CLOSE_HOUR:
        return True
    if weekday == 6 and now.hour < WEEKEND_CLOSE_HOUR:
        return True
    return False


def get_market_session(now: datetime | None = None) -> MarketSession:
    """
    Describe the active trading sessions at `now` (default: current time).

    Naive datetimes are interpreted as UTC.

    Returns:
        MarketSession with active sessions, liquidity/volatility labels
        and an advisory kill zone label.
    """
    now = as_utc(now) if now is not None else utc_now()
    hour = now.hour

    if _is_weekend(now):
        return MarketSession(
            name="Weekend",
            is_open=False,
            liquidity="none",
            volatility="none",
            active_sessions=(),
            utc_hour=hour,
            timestamp=now,
            warning="Markets closed - prices may gap on open",
        )

    active = tuple(name for name, start, end in SESSIONS if _in_window(hour, start, end))

    liquidity = "low"
    volatility = "low"
    if "Tokyo" in active:
        liquidity = "moderate"
    if "London" in active:
        liquidity = "high"
        volatility = "moderate"
    if "New York" in active:
        liquidity = "high"
        volatility = "moderate"
    if _in_window(hour, *OVERLAP_HOURS):
        liquidity = "very_high"
        volatility = "high"

    kill_zone = next((name for name, start, end in KILL_ZONES if _in_window(hour, start, end)), None)

    return MarketSession(
        name=" + ".join(active) or "Asian",
        is_open=True,
        liquidity=liquidity,
        volatility=volatility,
        active_sessions=active,
        kill_zone=kill_zone,
        utc_hour=hour,
        timestamp=now,
    )
