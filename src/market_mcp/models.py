"""Value types shared by the data layer and the reasoning pipeline."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

import pytz

# Sources that mean "no live quote was obtained"
FALLBACK_SOURCES = frozenset({"timeout_fallback", "error_fallback", "fallback"})


class IntentType(str, Enum):
    WHY_MOVED = "WHY_MOVED"
    BIAS = "BIAS"
    LEVELS = "LEVELS"
    POSITION_SIZE = "POSITION_SIZE"
    STRATEGY = "STRATEGY"
    NEWS = "NEWS"
    PRICE = "PRICE"
    EDUCATION = "EDUCATION"
    ANALYSIS = "ANALYSIS"


class InstrumentType(str, Enum):
    FOREX = "forex"
    PRECIOUS_METAL = "precious_metal"
    ENERGY = "energy"
    CRYPTO = "crypto"
    INDEX = "index"
    STOCK = "stock"


class SectionType(str, Enum):
    HEADER = "header"
    DRIVER = "driver"
    FACTORS = "factors"
    MECHANICS = "mechanics"
    LEVELS = "levels"
    SCENARIOS = "scenarios"
    SIZING = "sizing"
    RISK = "risk"
    WATCH = "watch"
    FOOTER = "footer"


class CircuitState(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def utc_now() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(pytz.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


@dataclass(frozen=True)
class Intent:
    """One detected user intent. Several may be produced per message."""

    type: IntentType
    category: str
    requires_news: bool
    requires_price: bool
    must_include: frozenset[str]
    confidence: float
    matched_pattern: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "category": self.category,
            "requires_news": self.requires_news,
            "requires_price": self.requires_price,
            "must_include": sorted(self.must_include),
            "confidence": self.confidence,
            "matched_pattern": self.matched_pattern,
        }


@dataclass(frozen=True)
class InstrumentSpec:
    """Tick conventions derived purely from a symbol."""

    type: InstrumentType
    pip_size: float
    pip_name: str
    standard_lot: float
    decimal_places: int

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data


@dataclass(frozen=True)
class MarketDataSnapshot:
    """
    Point-in-time quote.

    price == 0 means no live data was available; callers must branch on it.
    """

    symbol: str
    price: float
    open: float | None = None
    high: float | None = None
    low: float | None = None
    previous_close: float | None = None
    change: float | None = None
    change_percent: float | None = None
    timestamp: datetime = field(default_factory=utc_now)
    source: str = "fallback"
    cached: bool = False
    error: str | None = None
    circuit_open: bool = False

    @classmethod
    def fallback(cls, symbol: str, source: str, error: str | None = None) -> "MarketDataSnapshot":
        return cls(symbol=symbol, price=0.0, source=source, error=error)

    @property
    def has_price(self) -> bool:
        return self.price > 0

    @property
    def is_live(self) -> bool:
        return self.source not in FALLBACK_SOURCES

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["timestamp"] = _iso(self.timestamp)
        return data


@dataclass(frozen=True)
class NewsItem:
    title: str
    source: str
    published_at: datetime
    url: str | None = None
    summary: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["published_at"] = _iso(self.published_at)
        return data


@dataclass(frozen=True)
class EconomicEvent:
    title: str
    currency: str
    impact: str  # "high" | "medium" | "low"
    time: datetime
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["time"] = _iso(self.time)
        return data


@dataclass(frozen=True)
class NewsResult:
    items: tuple[NewsItem, ...] = ()
    source: str = "fallback"
    cached: bool = False
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [item.to_dict() for item in self.items],
            "source": self.source,
            "cached": self.cached,
            "error": self.error,
        }


@dataclass(frozen=True)
class CalendarResult:
    events: tuple[EconomicEvent, ...] = ()
    source: str = "fallback"
    cached: bool = False
    error: str | None = None
    note: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "events": [event.to_dict() for event in self.events],
            "source": self.source,
            "cached": self.cached,
            "error": self.error,
            "note": self.note,
        }


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one adapter call. Never raised, always returned."""

    data: Any
    source: str
    cached: bool = False
    error: str | None = None
    timed_out: bool = False
    circuit_open: bool = False

    @property
    def ok(self) -> bool:
        return self.data is not None


@dataclass(frozen=True)
class Catalyst:
    """A ranked news item or economic event."""

    type: str  # "news" | "economic"
    title: str
    score: float
    confidence: float
    time: datetime | None
    source: str | None = None
    currency: str | None = None
    impact: str | None = None
    actual: str | None = None
    forecast: str | None = None
    previous: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {k: v for k, v in asdict(self).items() if v is not None}
        data["time"] = _iso(self.time)
        return data


@dataclass(frozen=True)
class PositionSizeResult:
    """Derived sizing math. `error` is set instead of raising."""

    account_size: float | None = None
    risk_percent: float | None = None
    risk_amount: float | None = None
    entry_price: float | None = None
    stop_loss: float | None = None
    stop_distance: float | None = None
    stop_pips: float | None = None
    lot_size: float | None = None
    position_size: float | None = None
    pip_value: float | None = None
    instrument: str | None = None
    instrument_type: str | None = None
    pip_name: str | None = None
    formula: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        if self.error is not None:
            return {"error": self.error}
        return {k: v for k, v in asdict(self).items() if k != "error"}


@dataclass(frozen=True)
class KeyLevels:
    current: float
    resistance1: float
    resistance2: float
    support1: float
    support2: float
    day_high: float | None
    day_low: float | None
    atr: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MarketSession:
    name: str
    is_open: bool
    liquidity: str
    volatility: str
    active_sessions: tuple[str, ...]
    kill_zone: str | None = None
    utc_hour: int | None = None
    timestamp: datetime | None = None
    warning: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["active_sessions"] = list(self.active_sessions)
        data["timestamp"] = _iso(self.timestamp)
        return data


@dataclass(frozen=True)
class ResponseSection:
    type: SectionType
    content: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "content": self.content}
