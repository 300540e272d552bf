"""Catalyst ranking: merge news and calendar events into one scored list."""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from rapidfuzz.distance import Levenshtein

from market_mcp.models import Catalyst, EconomicEvent, NewsItem, as_utc, utc_now
from market_mcp.reasoning.instruments import instrument_currencies, instrument_keyword


@dataclass(frozen=True)
class CatalystWeights:
    """
    Point values for the additive catalyst score.

    These are hand-tuned; tests asserting exact scores depend on them.
    """

    news_base: float = 50
    news_instrument_mention: float = 25
    news_age_under_1h: float = 20
    news_age_under_4h: float = 10
    news_high_impact: float = 20
    news_breaking: float = 15
    event_base: float = 40
    event_high_impact: float = 35
    event_medium_impact: float = 15
    event_currency_match: float = 20
    event_just_released: float = 30  # within +/- 30 minutes of release
    event_upcoming: float = 15  # within the next 2 hours
    max_confidence: float = 0.95
    duplicate_similarity: float = 0.7


DEFAULT_WEIGHTS = CatalystWeights()

HIGH_IMPACT_RE = re.compile(r"fed|fomc|rate|inflation|cpi|nfp|jobs|gdp", re.IGNORECASE)
BREAKING_RE = re.compile(r"breaking|urgent|flash|crash|surge|plunge", re.IGNORECASE)


def is_near_duplicate(key: str, accepted: list[str], threshold: float) -> bool:
    """True when `key` matches an accepted title or its normalized Levenshtein similarity exceeds `threshold`."""
    return any(
        key == seen or Levenshtein.normalized_similarity(key, seen) > threshold
        for seen in accepted
    )


def _score_news(item: NewsItem, instrument: str | None, now: datetime, w: CatalystWeights) -> float:
    title = item.title.lower()
    score = w.news_base

    if instrument:
        keyword = instrument_keyword(instrument)
        if instrument.lower() in title or (keyword and keyword in title):
            score += w.news_instrument_mention

    age_hours = (now - as_utc(item.published_at)).total_seconds() / 3600
    if age_hours < 1:
        score += w.news_age_under_1h
    elif age_hours < 4:
        score += w.news_age_under_4h

    if HIGH_IMPACT_RE.search(title):
        score += w.news_high_impact
    if BREAKING_RE.search(title):
        score += w.news_breaking
    return score


def _score_event(event: EconomicEvent, instrument: str | None, now: datetime, w: CatalystWeights) -> float:
    score = w.event_base

    impact = (event.impact or "").lower()
    if impact == "high":
        score += w.event_high_impact
    elif impact == "medium":
        score += w.event_medium_impact

    if instrument and event.currency and event.currency.upper() in instrument_currencies(instrument):
        score += w.event_currency_match

    hours_until = (as_utc(event.time) - now).total_seconds() / 3600
    if -0.5 <= hours_until < 0.5:
        score += w.event_just_released
    elif 0 <= hours_until < 2:
        score += w.event_upcoming
    return score


def rank_catalysts(
    news: Iterable[NewsItem] | None,
    events: Iterable[EconomicEvent] | None,
    instrument: str | None,
    now: datetime | None = None,
    weights: CatalystWeights = DEFAULT_WEIGHTS,
) -> list[Catalyst]:
    """
    Score, deduplicate and sort catalysts (descending by score).

    Near-duplicate titles (similarity > weights.duplicate_similarity) are
    collapsed; the first one seen is kept.
    """
    now = as_utc(now) if now is not None else utc_now()
    catalysts: list[Catalyst] = []

    seen_news: list[str] = []
    for item in news or ():
        key = (item.title or "").strip().lower()
        if not key or is_near_duplicate(key, seen_news, weights.duplicate_similarity):
            continue
        seen_news.append(key)
        score = _score_news(item, instrument, now, weights)
        catalysts.append(Catalyst(
            type="news",
            title=item.title,
            score=score,
            confidence=min(score / 100, weights.max_confidence),
            time=item.published_at,
            source=item.source,
        ))

    # The same release for two currencies is two catalysts. Events are never
    # checked against headlines: a headline reporting a release is kept next to it.
    seen_events: dict[str, list[str]] = {}
    for event in events or ():
        key = (event.title or "").strip().lower()
        seen = seen_events.setdefault((event.currency or "").upper(), [])
        if not key or is_near_duplicate(key, seen, weights.duplicate_similarity):
            continue
        seen.append(key)
        score = _score_event(event, instrument, now, weights)
        catalysts.append(Catalyst(
            type="economic",
            title=event.title,
            score=score,
            confidence=min(score / 100, weights.max_confidence),
            time=event.time,
            source=event.source,
            currency=event.currency,
            impact=event.impact,
            actual=event.actual,
            forecast=event.forecast,
            previous=event.previous,
        ))

    # Stable sort keeps news-before-calendar order among equal scores
    catalysts.sort(key=lambda c: c.score, reverse=True)
    return catalysts
