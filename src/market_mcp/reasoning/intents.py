"""Regex-table intent classification."""

import re
from dataclasses import dataclass

from market_mcp.models import Intent, IntentType

MATCH_CONFIDENCE = 0.85
DEFAULT_CONFIDENCE = 0.5


@dataclass(frozen=True)
class IntentRule:
    """Ordered pattern list plus the requirements attached to one intent."""

    category: str
    patterns: tuple[re.Pattern[str], ...]
    must_include: frozenset[str]
    requires_news: bool = False
    requires_price: bool = False


def _rule(category: str, patterns: list[str], must_include: list[str], *,
          news: bool = False, price: bool = False) -> IntentRule:
    return IntentRule(
        category=category,
        patterns=tuple(re.compile(p, re.IGNORECASE) for p in patterns),
        must_include=frozenset(must_include),
        requires_news=news,
        requires_price=price,
    )


# Iteration order is the output order of detect_intents
INTENT_RULES: dict[IntentType, IntentRule] = {
    IntentType.WHY_MOVED: _rule(
        "catalyst_analysis",
        [
            r"why.*(mov|drop|crash|pump|spike|rally|sell.?off|dump|jump|fall|rise|tank)",
            r"what.*(happen|caus|driv|behind|push)",
            r"explain.*(move|drop|rally|crash|spike)",
            r"(reason|driver|catalyst).*(for|behind)",
            r"what's.*(going on|happening)",
        ],
        ["catalyst", "source"],
        news=True,
        price=True,
    ),
    IntentType.BIAS: _rule(
        "directional_bias",
        [
            r"what.*(?:is|'s).*(?:bias|view|outlook|direction)",
            r"(?:bullish|bearish|long|short).*(?:or|vs)",
            r"should.*(?:buy|sell|long|short)",
            r"(?:which|what).*(?:direction|way|side)",
            r"what.*(?:side|do)\b",
        ],
        ["levels", "scenarios"],
        news=True,
        price=True,
    ),
    IntentType.LEVELS: _rule(
        "technical_levels",
        [
            r"(?:key|important|major|critical).*level",
            r"support|resistance|pivot",
            r"where.*(?:buy|sell|enter|exit)",
            r"(?:target|stop|entry|tp|sl).*(?:price|level)",
            r"what.*(?:level|price|zone)",
            r"s/?r\s+level",
        ],
        ["levels"],
        price=True,
    ),
    IntentType.POSITION_SIZE: _rule(
        "risk_calculation",
        [
            r"position.*siz",
            r"lot.*siz",
            r"how.*(?:many|much).*(?:lot|contract|share)",
            r"risk.*(?:\d+|percent|%)",
            r"calculat.*(?:size|lot|position)",
            r"what.*size",
            r"\d+%\s*risk",
            r"risk\s*\d+",
        ],
        ["sizing_math"],
        price=True,
    ),
    IntentType.STRATEGY: _rule(
        "strategy_advice",
        [
            r"how.*(?:trade|play|approach)",
            r"strateg",
            r"setup|entry.*criteria",
            r"trading.*plan",
        ],
        ["entry", "stop", "target", "conditions"],
        news=True,
        price=True,
    ),
    IntentType.NEWS: _rule(
        "news_analysis",
        [
            r"news|headline|breaking|announce",
            r"what.*(?:said|happen|release)",
            r"\b(?:fed|fomc|nfp|cpi|gdp|ecb|boe|rba|boj)\b",
            r"economic.*(?:data|event|release|calendar)",
            r"calendar",
        ],
        ["event", "impact", "source"],
        news=True,
    ),
    IntentType.PRICE: _rule(
        "price_check",
        [
            r"(?:what|current|live).*price",
            r"(?:where|how).*(?:trading|at)\b",
            r"price.*(?:now|currently)",
            r"quote",
            r"^\s*(gold|eurusd|btc|bitcoin|gbpusd|usdjpy)\s*\??$",
        ],
        ["price", "change"],
        price=True,
    ),
    IntentType.EDUCATION: _rule(
        "education",
        [
            r"what.*(?:is|are|mean)\b",
            r"explain|teach|learn|understand",
            r"how.*(?:does|do|work)\b",
            r"defin|concept",
        ],
        ["definition", "example"],
    ),
    IntentType.ANALYSIS: _rule(
        "full_analysis",
        [
            r"analy[sz]",
            r"(?:technical|fundamental).*(?:analysis|view)",
            r"(?:chart|price action)",
            r"(?:tell|give).*(?:me|your).*(?:thought|analysis|view)",
            r"outlook",
        ],
        ["driver", "levels", "scenarios"],
        news=True,
        price=True,
    ),
}


def detect_intents(text: str | None) -> list[Intent]:
    """
    Return every intent whose patterns match, in table order.

    Never empty: falls back to a lower-confidence ANALYSIS intent.
    """
    message = text or ""
    intents: list[Intent] = []

    for intent_type, rule in INTENT_RULES.items():
        matched = next((p for p in rule.patterns if p.search(message)), None)
        if matched is None:
            continue
        intents.append(
            Intent(
                type=intent_type,
                category=rule.category,
                requires_news=rule.requires_news,
                requires_price=rule.requires_price,
                must_include=rule.must_include,
                confidence=MATCH_CONFIDENCE,
                matched_pattern=matched.pattern,
            )
        )

    if not intents:
        rule = INTENT_RULES[IntentType.ANALYSIS]
        intents.append(
            Intent(
                type=IntentType.ANALYSIS,
                category=rule.category,
                requires_news=rule.requires_news,
                requires_price=rule.requires_price,
                must_include=rule.must_include,
                confidence=DEFAULT_CONFIDENCE,
            )
        )

    return intents


def required_data(intents: list[Intent]) -> dict[str, bool]:
    """Which data types the detected intents need fetched."""
    return {
        "price": any(i.requires_price for i in intents),
        "news": any(i.requires_news for i in intents),
    }
