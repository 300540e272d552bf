"""Prompt templates for the trading assistant."""

from typing import Any

# Prompt definitions
PROMPTS = {
    "trading_assistant": {
        "description": "Answer a market question grounded in the market_brief tool output",
        "arguments": [
            {"name": "question", "required": True},
            {"name": "instrument", "required": False},
        ],
    },
}

_TRADING_ASSISTANT = """You are a trading education assistant. Answer this question:

"{question}"

Execute these tools in order:
1. market_brief(message="{question}"{instrument_arg})
2. If the brief has no MAIN DRIVER backed by a source, call ranked_catalysts({instrument_call}) once.

Rules:
- Ground every claim in tool output. Cite the catalyst source for any "why it moved" explanation.
- Quote prices only from market_data. If market_data.price is 0 or data_provenance says
  fallback, say the quote is unavailable. Never describe it as live.
- Only call data "live" when the footer says "Data: live".
- Keep the section order of the brief: driver, factors, current market, key levels,
  scenarios, position sizing, risk notes, what to watch.
- Show the position sizing formula when sizing was calculated; if the sizing section
  says it needs inputs, ask for exactly those inputs.
- Mention every entry in validation_warnings that affects the answer.
- This is education, not financial advice. Say so once, briefly, at the end.
"""


def list_prompts() -> list[dict[str, Any]]:
    """List available prompts."""
    return [
        {
            "name": name,
            "description": info["description"],
            "arguments": info["arguments"],
        }
        for name, info in PROMPTS.items()
    ]


def get_prompt(name: str, arguments: dict[str, str]) -> dict[str, Any] | None:
    """
    Get a prompt by name with arguments filled in.

    Returns dict with 'messages' key for MCP GetPromptResult.
    """
    if name not in PROMPTS:
        return None

    if name == "trading_assistant":
        question = arguments.get("question", "").replace('"', "'")
        instrument = arguments.get("instrument") or ""
        return {
            "messages": [
                {
                    "role": "user",
                    "content": _TRADING_ASSISTANT.format(
                        question=question,
                        instrument_arg=f', instrument="{instrument}"' if instrument else "",
                        instrument_call=f'instrument="{instrument}"' if instrument else "",
                    ),
                }
            ]
        }

    return None
