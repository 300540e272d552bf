"""Position sizing - pure math, no I/O.

Converts account size, risk percentage, entry and stop into a lot/unit size
using per-instrument-class pip conventions. Missing inputs are reported in
the result's ``error`` field rather than raised.
"""

import math
import re
from typing import Any

from market_mcp.models import InstrumentType, PositionSizeResult
from market_mcp.reasoning.instruments import get_instrument_specs

DEFAULT_RISK_PERCENT = 1.0
# Dollar value of one pip on one standard lot of a USD-quoted pair
USD_QUOTED_PIP_VALUE = 10.0

_NUMBER = r"(\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?)"
_ACCOUNT_PATTERNS = (
    re.compile(rf"\$?{_NUMBER}\s*(?:k\b)?\s*(?:usd\s*)?(?:account|balance|capital)", re.IGNORECASE),
    re.compile(rf"(?:account|balance|capital)\s*(?:size\s*)?(?:of|is|=|:)?\s*\$?{_NUMBER}", re.IGNORECASE),
)
_RISK_PATTERNS = (
    re.compile(r"(\d+(?:\.\d+)?)\s*(?:%|percent)\s*(?:of\s+\w+\s+)?(?:risk|risking)", re.IGNORECASE),
    re.compile(r"(?:risk|risking)\s*(?:of\s*)?(\d+(?:\.\d+)?)\s*(?:%|percent)", re.IGNORECASE),
)
_STOP_RE = re.compile(rf"(?:\bsl\b|stop\s*loss|\bstop)\s*(?:at|@|:|is|of)?\s*{_NUMBER}", re.IGNORECASE)
_ENTRY_RE = re.compile(rf"(?:\bentry|\benter|\bbuy|\bsell)\s*(?:at|@|:|is|of)?\s*{_NUMBER}", re.IGNORECASE)


def _to_float(raw: str) -> float:
    return float(raw.replace(",", ""))


def extract_sizing_params(text: str | None, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Best-effort extraction of sizing hints from a message.

    Explicit ``overrides`` (non-None values) win over anything parsed.

    Returns:
        Dict with any of account_size, risk_percent, stop_loss, entry_price
    """
    params: dict[str, Any] = {}
    message = text or ""

    for pattern in _ACCOUNT_PATTERNS:
        match = pattern.search(message)
        if match:
            amount = _to_float(match.group(1))
            if re.search(rf"{re.escape(match.group(1))}\s*k\b", match.group(0), re.IGNORECASE):
                amount *= 1000
            params["account_size"] = amount
            break

    for pattern in _RISK_PATTERNS:
        match = pattern.search(message)
        if match:
            params["risk_percent"] = float(match.group(1))
            break

    if match := _STOP_RE.search(message):
        params["stop_loss"] = _to_float(match.group(1))
    if match := _ENTRY_RE.search(message):
        params["entry_price"] = _to_float(match.group(1))

    for key, value in (overrides or {}).items():
        if value is not None:
            params[key] = value
    return params


def calculate_position_size(
    account_size: float | None,
    entry_price: float | None,
    stop_loss: float | None,
    instrument: str | None = None,
    risk_percent: float | None = None,
) -> PositionSizeResult:
    """Calculate position size.

    Formula::

        risk_amount   = account_size × (risk_percent / 100)
        stop_distance = |entry - stop|
        stop_pips     = stop_distance / pip_size
        forex:   lots  = risk_amount / (stop_pips × pip_value_per_lot)
        metals:  lots  = risk_amount / (stop_distance × contract_size)
        other:   units = floor(risk_amount / stop_distance)

    Args:
        account_size: Account equity (e.g. 10_000).
        entry_price: Planned entry.
        stop_loss: Stop-loss price.
        instrument: Canonical symbol, used for pip/lot conventions.
        risk_percent: Percent of equity to risk (default 1).

    Returns:
        PositionSizeResult; ``error`` is set when inputs are missing or invalid.
    """
    if not account_size or not entry_price or not stop_loss:
        return PositionSizeResult(
            error="Missing required parameters: account_size, entry_price, stop_loss"
        )
    if account_size < 0:
        return PositionSizeResult(error=f"account_size must be positive, got {account_size}")
    if risk_percent is None:
        risk_percent = DEFAULT_RISK_PERCENT
    if risk_percent <= 0:
        return PositionSizeResult(error=f"risk_percent must be positive, got {risk_percent}")

    stop_distance = abs(entry_price - stop_loss)
    if stop_distance == 0:
        return PositionSizeResult(error="stop_loss must differ from entry_price")

    specs = get_instrument_specs(instrument)
    symbol = (instrument or "").upper()
    risk_amount = account_size * (risk_percent / 100)
    stop_pips = stop_distance / specs.pip_size

    if specs.type is InstrumentType.FOREX:
        if symbol.endswith("USD"):
            pip_value = USD_QUOTED_PIP_VALUE
        elif symbol.startswith("USD"):
            pip_value = specs.pip_size * specs.standard_lot / entry_price
        else:
            # Quote-currency value; no cross rate available here
            pip_value = specs.pip_size * specs.standard_lot
        lot_size = risk_amount / (stop_pips * pip_value)
        position_size = math.floor(round(lot_size * specs.standard_lot, 6))
        formula = (
            f"Lots = Risk ${risk_amount:.2f} / ({stop_pips:.1f} {specs.pip_name}s"
            f" × ${pip_value:.2f}/{specs.pip_name} per lot) = {lot_size:.2f}"
        )
    elif specs.type in (InstrumentType.PRECIOUS_METAL, InstrumentType.ENERGY):
        pip_value = specs.pip_size * specs.standard_lot
        lot_size = risk_amount / (stop_distance * specs.standard_lot)
        position_size = round(lot_size * specs.standard_lot, 4)
        formula = (
            f"Lots = Risk ${risk_amount:.2f} / (Stop ${stop_distance:.2f}"
            f" × {specs.standard_lot:g} contract) = {lot_size:.2f}"
        )
    else:
        pip_value = specs.pip_size
        position_size = math.floor(round(risk_amount / stop_distance, 6))
        lot_size = position_size
        formula = (
            f"Units = Risk ${risk_amount:.2f} / Stop distance {stop_distance:g}"
            f" = {position_size}"
        )

    return PositionSizeResult(
        account_size=account_size,
        risk_percent=risk_percent,
        risk_amount=round(risk_amount, 2),
        entry_price=entry_price,
        stop_loss=stop_loss,
        stop_distance=round(stop_distance, 6),
        stop_pips=round(stop_pips, 1),
        lot_size=round(lot_size, 2),
        position_size=position_size,
        pip_value=round(pip_value, 2),
        instrument=instrument,
        instrument_type=specs.type.value,
        pip_name=specs.pip_name,
        formula=formula,
    )
