"""Key price levels from the day's range."""

from market_mcp.models import KeyLevels, MarketDataSnapshot

# Range proxy when the snapshot has no usable high/low
_FALLBACK_RANGE_PCT = 0.01


def calculate_levels(snapshot: MarketDataSnapshot | None) -> KeyLevels | None:
    """Project two resistance and two support levels one and two ranges away.

    Returns None when there is no live price (price == 0).
    """
    if snapshot is None or not snapshot.has_price:
        return None

    price = snapshot.price
    day_range = 0.0
    if snapshot.high and snapshot.low:
        day_range = snapshot.high - snapshot.low
    if day_range <= 0:
        day_range = price * _FALLBACK_RANGE_PCT

    return KeyLevels(
        current=price,
        resistance1=round(price + day_range, 4),
        resistance2=round(price + day_range * 2, 4),
        support1=round(price - day_range, 4),
        support2=round(price - day_range * 2, 4),
        day_high=snapshot.high,
        day_low=snapshot.low,
        atr=round(day_range, 4),
    )
