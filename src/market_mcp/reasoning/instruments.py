"""Instrument and timeframe normalization from free text."""

import re

from market_mcp.models import InstrumentSpec, InstrumentType

INSTRUMENT_ALIASES: dict[str, str] = {
    # Forex majors
    "EUR/USD": "EURUSD", "EURUSD": "EURUSD", "EURO": "EURUSD", "FIBER": "EURUSD", "EU": "EURUSD",
    "GBP/USD": "GBPUSD", "GBPUSD": "GBPUSD", "CABLE": "GBPUSD", "POUND": "GBPUSD", "GU": "GBPUSD",
    "STERLING": "GBPUSD",
    "USD/JPY": "USDJPY", "USDJPY": "USDJPY", "YEN": "USDJPY", "GOPHER": "USDJPY", "UJ": "USDJPY",
    "AUD/USD": "AUDUSD", "AUDUSD": "AUDUSD", "AUSSIE": "AUDUSD", "AU": "AUDUSD",
    "USD/CAD": "USDCAD", "USDCAD": "USDCAD", "LOONIE": "USDCAD", "UC": "USDCAD",
    "USD/CHF": "USDCHF", "USDCHF": "USDCHF", "SWISSY": "USDCHF",
    "NZD/USD": "NZDUSD", "NZDUSD": "NZDUSD", "KIWI": "NZDUSD",
    # Forex crosses
    "EUR/GBP": "EURGBP", "EURGBP": "EURGBP",
    "EUR/JPY": "EURJPY", "EURJPY": "EURJPY",
    "GBP/JPY": "GBPJPY", "GBPJPY": "GBPJPY", "GUPPY": "GBPJPY", "GJ": "GBPJPY",
    # Commodities
    "GOLD": "XAUUSD", "XAU": "XAUUSD", "XAU/USD": "XAUUSD", "XAUUSD": "XAUUSD",
    "SILVER": "XAGUSD", "XAG": "XAGUSD", "XAG/USD": "XAGUSD", "XAGUSD": "XAGUSD",
    "OIL": "USOIL", "CRUDE": "USOIL", "WTI": "USOIL", "CL": "USOIL", "USOIL": "USOIL",
    "BRENT": "UKOIL", "UKOIL": "UKOIL",
    "NATURAL GAS": "NATGAS", "NG": "NATGAS", "NATGAS": "NATGAS",
    # Crypto
    "BITCOIN": "BTCUSD", "BTC": "BTCUSD", "BTC/USD": "BTCUSD", "BTCUSD": "BTCUSD",
    "ETHEREUM": "ETHUSD", "ETH": "ETHUSD", "ETH/USD": "ETHUSD", "ETHUSD": "ETHUSD",
    "SOLANA": "SOLUSD", "SOL": "SOLUSD",
    # Indices
    "S&P": "SPX500", "S&P 500": "SPX500", "SP500": "SPX500", "SPX": "SPX500", "SPY": "SPX500",
    "ES": "SPX500", "US500": "SPX500",
    "NASDAQ": "NAS100", "NDX": "NAS100", "QQQ": "NAS100", "US100": "NAS100", "NQ": "NAS100",
    "NAS100": "NAS100",
    "DOW": "US30", "DOW JONES": "US30", "DJI": "US30", "YM": "US30", "US30": "US30",
    "DAX": "GER40", "DAX40": "GER40", "GER40": "GER40",
    "FTSE": "UK100", "FTSE100": "UK100", "UK100": "UK100",
    "NIKKEI": "JPN225", "NIKKEI 225": "JPN225", "JPN225": "JPN225",
    # Dollar index
    "DOLLAR": "DXY", "USD INDEX": "DXY", "DOLLAR INDEX": "DXY", "DXY": "DXY",
}

TIMEFRAME_ALIASES: dict[str, str] = {
    "1M": "M1", "1MIN": "M1", "1 MIN": "M1", "1 MINUTE": "M1",
    "5M": "M5", "5MIN": "M5", "5 MIN": "M5", "5 MINUTE": "M5",
    "15M": "M15", "15MIN": "M15", "15 MIN": "M15",
    "30M": "M30", "30MIN": "M30",
    "1H": "H1", "1HR": "H1", "1 HOUR": "H1", "HOURLY": "H1", "H1": "H1",
    "4H": "H4", "4HR": "H4", "4 HOUR": "H4", "H4": "H4",
    "1D": "D1", "DAILY": "D1", "DAY": "D1", "D1": "D1",
    "1W": "W1", "WEEKLY": "W1", "WEEK": "W1", "W1": "W1",
    "1MO": "MN", "MONTHLY": "MN", "MONTH": "MN",
    "SCALP": "M5", "SCALPING": "M5",
    "INTRADAY": "H1", "DAY TRADE": "H1",
    "SWING": "H4", "SWING TRADE": "H4",
    "POSITION": "D1",
}

DEFAULT_TIMEFRAME = "H1"

CURRENCY_CODES = ("EUR", "USD", "GBP", "JPY", "AUD", "NZD", "CAD", "CHF", "SEK", "NOK", "SGD",
                  "HKD", "MXN", "ZAR", "TRY", "CNH", "PLN")
_MAJOR_CURRENCIES = ("EUR", "USD", "GBP", "JPY", "AUD", "NZD", "CAD", "CHF")
CRYPTO_TICKERS = ("BTC", "ETH", "SOL", "XRP", "ADA", "DOGE", "AVAX", "LINK")

# Words that precede "stock"/"shares" in normal speech but are not tickers
_STOCK_STOPWORDS = {"A", "THE", "MY", "THIS", "THAT", "ANY", "SOME", "OF", "BUY", "SELL", "YOUR",
                    "OUR", "THESE", "THOSE", "TECH", "GROWTH", "VALUE", "HOT"}

_INSTRUMENT_KEYWORDS = {
    "XAUUSD": "gold", "XAGUSD": "silver", "EURUSD": "euro", "GBPUSD": "pound",
    "USDJPY": "yen", "BTCUSD": "bitcoin", "ETHUSD": "ethereum", "SPX500": "s&p",
    "NAS100": "nasdaq", "US30": "dow", "USOIL": "oil", "UKOIL": "brent", "NATGAS": "gas",
    "GER40": "dax", "DXY": "dollar",
}

_INDEX_CURRENCIES = {
    "DXY": ("USD",),
    "GER40": ("EUR",),
    "UK100": ("GBP",),
    "JPN225": ("JPY",),
}


def _alias_patterns(aliases: dict[str, str]) -> list[tuple[re.Pattern[str], str]]:
    # Longest alias first so "15M" wins over "5M" and "S&P 500" over "S&P"
    ordered = sorted(aliases.items(), key=lambda kv: len(kv[0]), reverse=True)
    return [(re.compile(rf"\b{re.escape(alias)}\b", re.IGNORECASE), target) for alias, target in ordered]


_INSTRUMENT_PATTERNS = _alias_patterns(INSTRUMENT_ALIASES)
_TIMEFRAME_PATTERNS = _alias_patterns(TIMEFRAME_ALIASES)

_CCY = "|".join(CURRENCY_CODES)
_FOREX_RE = re.compile(rf"\b({_CCY})/?({_CCY})\b")
_CRYPTO_RE = re.compile(rf"\b({'|'.join(CRYPTO_TICKERS)})\b")
_STOCK_RE = re.compile(r"\b([A-Z]{1,5})\s*(?:STOCK|SHARES?|EQUITY)\b")
_SYMBOL_RE = re.compile(r"^[A-Z0-9^=./-]{1,12}$")
_CANONICAL_TIMEFRAMES = frozenset(TIMEFRAME_ALIASES.values())


def extract_instrument(text: str | None) -> str | None:
    """
    Extract a canonical instrument symbol from free text.

    Returns None when nothing recognisable is present; never a malformed symbol.
    """
    if not text:
        return None
    upper = text.upper()

    for pattern, symbol in _INSTRUMENT_PATTERNS:
        if pattern.search(upper):
            return symbol

    for match in _FOREX_RE.finditer(upper):
        if match.group(1) != match.group(2):
            return match.group(1) + match.group(2)

    crypto = _CRYPTO_RE.search(upper)
    if crypto:
        return crypto.group(1) + "USD"

    for match in _STOCK_RE.finditer(upper):
        ticker = match.group(1)
        if ticker not in _STOCK_STOPWORDS:
            return ticker

    return None


def extract_timeframe(text: str | None) -> str:
    """Extract a canonical timeframe; defaults to H1."""
    if not text:
        return DEFAULT_TIMEFRAME

    for pattern, timeframe in _TIMEFRAME_PATTERNS:
        if pattern.search(text):
            return timeframe

    if re.search(r"scalp|quick|fast", text, re.IGNORECASE):
        return "M5"
    if re.search(r"swing|position", text, re.IGNORECASE):
        return "H4"
    if re.search(r"long.?term|invest", text, re.IGNORECASE):
        return "D1"
    return DEFAULT_TIMEFRAME


def resolve_symbol(raw: str | None) -> str | None:
    """Canonical symbol for a ticker or alias ("gold" -> XAUUSD), or None if unusable."""
    text = (raw or "").strip()
    if not text:
        return None
    alias = extract_instrument(text)
    if alias:
        return alias
    symbol = text.upper().replace("/", "")
    return symbol if _SYMBOL_RE.match(symbol) else None


def normalize_timeframe(raw: str | None) -> str | None:
    """Canonical timeframe for an explicit value ("1h" -> H1, "M15" -> M15), or None."""
    text = (raw or "").strip().upper()
    if not text:
        return None
    if text in _CANONICAL_TIMEFRAMES:
        return text
    if text in TIMEFRAME_ALIASES:
        return TIMEFRAME_ALIASES[text]
    for pattern, timeframe in _TIMEFRAME_PATTERNS:
        if pattern.search(text):
            return timeframe
    return None


def get_instrument_type(symbol: str | None) -> InstrumentType:
    """Classify a canonical symbol. Unknown symbols are treated as stocks."""
    if not symbol:
        return InstrumentType.STOCK
    symbol = symbol.upper()
    if symbol.startswith(("XAU", "XAG")):
        return InstrumentType.PRECIOUS_METAL
    if len(symbol) == 6 and symbol[:3] in CURRENCY_CODES and symbol[3:] in CURRENCY_CODES:
        return InstrumentType.FOREX
    if "OIL" in symbol or "GAS" in symbol:
        return InstrumentType.ENERGY
    if symbol.startswith(CRYPTO_TICKERS):
        return InstrumentType.CRYPTO
    if re.search(r"SPX|NAS|US30|DAX|UK100|JPN|DXY|GER", symbol):
        return InstrumentType.INDEX
    return InstrumentType.STOCK


def get_instrument_specs(symbol: str | None) -> InstrumentSpec:
    """Tick conventions for a symbol. Pure; recomputed on every call."""
    kind = get_instrument_type(symbol)
    symbol = (symbol or "").upper()

    if kind is InstrumentType.FOREX:
        is_jpy = "JPY" in symbol
        return InstrumentSpec(kind, 0.01 if is_jpy else 0.0001, "pip", 100_000, 3 if is_jpy else 5)
    if kind is InstrumentType.PRECIOUS_METAL:
        return InstrumentSpec(kind, 0.01, "cent", 100, 2)
    if kind is InstrumentType.ENERGY:
        return InstrumentSpec(kind, 0.01, "cent", 1_000, 2)
    if kind is InstrumentType.CRYPTO:
        return InstrumentSpec(kind, 1, "point", 1, 0 if "BTC" in symbol else 2)
    if kind is InstrumentType.INDEX:
        return InstrumentSpec(kind, 1, "point", 1, 0)
    return InstrumentSpec(kind, 0.01, "cent", 1, 2)


def instrument_keyword(symbol: str | None) -> str:
    """Plain-English keyword used to spot the instrument in headlines."""
    if not symbol:
        return ""
    return _INSTRUMENT_KEYWORDS.get(symbol.upper(), symbol.lower())


def instrument_currencies(symbol: str | None) -> set[str]:
    """Currencies an instrument is exposed to (base and quote where known)."""
    if not symbol:
        return set()
    symbol = symbol.upper()
    if symbol in _INDEX_CURRENCIES:
        return set(_INDEX_CURRENCIES[symbol])
    kind = get_instrument_type(symbol)
    if kind in (InstrumentType.FOREX, InstrumentType.PRECIOUS_METAL, InstrumentType.CRYPTO):
        return {code for code in CURRENCY_CODES if code in symbol}
    return {"USD"}


def format_price(price: float | None, symbol: str | None = None) -> str:
    """Format a price with the instrument's decimal places."""
    if not price:
        return "—"
    if not symbol:
        return f"{price:.4f}"
    # Forex is shown to the pip, not the pipette
    if get_instrument_type(symbol) is InstrumentType.FOREX:
        decimals = 3 if "JPY" in symbol.upper() else 4
    else:
        decimals = get_instrument_specs(symbol).decimal_places
    return f"{price:.{decimals}f}"
