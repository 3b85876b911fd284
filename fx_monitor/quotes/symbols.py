# fx_monitor/quotes/symbols.py
from datetime import date, datetime, timedelta

CRYPTO_SYMBOL = "BTCUSD"
POINTS_NOISE_DIGITS = 6

ALLOWED_SYMBOLS: tuple[str, ...] = (
    "AUDCAD",
    "AUDCHF",
    "AUDJPY",
    "AUDNZD",
    "AUDUSD",
    "CADCHF",
    "CADJPY",
    "CHFJPY",
    "EURAUD",
    "EURCAD",
    "EURCHF",
    "EURGBP",
    "EURJPY",
    "EURNZD",
    "EURUSD",
    "GBPAUD",
    "GBPCAD",
    "GBPCHF",
    "GBPJPY",
    "GBPNZD",
    "GBPUSD",
    "NZDCAD",
    "NZDCHF",
    "NZDJPY",
    "NZDUSD",
    "USDCAD",
    "USDCHF",
    "USDJPY",
    CRYPTO_SYMBOL,
)


def normalize(symbol: str) -> str:
    return symbol.strip().upper()


def is_valid_symbol(symbol: str, allowed: tuple[str, ...] | list[str] = ALLOWED_SYMBOLS) -> bool:
    return normalize(symbol) in allowed


def get_precision(symbol: str) -> int:
    """Decimal places quoted for a symbol: 3 for JPY pairs, 2 for BTC, else 5."""
    symbol = normalize(symbol)
    if "JPY" in symbol:
        return 3
    if "BTC" in symbol:
        return 2
    return 5


def to_points(symbol: str, diff: float) -> int:
    """Scale a price difference to points, truncating toward zero.

    The crypto symbol is counted in whole price units. Float noise below the
    quoted precision is rounded away first, so 1.1000 -> 1.1005 is 50 points.
    """
    if normalize(symbol) == CRYPTO_SYMBOL:
        return int(round(diff, POINTS_NOISE_DIGITS))
    return int(round(diff * 10 ** get_precision(symbol), POINTS_NOISE_DIGITS))


def from_points(symbol: str, points: int) -> float:
    if normalize(symbol) == CRYPTO_SYMBOL:
        return float(points)
    return points / 10 ** get_precision(symbol)


def format_price(symbol: str, price: float) -> str:
    return f"{price:.{get_precision(symbol)}f}"


def previous_hour(t: datetime) -> int:
    return (t.hour - 1) % 24


def day_of_year(d: date | datetime) -> int:
    return d.timetuple().tm_yday


def previous_day(t: datetime) -> date:
    return t.date() - timedelta(days=1)
