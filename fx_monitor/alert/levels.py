# fx_monitor/alert/levels.py
import uuid
from dataclasses import dataclass

from fx_monitor.quotes.models import Snapshot
from fx_monitor.quotes.symbols import CRYPTO_SYMBOL, from_points, get_precision, normalize, to_points
from fx_monitor.storage.models import AlertLevel, Direction


@dataclass
class MomentumResult:
    symbol: str
    points: int
    diff: float
    previous: float
    current: float


def build_delta_pair(
    symbol: str,
    close: float,
    points: int,
    correlation_id: str | None = None,
) -> list[AlertLevel]:
    """Two levels ``points`` away from ``close`` sharing one correlation id."""
    symbol = normalize(symbol)
    correlation_id = correlation_id or uuid.uuid4().hex
    precision = get_precision(symbol)
    delta = from_points(symbol, points)
    return [
        AlertLevel(
            symbol=symbol,
            price=round(close + delta, precision),
            direction=Direction.BELOW_CURRENT,
            precision=precision,
            correlation_id=correlation_id,
        ),
        AlertLevel(
            symbol=symbol,
            price=round(close - delta, precision),
            direction=Direction.ABOVE_CURRENT,
            precision=precision,
            correlation_id=correlation_id,
        ),
    ]


def momentum_threshold(symbol: str, points: int = 50, crypto_points: int = 500) -> int:
    return crypto_points if normalize(symbol) == CRYPTO_SYMBOL else points


def check_momentum(
    symbol: str,
    snapshot: Snapshot,
    points: int = 50,
    crypto_points: int = 500,
) -> MomentumResult | None:
    """Report a close-to-close move of at least the symbol's threshold."""
    diff = snapshot.current.close - snapshot.previous.close
    moved = to_points(symbol, diff)
    if abs(moved) < momentum_threshold(symbol, points, crypto_points):
        return None
    return MomentumResult(
        symbol=normalize(symbol),
        points=moved,
        diff=diff,
        previous=snapshot.previous.close,
        current=snapshot.current.close,
    )
