"""报价数据模型"""

from dataclasses import dataclass
from datetime import date


@dataclass
class Bar:
    """OHLC bar for one symbol over one period"""

    symbol: str
    open: float
    high: float
    low: float
    close: float

    def is_valid(self) -> bool:
        if not self.symbol:
            return False
        return self.high > 0 and self.low > 0 and self.open > 0 and self.close > 0

    def __str__(self) -> str:
        return (
            f"{self.symbol} - h: {self.high:.5f} l: {self.low:.5f} "
            f"o: {self.open:.5f} c: {self.close:.5f}"
        )


@dataclass
class Snapshot:
    """Previous/current bar pair served for a symbol"""

    previous: Bar
    current: Bar


@dataclass
class Bucket:
    """Aggregated bar for one hour or one day.

    ``period`` is the date the bucket was opened on; hour slots are reused every
    24 hours, so a slot whose period differs from the observation date is stale.
    """

    bar: Bar
    period: date

    def observe(self, close: float) -> None:
        if close > self.bar.high:
            self.bar.high = close
        if close < self.bar.low:
            self.bar.low = close
        self.bar.close = close

    @classmethod
    def open_with(cls, symbol: str, close: float, period: date) -> "Bucket":
        return cls(
            bar=Bar(symbol=symbol, open=close, high=close, low=close, close=close),
            period=period,
        )


@dataclass
class UpdateResult:
    """Outcome of one QuoteHolder.update run"""

    skipped: bool = False
    dispatched: int = 0
    fetched: int = 0
    failed: int = 0
