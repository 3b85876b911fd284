# fx_monitor/patterns/detector.py
from dataclasses import dataclass
from enum import Enum

from fx_monitor.quotes.models import Bar

PIN_BAR_PERCENT = 65.0
STAR_BAR_PERCENT = 33.0


class PatternName(Enum):
    PIN_BAR = "pinbar"
    STAR_BAR = "starbar"


class Sentiment(Enum):
    BULL = "bull"
    BEAR = "bear"
    NEUTRAL = "neutral"


@dataclass(frozen=True)
class Pattern:
    name: PatternName
    sentiment: Sentiment


def _wicks(bar: Bar) -> tuple[float, float] | None:
    """Upper and lower wick as a percentage of the bar range."""
    bar_range = bar.high - bar.low
    if bar_range <= 0:
        return None
    upper = (bar.high - max(bar.open, bar.close)) * 100 / bar_range
    lower = (min(bar.open, bar.close) - bar.low) * 100 / bar_range
    return upper, lower


def pin_bar(bar: Bar) -> Pattern | None:
    wicks = _wicks(bar)
    if wicks is None:
        return None
    upper, lower = wicks
    if upper >= PIN_BAR_PERCENT:
        return Pattern(PatternName.PIN_BAR, Sentiment.BEAR)
    if lower >= PIN_BAR_PERCENT:
        return Pattern(PatternName.PIN_BAR, Sentiment.BULL)
    return None


def star_bar(bar: Bar) -> Pattern | None:
    wicks = _wicks(bar)
    if wicks is None:
        return None
    upper, lower = wicks
    if upper >= STAR_BAR_PERCENT and lower >= STAR_BAR_PERCENT:
        return Pattern(PatternName.STAR_BAR, Sentiment.NEUTRAL)
    return None


def classify(bar: Bar) -> Pattern | None:
    """First matching pattern: pin-bar, then star-bar."""
    return pin_bar(bar) or star_bar(bar)
