# fx_monitor/patterns/scanner.py
"""Looks for candle patterns on the bars that just closed."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from fx_monitor.exceptions import QuoteError
from fx_monitor.patterns.detector import Pattern, classify
from fx_monitor.quotes.holder import QuoteHolder
from fx_monitor.quotes.models import Bar
from fx_monitor.quotes.symbols import day_of_year, previous_day, previous_hour

logger = logging.getLogger(__name__)


class Timeframe(Enum):
    HOUR = "hour"
    DAY = "day"


@dataclass
class PatternHit:
    symbol: str
    pattern: Pattern


@dataclass
class ScanResult:
    timeframe: Timeframe
    hits: list[PatternHit]


class PatternScanner:
    def __init__(self, holder: QuoteHolder):
        self.holder = holder
        self._checked: dict[Timeframe, int | None] = {Timeframe.HOUR: None, Timeframe.DAY: None}
        # day bars that were not available when their day was scanned
        self._missing: dict[Timeframe, set[str]] = {Timeframe.HOUR: set(), Timeframe.DAY: set()}

    def _due(self, timeframe: Timeframe, now: datetime) -> int | None:
        """Key of the bar to check, or None if nothing new closed."""
        last_update = self.holder.last_update
        if last_update is None:
            return None

        if timeframe is Timeframe.HOUR:
            if now.minute != 0:
                return None
            key = previous_hour(now)
        else:
            # wait for today's first update so the closed day bar is in place
            if last_update.date() != now.date():
                return None
            key = day_of_year(previous_day(now))

        if self._checked[timeframe] == key and not self._missing[timeframe]:
            return None
        return key

    async def _bar(self, timeframe: Timeframe, symbol: str, key: int) -> Bar:
        if timeframe is Timeframe.HOUR:
            return await self.holder.get_quote_by_hour(symbol, key)
        return await self.holder.get_quote_by_day(symbol, key)

    async def scan(self, now: datetime) -> list[ScanResult]:
        results: list[ScanResult] = []
        for timeframe in Timeframe:
            key = self._due(timeframe, now)
            if key is None:
                continue

            if self._checked[timeframe] == key:
                symbols = sorted(self._missing[timeframe])
            else:
                symbols = self.holder.symbols
                self._checked[timeframe] = key

            hits: list[PatternHit] = []
            missing: set[str] = set()
            for symbol in symbols:
                try:
                    bar = await self._bar(timeframe, symbol, key)
                except QuoteError as e:
                    logger.debug(f"No {timeframe.value} bar for pattern scan: {e}")
                    missing.add(symbol)
                    continue
                pattern = classify(bar)
                if pattern is not None:
                    hits.append(PatternHit(symbol=symbol, pattern=pattern))

            # hour bars are built from our own polls and will not show up later
            if timeframe is Timeframe.DAY:
                self._missing[timeframe] = missing

            logger.info(
                f"Pattern scan {timeframe.value} {key}: {len(hits)} hits, {len(missing)} missing"
            )
            if hits:
                results.append(ScanResult(timeframe=timeframe, hits=hits))
        return results
