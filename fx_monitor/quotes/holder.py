# fx_monitor/quotes/holder.py
"""In-memory quote cache fed by a pool of fetch workers.

The holder is the only writer of snapshots and hour/day buckets. Every read
takes the data lock and hands back a deep copy, so callers never share state
with the holder.
"""

import asyncio
import copy
import logging
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from typing import Protocol

from fx_monitor.exceptions import NoQuoteError, NotAllowedError
from fx_monitor.quotes.models import Bar, Bucket, Snapshot, UpdateResult
from fx_monitor.quotes.symbols import day_of_year, normalize

logger = logging.getLogger(__name__)

MIN_UPDATE_INTERVAL_SECONDS = 60.0
DEFAULT_WORKERS = 2


class QuoteFetcher(Protocol):
    async def fetch(self, symbol: str, day: date) -> Bar: ...


@dataclass
class _Job:
    symbol: str
    day: date


@dataclass
class _JobResult:
    job: _Job
    bar: Bar | None = None
    error: Exception | None = None


class QuoteHolder:
    def __init__(
        self,
        fetcher: QuoteFetcher,
        symbols: Iterable[str],
        min_interval_seconds: float = MIN_UPDATE_INTERVAL_SECONDS,
        jitter_seconds: float = 2.0,
        retention_days: int = 7,
        clock: Callable[[], datetime] | None = None,
    ):
        self.fetcher = fetcher
        self.min_interval_seconds = min_interval_seconds
        self.jitter_seconds = jitter_seconds
        self.retention_days = retention_days
        self._clock = clock or (lambda: datetime.now(UTC))

        self._snapshots: dict[str, Snapshot | None] = {normalize(s): None for s in symbols}
        self._hours: dict[str, dict[int, Bucket]] = {}
        self._days: dict[str, dict[int, Bucket]] = {}
        self._last_update: datetime | None = None
        self._last_day: date | None = None
        # symbols still missing the provider bar for yesterday
        self._closed_pending: set[str] = set()

        # _lock guards the maps; _update_lock serializes whole update runs
        self._lock = asyncio.Lock()
        self._update_lock = asyncio.Lock()

    @property
    def symbols(self) -> list[str]:
        return sorted(self._snapshots)

    @property
    def last_update(self) -> datetime | None:
        return self._last_update

    def is_allowed(self, symbol: str) -> bool:
        return normalize(symbol) in self._snapshots

    async def update(self, workers: int = DEFAULT_WORKERS) -> UpdateResult:
        """Fetch fresh bars for the whole universe.

        Runs within ``min_interval_seconds`` of the previous successful run are
        skipped. On the first run of a new day the previous day's bar is
        fetched as well, and symbols whose closed bar failed are retried on
        later runs. Failed jobs leave the previous data in place. If the
        calling task is cancelled, results applied so far are kept and the run
        does not count as successful.
        """
        if workers <= 0:
            return UpdateResult(skipped=True)

        async with self._update_lock:
            now = self._clock()
            if self._last_update is not None:
                elapsed = (now - self._last_update).total_seconds()
                if elapsed < self.min_interval_seconds:
                    logger.info(f"Skip update: last run {elapsed:.0f}s ago")
                    return UpdateResult(skipped=True)

            today = now.date()
            jobs = [_Job(symbol=s, day=today) for s in self._snapshots]
            yesterday = today - timedelta(days=1)
            if self._last_day != today:
                self._closed_pending = set(self._snapshots)
                logger.info(f"New day {today}, fetching daily bars for {yesterday}")
            jobs.extend(_Job(symbol=s, day=yesterday) for s in sorted(self._closed_pending))

            result = UpdateResult(dispatched=len(jobs))
            if not jobs:
                return result

            pending: asyncio.Queue[_Job] = asyncio.Queue()
            for job in jobs:
                pending.put_nowait(job)
            done: asyncio.Queue[_JobResult] = asyncio.Queue()

            tasks = [
                asyncio.create_task(self._worker(pending, done))
                for _ in range(min(workers, len(jobs)))
            ]
            try:
                for _ in range(len(jobs)):
                    res = await done.get()
                    if res.bar is not None:
                        await self._apply(res.job, res.bar, now)
                        if res.job.day != today:
                            self._closed_pending.discard(res.job.symbol)
                        result.fetched += 1
                        logger.debug(f"Got quote: {res.bar}")
                    else:
                        result.failed += 1
                        logger.error(f"Can't fetch quote {res.job.symbol} {res.job.day}: {res.error}")
            except asyncio.CancelledError:
                logger.warning(
                    f"Update cancelled after {result.fetched + result.failed}/{len(jobs)} results"
                )
                raise
            finally:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)

            self._last_update = self._clock()
            self._last_day = today
            logger.info(
                f"Quotes updated: {result.fetched} fetched, {result.failed} failed, "
                f"{workers} workers"
            )
            return result

    async def _worker(self, pending: asyncio.Queue[_Job], done: asyncio.Queue[_JobResult]) -> None:
        while True:
            try:
                job = pending.get_nowait()
            except asyncio.QueueEmpty:
                return

            try:
                bar = await self.fetcher.fetch(job.symbol, job.day)
                await done.put(_JobResult(job=job, bar=bar))
            except Exception as e:
                # every job must be answered or the drain loop never finishes
                await done.put(_JobResult(job=job, error=e))

            if self.jitter_seconds > 0 and not pending.empty():
                await asyncio.sleep(random.uniform(0, self.jitter_seconds))

    async def _apply(self, job: _Job, bar: Bar, now: datetime) -> None:
        today = now.date()
        symbol = normalize(job.symbol)
        if symbol not in self._snapshots:
            logger.warning(f"Ignoring quote for unknown symbol {symbol}")
            return
        bar = copy.deepcopy(bar)
        bar.symbol = symbol

        async with self._lock:
            if job.day == today:
                self._save_current(bar, now)
            else:
                self._save_closed_day(bar, job.day)
            self._evict_days(symbol, today)

    def _save_current(self, bar: Bar, now: datetime) -> None:
        symbol = bar.symbol
        snapshot = self._snapshots[symbol]
        if snapshot is None:
            self._snapshots[symbol] = Snapshot(previous=copy.deepcopy(bar), current=bar)
        else:
            snapshot.previous = snapshot.current
            snapshot.current = bar

        today = now.date()
        hours = self._hours.setdefault(symbol, {})
        hour_bucket = hours.get(now.hour)
        if hour_bucket is None or hour_bucket.period != today:
            hours[now.hour] = Bucket.open_with(symbol, bar.close, today)
        else:
            hour_bucket.observe(bar.close)

        days = self._days.setdefault(symbol, {})
        day_key = day_of_year(today)
        day_bucket = days.get(day_key)
        if day_bucket is None or day_bucket.period != today:
            days[day_key] = Bucket.open_with(symbol, bar.close, today)
        else:
            day_bucket.observe(bar.close)

    def _save_closed_day(self, bar: Bar, day: date) -> None:
        # the provider's bar for a finished day replaces whatever was aggregated
        self._days.setdefault(bar.symbol, {})[day_of_year(day)] = Bucket(bar=bar, period=day)

    def _evict_days(self, symbol: str, today: date) -> None:
        days = self._days.get(symbol)
        if not days:
            return
        oldest = today - timedelta(days=self.retention_days)
        for key in [k for k, b in days.items() if b.period < oldest]:
            del days[key]

    def _check_allowed(self, symbol: str) -> str:
        symbol = normalize(symbol)
        if symbol not in self._snapshots:
            raise NotAllowedError(symbol)
        return symbol

    async def get_quote(self, symbol: str) -> Snapshot:
        async with self._lock:
            symbol = self._check_allowed(symbol)
            snapshot = self._snapshots[symbol]
            if snapshot is None:
                raise NoQuoteError(symbol)
            return copy.deepcopy(snapshot)

    async def get_current_quote(self, symbol: str) -> Bar:
        return (await self.get_quote(symbol)).current

    async def get_previous_quote(self, symbol: str) -> Bar:
        return (await self.get_quote(symbol)).previous

    async def get_quote_by_hour(self, symbol: str, hour: int) -> Bar:
        """Aggregated bar for an hour of day (UTC) within the last 24 hours."""
        async with self._lock:
            symbol = self._check_allowed(symbol)
            bucket = self._hours.get(symbol, {}).get(hour)
            if bucket is None:
                raise NoQuoteError(symbol, f"hour {hour}")
            opened = datetime.combine(bucket.period, time(hour=hour), tzinfo=UTC)
            if self._clock() - opened >= timedelta(hours=24):
                raise NoQuoteError(symbol, f"hour {hour} is stale")
            return copy.deepcopy(bucket.bar)

    async def get_quote_by_day(self, symbol: str, day: int) -> Bar:
        """Daily bar by day of year."""
        async with self._lock:
            symbol = self._check_allowed(symbol)
            bucket = self._days.get(symbol, {}).get(day)
            if bucket is None:
                raise NoQuoteError(symbol, f"day {day}")
            return copy.deepcopy(bucket.bar)
