# fx_monitor/main.py
import argparse
import asyncio
import logging
import signal
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from pathlib import Path

from fx_monitor.alert.evaluator import AlertEvaluator
from fx_monitor.commands.processor import CommandProcessor
from fx_monitor.config import Config, load_config
from fx_monitor.notifier.formatter import format_patterns
from fx_monitor.notifier.models import OutgoingMessage
from fx_monitor.notifier.outbox import Outbox
from fx_monitor.notifier.telegram import TelegramNotifier
from fx_monitor.patterns.scanner import PatternScanner
from fx_monitor.quotes.fetcher import RoboforexClient
from fx_monitor.quotes.holder import QuoteHolder
from fx_monitor.storage.alert_store import AlertStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


class FxMonitor:
    def __init__(self, config: Config):
        self.config = config
        self.store = AlertStore(config.storage.path)
        self.client = RoboforexClient(
            base_url=config.quotes.base_url,
            timeout=config.quotes.timeout_seconds,
        )
        self.holder = QuoteHolder(
            self.client,
            config.quotes.symbols,
            min_interval_seconds=config.quotes.min_update_interval_seconds,
            jitter_seconds=config.quotes.jitter_seconds,
            retention_days=config.retention.days,
        )
        self.notifier = TelegramNotifier(config.telegram.bot_token, config.telegram.poll_timeout)
        self.outbox = Outbox(self.notifier.deliver)
        self.evaluator = AlertEvaluator(
            self.holder,
            self.store,
            self.outbox,
            momentum_points=config.momentum.points,
            crypto_momentum_points=config.momentum.crypto_points,
        )
        self.commands = CommandProcessor(self.store, self.holder)
        self.patterns = PatternScanner(self.holder)
        self.stop_event = asyncio.Event()

    async def init(self) -> None:
        await self.store.init()
        await self.client.init()
        self.notifier.on_message = self.commands.handle

    async def _wait(self, seconds: float) -> bool:
        """Sleep until the next tick. True if shutdown was requested meanwhile."""
        try:
            await asyncio.wait_for(self.stop_event.wait(), timeout=seconds)
        except TimeoutError:
            return False
        return True

    async def _update_quotes(self) -> None:
        await self.holder.update(self.config.quotes.workers)

    async def _every(self, seconds: float, name: str, job: Callable[[], Awaitable[None]]) -> None:
        while not self.stop_event.is_set():
            if await self._wait(seconds):
                break
            try:
                await job()
            except Exception as e:
                logger.error(f"Failed to run {name}: {e}")
        logger.info(f"{name} stopped")

    async def _check_levels(self) -> None:
        await self._update_quotes()
        fired = await self.evaluator.check_levels()
        if fired:
            logger.info(f"Level alerts fired: {fired}")

    async def _check_momentum(self) -> None:
        await self._update_quotes()
        await self.evaluator.check_momentum()

    async def _scan_patterns(self) -> None:
        users = await self.store.list_user_ids()
        if not users:
            return
        for result in await self.patterns.scan(datetime.now(UTC)):
            text = format_patterns(result)
            for user_id in users:
                self.outbox.post(OutgoingMessage(chat_id=user_id, text=text))

    async def _warm_up(self) -> None:
        try:
            await self._update_quotes()
        except Exception as e:
            logger.error(f"Failed initial quote update: {e}")

    async def run(self) -> None:
        await self.init()

        # Start Telegram bot
        await self.notifier.start_polling()

        sender = asyncio.create_task(self.outbox.run())
        intervals = self.config.intervals
        tasks = [
            asyncio.create_task(self._warm_up()),
            asyncio.create_task(self._every(intervals.level_seconds, "level check", self._check_levels)),
        ]
        if self.config.momentum.enabled:
            tasks.append(
                asyncio.create_task(
                    self._every(intervals.momentum_seconds, "momentum check", self._check_momentum)
                )
            )
        if self.config.patterns.enabled:
            tasks.append(
                asyncio.create_task(
                    self._every(intervals.pattern_seconds, "pattern scan", self._scan_patterns)
                )
            )

        logger.info(f"FX Monitor started: {len(self.holder.symbols)} symbols")

        # Wait for shutdown signal
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.stop_event.set)

        await self.stop_event.wait()
        logger.info("Stopping...")

        # Cleanup: in-flight fetches are cancelled, queued notifications flushed
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.notifier.stop_polling()
        await self.outbox.drain()
        sender.cancel()
        await asyncio.gather(sender, return_exceptions=True)
        await self.client.close()

        logger.info("FX Monitor stopped")


async def main(config_path: Path = Path("config.yaml")) -> None:
    config = load_config(config_path)
    if not config.telegram.bot_token:
        raise SystemExit("BOT_TOKEN not set")
    monitor = FxMonitor(config)
    await monitor.run()


def cli() -> None:
    parser = argparse.ArgumentParser(description="FX price level alert bot")
    parser.add_argument("--config", type=Path, default=Path("config.yaml"), help="Path to config.yaml")
    args = parser.parse_args()
    asyncio.run(main(args.config))


if __name__ == "__main__":
    cli()
