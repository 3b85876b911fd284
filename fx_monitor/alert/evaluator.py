# fx_monitor/alert/evaluator.py
"""Level and momentum sweeps over every user's alerts.

A failure for one user or symbol is logged and the sweep moves on. Firing is
at-least-once: removing an alert that is already gone is a no-op.
"""

import logging

from fx_monitor.alert.levels import MomentumResult, build_delta_pair, check_momentum
from fx_monitor.exceptions import QuoteError
from fx_monitor.notifier.formatter import format_level_alert, format_momentum
from fx_monitor.notifier.models import OutgoingMessage
from fx_monitor.notifier.outbox import Outbox
from fx_monitor.quotes.holder import QuoteHolder
from fx_monitor.storage.alert_store import AlertStore
from fx_monitor.storage.models import AlertLevel

logger = logging.getLogger(__name__)


class AlertEvaluator:
    def __init__(
        self,
        holder: QuoteHolder,
        store: AlertStore,
        outbox: Outbox,
        momentum_points: int = 50,
        crypto_momentum_points: int = 500,
    ):
        self.holder = holder
        self.store = store
        self.outbox = outbox
        self.momentum_points = momentum_points
        self.crypto_momentum_points = crypto_momentum_points

    async def check_levels(self) -> int:
        """Fire every level crossed by the current close. Returns alerts fired."""
        fired = 0
        for user_id in await self.store.list_user_ids():
            for alert in await self.store.list_alerts(user_id):
                try:
                    bar = await self.holder.get_current_quote(alert.symbol)
                except QuoteError as e:
                    logger.warning(f"Can't get quote to check levels: {user_id} {alert.symbol}. {e}")
                    continue

                if not alert.is_triggered(bar.close):
                    continue

                fired += 1
                self.outbox.post(
                    OutgoingMessage(chat_id=user_id, text=format_level_alert(alert, bar.close))
                )
                logger.info(f"Level alert: {user_id} {alert} current {bar.close}")
                try:
                    await self._retire(user_id, alert)
                except Exception as e:
                    logger.error(f"Can't remove triggered alert {user_id} {alert}: {e}")
        return fired

    async def _retire(self, user_id: int, alert: AlertLevel) -> None:
        if not alert.correlation_id:
            await self.store.delete(user_id, alert.symbol, alert.price)
            return

        removed = await self.store.delete_correlated(user_id, alert.correlation_id)
        if removed:
            await self._renew_delta(user_id, alert.symbol)

    async def _renew_delta(self, user_id: int, symbol: str) -> None:
        settings = await self.store.get_settings(user_id)
        points = settings.deltas.get(symbol, 0)
        if points <= 0:
            return
        bar = await self.holder.get_current_quote(symbol)
        levels = build_delta_pair(symbol, bar.close, points)
        await self.store.add(user_id, levels)
        logger.info(f"Renewed delta levels for {user_id}: {', '.join(map(str, levels))}")

    async def check_momentum(self) -> int:
        """Notify every user about large close-to-close moves. Returns messages posted."""
        users = await self.store.list_user_ids()
        if not users:
            return 0

        moves: list[MomentumResult] = []
        for symbol in self.holder.symbols:
            try:
                snapshot = await self.holder.get_quote(symbol)
            except QuoteError as e:
                logger.debug(f"Can't get quote to check momentum: {symbol}. {e}")
                continue
            result = check_momentum(
                symbol, snapshot, self.momentum_points, self.crypto_momentum_points
            )
            if result is not None:
                moves.append(result)
                logger.info(f"Momentum: {symbol} {result.points:+d} points")

        posted = 0
        for user_id in users:
            for result in moves:
                if self.outbox.post(OutgoingMessage(chat_id=user_id, text=format_momentum(result))):
                    posted += 1
        return posted
