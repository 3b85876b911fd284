# fx_monitor/commands/processor.py
"""Turns parsed chat commands into alert store changes and answers."""

import logging

from fx_monitor.alert.levels import build_delta_pair
from fx_monitor.commands.parser import Command, CommandType, matches, parse_command
from fx_monitor.exceptions import ParseError, QuoteError, StoreError
from fx_monitor.notifier.formatter import format_alert_line, help_text
from fx_monitor.notifier.models import Answer
from fx_monitor.quotes.holder import QuoteHolder
from fx_monitor.quotes.symbols import format_price, get_precision
from fx_monitor.storage.alert_store import AlertStore
from fx_monitor.storage.models import AlertLevel

logger = logging.getLogger(__name__)


class CommandProcessor:
    def __init__(self, store: AlertStore, holder: QuoteHolder):
        self.store = store
        self.holder = holder

    async def handle(self, chat_id: int, text: str) -> Answer:
        try:
            command = parse_command(text)
        except ParseError as e:
            logger.info(f"Can't parse command from {chat_id}: {text!r}. {e}")
            return Answer(text=help_text())

        if command.type is CommandType.ADD:
            return await self._add(chat_id, command)
        if command.type is CommandType.DELETE:
            return await self._delete(chat_id, command)
        if command.type is CommandType.LIST:
            return await self._list(chat_id, command)
        if command.type is CommandType.DELTA:
            return await self._delta(chat_id, command)
        return Answer(text=help_text())

    async def _current_close(self, symbol: str) -> float | None:
        try:
            return (await self.holder.get_current_quote(symbol)).close
        except QuoteError:
            return None

    async def _add(self, chat_id: int, command: Command) -> Answer:
        assert command.direction is not None and command.price is not None
        if not self.holder.is_allowed(command.symbol):
            return Answer(text=f"Symbol is not allowed: {command.symbol}")

        alert = AlertLevel(
            symbol=command.symbol,
            price=command.price,
            direction=command.direction,
            precision=get_precision(command.symbol),
        )
        try:
            added = await self.store.add(chat_id, [alert])
        except StoreError as e:
            logger.error(f"Can't add alert for {chat_id}: {e}")
            return Answer(text=f"Can't save: {alert}")
        if not added:
            return Answer(text=f"Already exists: {alert}")

        close = await self._current_close(command.symbol)
        if close is None:
            return Answer(text=f"Added: {alert}")
        diff = format_price(command.symbol, abs(close - command.price))
        current = format_price(command.symbol, close)
        return Answer(text=f"Added: {alert}\nDiff: {diff}\nCurrent: {current}")

    async def _delete(self, chat_id: int, command: Command) -> Answer:
        if not command.symbol:
            alerts = await self.store.list_alerts(chat_id)
            if not alerts:
                return Answer(text="No alerts")
            alerts.sort(key=lambda a: (a.symbol, a.price))
            # full 5-decimal price so the button matches the stored key
            keyboard = [
                [f"{CommandType.DELETE.value} {a.symbol} {a.direction.value} {a.key}"]
                for a in alerts
            ]
            return Answer(text="Select: ", keyboard=keyboard)

        if command.price is None:
            return await self._delete_matching(chat_id, command.symbol)

        try:
            deleted = await self.store.delete(chat_id, command.symbol, command.price)
        except StoreError as e:
            logger.error(f"Can't delete alert for {chat_id}: {e}")
            return Answer(text=f"Can't delete: {command.symbol} {command.price}")
        if not deleted:
            return Answer(text=f"Not found: {command.symbol} {command.price}")
        return Answer(text=f"Deleted: {command.symbol} {command.price}")

    async def _delete_matching(self, chat_id: int, pattern: str) -> Answer:
        alerts = await self.store.list_alerts(chat_id)
        settings = await self.store.get_settings(chat_id)
        symbols = {a.symbol for a in alerts} | set(settings.deltas)
        lines: list[str] = []
        for symbol in sorted(s for s in symbols if matches(s, pattern)):
            try:
                await self.store.delete_key(chat_id, symbol)
            except StoreError as e:
                logger.error(f"Can't delete {symbol} for {chat_id}: {e}")
                lines.append(f"Can't delete: {symbol}")
                continue
            lines.extend(str(a) for a in alerts if a.symbol == symbol)
            if symbol in settings.deltas:
                lines.append(f"{symbol} delta {settings.deltas[symbol]}")
        if not lines:
            return Answer(text=f"Nothing to delete: {pattern}")
        return Answer(text="Deleted:\n" + "\n".join(lines))

    async def _list(self, chat_id: int, command: Command) -> Answer:
        alerts = [a for a in await self.store.list_alerts(chat_id) if matches(a.symbol, command.symbol)]
        if not alerts:
            return Answer(text="No alerts")
        alerts.sort(key=lambda a: (a.symbol, a.price))
        lines = [format_alert_line(a, await self._current_close(a.symbol)) for a in alerts]
        return Answer(text="\n".join(lines))

    async def _delta(self, chat_id: int, command: Command) -> Answer:
        assert command.points is not None
        symbols = [s for s in self.holder.symbols if matches(s, command.symbol)]
        if not symbols:
            return Answer(text=f"Symbol is not allowed: {command.symbol}")

        existing = await self.store.list_alerts(chat_id)
        settings = await self.store.get_settings(chat_id)
        levels: list[AlertLevel] = []
        errors: list[str] = []
        for symbol in symbols:
            close = await self._current_close(symbol)
            if close is None:
                errors.append(f"Can't add delta for {symbol}: no quote yet")
                continue
            # one pair per symbol: the new one replaces the old
            stale = {a.correlation_id for a in existing if a.symbol == symbol and a.correlation_id}
            try:
                for correlation_id in stale:
                    await self.store.delete_correlated(chat_id, correlation_id)
            except StoreError as e:
                logger.error(f"Can't replace delta levels for {chat_id} {symbol}: {e}")
            levels.extend(build_delta_pair(symbol, close, command.points))
            settings.deltas[symbol] = command.points

        if not levels:
            return Answer(text="\n".join(errors))

        try:
            await self.store.add(chat_id, levels)
            await self.store.set_settings(chat_id, settings)
        except StoreError as e:
            logger.error(f"Can't save delta levels for {chat_id}: {e}")
            errors.append("Can't save levels")

        lines = ["Added levels:"] + [str(level) for level in levels] + errors
        return Answer(text="\n".join(lines))
