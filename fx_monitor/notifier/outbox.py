# fx_monitor/notifier/outbox.py
"""Outbound notification queue drained by one sender task.

Producers never wait on the chat transport; a failed send is logged and
dropped.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from fx_monitor.notifier.models import OutgoingMessage

logger = logging.getLogger(__name__)


class Outbox:
    def __init__(
        self,
        send: Callable[[OutgoingMessage], Awaitable[None]],
        maxsize: int = 1000,
    ):
        self._send = send
        self._queue: asyncio.Queue[OutgoingMessage] = asyncio.Queue(maxsize=maxsize)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def post(self, message: OutgoingMessage) -> bool:
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f"Outbox full, dropping message to {message.chat_id}")
            return False
        return True

    async def run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self._send(message)
                logger.info(f"Sent message to {message.chat_id}: {message.text!r}")
            except Exception as e:
                logger.error(f"Can't send message to {message.chat_id}: {e}")
            finally:
                self._queue.task_done()

    async def drain(self, timeout: float = 10.0) -> bool:
        """Wait until every queued message was handed to the transport."""
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
        except TimeoutError:
            logger.warning(f"Outbox drain timed out, {self.pending} messages left")
            return False
        return True
