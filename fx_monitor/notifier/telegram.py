# fx_monitor/notifier/telegram.py
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from telegram import Bot, BotCommand, ReplyKeyboardMarkup, ReplyParameters, Update
from telegram.error import TelegramError
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from fx_monitor.notifier.formatter import help_text
from fx_monitor.notifier.models import Answer, OutgoingMessage

logger = logging.getLogger(__name__)

BOT_COMMANDS = [
    BotCommand("add", "Add price level"),
    BotCommand("del", "Delete levels"),
    BotCommand("ls", "List levels"),
    BotCommand("delta", "Levels around current price"),
    BotCommand("help", "Help"),
]


def _markup(keyboard: list[list[str]] | None) -> ReplyKeyboardMarkup | None:
    if not keyboard:
        return None
    return ReplyKeyboardMarkup(keyboard, one_time_keyboard=True)


class TelegramNotifier:
    def __init__(self, bot_token: str, poll_timeout: int = 60):
        self.bot_token = bot_token
        self.poll_timeout = poll_timeout
        self.bot = Bot(token=bot_token)
        self.app: Application | None = None  # type: ignore[type-arg]

        # (chat_id, text) -> answer
        self.on_message: Callable[[int, str], Coroutine[Any, Any, Answer]] | None = None

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_to_message_id: int | None = None,
        keyboard: list[list[str]] | None = None,
    ) -> None:
        reply_parameters = None
        if reply_to_message_id:
            reply_parameters = ReplyParameters(
                message_id=reply_to_message_id, allow_sending_without_reply=True
            )
        await self.bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_parameters=reply_parameters,
            reply_markup=_markup(keyboard),
        )

    async def deliver(self, message: OutgoingMessage) -> None:
        await self.send_message(
            message.chat_id,
            message.text,
            reply_to_message_id=message.reply_to_message_id,
            keyboard=message.keyboard,
        )

    async def _handle_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.message or not update.message.text or not update.effective_chat:
            return

        chat_id = update.effective_chat.id
        text = update.message.text
        logger.info(f"Got message from {chat_id}: {text!r}")

        if self.on_message is None:
            answer = Answer(text=help_text())
        else:
            try:
                answer = await self.on_message(chat_id, text)
            except Exception as e:
                logger.error(f"Can't process command {text!r}: {e}")
                answer = Answer(text="Can't process command")

        try:
            await update.message.reply_text(
                answer.text,
                do_quote=True,
                reply_markup=_markup(answer.keyboard),
            )
        except TelegramError as e:
            logger.error(f"Can't send answer to {chat_id}: {e}")

    def setup_handlers(self, app: Application) -> None:  # type: ignore[type-arg]
        app.add_handler(MessageHandler(filters.TEXT, self._handle_text))

    async def start_polling(self) -> None:
        self.app = Application.builder().token(self.bot_token).build()
        self.setup_handlers(self.app)
        await self.app.initialize()
        await self.app.start()

        # Set bot command menu
        await self.bot.set_my_commands(BOT_COMMANDS)

        if self.app.updater:
            await self.app.updater.start_polling(timeout=self.poll_timeout)

    async def stop_polling(self) -> None:
        if self.app:
            if self.app.updater:
                await self.app.updater.stop()
            await self.app.stop()
            await self.app.shutdown()
