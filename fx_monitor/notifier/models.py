# fx_monitor/notifier/models.py
from dataclasses import dataclass


@dataclass
class Answer:
    """Reply to a chat command"""

    text: str
    keyboard: list[list[str]] | None = None  # one-time reply keyboard rows


@dataclass
class OutgoingMessage:
    chat_id: int
    text: str
    reply_to_message_id: int | None = None
    keyboard: list[list[str]] | None = None
