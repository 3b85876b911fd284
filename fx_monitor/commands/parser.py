# fx_monitor/commands/parser.py
import re
from dataclasses import dataclass
from enum import Enum

from fx_monitor.exceptions import ParseError
from fx_monitor.storage.models import Direction

ANY_SYMBOL = "*"

_WHITESPACE = re.compile(r"\s+")


class CommandType(Enum):
    ADD = "/add"
    DELETE = "/del"
    LIST = "/ls"
    DELTA = "/delta"
    HELP = "/help"


@dataclass
class Command:
    type: CommandType
    symbol: str = ""  # exact symbol for add/delete, substring filter otherwise
    direction: Direction | None = None
    price: float | None = None
    points: int | None = None


def matches(symbol: str, pattern: str) -> bool:
    if not pattern or pattern == ANY_SYMBOL:
        return True
    return pattern.upper() in symbol.upper()


def _parse_direction(raw: str) -> Direction:
    try:
        return Direction(raw)
    except ValueError as e:
        raise ParseError(f"Unsupported direction: {raw!r}") from e


def _parse_price(raw: str) -> float:
    raw = raw.replace(",", ".")
    try:
        price = float(raw)
    except ValueError as e:
        raise ParseError(f"Can't parse price: {raw!r}") from e
    if price <= 0:
        raise ParseError("Price must be > 0")
    return price


def _parse_points(raw: str) -> int:
    try:
        points = int(raw)
    except ValueError as e:
        raise ParseError(f"Can't parse delta value: {raw!r}") from e
    if points <= 0:
        raise ParseError("Delta value must be > 0")
    return points


def _parse_level(cmd_type: CommandType, parts: list[str]) -> Command:
    if len(parts) != 4:
        raise ParseError("Unsupported command format")
    return Command(
        type=cmd_type,
        symbol=parts[1].upper(),
        direction=_parse_direction(parts[2]),
        price=_parse_price(parts[3]),
    )


def parse_command(text: str) -> Command:
    """Parse one chat message.

    Grammar::

        /add SYMBOL <|> PRICE
        /del | /del FILTER | /del * | /del SYMBOL <|> PRICE
        /ls | /ls FILTER
        /delta [FILTER] POINTS
        /help | /start

    Raises:
        ParseError: unknown command or malformed arguments
    """
    text = _WHITESPACE.sub(" ", text.strip().lower())
    if not text:
        raise ParseError("Empty command")

    parts = text.split(" ")
    # "/add@my_bot eurusd ..." in group chats
    head = parts[0].split("@", 1)[0]

    if head in ("/help", "/start") and len(parts) == 1:
        return Command(type=CommandType.HELP)

    if head == CommandType.ADD.value:
        return _parse_level(CommandType.ADD, parts)

    if head == CommandType.DELETE.value:
        if len(parts) == 1:
            return Command(type=CommandType.DELETE)
        if len(parts) == 2:
            return Command(type=CommandType.DELETE, symbol=parts[1].upper())
        return _parse_level(CommandType.DELETE, parts)

    if head == CommandType.LIST.value:
        if len(parts) == 1:
            return Command(type=CommandType.LIST)
        if len(parts) == 2:
            return Command(type=CommandType.LIST, symbol=parts[1].upper())
        raise ParseError("Unsupported command format")

    if head == CommandType.DELTA.value:
        if len(parts) == 2:
            return Command(type=CommandType.DELTA, points=_parse_points(parts[1]))
        if len(parts) == 3:
            return Command(
                type=CommandType.DELTA,
                symbol=parts[1].upper(),
                points=_parse_points(parts[2]),
            )
        raise ParseError("Unsupported command format")

    raise ParseError(f"Unsupported command: {head!r}")
