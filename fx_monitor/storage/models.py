# fx_monitor/storage/models.py
from enum import Enum

from pydantic import BaseModel, Field


class Direction(str, Enum):
    # "<": alert when price falls to the level, ">": alert when price rises to it
    ABOVE_CURRENT = "<"
    BELOW_CURRENT = ">"


class AlertLevel(BaseModel):
    symbol: str
    price: float
    direction: Direction
    precision: int = 5
    correlation_id: str | None = None  # shared by the two levels of a delta pair

    @property
    def key(self) -> str:
        return f"{self.price:.5f}"

    def is_triggered(self, close: float) -> bool:
        if self.direction is Direction.BELOW_CURRENT:
            return close >= self.price
        return close <= self.price

    def __str__(self) -> str:
        return f"{self.symbol} {self.direction.value} {self.price:.{self.precision}f}"


class UserSettings(BaseModel):
    deltas: dict[str, int] = Field(default_factory=dict)  # symbol -> delta in points


class UserRecord(BaseModel):
    alerts: list[AlertLevel] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)

    def is_empty(self) -> bool:
        return not self.alerts and not self.settings.deltas


class StoreDocument(BaseModel):
    users: dict[int, UserRecord] = Field(default_factory=dict)
