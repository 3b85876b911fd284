# fx_monitor/config.py
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from fx_monitor.quotes.symbols import ALLOWED_SYMBOLS


class TelegramConfig(BaseModel):
    bot_token: str = ""
    poll_timeout: int = 60


class StorageConfig(BaseModel):
    path: str = "data/db.json"


class QuotesConfig(BaseModel):
    symbols: list[str] = list(ALLOWED_SYMBOLS)
    workers: int = 2
    jitter_seconds: float = 2.0
    min_update_interval_seconds: float = 60
    base_url: str = "https://price.roboforex.com"
    timeout_seconds: float = 5.0

    @field_validator("symbols")
    @classmethod
    def check_symbols(cls, v: list[str]) -> list[str]:
        symbols = [s.strip().upper() for s in v]
        unknown = [s for s in symbols if s not in ALLOWED_SYMBOLS]
        if unknown:
            raise ValueError(f"unsupported symbols: {', '.join(unknown)}")
        return symbols


class IntervalsConfig(BaseModel):
    level_seconds: int = 65
    momentum_seconds: int = 300
    pattern_seconds: int = 10


class MomentumConfig(BaseModel):
    enabled: bool = True
    points: int = 50
    crypto_points: int = 500


class PatternsConfig(BaseModel):
    enabled: bool = True


class RetentionConfig(BaseModel):
    days: int = 7


class Config(BaseModel):
    telegram: TelegramConfig = TelegramConfig()
    storage: StorageConfig = StorageConfig()
    quotes: QuotesConfig = QuotesConfig()
    intervals: IntervalsConfig = IntervalsConfig()
    momentum: MomentumConfig = MomentumConfig()
    patterns: PatternsConfig = PatternsConfig()
    retention: RetentionConfig = RetentionConfig()


def load_config(path: Path) -> Config:
    """Load YAML config; a missing file means defaults. BOT_TOKEN overrides the token."""
    data = {}
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    config = Config(**data)

    token = os.environ.get("BOT_TOKEN")
    if token:
        config.telegram.bot_token = token
    return config
