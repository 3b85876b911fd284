# fx_monitor/storage/alert_store.py
"""Per-user alert definitions persisted as one JSON document.

Every mutation is applied in memory first and then the whole file is
rewritten. A failed write raises StoreError but the in-memory change stays.
"""

import asyncio
import logging
import os
from pathlib import Path

from pydantic import ValidationError

from fx_monitor.exceptions import StoreError
from fx_monitor.storage.models import AlertLevel, StoreDocument, UserRecord, UserSettings

logger = logging.getLogger(__name__)


class AlertStore:
    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._doc = StoreDocument()
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Load the document, creating an empty file if it does not exist."""
        async with self._lock:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._doc = StoreDocument()
                await self._save()
                logger.info(f"Created alert store {self.path}")
                return

            try:
                raw = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            except OSError as e:
                raise StoreError(f"Can't load alert store {self.path}: {e}") from e

            if not raw.strip():
                self._doc = StoreDocument()
                return
            try:
                self._doc = StoreDocument.model_validate_json(raw)
            except ValidationError as e:
                raise StoreError(f"Can't parse alert store {self.path}: {e}") from e
            logger.info(f"Loaded alert store {self.path}: {len(self._doc.users)} users")

    def _write(self, data: str) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(data, encoding="utf-8")
        os.replace(tmp, self.path)

    async def _save(self) -> None:
        data = self._doc.model_dump_json(indent=2)
        try:
            await asyncio.to_thread(self._write, data)
        except OSError as e:
            raise StoreError(f"Can't save alert store {self.path}: {e}") from e

    def _prune(self, user_id: int) -> None:
        record = self._doc.users.get(user_id)
        if record is not None and record.is_empty():
            del self._doc.users[user_id]

    async def add(self, user_id: int, alerts: list[AlertLevel]) -> int:
        """Add alerts, ignoring ones already stored for the same symbol and price."""
        async with self._lock:
            record = self._doc.users.setdefault(user_id, UserRecord())
            existing = {(a.symbol, a.key) for a in record.alerts}
            added = 0
            for alert in alerts:
                if (alert.symbol, alert.key) in existing:
                    continue
                record.alerts.append(alert.model_copy())
                existing.add((alert.symbol, alert.key))
                added += 1
            self._prune(user_id)
            await self._save()
            return added

    async def delete(self, user_id: int, symbol: str, price: float) -> bool:
        # matched by symbol and price only; the direction is not part of the key
        key = f"{price:.5f}"
        async with self._lock:
            record = self._doc.users.get(user_id)
            if record is None:
                return False
            before = len(record.alerts)
            record.alerts = [a for a in record.alerts if not (a.symbol == symbol and a.key == key)]
            if len(record.alerts) == before:
                return False
            self._prune(user_id)
            await self._save()
            return True

    async def delete_key(self, user_id: int, symbol: str) -> int:
        """Drop every alert and the delta preference stored for a symbol."""
        async with self._lock:
            record = self._doc.users.get(user_id)
            if record is None:
                return 0
            before = len(record.alerts)
            record.alerts = [a for a in record.alerts if a.symbol != symbol]
            removed = before - len(record.alerts)
            had_delta = record.settings.deltas.pop(symbol, None) is not None
            if not removed and not had_delta:
                return 0
            self._prune(user_id)
            await self._save()
            return removed

    async def delete_correlated(self, user_id: int, correlation_id: str) -> int:
        """Remove every level of a delta pair. Returns how many were removed."""
        async with self._lock:
            record = self._doc.users.get(user_id)
            if record is None:
                return 0
            before = len(record.alerts)
            record.alerts = [a for a in record.alerts if a.correlation_id != correlation_id]
            removed = before - len(record.alerts)
            if removed:
                self._prune(user_id)
                await self._save()
            return removed

    async def list_alerts(self, user_id: int) -> list[AlertLevel]:
        async with self._lock:
            record = self._doc.users.get(user_id)
            if record is None:
                return []
            return [a.model_copy() for a in record.alerts]

    async def list_user_ids(self) -> list[int]:
        async with self._lock:
            return list(self._doc.users)

    async def get_settings(self, user_id: int) -> UserSettings:
        async with self._lock:
            record = self._doc.users.get(user_id)
            if record is None:
                return UserSettings()
            return record.settings.model_copy(deep=True)

    async def set_settings(self, user_id: int, settings: UserSettings) -> None:
        async with self._lock:
            record = self._doc.users.setdefault(user_id, UserRecord())
            record.settings = settings.model_copy(deep=True)
            self._prune(user_id)
            await self._save()
