# carewatch/core/store.py
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional, Protocol

from carewatch.core.logging_utils import kv

# Keys owned by the monitoring engine (values are JSON documents)
LAST_ACTIVITY = "last_activity"
WELLNESS_CHECKINS = "wellness_checkins"
WELLNESS_ALERTS = "wellness_alerts"
REMINDERS = "reminders"
REMINDER_ALERTS = "reminder_alerts"


class KeyValueStore(Protocol):
    """Device-local storage: get/set/remove by string key, JSON-serialisable values."""

    async def get(self, key: str) -> Optional[Any]: ...

    async def set(self, key: str, value: Any) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStore:
    """In-process store. Values round-trip through JSON like the persistent store."""

    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    async def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = json.dumps(value)

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class StoreWriter:
    """
    Serialises writes per key and absorbs persistence errors.

    Writers pass a snapshot callable rather than a value: it is evaluated while
    holding the key's lock, so the latest in-memory state always lands last.
    """

    def __init__(self, store: KeyValueStore, logger: Optional[logging.Logger] = None):
        self.store = store
        self.log = logger or logging.getLogger("carewatch.store")
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def read(self, key: str, default: Any = None) -> Any:
        try:
            value = await self.store.get(key)
        except Exception as e:
            self.log.error(
                "store.read.error " + kv(key=key, err=repr(e))
            )
            return default
        return default if value is None else value

    async def write(self, key: str, snapshot: Callable[[], Any]) -> bool:
        async with self._lock(key):
            try:
                await self.store.set(key, snapshot())
            except Exception as e:
                self.log.error(
                    "store.write.error " + kv(key=key, err=repr(e))
                )
                return False
        self.log.debug("store.write " + kv(key=key))
        return True

    async def remove(self, key: str) -> bool:
        async with self._lock(key):
            try:
                await self.store.remove(key)
            except Exception as e:
                self.log.error(
                    "store.remove.error " + kv(key=key, err=repr(e))
                )
                return False
        return True
