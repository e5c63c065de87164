# carewatch/core/activity.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from carewatch.core.clock import Clock, parse_iso
from carewatch.core.logging_utils import kv
from carewatch.core.store import LAST_ACTIVITY, StoreWriter


class ActivityTracker:
    """Last user-interaction timestamp, persisted as an ISO string."""

    def __init__(self, writer: StoreWriter, clock: Clock):
        self.writer = writer
        self.clock = clock
        self.log = logging.getLogger("carewatch.activity")
        self._last_activity: datetime = clock.now()

    async def load(self) -> None:
        raw = await self.writer.read(LAST_ACTIVITY)
        if raw:
            self._last_activity = parse_iso(raw, self.clock.tz)
        self.log.debug("activity.loaded " + kv(last=self._last_activity.isoformat()))

    @property
    def last_activity(self) -> datetime:
        return self._last_activity

    async def record_activity(self, at: Optional[datetime] = None) -> None:
        self._last_activity = at or self.clock.now()
        await self.writer.write(LAST_ACTIVITY, lambda: self._last_activity.isoformat())

    def hours_since_last_activity(self) -> int:
        """Whole hours elapsed since the last activity (floored)."""
        delta = self.clock.now() - self._last_activity
        return int(delta.total_seconds() // 3600)

    async def on_app_state_change(self, state: str) -> None:
        # Foregrounding the launcher counts as activity.
        if state == "active":
            await self.record_activity()
