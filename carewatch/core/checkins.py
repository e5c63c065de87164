# carewatch/core/checkins.py
from __future__ import annotations

import logging
from typing import Any, List, Optional

from carewatch.core.activity import ActivityTracker
from carewatch.core.clock import Clock
from carewatch.core.logging_utils import kv
from carewatch.core.models import (
    CheckInStatus,
    CheckInType,
    WellnessCheckIn,
    new_id,
)
from carewatch.core.store import WELLNESS_CHECKINS, StoreWriter


class CheckInTracker:
    """
    Daily wellness check-ins, newest first, capped at max_entries.
    Every new check-in also counts as user activity.
    """

    def __init__(
        self,
        writer: StoreWriter,
        clock: Clock,
        activity: ActivityTracker,
        max_entries: int = 50,
    ):
        self.writer = writer
        self.clock = clock
        self.activity = activity
        self.max_entries = max_entries
        self.log = logging.getLogger("carewatch.checkins")
        self._check_ins: List[WellnessCheckIn] = []

    async def load(self) -> None:
        raw = await self.writer.read(WELLNESS_CHECKINS, [])
        items = [WellnessCheckIn.from_dict(d, self.clock.tz) for d in raw]
        items.sort(key=lambda c: c.timestamp, reverse=True)
        self._check_ins = items[: self.max_entries]

    @property
    def check_ins(self) -> List[WellnessCheckIn]:
        return list(self._check_ins)

    async def add_check_in(
        self,
        type: CheckInType,
        status: CheckInStatus = CheckInStatus.OK,
        message: Optional[str] = None,
    ) -> WellnessCheckIn:
        check_in = WellnessCheckIn(
            id=new_id(),
            timestamp=self.clock.now(),
            type=CheckInType(type),
            status=CheckInStatus(status),
            message=message,
        )
        self._check_ins = [check_in, *self._check_ins][: self.max_entries]
        await self.writer.write(WELLNESS_CHECKINS, self._snapshot)
        self.log.info(
            "checkin.added "
            + kv(id=check_in.id, type=check_in.type.value, status=check_in.status.value)
        )

        await self.activity.record_activity()
        return check_in

    def todays_check_in(self) -> Optional[WellnessCheckIn]:
        """Most recent check-in whose local calendar date is today."""
        today = self.clock.today()
        for c in self._check_ins:
            if self.clock.local(c.timestamp).date() == today:
                return c
        return None

    def _snapshot(self) -> list[dict[str, Any]]:
        return [c.to_dict() for c in self._check_ins]
