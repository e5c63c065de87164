# carewatch/core/reminder_store.py
from __future__ import annotations

import dataclasses
import logging
from datetime import datetime
from typing import Any, List, Optional

from carewatch.core.clock import Clock
from carewatch.core.logging_utils import kv
from carewatch.core.models import Recurrence, Reminder, ReminderType, new_id
from carewatch.core.store import REMINDERS, StoreWriter


class ReminderStore:
    """Caregiver-authored reminders, persisted under one key."""

    def __init__(self, writer: StoreWriter, clock: Clock):
        self.writer = writer
        self.clock = clock
        self.log = logging.getLogger("carewatch.reminder_store")
        self._reminders: List[Reminder] = []

    async def load(self) -> None:
        raw = await self.writer.read(REMINDERS, [])
        self._reminders = [Reminder.from_dict(d, self.clock.tz) for d in raw]
        self.log.debug("reminders.loaded " + kv(count=len(self._reminders)))

    @property
    def reminders(self) -> List[Reminder]:
        return list(self._reminders)

    def get(self, reminder_id: str) -> Optional[Reminder]:
        return next((r for r in self._reminders if r.id == reminder_id), None)

    async def add(
        self,
        type: ReminderType,
        title: str,
        time: datetime,
        *,
        description: Optional[str] = None,
        recurring: Optional[Recurrence] = None,
        created_by: str = "",
        is_active: bool = True,
    ) -> Reminder:
        reminder = Reminder(
            id=new_id(),
            type=ReminderType(type),
            title=title,
            time=time,
            is_active=is_active,
            created_by=created_by,
            created_at=self.clock.now(),
            description=description,
            recurring=recurring,
        )
        self._reminders.append(reminder)
        await self.writer.write(REMINDERS, self._snapshot)
        self.log.info("reminder.added " + kv(id=reminder.id, title=title, time=time.isoformat()))
        return reminder

    async def update(self, reminder_id: str, **changes: Any) -> Optional[Reminder]:
        for i, r in enumerate(self._reminders):
            if r.id == reminder_id:
                updated = dataclasses.replace(r, **changes)
                self._reminders[i] = updated
                await self.writer.write(REMINDERS, self._snapshot)
                self.log.info("reminder.updated " + kv(id=reminder_id, fields=sorted(changes)))
                return updated
        return None

    async def delete(self, reminder_id: str) -> bool:
        before = len(self._reminders)
        self._reminders = [r for r in self._reminders if r.id != reminder_id]
        if len(self._reminders) == before:
            return False
        await self.writer.write(REMINDERS, self._snapshot)
        self.log.info("reminder.deleted " + kv(id=reminder_id))
        return True

    async def reschedule(self, reminder: Reminder, next_time: datetime) -> None:
        """Apply a next-occurrence suggestion from the reminder scheduler."""
        await self.update(reminder.id, time=next_time)

    def _snapshot(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self._reminders]
