# carewatch/core/reminders.py
from __future__ import annotations

import calendar
import copy
import logging
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from carewatch.core.clock import Clock, epoch_ms
from carewatch.core.logging_utils import kv
from carewatch.core.models import Frequency, Reminder, ReminderAlert, new_id
from carewatch.core.store import REMINDER_ALERTS, StoreWriter


# -------------------------------------------------------------------------------------------------
# Recurrence (advisory only: the reminder owner decides whether to apply it)
# -------------------------------------------------------------------------------------------------
def add_months(dt: datetime, months: int) -> datetime:
    idx = dt.month - 1 + months
    year, month = dt.year + idx // 12, idx % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def _advance(start: datetime, frequency: Frequency, steps: int) -> datetime:
    if frequency == Frequency.DAILY:
        return start + timedelta(days=steps)
    if frequency == Frequency.WEEKLY:
        return start + timedelta(days=7 * steps)
    return add_months(start, steps)


def next_occurrence(
    reminder: Reminder, now: datetime, window: timedelta = timedelta(0)
) -> Optional[datetime]:
    """
    First occurrence after the reminder's time that is not already outside the
    due window at `now` (with the default zero window: the first one after now).
    An occurrence still inside the window is returned so it can fire.
    Returns None for one-off reminders, future reminders, or past the end date.
    Monthly steps are counted from reminder.time within one call; once a clamped
    date (Jan 31 -> Feb 28) is stored back, later steps count from that day.
    """
    rec = reminder.recurring
    if rec is None or reminder.time > now:
        return None
    steps = 1
    nxt = _advance(reminder.time, rec.frequency, steps)
    while now - nxt >= window:
        steps += 1
        nxt = _advance(reminder.time, rec.frequency, steps)
    if rec.end_date is not None and nxt > rec.end_date:
        return None
    return nxt


# -------------------------------------------------------------------------------------------------
# Due detection
# -------------------------------------------------------------------------------------------------
class ReminderScheduler:
    """
    Fires exactly one ReminderAlert per due reminder occurrence.

    A reminder is due while 0 <= now - time < window. Occurrences already fired
    are remembered by "<reminder_id>-<epoch_ms>" and forgotten an hour after
    their scheduled time, so a recurring reminder's next occurrence (new time,
    new key) fires independently.
    """

    def __init__(
        self,
        reminders: Callable[[], Iterable[Reminder]],
        on_trigger: Callable[[Reminder], Awaitable[Any]],
        clock: Clock,
        *,
        window: timedelta = timedelta(seconds=120),
        key_ttl: timedelta = timedelta(hours=1),
        on_next_occurrence: Optional[
            Callable[[Reminder, datetime], Awaitable[None]]
        ] = None,
    ):
        self.reminders = reminders
        self.on_trigger = on_trigger
        self.clock = clock
        self.window = window
        self.key_ttl = key_ttl
        self.on_next_occurrence = on_next_occurrence
        self.log = logging.getLogger("carewatch.reminders")
        self._triggered: Dict[str, datetime] = {}
        self._advised: Set[str] = set()

    @staticmethod
    def occurrence_key(reminder: Reminder) -> str:
        return f"{reminder.id}-{epoch_ms(reminder.time)}"

    def is_due(self, reminder: Reminder, now: datetime) -> bool:
        if not reminder.is_active:
            return False
        age = now - reminder.time
        return timedelta(0) <= age < self.window

    def was_triggered(self, reminder: Reminder) -> bool:
        return self.occurrence_key(reminder) in self._triggered

    async def check_for_due_reminders(self) -> List[Any]:
        now = self.clock.now()
        fired: List[Any] = []
        seen: Set[str] = set()

        for reminder in list(self.reminders()):
            if not reminder.is_active:
                continue
            key = self.occurrence_key(reminder)
            seen.add(key)

            if self.is_due(reminder, now) and key not in self._triggered:
                try:
                    alert = await self.on_trigger(reminder)
                except Exception as e:
                    # Key stays unrecorded: the next tick inside the window retries.
                    self.log.error(
                        "reminder.trigger.error " + kv(reminder_id=reminder.id, err=repr(e))
                    )
                    continue
                self._triggered[key] = reminder.time
                fired.append(alert)
                self.log.info(
                    "reminder.triggered "
                    + kv(reminder_id=reminder.id, title=reminder.title, at=now.isoformat())
                )

            await self._advise(reminder, key, now)

        self._evict(now)
        self._advised &= seen
        return fired

    async def _advise(self, reminder: Reminder, key: str, now: datetime) -> None:
        if reminder.recurring is None or key in self._advised:
            return
        # Only once the current occurrence fired, or its window was missed.
        if key not in self._triggered and now - reminder.time < self.window:
            return
        nxt = next_occurrence(reminder, now, self.window)
        self._advised.add(key)
        if nxt is None:
            return
        self.log.info(
            "reminder.next_occurrence "
            + kv(reminder_id=reminder.id, next=nxt.isoformat())
        )
        if self.on_next_occurrence is not None:
            try:
                await self.on_next_occurrence(reminder, nxt)
            except Exception as e:
                self.log.error(
                    "reminder.reschedule.error " + kv(reminder_id=reminder.id, err=repr(e))
                )

    def _evict(self, now: datetime) -> None:
        cutoff = now - self.key_ttl
        stale = [k for k, t in self._triggered.items() if t < cutoff]
        for k in stale:
            del self._triggered[k]


# -------------------------------------------------------------------------------------------------
# Reminder alerts
# -------------------------------------------------------------------------------------------------
class ReminderAlertBook:
    """
    ReminderAlert records and their lifecycle:
    Active -> Acknowledged (terminal) | Snoozed (back to Active once snoozed_until
    passes) | removed via dismiss from any state.
    """

    def __init__(self, writer: StoreWriter, clock: Clock):
        self.writer = writer
        self.clock = clock
        self.log = logging.getLogger("carewatch.reminder_alerts")
        self._alerts: List[ReminderAlert] = []

    async def load(self) -> None:
        raw = await self.writer.read(REMINDER_ALERTS, [])
        self._alerts = [ReminderAlert.from_dict(d, self.clock.tz) for d in raw]

    @property
    def alerts(self) -> List[ReminderAlert]:
        return list(self._alerts)

    def active_alerts(self, now: Optional[datetime] = None) -> List[ReminderAlert]:
        now = now or self.clock.now()
        return [a for a in self._alerts if a.is_active(now)]

    def get(self, alert_id: str) -> Optional[ReminderAlert]:
        return next((a for a in self._alerts if a.id == alert_id), None)

    async def trigger(self, reminder: Reminder) -> ReminderAlert:
        alert = ReminderAlert(
            id=new_id(),
            reminder_id=reminder.id,
            reminder=copy.deepcopy(reminder),
            triggered_at=self.clock.now(),
            acknowledged=False,
        )
        self._alerts.append(alert)
        await self.writer.write(REMINDER_ALERTS, self._snapshot)
        return alert

    async def acknowledge(self, alert_id: str) -> bool:
        alert = self.get(alert_id)
        if alert is None:
            return False
        alert.acknowledged = True
        await self.writer.write(REMINDER_ALERTS, self._snapshot)
        self.log.info("reminder_alert.ack " + kv(id=alert_id))
        return True

    async def snooze(self, alert_id: str, minutes: int) -> bool:
        alert = self.get(alert_id)
        if alert is None or alert.acknowledged:
            return False
        alert.snoozed_until = self.clock.now() + timedelta(minutes=minutes)
        await self.writer.write(REMINDER_ALERTS, self._snapshot)
        self.log.info(
            "reminder_alert.snooze "
            + kv(id=alert_id, until=alert.snoozed_until.isoformat())
        )
        return True

    async def dismiss(self, alert_id: str) -> bool:
        before = len(self._alerts)
        self._alerts = [a for a in self._alerts if a.id != alert_id]
        if len(self._alerts) == before:
            return False
        await self.writer.write(REMINDER_ALERTS, self._snapshot)
        self.log.info("reminder_alert.dismiss " + kv(id=alert_id))
        return True

    def _snapshot(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self._alerts]
