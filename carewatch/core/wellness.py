# carewatch/core/wellness.py
from __future__ import annotations

import logging
from datetime import date
from typing import Awaitable, Callable, List, Optional, Sequence

from carewatch.core.activity import ActivityTracker
from carewatch.core.alerts import AlertSink, DailyDedup
from carewatch.core.checkins import CheckInTracker
from carewatch.core.clock import Clock
from carewatch.core.i18n import fmt
from carewatch.core.logging_utils import kv
from carewatch.core.models import (
    AlertType,
    CheckInStatus,
    CheckInType,
    WellnessCheckIn,
    WellnessSettings,
)

_STATUS_ALERTS = {
    CheckInStatus.NEEDS_HELP: AlertType.HELP_NEEDED,
    CheckInStatus.EMERGENCY: AlertType.EMERGENCY,
}


class WellnessScheduler:
    """
    Daily wellness oversight.

    - perform_wellness_check(): missed check-in, check-in reminder, prolonged inactivity.
      Each of these fires at most once per local day.
    - perform_auto_check_in(): recent phone use past check-in time counts as "ok".
    - check_in(): the senior's own check-in; help/emergency go straight to caregivers.

    Settings and family members are read through providers on every call.
    """

    def __init__(
        self,
        settings: Callable[[], WellnessSettings],
        check_ins: CheckInTracker,
        activity: ActivityTracker,
        sink: AlertSink,
        family_members: Callable[[], Sequence[str]],
        clock: Clock,
        *,
        alert_exists: Optional[Callable[[AlertType, date], bool]] = None,
        notify_reminder: Optional[Callable[[str], Awaitable[None]]] = None,
    ):
        self.settings = settings
        self.check_ins = check_ins
        self.activity = activity
        self.sink = sink
        self.family_members = family_members
        self.clock = clock
        self.alert_exists = alert_exists
        self.notify_reminder = notify_reminder
        self.log = logging.getLogger("carewatch.wellness")
        self._daily = DailyDedup()

    # ---- periodic passes --------------------------------------------------------------
    async def perform_wellness_check(self) -> List[AlertType]:
        s = self.settings()
        if not s.enabled:
            return []

        now = self.clock.now()
        today = now.date()
        todays = self.check_ins.todays_check_in()
        hours = self.activity.hours_since_last_activity()
        emitted: List[AlertType] = []

        if todays is None and now > self.clock.at_today(s.check_in_time):
            message = fmt("missed_checkin", check_in_time=s.check_in_time)
            if await self._emit_once(AlertType.MISSED_CHECKIN, message, today, s):
                emitted.append(AlertType.MISSED_CHECKIN)

        if todays is None and now > self.clock.at_today(s.reminder_time):
            await self._remind_once(today)

        if hours >= s.auto_check_threshold:
            last = self.clock.local(self.activity.last_activity)
            message = fmt(
                "no_activity", hours=hours, last_activity=last.strftime("%Y-%m-%d %H:%M")
            )
            if await self._emit_once(AlertType.NO_ACTIVITY, message, today, s):
                emitted.append(AlertType.NO_ACTIVITY)

        self.log.debug(
            "wellness.check "
            + kv(checked_in=todays is not None, hours_idle=hours, emitted=[k.value for k in emitted])
        )
        return emitted

    async def perform_auto_check_in(self) -> Optional[WellnessCheckIn]:
        s = self.settings()
        if not s.enabled:
            return None
        if self.check_ins.todays_check_in() is not None:
            return None
        if self.activity.hours_since_last_activity() >= 1:
            return None
        if not self.clock.now() > self.clock.at_today(s.check_in_time):
            return None

        check_in = await self.check_ins.add_check_in(
            CheckInType.AUTO, CheckInStatus.OK, fmt("auto_checkin")
        )
        self.log.info("wellness.auto_checkin " + kv(id=check_in.id))
        return check_in

    # ---- user action ------------------------------------------------------------------
    async def check_in(
        self,
        status: CheckInStatus = CheckInStatus.OK,
        message: Optional[str] = None,
    ) -> WellnessCheckIn:
        status = CheckInStatus(status)
        check_in = await self.check_ins.add_check_in(CheckInType.MANUAL, status, message)

        kind = _STATUS_ALERTS.get(status)
        if kind is not None:
            details = f" Message: {message}" if message else ""
            try:
                await self.sink(
                    kind, fmt(kind.value, details=details), list(self.family_members())
                )
            except Exception as e:
                self.log.error("wellness.alert.error " + kv(kind=kind.value, err=repr(e)))
        return check_in

    # ---- helpers ----------------------------------------------------------------------
    def _recipients(self, s: WellnessSettings) -> List[str]:
        return list(self.family_members()) if s.family_notifications else []

    def _already_fired(self, kind: AlertType, day: date) -> bool:
        if self._daily.fired(kind.value, day):
            return True
        return bool(self.alert_exists and self.alert_exists(kind, day))

    async def _emit_once(
        self, kind: AlertType, message: str, day: date, s: WellnessSettings
    ) -> bool:
        if self._already_fired(kind, day):
            self.log.debug("wellness.alert.suppressed " + kv(kind=kind.value, day=day.isoformat()))
            return False
        self._daily.mark(kind.value, day)
        try:
            await self.sink(kind, message, self._recipients(s))
        except Exception as e:
            self.log.error("wellness.alert.error " + kv(kind=kind.value, err=repr(e)))
            return False
        self.log.info("wellness.alert.sent " + kv(kind=kind.value))
        return True

    async def _remind_once(self, day: date) -> None:
        if self._daily.fired("checkin_reminder", day):
            return
        self._daily.mark("checkin_reminder", day)
        text = fmt("checkin_reminder")
        if self.notify_reminder is None:
            self.log.info("wellness.reminder " + kv(text=text))
            return
        try:
            await self.notify_reminder(text)
        except Exception as e:
            self.log.error("wellness.reminder.error " + kv(err=repr(e)))
