# carewatch/core/session.py
"""
Monitor lifecycles.

Each start_* function builds one monitor, registers its periodic jobs on an
AsyncIOScheduler (a private one when none is given) and returns a MonitorHandle.
MonitoringSession owns one shared scheduler and starts/stops all three monitors
together, independent of any view layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from carewatch.core.activity import ActivityTracker
from carewatch.core.alerts import AlertFeed, AlertSink
from carewatch.core.checkins import CheckInTracker
from carewatch.core.clock import Clock
from carewatch.core.guardian import GuardianMonitor
from carewatch.core.logging_utils import kv
from carewatch.core.models import AlertType, Reminder, WellnessSettings
from carewatch.core.probes import BatteryProbe, ConnectivityProbe
from carewatch.core.reminder_store import ReminderStore
from carewatch.core.reminders import ReminderAlertBook, ReminderScheduler
from carewatch.core.store import StoreWriter
from carewatch.core.timers import MonitorHandle, add_periodic
from carewatch.core.wellness import WellnessScheduler

log = logging.getLogger("carewatch.session")


def _scheduler(
    scheduler: Optional[AsyncIOScheduler], clock: Clock
) -> Tuple[AsyncIOScheduler, bool]:
    if scheduler is not None:
        return scheduler, False
    return AsyncIOScheduler(timezone=clock.tz), True


def _start_owned(scheduler: AsyncIOScheduler, owned: bool) -> None:
    if owned and not scheduler.running:
        scheduler.start()


# -------------------------------------------------------------------------------------------------
# Guardian
# -------------------------------------------------------------------------------------------------
@dataclass
class GuardianConfig:
    battery: BatteryProbe
    connectivity: ConnectivityProbe
    sink: AlertSink
    family_members: Callable[[], Sequence[str]]
    clock: Clock
    recheck_s: float = 5 * 60
    probe_poll_s: float = 60
    dedup: timedelta = timedelta(minutes=30)
    critical_level: float = 0.05
    low_level: float = 0.20


def start_guardian(
    config: GuardianConfig, scheduler: Optional[AsyncIOScheduler] = None
) -> MonitorHandle:
    sched, owned = _scheduler(scheduler, config.clock)
    monitor = GuardianMonitor(
        config.battery,
        config.connectivity,
        config.sink,
        config.family_members,
        config.clock,
        dedup=config.dedup,
        critical_level=config.critical_level,
        low_level=config.low_level,
    )
    monitor.attach()

    async def poll_probes() -> None:
        await config.battery.refresh()
        await config.connectivity.refresh()

    jobs = [
        add_periodic(sched, "guardian.poll", poll_probes, config.probe_poll_s, run_now=True),
        add_periodic(sched, "guardian.recheck", monitor.recheck, config.recheck_s),
    ]
    _start_owned(sched, owned)
    log.info("guardian.started " + kv(active=monitor.is_active))
    return MonitorHandle(
        sched, jobs, monitor=monitor, owns_scheduler=owned, on_stop=[monitor.detach]
    )


# -------------------------------------------------------------------------------------------------
# Wellness
# -------------------------------------------------------------------------------------------------
@dataclass
class WellnessConfig:
    settings: Callable[[], WellnessSettings]
    check_ins: CheckInTracker
    activity: ActivityTracker
    sink: AlertSink
    family_members: Callable[[], Sequence[str]]
    clock: Clock
    alert_exists: Optional[Callable[[AlertType, date], bool]] = None
    notify_reminder: Optional[Callable[[str], Awaitable[None]]] = None
    check_s: float = 30 * 60
    auto_checkin_s: float = 15 * 60


def start_wellness_scheduler(
    config: WellnessConfig, scheduler: Optional[AsyncIOScheduler] = None
) -> MonitorHandle:
    sched, owned = _scheduler(scheduler, config.clock)
    wellness = WellnessScheduler(
        config.settings,
        config.check_ins,
        config.activity,
        config.sink,
        config.family_members,
        config.clock,
        alert_exists=config.alert_exists,
        notify_reminder=config.notify_reminder,
    )
    jobs = [
        add_periodic(
            sched, "wellness.check", wellness.perform_wellness_check, config.check_s, run_now=True
        ),
        add_periodic(
            sched,
            "wellness.auto_checkin",
            wellness.perform_auto_check_in,
            config.auto_checkin_s,
            run_now=True,
        ),
    ]
    _start_owned(sched, owned)
    log.info("wellness.started")
    return MonitorHandle(sched, jobs, monitor=wellness, owns_scheduler=owned)


# -------------------------------------------------------------------------------------------------
# Reminders
# -------------------------------------------------------------------------------------------------
def start_reminder_scheduler(
    reminders: Callable[[], Iterable[Reminder]],
    on_trigger: Callable[[Reminder], Awaitable[Any]],
    scheduler: Optional[AsyncIOScheduler] = None,
    *,
    clock: Clock,
    tick_s: float = 30,
    window_s: float = 120,
    key_ttl_s: float = 60 * 60,
    on_next_occurrence: Optional[Callable[[Reminder, datetime], Awaitable[None]]] = None,
) -> MonitorHandle:
    sched, owned = _scheduler(scheduler, clock)
    reminder_scheduler = ReminderScheduler(
        reminders,
        on_trigger,
        clock,
        window=timedelta(seconds=window_s),
        key_ttl=timedelta(seconds=key_ttl_s),
        on_next_occurrence=on_next_occurrence,
    )
    jobs = [
        add_periodic(
            sched, "reminders.tick", reminder_scheduler.check_for_due_reminders, tick_s, run_now=True
        )
    ]
    _start_owned(sched, owned)
    log.info("reminders.started " + kv(tick_s=tick_s, window_s=window_s))
    return MonitorHandle(sched, jobs, monitor=reminder_scheduler, owns_scheduler=owned)


# -------------------------------------------------------------------------------------------------
# Session
# -------------------------------------------------------------------------------------------------
@dataclass
class Services:
    """Everything a MonitoringSession needs, wired once by the application."""

    clock: Clock
    writer: StoreWriter
    activity: ActivityTracker
    check_ins: CheckInTracker
    feed: AlertFeed
    reminder_store: ReminderStore
    reminder_alerts: ReminderAlertBook
    battery: BatteryProbe
    connectivity: ConnectivityProbe
    family_members: Callable[[], Sequence[str]]
    settings: Callable[[], WellnessSettings]
    notify_reminder: Optional[Callable[[str], Awaitable[None]]] = None


@dataclass
class Intervals:
    guardian_recheck_s: float = 5 * 60
    probe_poll_s: float = 60
    guardian_dedup: timedelta = timedelta(minutes=30)
    battery_critical_level: float = 0.05
    battery_low_level: float = 0.20
    wellness_check_s: float = 30 * 60
    auto_checkin_s: float = 15 * 60
    reminder_tick_s: float = 30
    reminder_due_window_s: float = 120
    triggered_key_ttl_s: float = 60 * 60

    @classmethod
    def from_config(cls, cfg: Any) -> "Intervals":
        return cls(
            guardian_recheck_s=cfg.GUARDIAN_RECHECK_S,
            probe_poll_s=cfg.PROBE_POLL_S,
            guardian_dedup=timedelta(minutes=cfg.GUARDIAN_DEDUP_MIN),
            battery_critical_level=cfg.BATTERY_CRITICAL_LEVEL,
            battery_low_level=cfg.BATTERY_LOW_LEVEL,
            wellness_check_s=cfg.WELLNESS_CHECK_S,
            auto_checkin_s=cfg.AUTO_CHECKIN_S,
            reminder_tick_s=cfg.REMINDER_TICK_S,
            reminder_due_window_s=cfg.REMINDER_DUE_WINDOW_S,
            triggered_key_ttl_s=cfg.TRIGGERED_KEY_TTL_S,
        )


class MonitoringSession:
    def __init__(self, services: Services, intervals: Optional[Intervals] = None):
        self.services = services
        self.intervals = intervals or Intervals()
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.handles: List[MonitorHandle] = []

    @property
    def running(self) -> bool:
        return self.scheduler is not None

    @property
    def guardian(self) -> GuardianMonitor:
        return self.handles[0].monitor

    @property
    def wellness(self) -> WellnessScheduler:
        return self.handles[1].monitor

    @property
    def reminders(self) -> ReminderScheduler:
        return self.handles[2].monitor

    async def start(self) -> None:
        if self.running:
            return
        s, iv = self.services, self.intervals

        await s.activity.load()
        await s.check_ins.load()
        await s.feed.load()
        await s.reminder_store.load()
        await s.reminder_alerts.load()
        # Starting the launcher is itself user activity.
        await s.activity.record_activity()

        self.scheduler = AsyncIOScheduler(timezone=s.clock.tz)
        self.handles = [
            start_guardian(
                GuardianConfig(
                    battery=s.battery,
                    connectivity=s.connectivity,
                    sink=s.feed,
                    family_members=s.family_members,
                    clock=s.clock,
                    recheck_s=iv.guardian_recheck_s,
                    probe_poll_s=iv.probe_poll_s,
                    dedup=iv.guardian_dedup,
                    critical_level=iv.battery_critical_level,
                    low_level=iv.battery_low_level,
                ),
                self.scheduler,
            ),
            start_wellness_scheduler(
                WellnessConfig(
                    settings=s.settings,
                    check_ins=s.check_ins,
                    activity=s.activity,
                    sink=s.feed,
                    family_members=s.family_members,
                    clock=s.clock,
                    alert_exists=s.feed.has_alert_on,
                    notify_reminder=s.notify_reminder,
                    check_s=iv.wellness_check_s,
                    auto_checkin_s=iv.auto_checkin_s,
                ),
                self.scheduler,
            ),
            start_reminder_scheduler(
                lambda: s.reminder_store.reminders,
                s.reminder_alerts.trigger,
                self.scheduler,
                clock=s.clock,
                tick_s=iv.reminder_tick_s,
                window_s=iv.reminder_due_window_s,
                key_ttl_s=iv.triggered_key_ttl_s,
                on_next_occurrence=s.reminder_store.reschedule,
            ),
        ]
        self.scheduler.start()
        log.info("session.started " + kv(jobs=[j for h in self.handles for j in h.job_ids]))

    async def stop(self) -> None:
        if not self.running:
            return
        for handle in self.handles:
            handle.stop()
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        log.info("session.stopped")
