# carewatch/core/alerts.py
"""
Alert plumbing shared by the guardian and wellness monitors.

- DedupWindow: sliding per-kind window ("at most one X per 30 minutes").
- DailyFlags: per-kind-per-day guard, rotated at the local date boundary.
- AlertFeed: the default alert sink. Keeps the wellness alert list (newest first),
  persists it, fans new alerts out to UI listeners and caregiver notifiers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set

from carewatch.core.clock import Clock
from carewatch.core.errors import SinkDeliveryFailure
from carewatch.core.logging_utils import kv
from carewatch.core.models import AlertType, WellnessAlert, new_id
from carewatch.core.store import WELLNESS_ALERTS, StoreWriter

# sink(type, message, family_member_ids) -> created alert (or anything)
AlertSink = Callable[[AlertType, str, List[str]], Awaitable[Any]]
Notifier = Callable[[WellnessAlert], Awaitable[None]]
Listener = Callable[[WellnessAlert], None]


class DedupWindow:
    """Tracks the last-fired time per kind; a kind may fire once per window."""

    def __init__(self, window: timedelta):
        self.window = window
        self._last_fired: Dict[str, datetime] = {}

    def allows(self, kind: str, now: datetime) -> bool:
        last = self._last_fired.get(kind)
        return last is None or now - last >= self.window

    def mark(self, kind: str, now: datetime) -> None:
        self._last_fired[kind] = now

    def last_fired(self, kind: str) -> Optional[datetime]:
        return self._last_fired.get(kind)


@dataclass
class DailyFlags:
    day: date
    fired: Set[str] = field(default_factory=set)


class DailyDedup:
    """Once-per-local-day guard per kind; flags reset when the date changes."""

    def __init__(self) -> None:
        self._current: DailyFlags | None = None

    def _ensure(self, day: date) -> DailyFlags:
        if self._current is None or self._current.day != day:
            self._current = DailyFlags(day)
        return self._current

    def fired(self, kind: str, day: date) -> bool:
        return kind in self._ensure(day).fired

    def mark(self, kind: str, day: date) -> None:
        self._ensure(day).fired.add(kind)


class AlertFeed:
    """Caregiver-facing wellness alert list. Alerts are never deleted here."""

    def __init__(
        self,
        writer: StoreWriter,
        clock: Clock,
        notifiers: Iterable[Notifier] = (),
    ) -> None:
        self.writer = writer
        self.clock = clock
        self.notifiers: List[Notifier] = list(notifiers)
        self.log = logging.getLogger("carewatch.alerts")
        self._alerts: List[WellnessAlert] = []
        self._listeners: List[Listener] = []

    async def load(self) -> None:
        raw = await self.writer.read(WELLNESS_ALERTS, [])
        self._alerts = [WellnessAlert.from_dict(d, self.clock.tz) for d in raw]
        self.log.debug("alerts.loaded " + kv(count=len(self._alerts)))

    @property
    def alerts(self) -> List[WellnessAlert]:
        return list(self._alerts)

    def unacknowledged(self) -> List[WellnessAlert]:
        return [a for a in self._alerts if not a.acknowledged]

    def get(self, alert_id: str) -> Optional[WellnessAlert]:
        return next((a for a in self._alerts if a.id == alert_id), None)

    def has_alert_on(self, alert_type: AlertType, day: date) -> bool:
        return any(
            a.type == alert_type and self.clock.local(a.timestamp).date() == day
            for a in self._alerts
        )

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def add_alert(
        self, alert_type: AlertType, message: str, family_member_ids: List[str]
    ) -> WellnessAlert:
        alert = WellnessAlert(
            id=new_id(),
            type=AlertType(alert_type),
            timestamp=self.clock.now(),
            message=message,
            acknowledged=False,
            family_member_ids=list(family_member_ids),
        )
        self._alerts.insert(0, alert)
        await self.writer.write(WELLNESS_ALERTS, self._snapshot)
        self.log.info("alert.added " + kv(type=alert.type.value, id=alert.id))

        for listener in list(self._listeners):
            try:
                listener(alert)
            except Exception as e:
                self.log.error("alert.listener.error " + kv(err=repr(e)))

        await self._deliver(alert)
        return alert

    # The feed itself is usable as an AlertSink.
    __call__ = add_alert

    async def acknowledge(self, alert_id: str) -> bool:
        alert = self.get(alert_id)
        if alert is None:
            self.log.debug("alert.ack.miss " + kv(id=alert_id))
            return False
        alert.acknowledged = True
        await self.writer.write(WELLNESS_ALERTS, self._snapshot)
        self.log.info("alert.ack " + kv(id=alert_id, type=alert.type.value))
        return True

    async def _deliver(self, alert: WellnessAlert) -> None:
        for notify in self.notifiers:
            name = getattr(notify, "__qualname__", type(notify).__name__)
            try:
                await notify(alert)
            except SinkDeliveryFailure as e:
                self.log.error(
                    "alert.deliver.failed " + kv(id=alert.id, notifier=name, err=str(e))
                )
            except Exception as e:
                self.log.exception(
                    "alert.deliver.error " + kv(id=alert.id, notifier=name, err=repr(e))
                )

    def _snapshot(self) -> list[dict[str, Any]]:
        return [a.to_dict() for a in self._alerts]
