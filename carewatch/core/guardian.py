# carewatch/core/guardian.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, List, Optional, Sequence

from carewatch.core.alerts import AlertSink, DedupWindow
from carewatch.core.clock import Clock
from carewatch.core.i18n import fmt
from carewatch.core.logging_utils import kv
from carewatch.core.models import AlertType, BatteryStatus, ConnectivityStatus
from carewatch.core.probes import BatteryProbe, ConnectivityProbe


@dataclass(frozen=True)
class GuardianSnapshot:
    """What the compact/detailed guardian status view renders."""

    battery_percent: int
    is_charging: bool
    low_power_mode: Optional[bool]
    online: bool
    connection_type: Optional[str]
    is_battery_low: bool
    is_battery_critical: bool
    warning: Optional[str]
    is_active: bool
    supported: bool


class GuardianMonitor:
    """
    Turns battery/connectivity samples into caregiver alerts without spamming.

    Rules are evaluated on every probe change and on every re-check tick, in a
    fixed order: critical battery, low battery, connectivity lost. Restored
    connectivity is edge-triggered from the change event only. Each kind is
    rate-limited by its own dedup window; the window is stamped before the sink
    is called, so a failing sink is not retried until the window passes.
    """

    def __init__(
        self,
        battery: BatteryProbe,
        connectivity: ConnectivityProbe,
        sink: AlertSink,
        family_members: Callable[[], Sequence[str]],
        clock: Clock,
        *,
        dedup: timedelta = timedelta(minutes=30),
        critical_level: float = 0.05,
        low_level: float = 0.20,
    ):
        self.battery = battery
        self.connectivity = connectivity
        self.sink = sink
        self.family_members = family_members
        self.clock = clock
        self.dedup = DedupWindow(dedup)
        self.critical_level = critical_level
        self.low_level = low_level
        self.log = logging.getLogger("carewatch.guardian")
        self._unsubscribe: List[Callable[[], None]] = []

    # ---- wiring -----------------------------------------------------------------------
    def attach(self) -> None:
        if self._unsubscribe:
            return
        self._unsubscribe = [
            self.battery.subscribe(self.on_battery_change),
            self.connectivity.subscribe(self.on_connectivity_change),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._unsubscribe = []

    # ---- state ------------------------------------------------------------------------
    @property
    def battery_status(self) -> BatteryStatus:
        return self.battery.status

    @property
    def connectivity_status(self) -> ConnectivityStatus:
        return self.connectivity.status

    @property
    def is_active(self) -> bool:
        return bool(self.family_members())

    def battery_alert_kind(self, status: BatteryStatus) -> Optional[AlertType]:
        if status.is_charging:
            return None
        if status.level <= self.critical_level:
            return AlertType.BATTERY_CRITICAL
        if status.level <= self.low_level:
            return AlertType.LOW_BATTERY
        return None

    @staticmethod
    def connectivity_lost(status: ConnectivityStatus) -> bool:
        return status.is_connected is False or status.is_internet_reachable is False

    # ---- events -----------------------------------------------------------------------
    async def on_battery_change(
        self, new: BatteryStatus, old: BatteryStatus
    ) -> None:
        await self.evaluate()

    async def on_connectivity_change(
        self, new: ConnectivityStatus, old: ConnectivityStatus
    ) -> None:
        if not old.is_connected and new.is_connected:
            await self.send_alert(
                AlertType.CONNECTIVITY_RESTORED, fmt("connectivity_restored")
            )
        await self.evaluate()

    async def recheck(self) -> List[AlertType]:
        """Periodic tick: re-sample both probes, then evaluate current status."""
        await self.battery.refresh()
        await self.connectivity.refresh()
        return await self.evaluate()

    async def evaluate(self) -> List[AlertType]:
        emitted: List[AlertType] = []

        battery = self.battery_status
        kind = self.battery_alert_kind(battery)
        if kind is not None and await self.send_alert(
            kind, fmt(kind.value, percent=battery.percent)
        ):
            emitted.append(kind)

        if self.connectivity_lost(self.connectivity_status) and await self.send_alert(
            AlertType.CONNECTIVITY_LOST, fmt("connectivity_lost")
        ):
            emitted.append(AlertType.CONNECTIVITY_LOST)

        return emitted

    # ---- delivery ---------------------------------------------------------------------
    async def send_alert(self, kind: AlertType, message: str) -> bool:
        members = list(self.family_members() or [])
        if not members:
            self.log.debug("guardian.inactive " + kv(kind=kind.value))
            return False

        now = self.clock.now()
        if not self.dedup.allows(kind.value, now):
            self.log.debug(
                "guardian.alert.suppressed "
                + kv(kind=kind.value, last=self.dedup.last_fired(kind.value).isoformat())
            )
            return False
        self.dedup.mark(kind.value, now)

        try:
            await self.sink(kind, message, members)
        except Exception as e:
            self.log.error("guardian.alert.error " + kv(kind=kind.value, err=repr(e)))
            return False

        self.log.info("guardian.alert.sent " + kv(kind=kind.value, to=len(members)))
        return True

    # ---- status view ------------------------------------------------------------------
    def snapshot(self) -> GuardianSnapshot:
        battery = self.battery_status
        conn = self.connectivity_status
        percent = battery.percent
        low = percent <= int(self.low_level * 100 + 0.5)
        critical = percent <= int(self.critical_level * 100 + 0.5)

        warning = None
        if critical:
            warning = fmt("status_critical")
        elif low:
            warning = fmt("status_low")
        elif not conn.online:
            warning = fmt("status_offline")

        return GuardianSnapshot(
            battery_percent=percent,
            is_charging=battery.is_charging,
            low_power_mode=battery.low_power_mode,
            online=conn.online,
            connection_type=conn.type,
            is_battery_low=low,
            is_battery_critical=critical,
            warning=warning,
            is_active=self.is_active,
            supported=self.battery.available or self.connectivity.available,
        )
