# carewatch/core/probes.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Generic, List, TypeVar

from carewatch.core.errors import ProbeUnavailable
from carewatch.core.logging_utils import kv
from carewatch.core.models import BatteryStatus, ConnectivityStatus

T = TypeVar("T")

# listener(new_status, previous_status)
ChangeListener = Callable[[T, T], Awaitable[None]]


class Probe(ABC, Generic[T]):
    """
    Last-known device status plus a "status changed" stream.

    Subclasses implement sample(); refresh() polls it and notifies listeners only
    when the status actually changed. A failing sample keeps the last-known value.
    """

    name = "probe"

    def __init__(self, initial: T):
        self._status: T = initial
        self._listeners: List[ChangeListener] = []
        self.available = True
        self.log = logging.getLogger(f"carewatch.probe.{self.name}")

    @property
    def status(self) -> T:
        return self._status

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @abstractmethod
    async def sample(self) -> T:
        """Read the platform once; raise ProbeUnavailable when it cannot report."""

    async def refresh(self) -> T:
        try:
            new = await self.sample()
        except ProbeUnavailable as e:
            if self.available:
                self.log.warning("probe.unavailable " + kv(probe=self.name, err=str(e)))
            self.available = False
            return self._status
        self.available = True
        await self.push(new)
        return new

    async def push(self, new: T) -> None:
        """Accept a status from a platform event (or a sample) and fan out changes."""
        old = self._status
        self._status = new
        if new == old:
            return
        self.log.debug("probe.changed " + kv(probe=self.name, old=old, new=new))
        for listener in list(self._listeners):
            try:
                await listener(new, old)
            except Exception as e:
                self.log.exception(
                    "probe.listener.error " + kv(probe=self.name, err=repr(e))
                )


class BatteryProbe(Probe[BatteryStatus]):
    name = "battery"

    def __init__(self, initial: BatteryStatus | None = None):
        # Optimistic default until the first real sample arrives.
        super().__init__(initial or BatteryStatus(level=1.0, is_charging=False))


class ConnectivityProbe(Probe[ConnectivityStatus]):
    name = "connectivity"

    def __init__(self, initial: ConnectivityStatus | None = None):
        super().__init__(initial or ConnectivityStatus(is_connected=True))
