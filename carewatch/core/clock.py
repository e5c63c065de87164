# carewatch/core/clock.py
from __future__ import annotations

from datetime import date, datetime
from typing import Tuple
from zoneinfo import ZoneInfo


def parse_hhmm(hhmm: str) -> Tuple[int, int]:
    hh, mm = hhmm.split(":")
    return int(hh), int(mm)


def parse_iso(value: str, tz: ZoneInfo) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as local time in tz."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt


def epoch_ms(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class Clock:
    """Injectable, testable clock bound to a timezone."""

    def __init__(self, tz: ZoneInfo):
        self.tz = tz

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()

    def today_str(self) -> str:
        return self.now().strftime("%Y-%m-%d")

    def local(self, dt: datetime) -> datetime:
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz)
        return dt.astimezone(self.tz)

    def at_today(self, hhmm: str) -> datetime:
        """Today's local datetime for an HH:MM wall-clock time."""
        hh, mm = parse_hhmm(hhmm)
        return self.now().replace(hour=hh, minute=mm, second=0, microsecond=0)
