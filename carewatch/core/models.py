# carewatch/core/models.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from zoneinfo import ZoneInfo

from carewatch.core.clock import parse_iso


def new_id() -> str:
    return str(uuid.uuid4())


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt is not None else None


def _dt(value: Optional[str], tz: ZoneInfo | timezone) -> Optional[datetime]:
    return parse_iso(value, tz) if value else None


# -------------------------------------------------------------------------------------------------
# Enumerations
# -------------------------------------------------------------------------------------------------
class AlertType(str, Enum):
    MISSED_CHECKIN = "missed_checkin"
    NO_ACTIVITY = "no_activity"
    EMERGENCY = "emergency"
    HELP_NEEDED = "help_needed"
    LOW_BATTERY = "low_battery"
    BATTERY_CRITICAL = "battery_critical"
    CONNECTIVITY_LOST = "connectivity_lost"
    CONNECTIVITY_RESTORED = "connectivity_restored"


# Kinds the guardian may emit; each has its own dedup window.
GUARDIAN_ALERT_KINDS = frozenset(
    {
        AlertType.LOW_BATTERY,
        AlertType.BATTERY_CRITICAL,
        AlertType.CONNECTIVITY_LOST,
        AlertType.CONNECTIVITY_RESTORED,
    }
)


class CheckInType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    REMINDER = "reminder"


class CheckInStatus(str, Enum):
    OK = "ok"
    NEEDS_HELP = "needs_help"
    EMERGENCY = "emergency"


class ReminderType(str, Enum):
    MEDICATION = "medication"
    APPOINTMENT = "appointment"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class ReminderAlertState(str, Enum):
    ACTIVE = "active"
    SNOOZED = "snoozed"
    ACKNOWLEDGED = "acknowledged"


# -------------------------------------------------------------------------------------------------
# Device status (ephemeral, never persisted)
# -------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class BatteryStatus:
    level: float = 1.0  # fraction 0..1
    is_charging: bool = False
    low_power_mode: Optional[bool] = None

    @property
    def percent(self) -> int:
        return int(self.level * 100 + 0.5)


@dataclass(frozen=True)
class ConnectivityStatus:
    is_connected: bool = True
    type: Optional[str] = None
    is_internet_reachable: Optional[bool] = None

    @property
    def online(self) -> bool:
        return self.is_connected and self.is_internet_reachable is not False


# -------------------------------------------------------------------------------------------------
# Wellness
# -------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class WellnessSettings:
    enabled: bool = True
    check_in_time: str = "09:00"  # HH:MM
    reminder_time: str = "18:00"  # HH:MM
    family_notifications: bool = True
    auto_check_threshold: int = 24  # hours without activity

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "WellnessSettings":
        return cls(
            enabled=bool(d.get("enabled", True)),
            check_in_time=d.get("check_in_time", "09:00"),
            reminder_time=d.get("reminder_time", "18:00"),
            family_notifications=bool(d.get("family_notifications", True)),
            auto_check_threshold=int(d.get("auto_check_threshold", 24)),
        )


@dataclass(frozen=True)
class WellnessCheckIn:
    id: str
    timestamp: datetime
    type: CheckInType
    status: CheckInStatus
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": _iso(self.timestamp),
            "type": self.type.value,
            "status": self.status.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(
        cls, d: dict[str, Any], tz: ZoneInfo | timezone = timezone.utc
    ) -> "WellnessCheckIn":
        return cls(
            id=d["id"],
            timestamp=parse_iso(d["timestamp"], tz),
            type=CheckInType(d["type"]),
            status=CheckInStatus(d["status"]),
            message=d.get("message"),
        )


@dataclass
class WellnessAlert:
    id: str
    type: AlertType
    timestamp: datetime
    message: str
    acknowledged: bool = False
    family_member_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": _iso(self.timestamp),
            "message": self.message,
            "acknowledged": self.acknowledged,
            "family_member_ids": list(self.family_member_ids),
        }

    @classmethod
    def from_dict(
        cls, d: dict[str, Any], tz: ZoneInfo | timezone = timezone.utc
    ) -> "WellnessAlert":
        return cls(
            id=d["id"],
            type=AlertType(d["type"]),
            timestamp=parse_iso(d["timestamp"], tz),
            message=d.get("message", ""),
            acknowledged=bool(d.get("acknowledged", False)),
            family_member_ids=list(d.get("family_member_ids") or []),
        )


# -------------------------------------------------------------------------------------------------
# Reminders
# -------------------------------------------------------------------------------------------------
@dataclass(frozen=True)
class Recurrence:
    frequency: Frequency
    days: Optional[list[int]] = None  # 0-6 for weekly (0 = Sunday)
    end_date: Optional[datetime] = None


@dataclass
class Reminder:
    """Caregiver-authored reminder. Owned by the reminder store; read-only here."""

    id: str
    type: ReminderType
    title: str
    time: datetime  # next (or only) occurrence
    is_active: bool = True
    created_by: str = ""
    created_at: Optional[datetime] = None
    description: Optional[str] = None
    recurring: Optional[Recurrence] = None
    last_triggered: Optional[datetime] = None
    acknowledged: Optional[bool] = None
    snooze_until: Optional[datetime] = None

    def to_dict(self) -> dict[str, Any]:
        rec = None
        if self.recurring is not None:
            rec = {
                "frequency": self.recurring.frequency.value,
                "days": self.recurring.days,
                "end_date": _iso(self.recurring.end_date),
            }
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "time": _iso(self.time),
            "recurring": rec,
            "is_active": self.is_active,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "last_triggered": _iso(self.last_triggered),
            "acknowledged": self.acknowledged,
            "snooze_until": _iso(self.snooze_until),
        }

    @classmethod
    def from_dict(
        cls, d: dict[str, Any], tz: ZoneInfo | timezone = timezone.utc
    ) -> "Reminder":
        rec = d.get("recurring")
        return cls(
            id=d["id"],
            type=ReminderType(d.get("type", ReminderType.MEDICATION.value)),
            title=d["title"],
            description=d.get("description"),
            time=parse_iso(d["time"], tz),
            recurring=(
                Recurrence(
                    frequency=Frequency(rec["frequency"]),
                    days=rec.get("days"),
                    end_date=_dt(rec.get("end_date"), tz),
                )
                if rec
                else None
            ),
            is_active=bool(d.get("is_active", True)),
            created_by=d.get("created_by", ""),
            created_at=_dt(d.get("created_at"), tz),
            last_triggered=_dt(d.get("last_triggered"), tz),
            acknowledged=d.get("acknowledged"),
            snooze_until=_dt(d.get("snooze_until"), tz),
        )


@dataclass
class ReminderAlert:
    id: str
    reminder_id: str
    reminder: Reminder  # snapshot taken at trigger time
    triggered_at: datetime
    acknowledged: bool = False
    snoozed_until: Optional[datetime] = None

    def state(self, now: datetime) -> ReminderAlertState:
        if self.acknowledged:
            return ReminderAlertState.ACKNOWLEDGED
        if self.snoozed_until is not None and self.snoozed_until > now:
            return ReminderAlertState.SNOOZED
        return ReminderAlertState.ACTIVE

    def is_active(self, now: datetime) -> bool:
        return self.state(now) == ReminderAlertState.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "reminder_id": self.reminder_id,
            "reminder": self.reminder.to_dict(),
            "triggered_at": _iso(self.triggered_at),
            "acknowledged": self.acknowledged,
            "snoozed_until": _iso(self.snoozed_until),
        }

    @classmethod
    def from_dict(
        cls, d: dict[str, Any], tz: ZoneInfo | timezone = timezone.utc
    ) -> "ReminderAlert":
        return cls(
            id=d["id"],
            reminder_id=d["reminder_id"],
            reminder=Reminder.from_dict(d["reminder"], tz),
            triggered_at=parse_iso(d["triggered_at"], tz),
            acknowledged=bool(d.get("acknowledged", False)),
            snoozed_until=_dt(d.get("snoozed_until"), tz),
        )
