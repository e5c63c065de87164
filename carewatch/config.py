"""
Runtime configuration for CareWatch.
All wall-clock rules (check-in time, reminder time, "today") use TIMEZONE.
"""

from __future__ import annotations

import os
from typing import Any
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

# --------------------------------------------------------------------------------------
# Core settings
# --------------------------------------------------------------------------------------
TIMEZONE = "Europe/Kyiv"
TZ = ZoneInfo(TIMEZONE)

# --------------------------------------------------------------------------------------
# Guardian (battery / connectivity)
# --------------------------------------------------------------------------------------
GUARDIAN_RECHECK_S = 5 * 60
PROBE_POLL_S = 60
GUARDIAN_DEDUP_MIN = 30
BATTERY_CRITICAL_LEVEL = 0.05
BATTERY_LOW_LEVEL = 0.20

# Host probes
POWER_SUPPLY_DIR = "/sys/class/power_supply"
NET_CLASS_DIR = "/sys/class/net"
REACHABILITY_URL = "https://clients3.google.com/generate_204"
REACHABILITY_TIMEOUT_S = 5

# --------------------------------------------------------------------------------------
# Wellness
# --------------------------------------------------------------------------------------
WELLNESS_CHECK_S = 30 * 60
AUTO_CHECKIN_S = 15 * 60
MAX_CHECKINS = 50

WELLNESS: dict[str, Any] = {
    "enabled": True,
    "check_in_time": "09:00",
    "reminder_time": "18:00",
    "family_notifications": True,
    "auto_check_threshold": 24,  # hours without activity
}

# --------------------------------------------------------------------------------------
# Reminders
# --------------------------------------------------------------------------------------
REMINDER_TICK_S = 30
REMINDER_DUE_WINDOW_S = 120
TRIGGERED_KEY_TTL_S = 60 * 60

# --------------------------------------------------------------------------------------
# Pairing / delivery
# --------------------------------------------------------------------------------------
# Caregivers paired with this device; empty list keeps the guardian inactive.
FAMILY_MEMBERS: list[str] = []

# IMPORTANT: no hardcoded token in repo; provide via env or explicit override
BOT_TOKEN: str | None = None
CAREGIVER_CHAT_ID: int | None = (
    int(os.environ["CAREGIVER_CHAT_ID"]) if os.getenv("CAREGIVER_CHAT_ID") else None
)

# --------------------------------------------------------------------------------------
# Storage & logging
# --------------------------------------------------------------------------------------
STORE_DSN = "sqlite+aiosqlite:///carewatch/data/carewatch.db"
AUDIT_LOG_FILE = "carewatch/logs/audit.log"


def get_bot_token() -> str | None:
    """Token for caregiver delivery, or None when delivery is not configured."""
    return BOT_TOKEN or os.getenv("BOT_TOKEN") or None
