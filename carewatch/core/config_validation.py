# carewatch/core/config_validation.py
from __future__ import annotations

from typing import Any, Dict
import re

from carewatch.core.errors import ConfigError


_TIME_RE = re.compile(r"^\d{2}:\d{2}$")

_POSITIVE_INTERVALS = (
    "GUARDIAN_RECHECK_S",
    "PROBE_POLL_S",
    "GUARDIAN_DEDUP_MIN",
    "WELLNESS_CHECK_S",
    "AUTO_CHECKIN_S",
    "REMINDER_TICK_S",
    "TRIGGERED_KEY_TTL_S",
    "MAX_CHECKINS",
)


def _is_valid_hhmm(s: Any) -> bool:
    if not isinstance(s, str) or not _TIME_RE.match(s):
        return False
    hh, mm = (int(x) for x in s.split(":", 1))
    return 0 <= hh <= 23 and 0 <= mm <= 59


def validate_config(cfg: Any) -> None:
    """Validate runtime configuration before starting the monitors."""
    for name in _POSITIVE_INTERVALS:
        v = getattr(cfg, name, None)
        if not isinstance(v, (int, float)) or isinstance(v, bool) or v <= 0:
            raise ConfigError(f"{name} must be a positive number (got {v!r})")

    window = getattr(cfg, "REMINDER_DUE_WINDOW_S", None)
    if not isinstance(window, (int, float)) or not 60 <= window <= 120:
        raise ConfigError(f"REMINDER_DUE_WINDOW_S must be within 60..120 seconds (got {window!r})")
    if cfg.REMINDER_TICK_S >= window:
        raise ConfigError("REMINDER_TICK_S must be shorter than REMINDER_DUE_WINDOW_S")

    critical = getattr(cfg, "BATTERY_CRITICAL_LEVEL", None)
    low = getattr(cfg, "BATTERY_LOW_LEVEL", None)
    for name, v in (("BATTERY_CRITICAL_LEVEL", critical), ("BATTERY_LOW_LEVEL", low)):
        if not isinstance(v, (int, float)) or not 0 < v < 1:
            raise ConfigError(f"{name} must be a fraction between 0 and 1 (got {v!r})")
    if critical >= low:
        raise ConfigError("BATTERY_CRITICAL_LEVEL must be below BATTERY_LOW_LEVEL")

    # Wellness defaults
    w: Dict[str, Any] = getattr(cfg, "WELLNESS", None)
    if not isinstance(w, dict):
        raise ConfigError("WELLNESS must be a dict")
    for key in ("check_in_time", "reminder_time"):
        if not _is_valid_hhmm(w.get(key)):
            raise ConfigError(f"WELLNESS.{key}: invalid time {w.get(key)!r} (expected HH:MM)")
    threshold = w.get("auto_check_threshold")
    if not isinstance(threshold, int) or isinstance(threshold, bool) or threshold < 1:
        raise ConfigError(f"WELLNESS.auto_check_threshold must be a positive int (got {threshold!r})")

    # Pairing
    members = getattr(cfg, "FAMILY_MEMBERS", None)
    if not isinstance(members, list) or not all(isinstance(m, str) and m for m in members):
        raise ConfigError("FAMILY_MEMBERS must be a list of non-empty strings")
