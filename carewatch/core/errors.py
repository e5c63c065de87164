# carewatch/core/errors.py
from __future__ import annotations


class CareWatchError(Exception):
    """Base class for monitoring engine errors."""


class ProbeUnavailable(CareWatchError):
    """The host platform cannot report battery or connectivity right now."""


class PersistenceFailure(CareWatchError):
    """Reading or writing the key-value store failed."""


class SinkDeliveryFailure(CareWatchError):
    """An alert sink or caregiver notifier raised while delivering an alert."""


class ConfigError(CareWatchError, ValueError):
    """Invalid runtime configuration."""
