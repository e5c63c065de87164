"""
Message catalog for caregiver-facing alert texts and status lines.
"""

from __future__ import annotations

MESSAGES = {
    # Guardian alerts
    "battery_critical": (
        "URGENT: Phone battery critically low ({percent}%). Device may shut down soon. "
        "Please charge immediately."
    ),
    "low_battery": "Phone battery low ({percent}%). Please remind to charge the device.",
    "connectivity_lost": (
        "Phone has lost internet connection. Unable to receive calls or messages. "
        "Please check Wi-Fi or mobile data."
    ),
    "connectivity_restored": "Phone internet connection restored. Device is back online.",
    # Wellness alerts
    "missed_checkin": "No check-in received today. Last expected at {check_in_time}.",
    "no_activity": (
        "No phone activity detected for {hours} hours. Last activity: {last_activity}."
    ),
    "help_needed": "Help requested from the phone.{details}",
    "emergency": "EMERGENCY reported from the phone.{details}",
    "auto_checkin": "Automatic check-in based on phone activity",
    "checkin_reminder": "Wellness check reminder: Time to check in!",
    # Guardian status lines
    "status_critical": "Critical battery level - charge immediately!",
    "status_low": "Low battery - please charge soon",
    "status_offline": "No internet connection - check Wi-Fi or mobile data",
    # Caregiver delivery
    "caregiver_alert": "[{type}] {message}",
}


def fmt(key: str, **kwargs) -> str:
    return MESSAGES[key].format(**kwargs)
