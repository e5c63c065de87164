# tests/integration/test_alert_delivery_flow.py
import pytest
from datetime import timedelta

from carewatch.adapters.telegram_notifier import TelegramNotifier
from carewatch.core.activity import ActivityTracker
from carewatch.core.alerts import AlertFeed
from carewatch.core.checkins import CheckInTracker
from carewatch.core.guardian import GuardianMonitor
from carewatch.core.models import AlertType, BatteryStatus, CheckInStatus, WellnessSettings
from carewatch.core.wellness import WellnessScheduler
from carewatch.tests.fakes import FakeBatteryProbe, FakeConnectivityProbe


class FakeBot:
    def __init__(self):
        self.sent = []

    async def send_message(self, chat_id, text):
        self.sent.append(text)


@pytest.mark.asyncio
async def test_guardian_and_wellness_alerts_reach_caregiver_chat(clock, writer):
    bot = FakeBot()
    feed = AlertFeed(writer, clock, [TelegramNotifier(bot, chat_id=-1, backoffs=[0])])
    family = lambda: ["fam-1"]  # noqa: E731

    battery = FakeBatteryProbe()
    guardian = GuardianMonitor(battery, FakeConnectivityProbe(), feed, family, clock)
    guardian.attach()

    activity = ActivityTracker(writer, clock)
    check_ins = CheckInTracker(writer, clock, activity)
    wellness = WellnessScheduler(
        lambda: WellnessSettings(), check_ins, activity, feed, family, clock,
        alert_exists=feed.has_alert_on,
    )

    await battery.push(BatteryStatus(level=0.18))
    await activity.record_activity(clock.now() - timedelta(hours=26))
    await wellness.perform_wellness_check()
    await wellness.check_in(CheckInStatus.NEEDS_HELP, "cannot find glasses")

    assert [a.type for a in feed.alerts] == [
        AlertType.HELP_NEEDED,
        AlertType.NO_ACTIVITY,
        AlertType.LOW_BATTERY,
    ]
    assert bot.sent[0].startswith("[low_battery]")
    assert "26 hours" in bot.sent[1]
    assert "cannot find glasses" in bot.sent[2]

    # Caregiver acknowledges from the feed; nothing is re-sent
    for a in feed.alerts:
        await feed.acknowledge(a.id)
    assert feed.unacknowledged() == []
    assert len(bot.sent) == 3
