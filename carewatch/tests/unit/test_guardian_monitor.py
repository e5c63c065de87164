# tests/unit/test_guardian_monitor.py
import pytest
from datetime import timedelta

from carewatch.core.guardian import GuardianMonitor
from carewatch.core.i18n import MESSAGES
from carewatch.core.models import AlertType, BatteryStatus, ConnectivityStatus
from carewatch.tests.fakes import FakeBatteryProbe, FakeConnectivityProbe


def make_guardian(clock, sink, family=("fam-1",)):
    battery = FakeBatteryProbe()
    conn = FakeConnectivityProbe()
    g = GuardianMonitor(battery, conn, sink, lambda: list(family), clock)
    g.attach()
    return g, battery, conn


@pytest.mark.parametrize(
    "level,charging,expected",
    [
        (0.03, False, AlertType.BATTERY_CRITICAL),
        (0.05, False, AlertType.BATTERY_CRITICAL),
        (0.10, False, AlertType.LOW_BATTERY),
        (0.20, False, AlertType.LOW_BATTERY),
        (0.21, False, None),
        (0.03, True, None),
        (0.15, True, None),
    ],
)
def test_battery_alert_kind_thresholds(clock, sink, level, charging, expected):
    g, _, _ = make_guardian(clock, sink)
    assert g.battery_alert_kind(BatteryStatus(level=level, is_charging=charging)) == expected


@pytest.mark.asyncio
async def test_critical_battery_alert_then_silence_on_recheck(clock, sink):
    g, battery, _ = make_guardian(clock, sink)

    battery.next = BatteryStatus(level=0.03, is_charging=False)
    await battery.refresh()

    assert sink.kinds() == [AlertType.BATTERY_CRITICAL]
    kind, message, members = sink.calls[0]
    assert "3%" in message
    assert members == ["fam-1"]

    clock.advance(minutes=5)
    assert await g.recheck() == []
    assert len(sink.calls) == 1


@pytest.mark.asyncio
async def test_low_battery_only_when_not_critical(clock, sink):
    g, battery, _ = make_guardian(clock, sink)
    await battery.push(BatteryStatus(level=0.12))
    assert sink.kinds() == [AlertType.LOW_BATTERY]
    assert "12%" in sink.calls[0][1]


@pytest.mark.asyncio
async def test_same_kind_dedup_window(clock, sink):
    g, _, _ = make_guardian(clock, sink)

    assert await g.send_alert(AlertType.LOW_BATTERY, "x") is True
    clock.advance(minutes=29)
    assert await g.send_alert(AlertType.LOW_BATTERY, "x") is False
    clock.advance(minutes=1)
    assert await g.send_alert(AlertType.LOW_BATTERY, "x") is True
    assert len(sink.calls) == 2


@pytest.mark.asyncio
async def test_kinds_are_deduplicated_independently(clock, sink):
    g, _, _ = make_guardian(clock, sink)
    assert await g.send_alert(AlertType.LOW_BATTERY, "a") is True
    assert await g.send_alert(AlertType.CONNECTIVITY_LOST, "b") is True
    assert sink.kinds() == [AlertType.LOW_BATTERY, AlertType.CONNECTIVITY_LOST]


@pytest.mark.asyncio
async def test_connectivity_lost_then_restored_once(clock, sink):
    g, _, conn = make_guardian(clock, sink)

    await conn.push(ConnectivityStatus(is_connected=False, type="none", is_internet_reachable=False))
    clock.advance(minutes=2)
    await conn.push(ConnectivityStatus(is_connected=True, type="wifi", is_internet_reachable=True))

    conn.next = conn.status
    clock.advance(minutes=5)
    await g.recheck()

    assert sink.kinds() == [AlertType.CONNECTIVITY_LOST, AlertType.CONNECTIVITY_RESTORED]


@pytest.mark.asyncio
async def test_unreachable_internet_counts_as_lost(clock, sink):
    g, _, conn = make_guardian(clock, sink)
    await conn.push(ConnectivityStatus(is_connected=True, type="wifi", is_internet_reachable=False))
    assert sink.kinds() == [AlertType.CONNECTIVITY_LOST]


@pytest.mark.asyncio
async def test_inactive_without_family_members(clock, sink):
    g, battery, _ = make_guardian(clock, sink, family=())
    await battery.push(BatteryStatus(level=0.02))

    assert sink.calls == []
    assert g.snapshot().is_active is False


@pytest.mark.asyncio
async def test_sink_failure_is_swallowed_and_window_stays_stamped(clock, sink):
    g, _, _ = make_guardian(clock, sink)
    sink.error = RuntimeError("feed down")

    assert await g.send_alert(AlertType.BATTERY_CRITICAL, "x") is False
    clock.advance(minutes=10)
    assert await g.send_alert(AlertType.BATTERY_CRITICAL, "x") is False
    # Second attempt was suppressed by dedup, not delivered and failed again
    assert len(sink.calls) == 1


@pytest.mark.asyncio
async def test_unavailable_probe_keeps_last_known_status(clock, sink):
    g, battery, _ = make_guardian(clock, sink)
    await battery.push(BatteryStatus(level=0.50))

    battery.fail = True
    status = await battery.refresh()

    assert status == BatteryStatus(level=0.50)
    assert battery.available is False
    assert g.snapshot().supported is True  # connectivity still reports


@pytest.mark.asyncio
async def test_snapshot_low_battery_warning(clock, sink):
    g, battery, _ = make_guardian(clock, sink)
    await battery.push(BatteryStatus(level=0.15, is_charging=False, low_power_mode=True))

    snap = g.snapshot()
    assert snap.battery_percent == 15
    assert snap.is_battery_low is True
    assert snap.is_battery_critical is False
    assert snap.low_power_mode is True
    assert snap.warning == MESSAGES["status_low"]
    assert snap.online is True


@pytest.mark.asyncio
async def test_detach_stops_listening(clock, sink):
    g, battery, _ = make_guardian(clock, sink)
    g.detach()
    await battery.push(BatteryStatus(level=0.01))
    assert sink.calls == []


def test_custom_dedup_window(clock, sink):
    g = GuardianMonitor(
        FakeBatteryProbe(), FakeConnectivityProbe(), sink, lambda: ["f"], clock,
        dedup=timedelta(minutes=5),
    )
    assert g.dedup.window == timedelta(minutes=5)


@pytest.mark.asyncio
async def test_family_paired_after_attach_is_alerted_on_next_recheck(clock, sink):
    members = []
    battery, conn = FakeBatteryProbe(), FakeConnectivityProbe()
    g = GuardianMonitor(battery, conn, sink, lambda: list(members), clock)
    g.attach()

    battery.next = BatteryStatus(level=0.03, is_charging=False)
    await battery.refresh()
    assert sink.calls == []

    members.append("fam-1")
    clock.advance(minutes=5)
    assert await g.recheck() == [AlertType.BATTERY_CRITICAL]
    assert sink.calls[0][2] == ["fam-1"]
