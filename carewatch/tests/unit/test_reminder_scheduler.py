# tests/unit/test_reminder_scheduler.py
import pytest
from datetime import datetime, timedelta

from carewatch.core.models import (
    Frequency,
    Recurrence,
    Reminder,
    ReminderAlertState,
    ReminderType,
)
from carewatch.core.reminder_store import ReminderStore
from carewatch.core.reminders import (
    ReminderAlertBook,
    ReminderScheduler,
    next_occurrence,
)
from carewatch.core.store import REMINDER_ALERTS
from carewatch.tests.fakes import TZ


def reminder(rid="r1", time=None, **kw):
    return Reminder(
        id=rid,
        type=ReminderType.MEDICATION,
        title=kw.pop("title", "Blood pressure pill"),
        time=time,
        **kw,
    )


def make_scheduler(clock, writer, reminders, window_s=120, **kw):
    book = ReminderAlertBook(writer, clock)
    sched = ReminderScheduler(
        lambda: reminders, book.trigger, clock, window=timedelta(seconds=window_s), **kw
    )
    return sched, book


# ---- due detection ------------------------------------------------------------------
@pytest.mark.asyncio
async def test_triggers_exactly_once_across_ticks(clock, writer):
    t = clock.now()
    sched, book = make_scheduler(clock, writer, [reminder(time=t)], window_s=60)

    clock.set(t + timedelta(seconds=10))
    assert len(await sched.check_for_due_reminders()) == 1
    clock.set(t + timedelta(seconds=40))
    assert await sched.check_for_due_reminders() == []
    clock.set(t + timedelta(seconds=70))
    assert await sched.check_for_due_reminders() == []

    assert len(book.alerts) == 1


@pytest.mark.asyncio
async def test_not_due_before_time_or_after_window(clock, writer):
    t = clock.now()
    sched, book = make_scheduler(clock, writer, [reminder(time=t)])

    clock.set(t - timedelta(seconds=5))
    assert await sched.check_for_due_reminders() == []
    clock.set(t + timedelta(seconds=120))
    assert await sched.check_for_due_reminders() == []
    assert book.alerts == []


@pytest.mark.asyncio
async def test_inactive_reminder_never_fires(clock, writer):
    sched, book = make_scheduler(
        clock, writer, [reminder(time=clock.now(), is_active=False)]
    )
    assert await sched.check_for_due_reminders() == []


@pytest.mark.asyncio
async def test_failed_trigger_is_retried_next_tick(clock, writer):
    r = reminder(time=clock.now())
    attempts = []

    async def flaky(rem):
        attempts.append(rem.id)
        if len(attempts) == 1:
            raise RuntimeError("store busy")
        return "alert"

    sched = ReminderScheduler(lambda: [r], flaky, clock)
    assert await sched.check_for_due_reminders() == []
    clock.advance(seconds=30)
    assert await sched.check_for_due_reminders() == ["alert"]
    clock.advance(seconds=30)
    assert await sched.check_for_due_reminders() == []
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_triggered_keys_are_evicted_after_an_hour(clock, writer):
    r = reminder(time=clock.now())
    sched, _ = make_scheduler(clock, writer, [r])

    await sched.check_for_due_reminders()
    assert sched.was_triggered(r)

    clock.advance(hours=1, minutes=1)
    await sched.check_for_due_reminders()
    assert not sched.was_triggered(r)


def test_occurrence_key_uses_epoch_ms(clock):
    r = reminder(time=datetime(2026, 3, 10, 8, 0, tzinfo=TZ))
    assert ReminderScheduler.occurrence_key(r) == f"r1-{int(r.time.timestamp() * 1000)}"


# ---- recurrence ---------------------------------------------------------------------
def test_next_occurrence_daily_skips_to_after_now():
    r = reminder(
        time=datetime(2026, 3, 10, 8, 0, tzinfo=TZ),
        recurring=Recurrence(Frequency.DAILY),
    )
    now = datetime(2026, 3, 12, 9, 0, tzinfo=TZ)
    assert next_occurrence(r, now) == datetime(2026, 3, 13, 8, 0, tzinfo=TZ)


def test_next_occurrence_monthly_clamps_without_drift():
    r = reminder(
        time=datetime(2026, 1, 31, 9, 0, tzinfo=TZ),
        recurring=Recurrence(Frequency.MONTHLY),
    )
    assert next_occurrence(r, datetime(2026, 2, 1, tzinfo=TZ)) == datetime(
        2026, 2, 28, 9, 0, tzinfo=TZ
    )
    assert next_occurrence(r, datetime(2026, 3, 1, tzinfo=TZ)) == datetime(
        2026, 3, 31, 9, 0, tzinfo=TZ
    )


def test_next_occurrence_respects_end_date_and_one_offs():
    start = datetime(2026, 3, 2, 10, 0, tzinfo=TZ)
    weekly = reminder(
        time=start,
        recurring=Recurrence(Frequency.WEEKLY, end_date=start + timedelta(days=3)),
    )
    assert next_occurrence(weekly, start + timedelta(hours=1)) is None
    assert next_occurrence(reminder(time=start), start + timedelta(hours=1)) is None

    daily = reminder(time=start, recurring=Recurrence(Frequency.DAILY))
    assert next_occurrence(daily, start - timedelta(hours=1)) is None


@pytest.mark.asyncio
async def test_next_occurrence_reported_after_trigger_and_applied(clock, writer):
    store = ReminderStore(writer, clock)
    r = await store.add(
        ReminderType.MEDICATION,
        "Morning pill",
        clock.now() - timedelta(seconds=30),
        recurring=Recurrence(Frequency.DAILY),
    )
    book = ReminderAlertBook(writer, clock)
    sched = ReminderScheduler(
        lambda: store.reminders, book.trigger, clock, on_next_occurrence=store.reschedule
    )

    await sched.check_for_due_reminders()
    assert len(book.alerts) == 1
    assert store.get(r.id).time == r.time + timedelta(days=1)

    clock.advance(seconds=30)
    assert await sched.check_for_due_reminders() == []


@pytest.mark.asyncio
async def test_missed_recurring_occurrence_is_advised_once(clock, writer):
    r = reminder(
        time=clock.now() - timedelta(hours=3), recurring=Recurrence(Frequency.DAILY)
    )
    suggestions = []

    async def advise(rem, nxt):
        suggestions.append(nxt)

    sched, book = make_scheduler(clock, writer, [r], on_next_occurrence=advise)
    await sched.check_for_due_reminders()
    clock.advance(seconds=30)
    await sched.check_for_due_reminders()

    assert book.alerts == []
    assert suggestions == [r.time + timedelta(days=1)]


# ---- alert lifecycle ----------------------------------------------------------------
@pytest.mark.asyncio
async def test_snoozed_alert_leaves_and_rejoins_active_set(clock, writer):
    t = clock.now()
    sched, book = make_scheduler(
        clock, writer, [reminder("a", time=t), reminder("b", time=t)]
    )
    alerts = await sched.check_for_due_reminders()
    a, b = alerts

    assert await book.snooze(a.id, 5) is True
    assert [x.id for x in book.active_alerts()] == [b.id]
    assert a.state(clock.now()) == ReminderAlertState.SNOOZED

    clock.advance(minutes=6)
    await sched.check_for_due_reminders()
    active = [x.id for x in book.active_alerts()]
    assert sorted(active) == sorted([a.id, b.id])
    assert len(book.alerts) == 2


@pytest.mark.asyncio
async def test_acknowledge_is_terminal(clock, writer):
    sched, book = make_scheduler(clock, writer, [reminder(time=clock.now())])
    (alert,) = await sched.check_for_due_reminders()

    assert await book.acknowledge(alert.id) is True
    assert book.active_alerts() == []
    assert await book.snooze(alert.id, 10) is False
    assert alert.state(clock.now()) == ReminderAlertState.ACKNOWLEDGED


@pytest.mark.asyncio
async def test_dismiss_removes_everywhere(clock, writer, store):
    sched, book = make_scheduler(
        clock, writer, [reminder(time=clock.now() - timedelta(seconds=30))]
    )
    (alert,) = await sched.check_for_due_reminders()
    assert alert.reminder_id == "r1"

    assert await book.dismiss(alert.id) is True
    assert book.alerts == []
    assert book.active_alerts() == []
    assert await store.get(REMINDER_ALERTS) == []
    assert await book.dismiss(alert.id) is False


@pytest.mark.asyncio
async def test_alert_keeps_reminder_snapshot(clock, writer, store):
    r = reminder(time=clock.now())
    sched, book = make_scheduler(clock, writer, [r])
    (alert,) = await sched.check_for_due_reminders()

    r.title = "Edited later"
    assert alert.reminder.title == "Blood pressure pill"

    reloaded = ReminderAlertBook(writer, clock)
    await reloaded.load()
    assert reloaded.alerts[0].reminder.title == "Blood pressure pill"
    assert reloaded.alerts[0].id == alert.id


def test_next_occurrence_keeps_occurrence_still_inside_window():
    start = datetime(2026, 3, 10, 8, 0, tzinfo=TZ)
    r = reminder(time=start, recurring=Recurrence(Frequency.DAILY))
    now = start + timedelta(days=1, seconds=30)

    assert next_occurrence(r, now, timedelta(seconds=120)) == start + timedelta(days=1)
    assert next_occurrence(r, now) == start + timedelta(days=2)


@pytest.mark.asyncio
async def test_resume_shortly_after_daily_occurrence_still_fires_it(clock, writer):
    store = ReminderStore(writer, clock)
    t = clock.now()
    r = await store.add(
        ReminderType.MEDICATION, "Evening pill", t, recurring=Recurrence(Frequency.DAILY)
    )
    book = ReminderAlertBook(writer, clock)
    sched = ReminderScheduler(
        lambda: store.reminders, book.trigger, clock, on_next_occurrence=store.reschedule
    )

    # App was off through yesterday's occurrence; resumes 30 s after today's
    clock.set(t + timedelta(days=1, seconds=30))
    await sched.check_for_due_reminders()
    assert store.get(r.id).time == t + timedelta(days=1)

    for _ in range(3):
        clock.advance(seconds=30)
        await sched.check_for_due_reminders()

    assert len(book.alerts) == 1
    assert book.alerts[0].reminder.time == t + timedelta(days=1)
    assert store.get(r.id).time == t + timedelta(days=2)


@pytest.mark.asyncio
async def test_reminders_provider_is_read_every_tick(clock, writer):
    reminders = []
    sched, book = make_scheduler(clock, writer, reminders)

    assert await sched.check_for_due_reminders() == []
    reminders.append(reminder(time=clock.now()))
    clock.advance(seconds=30)

    assert len(await sched.check_for_due_reminders()) == 1


def test_monthly_counts_from_stored_clamped_date():
    feb = reminder(
        time=datetime(2026, 2, 28, 9, 0, tzinfo=TZ),
        recurring=Recurrence(Frequency.MONTHLY),
    )
    assert next_occurrence(feb, datetime(2026, 3, 1, tzinfo=TZ)) == datetime(
        2026, 3, 28, 9, 0, tzinfo=TZ
    )
