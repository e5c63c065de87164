# carewatch/app.py
from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
from typing import Any, Iterable, List, Optional, Sequence

from carewatch import config as cfg
from carewatch.adapters.host_probes import HostConnectivityProbe, SysfsBatteryProbe
from carewatch.adapters.sql_store import SqlKeyValueStore
from carewatch.adapters.telegram_notifier import TelegramNotifier
from carewatch.core.activity import ActivityTracker
from carewatch.core.alerts import AlertFeed, Notifier
from carewatch.core.checkins import CheckInTracker
from carewatch.core.clock import Clock
from carewatch.core.config_loader import load_overrides
from carewatch.core.config_validation import validate_config
from carewatch.core.logging_utils import kv, setup_logging
from carewatch.core.models import WellnessSettings
from carewatch.core.probes import BatteryProbe, ConnectivityProbe
from carewatch.core.reminder_store import ReminderStore
from carewatch.core.reminders import ReminderAlertBook
from carewatch.core.session import Intervals, MonitoringSession, Services
from carewatch.core.store import KeyValueStore, StoreWriter


def build_services(
    cfg: Any,
    store: KeyValueStore,
    *,
    battery: Optional[BatteryProbe] = None,
    connectivity: Optional[ConnectivityProbe] = None,
    notifiers: Iterable[Notifier] = (),
) -> Services:
    """Wire trackers, feeds and probes around one store. Providers read cfg live."""
    clock = Clock(cfg.TZ)
    writer = StoreWriter(store)
    activity = ActivityTracker(writer, clock)
    return Services(
        clock=clock,
        writer=writer,
        activity=activity,
        check_ins=CheckInTracker(writer, clock, activity, max_entries=cfg.MAX_CHECKINS),
        feed=AlertFeed(writer, clock, notifiers),
        reminder_store=ReminderStore(writer, clock),
        reminder_alerts=ReminderAlertBook(writer, clock),
        battery=battery or SysfsBatteryProbe(cfg.POWER_SUPPLY_DIR),
        connectivity=connectivity
        or HostConnectivityProbe(
            cfg.NET_CLASS_DIR, cfg.REACHABILITY_URL, cfg.REACHABILITY_TIMEOUT_S
        ),
        family_members=lambda: list(cfg.FAMILY_MEMBERS),
        settings=lambda: WellnessSettings.from_dict(cfg.WELLNESS),
    )


def caregiver_notifiers(cfg: Any) -> List[TelegramNotifier]:
    token = cfg.get_bot_token()
    if not token or cfg.CAREGIVER_CHAT_ID is None:
        return []
    return [TelegramNotifier.from_token(token, cfg.CAREGIVER_CHAT_ID)]


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="carewatch", description="Wellness & guardian monitoring engine"
    )
    parser.add_argument("--config", help="YAML file with setting overrides")
    parser.add_argument("--store", help="SQLAlchemy DSN for the key-value store")
    return parser.parse_args(argv)


async def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    if args.config:
        load_overrides(args.config, cfg)
    if args.store:
        cfg.STORE_DSN = args.store

    setup_logging(cfg)
    log = logging.getLogger("carewatch.app")
    validate_config(cfg)

    store = SqlKeyValueStore(cfg.STORE_DSN)
    await store.init()

    notifiers = caregiver_notifiers(cfg)
    if not notifiers:
        log.info("delivery.disabled (no BOT_TOKEN or CAREGIVER_CHAT_ID)")

    services = build_services(cfg, store, notifiers=notifiers)
    session = MonitoringSession(services, Intervals.from_config(cfg))

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop.set)

    try:
        await session.start()
        log.info(
            "startup.ready "
            + kv(tz=cfg.TIMEZONE, family=len(cfg.FAMILY_MEMBERS), notifiers=len(notifiers))
        )
        await stop.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)
        await session.stop()
        for n in notifiers:
            await n.close()
        await store.close()
        log.info("shutdown.done")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
