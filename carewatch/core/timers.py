# carewatch/core/timers.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from carewatch.core.logging_utils import kv

log = logging.getLogger("carewatch.timers")


def guarded(name: str, func: Callable[[], Awaitable[object]]) -> Callable[[], Awaitable[None]]:
    """Wrap a periodic job body: an exception is logged and the next tick still runs."""

    async def _job() -> None:
        try:
            await func()
        except Exception as e:
            log.exception("job.error " + kv(job=name, err=repr(e)))

    _job.__name__ = f"guarded_{name}"
    return _job


def add_periodic(
    scheduler: AsyncIOScheduler,
    job_id: str,
    func: Callable[[], Awaitable[object]],
    seconds: float,
    *,
    run_now: bool = False,
) -> str:
    """Register an interval job; run_now also schedules an immediate first run."""
    extra = {}
    if run_now:
        extra["next_run_time"] = datetime.now(scheduler.timezone)
    scheduler.add_job(
        guarded(job_id, func),
        trigger="interval",
        seconds=seconds,
        id=job_id,
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        misfire_grace_time=max(1, int(seconds)),
        **extra,
    )
    log.debug("job.added " + kv(job=job_id, every_s=seconds, run_now=run_now))
    return job_id


class MonitorHandle:
    """
    Returned by the start_* functions. stop() removes the jobs, runs cleanup
    callbacks (probe unsubscribes), and shuts down a scheduler it created itself.
    Safe to call more than once.
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        job_ids: List[str],
        *,
        monitor: Any = None,
        owns_scheduler: bool = False,
        on_stop: Optional[List[Callable[[], None]]] = None,
    ):
        self.scheduler = scheduler
        self.job_ids = list(job_ids)
        self.monitor = monitor
        self.owns_scheduler = owns_scheduler
        self._on_stop = list(on_stop or [])
        self.stopped = False

    def stop(self) -> None:
        if self.stopped:
            return
        self.stopped = True
        for job_id in self.job_ids:
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass
        for cleanup in self._on_stop:
            cleanup()
        if self.owns_scheduler and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        log.debug("monitor.stopped " + kv(jobs=self.job_ids))
