"""Interval triggering of discrete ingestion batches."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from apscheduler.schedulers import SchedulerNotRunningError
from apscheduler.schedulers.blocking import BlockingScheduler

_log = logging.getLogger(__name__)


@dataclass
class SchedulerOptions:
    interval_minutes: int
    max_runs: int | None = None


def start_scheduler(run_batch: Callable[[], object], options: SchedulerOptions) -> int:
    """Run *run_batch* now and then every interval; return the number of runs."""
    runs = {"count": 0}

    def job() -> None:
        try:
            run_batch()
        except Exception:
            _log.exception("Scheduled ingestion batch failed")
        runs["count"] += 1

    if options.max_runs == 1:
        job()
        return runs["count"]

    scheduler = BlockingScheduler()

    def job_with_limit() -> None:
        job()
        if options.max_runs is not None and runs["count"] >= options.max_runs:
            try:
                scheduler.shutdown(wait=False)
            except SchedulerNotRunningError:
                pass

    # max_instances=1 keeps batches from overlapping on the shared crawler session.
    scheduler.add_job(
        job_with_limit,
        "interval",
        minutes=options.interval_minutes,
        id="ingestion_batch",
        max_instances=1,
        coalesce=True,
    )
    job()
    if options.max_runs is None or runs["count"] < options.max_runs:
        scheduler.start()
    return runs["count"]
