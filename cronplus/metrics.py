"""Prometheus counters for cron table activity.

Job runs are labelled by job name and the site they ran on; reconciliations
and removals by job name only.
"""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import Iterator

from prometheus_client import Counter, Histogram, start_http_server

JOB_RUNS = Counter(
    "cronplus_job_runs_total",
    "Scheduled job runs by outcome",
    ["job_name", "site", "outcome"],
)

JOB_RUN_SECONDS = Histogram(
    "cronplus_job_run_seconds",
    "Wall time spent in scheduled job callbacks",
    ["job_name", "site"],
)

RECONCILE_TOTAL = Counter(
    "cronplus_reconcile_total",
    "Schedule reconciliations by resulting status",
    ["job_name", "status"],
)

UNSCHEDULED_TOTAL = Counter(
    "cronplus_unscheduled_total",
    "Entries removed from the cron table",
    ["job_name"],
)


@contextmanager
def observe_run(job_name: str, site: int) -> Iterator[None]:
    """Time the enclosed job run and count it as a success or an error."""

    started = time.monotonic()
    outcome = "error"
    try:
        yield
        outcome = "success"
    finally:
        JOB_RUNS.labels(job_name, str(site), outcome).inc()
        JOB_RUN_SECONDS.labels(job_name, str(site)).observe(time.monotonic() - started)


def record_reconcile(job_name: str, status: str) -> None:
    RECONCILE_TOTAL.labels(job_name, status).inc()


def record_unscheduled(job_name: str, count: int) -> None:
    if count > 0:
        UNSCHEDULED_TOTAL.labels(job_name).inc(count)


def serve(port: int = 8000) -> None:
    """Expose the metrics over HTTP on ``port``."""

    start_http_server(port)
