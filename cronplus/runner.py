"""Drive the cron table from a background APScheduler loop.

Jobs are normally fired opportunistically by whatever code calls
:meth:`CronTable.run_due`.  Deployments without steady traffic can use
:class:`CronRunner` to poll the table on a fixed interval instead.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .host import Host

logger = logging.getLogger(__name__)

RUNNER_JOB_ID = "cronplus_runner"


class CronRunner:
    """Poll ``host.engine`` for due jobs every ``interval`` seconds."""

    def __init__(self, host: Host, interval: float = 60.0) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.host = host
        self.interval = interval
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=interval, timezone="UTC"),
            id=RUNNER_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def tick(self, now: int | None = None, *, all_sites: bool = True) -> int:
        """Run every due job once and return how many were fired.

        On a multisite network every known site is visited in turn unless
        ``all_sites`` is false, in which case only the active site is.
        """

        engine = self.host.engine
        tenants = self.host.tenants
        if all_sites and tenants.is_multisite():
            fired = 0
            for site in tenants.sites():
                with tenants.switched_to(site):
                    fired += engine.run_due(now)
        else:
            fired = engine.run_due(now)
        if fired:
            logger.info("Fired %d scheduled jobs", fired)
        return fired

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self, wait: bool = True) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)
