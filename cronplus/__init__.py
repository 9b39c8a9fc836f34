"""cronplus package root.

Add and remove named cron jobs on a request-driven cron table, keeping the
table in sync with the desired schedule and cleaning up on deactivation.
"""

from .config import load_config
from .errors import (
    CronPlusError,
    NoPendingFiring,
    RegistrationFailure,
    UnknownRecurrenceKey,
)
from .host import Host, create_host, get_default_host, set_default_host
from .job import JobConfig, JobScheduler, Reconciler, ScheduleMode, ScheduleStatus
from . import metrics  # noqa: F401


def initialize(path: str | None = None) -> Host:
    """Create the default host from configuration and return it."""

    cfg = load_config(path)
    host = create_host(cfg)
    set_default_host(host)
    return host


__all__ = [
    "CronPlusError",
    "Host",
    "JobConfig",
    "JobScheduler",
    "NoPendingFiring",
    "Reconciler",
    "RegistrationFailure",
    "ScheduleMode",
    "ScheduleStatus",
    "UnknownRecurrenceKey",
    "create_host",
    "get_default_host",
    "initialize",
    "load_config",
    "metrics",
    "set_default_host",
]
