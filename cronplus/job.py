"""Named cron jobs and their reconciliation against the cron table.

A :class:`JobScheduler` owns one job name.  Calling
:meth:`JobScheduler.schedule` repeatedly with the same configuration leaves
exactly one consistent registration behind: an existing registration with the
desired interval is left alone, one registered under another interval is
cleared and replaced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
import logging
import time as _time
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Set, Tuple, Union

import yaml

from . import metrics
from .engine import CronTable
from .errors import NoPendingFiring, RegistrationFailure, UnknownRecurrenceKey
from .host import Host, get_default_host

logger = logging.getLogger(__name__)


class ScheduleMode(str, Enum):
    SCHEDULE = "schedule"
    SINGLE = "single"


class ScheduleStatus(str, Enum):
    NOT_SCHEDULED = "not_scheduled"
    MATCHES = "matches"
    DESYNCED = "desynced"


Recurrence = Union[str, int, datetime, timedelta]

# Keys accepted by ``JobConfig.from_mapping`` in addition to the field names.
_ALIASES = {
    "cb": "callback",
    "schedule": "mode",
    "plugin_root_file": "owner",
}


def _timestamp(value: datetime) -> int:
    return int(value.timestamp())


@dataclass(frozen=True)
class JobConfig:
    """Desired state of a job.

    ``recurrence`` is a recurrence key such as ``"daily"`` in schedule mode.
    In single mode it is the firing time instead: a unix timestamp, a
    ``datetime`` or a ``timedelta`` counted from ``time``.
    """

    name: str = "cronplus"
    mode: ScheduleMode = ScheduleMode.SCHEDULE
    recurrence: Recurrence = "hourly"
    time: int = field(default_factory=lambda: int(_time.time()))
    callback: Optional[Callable[..., Any]] = None
    args: Tuple[Any, ...] = ()
    multisite: bool = False
    owner: Optional[Hashable] = None
    run_on_creation: bool = False

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("job name must not be empty")
        object.__setattr__(self, "mode", ScheduleMode(self.mode))
        if isinstance(self.args, (str, bytes)):
            raise ValueError("args must be a sequence of arguments, not a string")
        object.__setattr__(self, "args", tuple(self.args))
        if isinstance(self.time, datetime):
            object.__setattr__(self, "time", _timestamp(self.time))
        if self.mode is ScheduleMode.SCHEDULE:
            if not isinstance(self.recurrence, str) or not self.recurrence:
                raise ValueError("schedule mode requires a recurrence key")
        elif isinstance(self.recurrence, bool) or not isinstance(
            self.recurrence, (int, datetime, timedelta)
        ):
            raise ValueError(
                "single mode requires a timestamp, datetime or timedelta recurrence"
            )
        if self.run_on_creation and self.callback is None:
            raise ValueError("run_on_creation requires a callback")

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "JobConfig":
        """Build a config from plain options, accepting legacy key names."""

        kwargs: Dict[str, Any] = {}
        known = set(cls.__dataclass_fields__)
        for key, value in options.items():
            target = _ALIASES.get(key, key)
            if target not in known:
                raise ValueError(f"Unknown job option: {key}")
            kwargs[target] = value
        return cls(**kwargs)

    def fire_timestamp(self) -> int:
        """Return the unix timestamp of the first firing."""

        if self.mode is ScheduleMode.SCHEDULE:
            return self.time
        if isinstance(self.recurrence, timedelta):
            return self.time + int(self.recurrence.total_seconds())
        if isinstance(self.recurrence, datetime):
            return _timestamp(self.recurrence)
        return int(self.recurrence)


class Reconciler:
    """Compare the cron table with a job's desired configuration."""

    def __init__(self, engine: CronTable) -> None:
        self.engine = engine

    def resolve_intervals(self, name: str) -> Set[Optional[int]]:
        """Return the distinct intervals of every entry scheduled for ``name``.

        One-off entries have no interval and contribute ``None``.
        """

        entries = self.engine.list_all_entries().get(name, [])
        return {interval for _, interval in entries}

    def classify(self, config: JobConfig) -> ScheduleStatus:
        intervals = self.resolve_intervals(config.name)
        if not intervals:
            return ScheduleStatus.NOT_SCHEDULED

        # One-off jobs do not care about intervals
        if config.mode is ScheduleMode.SINGLE:
            return ScheduleStatus.MATCHES

        desired = self.engine.interval_for(str(config.recurrence))
        if desired is None:
            return ScheduleStatus.DESYNCED

        if intervals == {desired}:
            return ScheduleStatus.MATCHES
        return ScheduleStatus.DESYNCED


class JobScheduler:
    """Schedule, unschedule and clean up a single named job.

    Parameters
    ----------
    config:
        Desired job configuration. Keyword ``options`` may be given instead
        and are passed to :meth:`JobConfig.from_mapping`.
    host:
        Host services to use. Defaults to :func:`~cronplus.host.get_default_host`.
    """

    def __init__(
        self,
        config: JobConfig | None = None,
        *,
        host: Host | None = None,
        **options: Any,
    ) -> None:
        if config is None:
            config = JobConfig.from_mapping(options)
        elif options:
            raise TypeError("pass either a JobConfig or keyword options, not both")
        self.config = config
        self.host = host or get_default_host()
        self.reconciler = Reconciler(self.host.engine)

        if config.callback is not None:
            self.host.actions.add_action(config.name, config.callback)
        if config.owner is not None:
            self.host.actions.register_deactivation_hook(config.owner, self.deactivate)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def sites_option(self) -> str:
        """Option key listing the sites this job was scheduled on."""

        return f"{self.config.name}_sites"

    def _tracks_sites(self) -> bool:
        tenants = self.host.tenants
        return tenants.is_multisite() and not tenants.is_large_network()

    # ------------------------------------------------------------------
    # Scheduling
    def status(self) -> ScheduleStatus:
        return self.reconciler.classify(self.config)

    def schedule(self) -> bool:
        """Make the cron table match this job's configuration.

        Raises :class:`~cronplus.errors.UnknownRecurrenceKey` before touching
        anything when the recurrence key is not known, and
        :class:`~cronplus.errors.RegistrationFailure` when the engine refuses
        the job.
        """

        cfg = self.config
        engine = self.host.engine
        if cfg.mode is ScheduleMode.SCHEDULE and engine.interval_for(str(cfg.recurrence)) is None:
            raise UnknownRecurrenceKey(str(cfg.recurrence), list(engine.known_recurrences()))

        status = self.reconciler.classify(cfg)
        metrics.record_reconcile(cfg.name, status.value)
        if status is ScheduleStatus.MATCHES:
            logger.debug("'%s' already scheduled", cfg.name)
            return True
        if status is ScheduleStatus.DESYNCED:
            removed = self.unschedule_all()
            logger.info("'%s' was out of sync; removed %d stale entries", cfg.name, removed)

        # Fires on every (re)registration, not only the first one.
        if cfg.run_on_creation and cfg.callback is not None:
            cfg.callback(*cfg.args)

        self._register()

        if cfg.multisite and self._tracks_sites():
            self.host.options.add_to_set(
                self.sites_option, self.host.tenants.current_site()
            )
        return True

    def _register(self) -> None:
        cfg = self.config
        engine = self.host.engine
        try:
            if cfg.mode is ScheduleMode.SCHEDULE:
                ok = engine.schedule_recurring(
                    cfg.fire_timestamp(), str(cfg.recurrence), cfg.name, cfg.args
                )
            else:
                ok = engine.schedule_once(cfg.fire_timestamp(), cfg.name, cfg.args)
        except (OSError, yaml.YAMLError) as exc:
            raise RegistrationFailure(cfg.name, str(exc)) from exc
        if not ok:
            raise RegistrationFailure(cfg.name, "rejected by the cron engine")
        logger.info("Scheduled '%s' (%s)", cfg.name, cfg.mode.value)

    # ------------------------------------------------------------------
    # Unscheduling
    def unschedule_all(self) -> int:
        """Remove every occurrence of the job on the active site."""

        removed = self.host.engine.unschedule_all_for(self.config.name)
        metrics.record_unscheduled(self.config.name, removed)
        return removed

    def next_scheduled(self) -> int | None:
        return self.host.engine.next_firing_time(self.config.name, self.config.args)

    def unschedule_at(self, timestamp: int | None = None, *, strict: bool = False) -> bool:
        """Remove the occurrence firing at ``timestamp``.

        Without ``timestamp`` the next pending occurrence is removed. When
        there is none, nothing is removed and ``False`` is returned, or
        :class:`~cronplus.errors.NoPendingFiring` is raised if ``strict``.
        """

        if timestamp is None:
            timestamp = self.next_scheduled()
            if timestamp is None:
                if strict:
                    raise NoPendingFiring(self.config.name)
                logger.info("No pending firing for '%s'; nothing to unschedule", self.config.name)
                return False
        removed = self.host.engine.unschedule_one(timestamp, self.config.name, self.config.args)
        metrics.record_unscheduled(self.config.name, int(removed))
        return removed

    def deactivate(self) -> None:
        """Remove the job from the active site and every site it was scheduled on."""

        self.unschedule_all()
        if not self._tracks_sites():
            return

        tenants = self.host.tenants
        options = self.host.options
        current = tenants.current_site()
        sites = options.get(self.sites_option) or []
        known = set(tenants.sites())
        for site in sites:
            if site == current:
                continue
            if site not in known:
                logger.warning("'%s' lists unknown site %s; skipping", self.sites_option, site)
                continue
            with tenants.switched_to(site):
                self.unschedule_all()

        options.delete(self.sites_option)
