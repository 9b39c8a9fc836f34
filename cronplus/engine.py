"""Persistent pseudo-cron table.

The table mirrors the layout used by request-driven cron systems: for every
site it maps a firing timestamp to the jobs due at that time, each job keyed
by a hash of its arguments::

    {site_id: {timestamp: {name: {args_key: {"schedule": "daily" | None,
                                             "args": [...],
                                             "interval": 86400 | None}}}}}

Nothing here runs in the background.  :meth:`CronTable.run_due` fires the
jobs whose time has come and is meant to be called opportunistically, either
from request handling or from :class:`~cronplus.runner.CronRunner`.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
import os
import threading
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, TYPE_CHECKING

from filelock import FileLock
import yaml

from . import metrics
from .config import load_config

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from .hooks import HookRegistry
    from .tenants import TenantDirectory

logger = logging.getLogger(__name__)

HOUR_IN_SECONDS = 3600
DAY_IN_SECONDS = 24 * HOUR_IN_SECONDS

DEFAULT_RECURRENCES: Dict[str, Dict[str, Any]] = {
    "hourly": {"interval": HOUR_IN_SECONDS, "display": "Once Hourly"},
    "twicedaily": {"interval": 12 * HOUR_IN_SECONDS, "display": "Twice Daily"},
    "daily": {"interval": DAY_IN_SECONDS, "display": "Once Daily"},
    "weekly": {"interval": 7 * DAY_IN_SECONDS, "display": "Once Weekly"},
    "monthly": {"interval": 30 * DAY_IN_SECONDS, "display": "Once Monthly"},
}

# One-off events identical to an existing one within this window are refused.
SINGLE_EVENT_WINDOW = 10 * 60

CronArray = Dict[int, Dict[str, Dict[str, Dict[str, Any]]]]


def args_key(args: Sequence[Any]) -> str:
    """Return the stable key identifying an argument list."""

    payload = json.dumps(list(args), sort_keys=True, default=str)
    return hashlib.md5(payload.encode("utf-8")).hexdigest()


def _normalize_recurrences(extra: Dict[str, Any] | None) -> Dict[str, Dict[str, Any]]:
    recurrences = {key: dict(value) for key, value in DEFAULT_RECURRENCES.items()}
    for key, value in (extra or {}).items():
        if isinstance(value, dict):
            if "interval" not in value:
                raise ValueError(f"recurrence '{key}' is missing 'interval'")
            interval = int(value["interval"])
            display = str(value.get("display", key))
        else:
            interval = int(value)
            display = key
        if interval <= 0:
            raise ValueError(f"recurrence '{key}' must have a positive interval")
        recurrences[key] = {"interval": interval, "display": display}
    return recurrences


class CronTable:
    """Persisted per-site table of scheduled jobs.

    Parameters
    ----------
    path:
        YAML file holding the table. Falls back to ``CRONPLUS_CRON_PATH``, the
        ``cron_path`` configuration key and finally ``~/.cronplus/cron.yml``.
    tenants:
        Directory used to resolve the active site. Without one every call
        operates on site ``1``.
    actions:
        Registry used by :meth:`run_due` to dispatch due jobs.
    recurrences:
        Extra recurrence keys on top of :data:`DEFAULT_RECURRENCES`.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        *,
        tenants: Optional["TenantDirectory"] = None,
        actions: Optional["HookRegistry"] = None,
        recurrences: Dict[str, Any] | None = None,
    ) -> None:
        if path is None:
            path = os.getenv("CRONPLUS_CRON_PATH")
        if path is None:
            cfg = load_config()
            path = cfg.get("cron_path")
        if path is None:
            path = Path.home() / ".cronplus" / "cron.yml"
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file_lock = FileLock(str(self.path) + ".lock")
        self._lock = threading.RLock()
        self.tenants = tenants
        self.actions = actions
        self._recurrences = _normalize_recurrences(recurrences)

    # ------------------------------------------------------------------
    # Storage
    def _site(self) -> int:
        return self.tenants.current_site() if self.tenants is not None else 1

    def _load_all(self) -> Dict[int, CronArray]:
        if self.path.exists():
            with open(self.path, "r") as fh:
                data = yaml.safe_load(fh) or {}
                if isinstance(data, dict):
                    return data
        return {}

    def _save_all(self, data: Dict[int, CronArray]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w") as fh:
            yaml.safe_dump(data, fh)
        os.replace(tmp, self.path)

    def _load(self) -> CronArray:
        with self._lock, self._file_lock:
            return self._load_all().get(self._site(), {})

    def _update(self, mutate) -> Any:
        """Apply ``mutate`` to the active site's array and persist it."""

        with self._lock, self._file_lock:
            data = self._load_all()
            site = self._site()
            crons = data.get(site, {})
            result = mutate(crons)
            crons = {ts: jobs for ts, jobs in crons.items() if jobs}
            if crons:
                data[site] = crons
            else:
                data.pop(site, None)
            self._save_all(data)
            return result

    @staticmethod
    def _insert(crons: CronArray, at: int, name: str, entry: Dict[str, Any]) -> None:
        key = args_key(entry["args"])
        crons.setdefault(at, {}).setdefault(name, {})[key] = entry

    # ------------------------------------------------------------------
    # Recurrences
    def known_recurrences(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(value) for key, value in self._recurrences.items()}

    def interval_for(self, recurrence: str) -> int | None:
        info = self._recurrences.get(recurrence)
        return info["interval"] if info else None

    # ------------------------------------------------------------------
    # Scheduling
    def schedule_recurring(
        self, at: int, recurrence: str, name: str, args: Sequence[Any] = ()
    ) -> bool:
        """Schedule ``name`` to fire at ``at`` and then every ``recurrence``."""

        interval = self.interval_for(recurrence)
        if interval is None or at <= 0:
            return False
        entry = {"schedule": recurrence, "args": list(args), "interval": interval}
        self._update(lambda crons: self._insert(crons, int(at), name, entry))
        return True

    def schedule_once(self, at: int, name: str, args: Sequence[Any] = ()) -> bool:
        """Schedule ``name`` to fire once at ``at``."""

        if at <= 0:
            return False
        key = args_key(args)
        entry = {"schedule": None, "args": list(args), "interval": None}

        def mutate(crons: CronArray) -> bool:
            for ts, jobs in crons.items():
                if key in jobs.get(name, {}) and abs(ts - at) <= SINGLE_EVENT_WINDOW:
                    return False
            self._insert(crons, int(at), name, entry)
            return True

        return self._update(mutate)

    def unschedule_all_for(self, name: str) -> int:
        """Remove every occurrence of ``name`` and return how many were removed."""

        def mutate(crons: CronArray) -> int:
            removed = 0
            for jobs in crons.values():
                removed += len(jobs.pop(name, {}))
            return removed

        return self._update(mutate)

    def unschedule_one(self, at: int, name: str, args: Sequence[Any] = ()) -> bool:
        key = args_key(args)

        def mutate(crons: CronArray) -> bool:
            events = crons.get(at, {}).get(name, {})
            if key not in events:
                return False
            del events[key]
            if not events:
                del crons[at][name]
            return True

        return self._update(mutate)

    # ------------------------------------------------------------------
    # Queries
    def next_firing_time(self, name: str, args: Sequence[Any] = ()) -> int | None:
        key = args_key(args)
        crons = self._load()
        for ts in sorted(crons):
            if key in crons[ts].get(name, {}):
                return ts
        return None

    def list_all_entries(self) -> Dict[str, List[Tuple[int, int | None]]]:
        """Return ``{name: [(timestamp, interval), ...]}`` for the active site."""

        result: Dict[str, List[Tuple[int, int | None]]] = {}
        for ts, jobs in sorted(self._load().items()):
            for name, events in jobs.items():
                for entry in events.values():
                    result.setdefault(name, []).append((ts, entry.get("interval")))
        return result

    def entries(self) -> Iterable[Dict[str, Any]]:
        """Yield one mapping per scheduled event, in firing order."""

        for ts, jobs in sorted(self._load().items()):
            for name, events in sorted(jobs.items()):
                for entry in events.values():
                    yield {
                        "name": name,
                        "timestamp": ts,
                        "schedule": entry.get("schedule"),
                        "interval": entry.get("interval"),
                        "args": list(entry.get("args", [])),
                    }

    # ------------------------------------------------------------------
    # Runner
    def run_due(self, now: int | None = None) -> int:
        """Fire every job due at ``now`` and return how many were dispatched.

        Recurring jobs are moved to their next slot before their callbacks
        run. A failing callback is logged and does not stop the others.
        """

        now = int(time.time()) if now is None else int(now)

        def mutate(crons: CronArray) -> List[Tuple[str, List[Any]]]:
            due: List[Tuple[str, List[Any]]] = []
            for ts in sorted(t for t in crons if t <= now):
                jobs = crons.pop(ts)
                for name, events in jobs.items():
                    for entry in events.values():
                        interval = entry.get("interval")
                        if interval:
                            if ts >= now:
                                next_ts = now + interval
                            else:
                                next_ts = now + (interval - ((now - ts) % interval))
                            self._insert(crons, next_ts, name, dict(entry))
                        due.append((name, list(entry.get("args", []))))
            return due

        due = self._update(mutate)
        for name, args in due:
            self._dispatch(name, args)
        return len(due)

    def _dispatch(self, name: str, args: List[Any]) -> None:
        if self.actions is None:
            logger.warning("No action registry configured; skipping '%s'", name)
            return

        try:
            with metrics.observe_run(name, self._site()):
                self.actions.do_action(name, *args)
        except Exception:
            logger.exception("Error running scheduled job '%s'", name)
