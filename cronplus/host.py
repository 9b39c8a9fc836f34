"""Bundle of the host services a job relies on."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from .config import load_config
from .engine import CronTable
from .hooks import HookRegistry
from .options import OptionStore
from .tenants import TenantDirectory


@dataclass
class Host:
    """Cron engine, action registry, site directory and option store."""

    engine: CronTable
    actions: HookRegistry
    tenants: TenantDirectory
    options: OptionStore
    config: Dict[str, Any] = field(default_factory=dict)


def create_host(cfg: Dict[str, Any] | None = None) -> Host:
    """Build a :class:`Host` from ``cfg`` or the loaded configuration."""

    cfg = cfg if cfg is not None else load_config()
    tenants = TenantDirectory(
        cfg.get("sites") or [1],
        current=cfg.get("site_id"),
        multisite=bool(cfg.get("multisite", False)),
        large_network_threshold=int(cfg.get("large_network_threshold", 10000)),
    )
    actions = HookRegistry()
    engine = CronTable(
        cfg.get("cron_path"),
        tenants=tenants,
        actions=actions,
        recurrences=cfg.get("recurrences"),
    )
    options = OptionStore(cfg.get("options_path"))
    return Host(engine=engine, actions=actions, tenants=tenants, options=options, config=cfg)


# ---------------------------------------------------------------------------
# Default host accessor

_default_host: Host | None = None


def set_default_host(host: Host | None) -> None:
    """Set the global default host."""

    global _default_host
    _default_host = host


def get_default_host() -> Host:
    """Return the configured default host."""

    if _default_host is None:
        raise RuntimeError("Default host has not been initialised")
    return _default_host
