"""Configuration helpers for cronplus."""

from __future__ import annotations

import os
from typing import Any, Dict

import yaml


_FALSE_VALUES = ("0", "false", "no", "off", "")


def _env_flag(value: str) -> bool:
    return value.strip().lower() not in _FALSE_VALUES


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load configuration from ``path`` or the ``CRONPLUS_CONFIG`` env var.

    Supported keys are ``cron_path`` and ``options_path`` (storage files),
    ``multisite``, ``sites`` and ``site_id`` (tenant layout),
    ``large_network_threshold``, ``runner_interval`` and ``recurrences``, a
    mapping of extra recurrence keys to either an interval in seconds or a
    mapping with ``interval`` and ``display``.

    Every key except ``recurrences`` can be overridden through an environment
    variable (``CRONPLUS_CRON_PATH``, ``CRONPLUS_OPTIONS_PATH``,
    ``CRONPLUS_MULTISITE``, ``CRONPLUS_SITES``, ``CRONPLUS_SITE_ID``,
    ``CRONPLUS_LARGE_NETWORK`` and ``CRONPLUS_RUNNER_INTERVAL``).
    """

    cfg: Dict[str, Any] = {}
    path = path or os.getenv("CRONPLUS_CONFIG")
    if path and os.path.exists(path):
        with open(path, "r") as fh:
            cfg = yaml.safe_load(fh) or {}
    if not isinstance(cfg, dict):
        raise ValueError(f"{path}: configuration must be a mapping")

    if "CRONPLUS_CRON_PATH" in os.environ:
        cfg["cron_path"] = os.environ["CRONPLUS_CRON_PATH"]
    if "CRONPLUS_OPTIONS_PATH" in os.environ:
        cfg["options_path"] = os.environ["CRONPLUS_OPTIONS_PATH"]

    multisite_env = os.getenv("CRONPLUS_MULTISITE")
    if multisite_env is not None:
        cfg["multisite"] = _env_flag(multisite_env)
    else:
        cfg["multisite"] = bool(cfg.get("multisite", False))

    sites_env = os.getenv("CRONPLUS_SITES")
    if sites_env is not None:
        cfg["sites"] = [int(s) for s in sites_env.split(",") if s.strip()]
    else:
        cfg["sites"] = [int(s) for s in cfg.get("sites") or [1]]

    site_env = os.getenv("CRONPLUS_SITE_ID")
    if site_env is not None:
        cfg["site_id"] = int(site_env)
    else:
        cfg["site_id"] = int(cfg.get("site_id", cfg["sites"][0] if cfg["sites"] else 1))
    if cfg["site_id"] not in cfg["sites"]:
        cfg["sites"].append(cfg["site_id"])

    threshold = os.getenv("CRONPLUS_LARGE_NETWORK", cfg.get("large_network_threshold", 10000))
    cfg["large_network_threshold"] = int(threshold)

    interval = os.getenv("CRONPLUS_RUNNER_INTERVAL", cfg.get("runner_interval", 60))
    cfg["runner_interval"] = float(interval)

    recurrences = cfg.get("recurrences") or {}
    if not isinstance(recurrences, dict):
        raise ValueError("'recurrences' must be a mapping")
    cfg["recurrences"] = recurrences

    return cfg
