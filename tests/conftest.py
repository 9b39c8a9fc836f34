import sys
from pathlib import Path

import pytest

# Ensure package root is on sys.path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import cronplus  # noqa: E402
from cronplus import host as host_module  # noqa: E402


_ENV_VARS = (
    "CRONPLUS_CONFIG",
    "CRONPLUS_MULTISITE",
    "CRONPLUS_SITES",
    "CRONPLUS_SITE_ID",
    "CRONPLUS_LARGE_NETWORK",
    "CRONPLUS_RUNNER_INTERVAL",
)


@pytest.fixture(autouse=True)
def tmp_storage(monkeypatch, tmp_path):
    monkeypatch.setenv("CRONPLUS_CRON_PATH", str(tmp_path / "cron.yml"))
    monkeypatch.setenv("CRONPLUS_OPTIONS_PATH", str(tmp_path / "options.yml"))
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_default_host():
    yield
    host_module.set_default_host(None)


@pytest.fixture
def host(tmp_path):
    return cronplus.create_host(
        {
            "cron_path": str(tmp_path / "cron.yml"),
            "options_path": str(tmp_path / "options.yml"),
        }
    )


@pytest.fixture
def network(tmp_path):
    return cronplus.create_host(
        {
            "cron_path": str(tmp_path / "cron.yml"),
            "options_path": str(tmp_path / "options.yml"),
            "multisite": True,
            "sites": [1, 2, 3],
            "site_id": 1,
        }
    )
