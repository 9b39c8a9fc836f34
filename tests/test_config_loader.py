import pytest

import cronplus
from cronplus.config import load_config


def test_defaults():
    cfg = load_config()
    assert cfg["multisite"] is False
    assert cfg["sites"] == [1]
    assert cfg["site_id"] == 1
    assert cfg["large_network_threshold"] == 10000
    assert cfg["runner_interval"] == 60.0
    assert cfg["recurrences"] == {}


def test_yaml_config(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text(
        "multisite: true\n"
        "sites: [1, 2, 3]\n"
        "site_id: 2\n"
        "recurrences:\n"
        "  fortnightly: 1209600\n"
        "  every_minute:\n"
        "    interval: 60\n"
        "    display: Every Minute\n"
    )
    monkeypatch.setenv("CRONPLUS_CONFIG", str(cfg_file))

    cfg = load_config()
    assert cfg["multisite"] is True
    assert cfg["sites"] == [1, 2, 3]
    assert cfg["site_id"] == 2

    host = cronplus.create_host(cfg)
    assert host.tenants.current_site() == 2
    assert host.engine.interval_for("fortnightly") == 1209600
    assert host.engine.known_recurrences()["every_minute"]["display"] == "Every Minute"


def test_env_overrides_yaml(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text("multisite: true\nsites: [1, 2]\n")
    monkeypatch.setenv("CRONPLUS_MULTISITE", "no")
    monkeypatch.setenv("CRONPLUS_SITES", "4,5")
    monkeypatch.setenv("CRONPLUS_SITE_ID", "7")
    monkeypatch.setenv("CRONPLUS_LARGE_NETWORK", "2")
    monkeypatch.setenv("CRONPLUS_RUNNER_INTERVAL", "2.5")

    cfg = load_config(str(cfg_file))
    assert cfg["multisite"] is False
    assert cfg["sites"] == [4, 5, 7]
    assert cfg["site_id"] == 7
    assert cfg["large_network_threshold"] == 2
    assert cfg["runner_interval"] == 2.5


def test_storage_paths_from_env(tmp_path):
    cfg = load_config()
    assert cfg["cron_path"] == str(tmp_path / "cron.yml")
    assert cfg["options_path"] == str(tmp_path / "options.yml")


def test_invalid_recurrences(monkeypatch, tmp_path):
    cfg_file = tmp_path / "cfg.yml"
    cfg_file.write_text("recurrences: [hourly]\n")
    with pytest.raises(ValueError):
        load_config(str(cfg_file))


def test_initialize_sets_default_host():
    host = cronplus.initialize()
    assert cronplus.get_default_host() is host
