import logging

import pytest
import yaml

from cronplus.engine import CronTable, DEFAULT_RECURRENCES, args_key
from cronplus.hooks import HookRegistry
from cronplus.tenants import TenantDirectory


NOW = 1_700_000_000


def test_known_recurrences_include_defaults(tmp_path):
    table = CronTable(tmp_path / "cron.yml", recurrences={"quarterly": {"interval": 7776000}})
    known = table.known_recurrences()

    for key in DEFAULT_RECURRENCES:
        assert key in known
    assert table.interval_for("daily") == 86400
    assert table.interval_for("monthly") == 2592000
    assert known["quarterly"] == {"interval": 7776000, "display": "quarterly"}
    assert table.interval_for("never") is None


def test_invalid_recurrence_config_rejected(tmp_path):
    with pytest.raises(ValueError):
        CronTable(tmp_path / "cron.yml", recurrences={"bad": 0})
    with pytest.raises(ValueError):
        CronTable(tmp_path / "cron.yml", recurrences={"bad": {"display": "Bad"}})


def test_schedule_recurring_rejects_unknown_key(tmp_path):
    table = CronTable(tmp_path / "cron.yml")
    assert table.schedule_recurring(NOW, "fortnightly", "job") is False
    assert table.schedule_recurring(0, "hourly", "job") is False
    assert table.list_all_entries() == {}


def test_table_is_persisted(tmp_path):
    path = tmp_path / "cron.yml"
    CronTable(path).schedule_recurring(NOW, "daily", "job", ["a", 1])

    data = yaml.safe_load(path.read_text())
    entry = data[1][NOW]["job"][args_key(["a", 1])]
    assert entry == {"schedule": "daily", "args": ["a", 1], "interval": 86400}
    assert CronTable(path).list_all_entries() == {"job": [(NOW, 86400)]}


def test_schedule_once_refuses_duplicates_in_window(tmp_path):
    table = CronTable(tmp_path / "cron.yml")
    assert table.schedule_once(NOW, "job", ["a"]) is True
    assert table.schedule_once(NOW + 300, "job", ["a"]) is False
    assert table.schedule_once(NOW + 300, "job", ["b"]) is True
    assert table.schedule_once(NOW + 3600, "job", ["a"]) is True
    assert table.schedule_once(-5, "job") is False


def test_next_firing_time_and_unschedule_one(tmp_path):
    table = CronTable(tmp_path / "cron.yml")
    table.schedule_recurring(NOW + 100, "hourly", "job")
    table.schedule_recurring(NOW, "hourly", "job", ["other"])

    assert table.next_firing_time("job") == NOW + 100
    assert table.next_firing_time("job", ["other"]) == NOW
    assert table.next_firing_time("missing") is None

    assert table.unschedule_one(NOW + 100, "job") is True
    assert table.unschedule_one(NOW + 100, "job") is False
    assert table.list_all_entries() == {"job": [(NOW, 3600)]}


def test_unschedule_all_for_counts_removed(tmp_path):
    table = CronTable(tmp_path / "cron.yml")
    table.schedule_recurring(NOW, "hourly", "job")
    table.schedule_once(NOW + 50, "job", ["x"])

    assert table.unschedule_all_for("job") == 2
    assert table.unschedule_all_for("job") == 0
    assert yaml.safe_load((tmp_path / "cron.yml").read_text()) == {}


def test_entries_are_listed_in_firing_order(tmp_path):
    table = CronTable(tmp_path / "cron.yml")
    table.schedule_once(NOW + 10, "b")
    table.schedule_recurring(NOW, "daily", "a", ["x"])

    assert list(table.entries()) == [
        {"name": "a", "timestamp": NOW, "schedule": "daily", "interval": 86400, "args": ["x"]},
        {"name": "b", "timestamp": NOW + 10, "schedule": None, "interval": None, "args": []},
    ]


def test_sites_have_separate_tables(tmp_path):
    tenants = TenantDirectory([1, 2], multisite=True)
    table = CronTable(tmp_path / "cron.yml", tenants=tenants)
    table.schedule_recurring(NOW, "hourly", "job")

    with tenants.switched_to(2):
        assert table.list_all_entries() == {}
        table.schedule_recurring(NOW, "daily", "job")
        assert table.list_all_entries() == {"job": [(NOW, 86400)]}

    assert table.list_all_entries() == {"job": [(NOW, 3600)]}


def test_run_due_fires_and_reschedules(tmp_path):
    actions = HookRegistry()
    fired = []
    actions.add_action("tick", lambda *args: fired.append(("tick", args)))
    actions.add_action("once", lambda *args: fired.append(("once", args)))
    table = CronTable(tmp_path / "cron.yml", actions=actions)
    table.schedule_recurring(NOW - 100, "hourly", "tick", ["a"])
    table.schedule_once(NOW, "once")
    table.schedule_once(NOW + 10, "later")

    assert table.run_due(NOW) == 2
    assert fired == [("tick", ("a",)), ("once", ())]
    assert table.list_all_entries() == {
        "later": [(NOW + 10, None)],
        "tick": [(NOW + 3500, 3600)],
    }


def test_run_due_on_time_moves_by_full_interval(tmp_path):
    table = CronTable(tmp_path / "cron.yml", actions=HookRegistry())
    table.schedule_recurring(NOW, "daily", "job")

    assert table.run_due(NOW) == 1
    assert table.list_all_entries() == {"job": [(NOW + 86400, 86400)]}


def test_failing_job_does_not_block_others(tmp_path, caplog):
    actions = HookRegistry()
    ran = []

    def boom():
        raise RuntimeError("fail")

    actions.add_action("bad", boom)
    actions.add_action("good", lambda: ran.append("good"))
    table = CronTable(tmp_path / "cron.yml", actions=actions)
    table.schedule_once(NOW - 2, "bad")
    table.schedule_once(NOW - 1, "good")

    with caplog.at_level(logging.ERROR, logger="cronplus.engine"):
        assert table.run_due(NOW) == 2
    assert ran == ["good"]
    assert "bad" in caplog.text


def test_run_due_without_actions_only_consumes(tmp_path, caplog):
    table = CronTable(tmp_path / "cron.yml")
    table.schedule_once(NOW, "job")

    with caplog.at_level(logging.WARNING, logger="cronplus.engine"):
        assert table.run_due(NOW) == 1
    assert table.list_all_entries() == {}
    assert "skipping 'job'" in caplog.text
