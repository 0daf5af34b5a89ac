"""Tests for the JSON config and stats stores."""

import json

from core.models import AppSettings, Preset, StatsEntry, TimerButtonDefinition
from core.stats import format_minutes, sum_by_phase
from core.storage import (
    CONFIG_FILE, STATS_FILE, TIMER_BUTTONS_FILE, ConfigStore, StatsStore,
)


def test_missing_files_give_defaults(tmp_path):
    store = ConfigStore(tmp_path)
    assert store.load_presets() == []
    assert len(store.load_timer_buttons()) == 6
    assert store.load_settings() == AppSettings()
    assert StatsStore(tmp_path).load() == {}


def test_broken_json_gives_defaults(tmp_path):
    (tmp_path / CONFIG_FILE).write_text("{not json", encoding="utf-8")
    (tmp_path / STATS_FILE).write_text("[1, 2", encoding="utf-8")
    assert ConfigStore(tmp_path).load_presets() == []
    assert StatsStore(tmp_path).load() == {}


def test_presets_are_repaired_on_load(tmp_path):
    (tmp_path / CONFIG_FILE).write_text(json.dumps([
        {"name": "", "workMinutes": 0, "restMinutes": -1},
        {"name": "Long", "workMinutes": 50, "restMinutes": 10},
        "garbage",
    ]), encoding="utf-8")

    presets = ConfigStore(tmp_path).load_presets()
    assert presets == [Preset("Preset", 25, 5), Preset("Long", 50, 10)]


def test_presets_with_huge_numbers_load(tmp_path):
    (tmp_path / CONFIG_FILE).write_text(
        '[{"name": "X", "workMinutes": Infinity, "restMinutes": 1e400},'
        ' {"name": "Y", "workMinutes": NaN, "restMinutes": 5}]',
        encoding="utf-8",
    )

    presets = ConfigStore(tmp_path).load_presets()
    assert presets == [Preset("X", 25, 5), Preset("Y", 25, 5)]


def test_presets_roundtrip(tmp_path):
    store = ConfigStore(tmp_path)
    assert store.save_presets([Preset("Deep", 90, 20)])

    raw = json.loads((tmp_path / CONFIG_FILE).read_text(encoding="utf-8"))
    assert raw == [{"name": "Deep", "workMinutes": 90, "restMinutes": 20}]
    assert store.load_presets() == [Preset("Deep", 90, 20)]


def test_timer_buttons_without_rest_get_one(tmp_path):
    (tmp_path / TIMER_BUTTONS_FILE).write_text(json.dumps([
        {"id": "w", "name": "Write", "isRest": False},
    ]), encoding="utf-8")

    buttons = ConfigStore(tmp_path).load_timer_buttons()
    assert buttons[0].id == "w"
    assert buttons[0].background_color_hex == "#4CAF50"
    assert any(b.is_rest for b in buttons)


def test_timer_buttons_roundtrip(tmp_path):
    store = ConfigStore(tmp_path)
    buttons = [
        TimerButtonDefinition("a", "Code", "#111111", "#EEEEEE", False),
        TimerButtonDefinition("b", "Walk", "#222222", "#FFFFFF", True),
    ]
    store.save_timer_buttons(buttons)
    assert store.load_timer_buttons() == buttons


def test_stats_legacy_entries_are_normalized(tmp_path):
    (tmp_path / STATS_FILE).write_text(json.dumps({
        "2026-10-12": [
            {"timeMinutes": 540, "durationMinutes": 25, "type": "work"},
            {"timeMinutes": 565, "durationMinutes": 5, "type": "rest"},
        ],
        "2026-10-13": None,
    }), encoding="utf-8")

    stats = StatsStore(tmp_path).load()
    assert list(stats) == ["2026-10-12"]
    work, rest = stats["2026-10-12"]
    assert work.is_rest is False
    assert rest.is_rest is True
    assert rest.color_hex == "#9B59B6"


def test_stats_entries_without_usable_duration_are_dropped(tmp_path):
    (tmp_path / STATS_FILE).write_text(
        '{"2026-10-12": ['
        '{"timeMinutes": 540, "durationMinutes": 1e400, "type": "Work"},'
        '{"timeMinutes": 570, "durationMinutes": 0, "type": "Work"},'
        '{"timeMinutes": Infinity, "durationMinutes": 25, "type": "Work"}'
        ']}',
        encoding="utf-8",
    )

    entries = StatsStore(tmp_path).load()["2026-10-12"]
    assert len(entries) == 1
    assert entries[0].time_minutes == 0.0
    assert entries[0].duration_minutes == 25
    assert format_minutes(sum_by_phase({"2026-10-12": entries}, "2026-10-12", False)) == "00:25"


def test_string_rest_flag_is_not_rest(tmp_path):
    (tmp_path / STATS_FILE).write_text(json.dumps({
        "2026-10-12": [
            {"timeMinutes": 540, "durationMinutes": 25, "type": "Work", "isRest": "false"},
        ],
    }), encoding="utf-8")
    (tmp_path / TIMER_BUTTONS_FILE).write_text(json.dumps([
        {"id": "w", "name": "Write", "isRest": "false"},
        {"id": "r", "name": "Nap", "isRest": True},
    ]), encoding="utf-8")

    entry = StatsStore(tmp_path).load()["2026-10-12"][0]
    assert entry.is_rest is False
    assert entry.color_hex == "#5AC85A"

    buttons = ConfigStore(tmp_path).load_timer_buttons()
    assert [b.is_rest for b in buttons] == [False, True]


def test_stats_save_keeps_unicode_and_indents(tmp_path):
    store = StatsStore(tmp_path)
    store.add_entry("2026-10-14", StatsEntry(600.0, 25.0, "Работа", "#4CAF50", False))
    assert store.save()

    text = (tmp_path / STATS_FILE).read_text(encoding="utf-8")
    assert "Работа" in text
    assert "\n  " in text

    reloaded = StatsStore(tmp_path).load()
    assert reloaded["2026-10-14"][0].type == "Работа"


def test_get_or_create_is_lazy(tmp_path):
    store = StatsStore(tmp_path)
    assert store.entries_for("2026-10-14") == []
    assert "2026-10-14" not in store.stats
    store.get_or_create("2026-10-14")
    assert store.stats["2026-10-14"] == []


def test_save_failure_is_swallowed(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")

    store = StatsStore(blocker)
    store.add_entry("2026-10-14", StatsEntry(600.0, 25.0, "Work", "#4CAF50", False))
    assert store.save() is False
    assert len(store.stats["2026-10-14"]) == 1
    assert ConfigStore(blocker).save_presets([Preset()]) is False
