"""Tests for tuning configuration."""

import json

from outbreak.config import DEFAULT_TUNING, EngineTuning, load_tuning, save_tuning


class TestDefaults:

    def test_reference_values(self):
        tuning = EngineTuning()
        assert tuning.base_xp == 140
        assert tuning.xp_growth_rate == 1.18
        assert tuning.event_log_limit == 60
        assert tuning.snapshot_event_count == 35
        assert tuning.tick_interval_ms == 1000
        assert tuning.passive_xp_interval_ms == 30000
        assert tuning.world_event_cooldown_ms == 45000


class TestLoadTuning:
    """JSON overrides merged over defaults."""

    def test_no_path(self):
        assert load_tuning() == DEFAULT_TUNING

    def test_missing_file(self, tmp_path):
        assert load_tuning(tmp_path / "missing.json") == DEFAULT_TUNING

    def test_partial_override(self, tmp_path):
        path = tmp_path / "tuning.json"
        path.write_text(json.dumps({"base_xp": 200, "world_event_chance": 0.1}))

        tuning = load_tuning(path)

        assert tuning.base_xp == 200
        assert tuning.world_event_chance == 0.1
        assert tuning.xp_growth_rate == DEFAULT_TUNING.xp_growth_rate

    def test_corrupt_file(self, tmp_path, caplog):
        path = tmp_path / "tuning.json"
        path.write_text("{oops")

        assert load_tuning(path) == DEFAULT_TUNING
        assert "Ignoring unreadable tuning file" in caplog.text

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "tuning.json"
        path.write_text("[1, 2, 3]")
        assert load_tuning(path) == DEFAULT_TUNING

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "tuning.json"
        path.write_text(json.dumps({"base_xp": "lots"}))
        assert load_tuning(path) == DEFAULT_TUNING


class TestSaveTuning:

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "conf" / "tuning.json"
        tuning = EngineTuning(base_xp=99)

        assert save_tuning(tuning, path) is True
        assert load_tuning(path).base_xp == 99
