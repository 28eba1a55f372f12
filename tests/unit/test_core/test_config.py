"""Tests for configuration loading, validation and environment overrides."""
import json
import os

import pytest

from pattern_hunter.config.settings import Config, load_config, save_config
from pattern_hunter.core.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch, temp_dir):
    """Isolate tests from PATTERN_HUNTER_* variables and any .env in the cwd."""
    for key in list(os.environ):
        if key.startswith("PATTERN_HUNTER_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(temp_dir)


def write_config(temp_dir, data):
    path = temp_dir / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestLoadConfig:

    def test_defaults_when_file_missing(self, temp_dir):
        config = load_config(str(temp_dir / "missing.json"))

        assert config.worker_count == 0
        assert config.queue_high_water_factor == 3
        assert config.delay_between_batches_ms == 100
        assert config.search_options().module_scale == 1
        assert config.display_options().quiet_zone_margin == 4
        assert config.clear_history_on_start is False

    def test_json_values_override_defaults(self, temp_dir):
        path = write_config(temp_dir, {"worker_count": 3, "search_error_correction": "m", "custom": 1})

        config = load_config(path)

        assert config.worker_count == 3
        assert config.search_error_correction == "M"
        assert config.extra == {"custom": 1}

    def test_malformed_json_falls_back_to_defaults(self, temp_dir):
        path = temp_dir / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config(str(path)).worker_count == 0

    @pytest.mark.parametrize("data", [
        {"worker_count": -1},
        {"queue_high_water_factor": 0},
        {"search_error_correction": "X"},
        {"start_method": "thread"},
        {"random_string_charset": ""},
        {"worker_count": "four"},
        {"self_test_margin": 1, "self_test_offset": 3},
        {"clear_history_on_start": "false"},
        {"run_self_test": "no"},
        {"structured_logging": 1},
    ])
    def test_invalid_values_raise(self, temp_dir, data):
        with pytest.raises(ConfigError):
            load_config(write_config(temp_dir, data))

    def test_self_test_offset_may_equal_margin(self, temp_dir):
        config = load_config(write_config(temp_dir, {"self_test_margin": 3, "self_test_offset": 3}))

        assert (config.self_test_margin, config.self_test_offset) == (3, 3)

    def test_boolean_values_are_kept(self, temp_dir):
        config = load_config(write_config(temp_dir, {"clear_history_on_start": False, "run_self_test": True}))

        assert config.clear_history_on_start is False
        assert config.run_self_test is True

    def test_environment_overrides_file(self, temp_dir, monkeypatch):
        path = write_config(temp_dir, {"worker_count": 3})
        monkeypatch.setenv("PATTERN_HUNTER_WORKERS", "5")
        monkeypatch.setenv("PATTERN_HUNTER_PATTERN", "target.png")

        config = load_config(path)

        assert config.worker_count == 5
        assert config.pattern_file == "target.png"

    def test_env_file_values_are_used(self, temp_dir):
        env_file = temp_dir / "custom.env"
        env_file.write_text("# comment\nPATTERN_HUNTER_DEBUG=true\n", encoding="utf-8")

        config = load_config(str(temp_dir / "missing.json"), env_file=str(env_file))

        assert config.debug is True
        assert config.log_level == "DEBUG"

    def test_invalid_environment_value_raises_config_error(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PATTERN_HUNTER_WORKERS", "many")
        with pytest.raises(ConfigError):
            load_config(str(temp_dir / "missing.json"))

    def test_pattern_name_with_directory_is_rejected(self, temp_dir, monkeypatch):
        monkeypatch.setenv("PATTERN_HUNTER_PATTERN", "../secret.png")
        with pytest.raises(ConfigError):
            load_config(str(temp_dir / "missing.json"))


class TestConfig:

    def test_resolved_worker_count_uses_explicit_value(self):
        assert Config(worker_count=4).resolved_worker_count() == 4

    def test_resolved_worker_count_auto(self, monkeypatch):
        monkeypatch.setattr(os, "cpu_count", lambda: 8)
        assert Config(worker_count=0).resolved_worker_count() == 7

    def test_resolved_worker_count_never_below_one(self, monkeypatch):
        monkeypatch.setattr(os, "cpu_count", lambda: None)
        assert Config(worker_count=0).resolved_worker_count() == 1

    def test_save_and_reload(self, temp_dir):
        path = str(temp_dir / "saved.json")
        save_config(Config(worker_count=6, extra={"note": "kept"}), path)

        reloaded = load_config(path)

        assert reloaded.worker_count == 6
        assert reloaded.extra == {"note": "kept"}
        assert not os.path.exists(f"{path}.backup")
