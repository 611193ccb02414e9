"""Tests for CoreConfig and load_config()."""

import dataclasses
import signal

import pytest

from toolwrap.config import DEFAULT_CONFIG, CoreConfig, load_config
from toolwrap.exceptions import ConfigurationError


class TestDefaults:
    def test_guard_limits(self):
        assert DEFAULT_CONFIG.short_string_max == 255
        assert DEFAULT_CONFIG.string_max == 65_536
        assert DEFAULT_CONFIG.message_max == 72_000
        assert DEFAULT_CONFIG.path_max == 4_096
        assert DEFAULT_CONFIG.array_max == 1_000

    def test_execution_defaults(self):
        assert DEFAULT_CONFIG.default_timeout == 60
        assert DEFAULT_CONFIG.max_buffer == 10 * 1024 * 1024
        assert DEFAULT_CONFIG.kill_signal == signal.SIGTERM

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CONFIG.path_max = 1  # type: ignore[misc]

    def test_with_overrides(self):
        config = DEFAULT_CONFIG.with_overrides(path_max=100)
        assert config.path_max == 100
        assert DEFAULT_CONFIG.path_max == 4_096


class TestValidation:
    def test_non_positive_limit_rejected(self):
        with pytest.raises(ConfigurationError, match="array_max"):
            CoreConfig(array_max=0)

    def test_string_for_int_field_rejected(self):
        with pytest.raises(ConfigurationError, match="path_max must be int"):
            CoreConfig(path_max="4096")

    def test_bool_for_int_field_rejected(self):
        with pytest.raises(ConfigurationError, match="log_head"):
            CoreConfig(log_head=True)

    def test_non_bool_for_bool_field_rejected(self):
        with pytest.raises(ConfigurationError, match="sanitize_all_paths"):
            CoreConfig(sanitize_all_paths="yes")

    def test_window_larger_than_ceiling_rejected(self):
        with pytest.raises(ConfigurationError, match="log_ceiling"):
            CoreConfig(log_head=8, log_tail=8, log_ceiling=10)


class TestLoadConfig:
    def test_empty_environment(self):
        assert load_config({}) == DEFAULT_CONFIG

    def test_timeout_from_env(self):
        assert load_config({"TOOLWRAP_TIMEOUT": "30"}).default_timeout == 30

    def test_bad_timeout_ignored(self):
        assert load_config({"TOOLWRAP_TIMEOUT": "soon"}).default_timeout == 60

    def test_bad_max_buffer_ignored(self):
        assert load_config({"TOOLWRAP_MAX_BUFFER": "big"}).max_buffer == DEFAULT_CONFIG.max_buffer

    def test_kill_signal_by_name(self):
        assert load_config({"TOOLWRAP_KILL_SIGNAL": "SIGKILL"}).kill_signal == signal.SIGKILL
        assert load_config({"TOOLWRAP_KILL_SIGNAL": "int"}).kill_signal == signal.SIGINT

    def test_sanitize_all_paths_flag(self):
        assert load_config({"TOOLWRAP_SANITIZE_ALL_PATHS": "true"}).sanitize_all_paths is True
        assert load_config({"TOOLWRAP_SANITIZE_ALL_PATHS": "0"}).sanitize_all_paths is False

    def test_reads_os_environ_by_default(self, monkeypatch):
        monkeypatch.setenv("TOOLWRAP_TIMEOUT", "15")
        assert load_config().default_timeout == 15

    def test_yaml_overrides(self, config_file):
        path = config_file("path_max: 1024\nbody_char_max: 80\nkill_signal: SIGKILL\n")
        config = load_config({"TOOLWRAP_CONFIG": path})
        assert config.path_max == 1024
        assert config.body_char_max == 80
        assert config.kill_signal == signal.SIGKILL

    def test_env_wins_over_yaml(self, config_file):
        path = config_file("default_timeout: 10\n")
        config = load_config({"TOOLWRAP_CONFIG": path, "TOOLWRAP_TIMEOUT": "20"})
        assert config.default_timeout == 20

    def test_unknown_yaml_key_ignored(self, config_file, caplog):
        path = config_file("not_a_field: 1\n")
        with caplog.at_level("WARNING", logger="toolwrap.config"):
            config = load_config({"TOOLWRAP_CONFIG": path})
        assert config == DEFAULT_CONFIG
        assert "not_a_field" in caplog.text

    def test_malformed_yaml_ignored(self, config_file):
        path = config_file("path_max: [unclosed\n")
        assert load_config({"TOOLWRAP_CONFIG": path}) == DEFAULT_CONFIG

    def test_missing_file_ignored(self, tmp_path):
        assert load_config({"TOOLWRAP_CONFIG": str(tmp_path / "nope.yaml")}) == DEFAULT_CONFIG

    def test_non_mapping_yaml_ignored(self, config_file):
        path = config_file("- a\n- b\n")
        assert load_config({"TOOLWRAP_CONFIG": path}) == DEFAULT_CONFIG

    def test_invalid_yaml_value_raises(self, config_file):
        path = config_file("array_max: -5\n")
        with pytest.raises(ConfigurationError):
            load_config({"TOOLWRAP_CONFIG": path})

    def test_string_yaml_value_rejected_at_load(self, config_file):
        path = config_file("short_string_max: '12'\n")
        with pytest.raises(ConfigurationError, match="short_string_max must be int"):
            load_config({"TOOLWRAP_CONFIG": path})

    def test_bool_yaml_value_for_int_field_rejected(self, config_file):
        path = config_file("array_max: true\n")
        with pytest.raises(ConfigurationError, match="array_max"):
            load_config({"TOOLWRAP_CONFIG": path})

    def test_int_accepted_for_float_field(self, config_file):
        path = config_file("kill_grace: 2\n")
        assert load_config({"TOOLWRAP_CONFIG": path}).kill_grace == 2
