"""Tests for configuration loading and precedence."""

import json
from pathlib import Path

from tmux_exec.config import (
    ENV_CONFIG,
    ENV_HOST,
    ENV_SESSION,
    ENV_STATE_DIR,
    Settings,
    _coerce,
    config_path,
    load_config_file,
    load_settings,
)


def _write_config(tmp_path, monkeypatch, data) -> Path:
    path = tmp_path / "config.json"
    path.write_text(data if isinstance(data, str) else json.dumps(data))
    monkeypatch.setenv(ENV_CONFIG, str(path))
    return path


class TestDefaults:
    def test_builtin_defaults(self):
        s = Settings()
        assert s.timeout == 30
        assert s.truncate == 2000
        assert s.poll_interval == 0.5
        assert s.context_lines == 5
        assert s.peek_chars == 2000
        assert s.host is None
        assert s.session is None

    def test_load_settings_without_file_or_env(self, tmp_path):
        s = load_settings()
        assert s.timeout == 30
        assert s.state_dir == tmp_path / "state"

    def test_config_path_follows_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_CONFIG, str(tmp_path / "x.json"))
        assert config_path() == tmp_path / "x.json"


class TestWithOverrides:
    def test_none_values_ignored(self):
        s = Settings(timeout=10)
        assert s.with_overrides(timeout=None) is s

    def test_unknown_keys_ignored(self):
        s = Settings()
        assert s.with_overrides(colour="blue") is s

    def test_zero_is_an_override(self):
        s = Settings().with_overrides(truncate=0)
        assert s.truncate == 0


class TestConfigFile:
    def test_file_values_applied(self, tmp_path, monkeypatch):
        _write_config(tmp_path, monkeypatch, {"timeout": "12", "truncate": 500, "session": "build"})
        s = load_settings()
        assert s.timeout == 12.0
        assert s.truncate == 500
        assert s.session == "build"

    def test_unknown_key_ignored(self, tmp_path, monkeypatch):
        _write_config(tmp_path, monkeypatch, {"nonsense": 1, "timeout": 3})
        assert load_settings().timeout == 3.0

    def test_bad_value_ignored(self, tmp_path, monkeypatch):
        _write_config(tmp_path, monkeypatch, {"truncate": "lots", "timeout": 4})
        s = load_settings()
        assert s.truncate == 2000
        assert s.timeout == 4.0

    def test_broken_json_ignored(self, tmp_path, monkeypatch):
        path = _write_config(tmp_path, monkeypatch, "{not json")
        assert load_config_file(path) == {}
        assert load_settings().timeout == 30

    def test_non_object_ignored(self, tmp_path, monkeypatch):
        path = _write_config(tmp_path, monkeypatch, "[1, 2]")
        assert load_config_file(path) == {}

    def test_missing_file(self, tmp_path):
        assert load_config_file(tmp_path / "absent.json") == {}


class TestPrecedence:
    def test_env_beats_file(self, tmp_path, monkeypatch):
        _write_config(tmp_path, monkeypatch, {"host": "filehost", "session": "filesession"})
        monkeypatch.setenv(ENV_HOST, "envhost")
        monkeypatch.setenv(ENV_SESSION, "envsession")
        s = load_settings()
        assert s.host == "envhost"
        assert s.session == "envsession"

    def test_overrides_beat_env(self, monkeypatch):
        monkeypatch.setenv(ENV_SESSION, "envsession")
        s = load_settings(session="flag", timeout=None)
        assert s.session == "flag"
        assert s.timeout == 30

    def test_state_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv(ENV_STATE_DIR, str(tmp_path / "elsewhere"))
        assert load_settings().state_dir == tmp_path / "elsewhere"


class TestCoerce:
    def test_bool_strings(self):
        assert _coerce("log_to_file", "yes") is True
        assert _coerce("log_to_file", "off") is False
        assert _coerce("log_to_file", 1) is True

    def test_numbers(self):
        assert _coerce("context_lines", "7") == 7
        assert _coerce("flush_delay", "0.25") == 0.25

    def test_state_dir_expands_user(self):
        assert "~" not in str(_coerce("state_dir", "~/x"))
