"""Tests for actionengine/config.py"""

import pytest

from actionengine.config import (
    ActionEngineConfig,
    IdleWindowConfig,
    NudgeConfig,
    load_config,
)


class TestActionEngineConfig:
    def test_defaults(self):
        config = ActionEngineConfig()
        assert config.collector.poll_interval_seconds == 1.0
        assert config.collector.note_idle.min_seconds == 6
        assert config.collector.note_idle.max_seconds == 10
        assert config.collector.app_idle.max_seconds is None
        assert config.nudges.default_ttl_seconds == 8
        assert config.flow.min_duration_minutes == 15
        assert config.flow.max_duration_minutes == 480

    def test_valid_overrides(self):
        config = ActionEngineConfig(nudges={"switch_threshold": 5}, flow={"max_duration_minutes": 120})
        assert config.nudges.switch_threshold == 5
        assert config.flow.max_duration_minutes == 120

    def test_extra_keys_allowed(self):
        config = ActionEngineConfig(nudges={"default_ttl_seconds": 4, "experimental": True})
        assert config.nudges.default_ttl_seconds == 4

    def test_invalid_ttl_rejected(self):
        with pytest.raises(ValueError):
            NudgeConfig(default_ttl_seconds=0)

    def test_idle_window_must_be_ordered(self):
        with pytest.raises(ValueError):
            IdleWindowConfig(min_seconds=10, max_seconds=6)

    def test_api_token_from_environment(self, monkeypatch):
        config = ActionEngineConfig()
        monkeypatch.delenv("ACTION_ENGINE_API_TOKEN", raising=False)
        assert config.api_token() is None

        monkeypatch.setenv("ACTION_ENGINE_API_TOKEN", "tok_123")
        assert config.api_token() == "tok_123"


class TestLoadConfig:
    def test_loads_yaml(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ACTION_ENGINE_API_URL", raising=False)
        path = tmp_path / "action_engine.yaml"
        path.write_text("nudges:\n  momentum_count: 4\nflow:\n  min_duration_minutes: 20\n")

        config = load_config(path)

        assert config.nudges.momentum_count == 4
        assert config.flow.min_duration_minutes == 20
        assert config.nudges.skip_streak == 2

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.delenv("ACTION_ENGINE_API_URL", raising=False)
        assert load_config(tmp_path / "nope.yaml") == ActionEngineConfig()

    def test_invalid_file_falls_back_with_warning(self, tmp_path, caplog):
        path = tmp_path / "action_engine.yaml"
        path.write_text("nudges:\n  default_ttl_seconds: -3\n")

        config = load_config(path)

        assert config.nudges.default_ttl_seconds == 8
        assert "using defaults" in caplog.text

    def test_environment_overrides_base_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ACTION_ENGINE_API_URL", "https://api.example.com")
        config = load_config(tmp_path / "nope.yaml")
        assert config.api.base_url == "https://api.example.com"

    def test_shipped_config_matches_defaults(self, monkeypatch):
        monkeypatch.delenv("ACTION_ENGINE_API_URL", raising=False)
        assert load_config() == ActionEngineConfig()
