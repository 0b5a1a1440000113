"""Tests for environment configuration."""

from pathlib import Path

import pytest

from mission_control.config import Config


class TestConfig:
    def test_defaults(self, monkeypatch):
        for var in ("MC_DB_PATH", "MC_PROFILE", "MC_ACTIVITY_LIMIT", "MC_SILENT_NOT_FOUND"):
            monkeypatch.delenv(var, raising=False)
        config = Config.from_env()
        assert config.profile == "workspace"
        assert config.initial_task_status == "planning"
        assert config.activity_limit == 100
        assert config.silent_not_found is False

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MC_DB_PATH", str(tmp_path / "x.db"))
        monkeypatch.setenv("MC_PROFILE", "simple")
        monkeypatch.setenv("MC_ACTIVITY_LIMIT", "50")
        monkeypatch.setenv("MC_SILENT_NOT_FOUND", "true")
        config = Config.from_env()
        assert config.db_path == Path(tmp_path / "x.db")
        assert config.initial_task_status == "inbox"
        assert config.activity_limit == 50
        assert config.silent_not_found is True

    def test_bad_profile(self, monkeypatch):
        monkeypatch.setenv("MC_PROFILE", "flat")
        with pytest.raises(ValueError, match="MC_PROFILE"):
            Config.from_env()
