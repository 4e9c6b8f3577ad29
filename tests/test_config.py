"""Tests for settings and logging setup."""
import sys
from pathlib import Path

from loguru import logger

from smartcoaster.config import Settings
from smartcoaster.logging_config import setup_logging


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("SMARTCOASTER_DATA_DIR", "SMARTCOASTER_EXACT_ALARMS", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.store_path == Path.home() / ".smartcoaster" / "data" / "alarms.yaml"
        assert settings.exact_alarms_allowed is True
        assert settings.wake_lock_timeout_ms == 60000
        assert settings.log_level == "INFO"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SMARTCOASTER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("SMARTCOASTER_STORE_FILE", "coaster.yaml")
        monkeypatch.setenv("SMARTCOASTER_EXACT_ALARMS", "false")
        monkeypatch.setenv("SMARTCOASTER_BEST_EFFORT_GRACE", "15")
        monkeypatch.setenv("SMARTCOASTER_REREGISTER_ON_LOAD", "0")
        monkeypatch.setenv("SMARTCOASTER_PREFERRED_TEMPERATURE", "55.5")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = Settings.from_env()

        assert settings.store_path == tmp_path / "coaster.yaml"
        assert settings.exact_alarms_allowed is False
        assert settings.best_effort_grace_seconds == 15
        assert settings.reregister_on_load is False
        assert settings.preferred_temperature == 55.5
        assert settings.log_level == "DEBUG"


class TestLogging:

    def test_setup_logging_installs_sink(self, capsys):
        setup_logging("INFO")
        try:
            logger.bind(module="tests").info("hello coaster")
            logger.debug("hidden")
            err = capsys.readouterr().err
        finally:
            logger.remove()
            logger.add(sys.__stderr__)

        assert "hello coaster" in err
        assert "tests" in err
        assert "hidden" not in err
