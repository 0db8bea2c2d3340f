"""
Tests for configuration loading.
"""

from datetime import time
from pathlib import Path

import pytest
from pydantic import ValidationError

from sessionbooker.config import AppConfig
from sessionbooker.domain.models import Period


class TestAppConfig:
    """Tests for AppConfig."""

    def test_defaults(self):
        config = AppConfig()

        assert config.slots.duration_minutes == 45
        assert config.slots.slots_per_period == 4
        assert config.slots.period_starts() == {
            Period.MORNING: time(8, 30),
            Period.AFTERNOON: time(14, 30),
        }
        assert config.store.url is None
        assert config.store.path == Path("bookings.json")

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "timezone: Europe/Lisbon\n"
            "slots:\n"
            "  slots_per_period: 3\n"
            "  morning_start: {hour: 9, minute: 0}\n"
            "store:\n"
            "  url: https://db.example.org/rest/v1/\n"
            "  api_key: secret\n"
            "current_user_email: maria@example.com\n",
            encoding="utf-8",
        )

        config = AppConfig.load_from_yaml(path)

        assert config.timezone == "Europe/Lisbon"
        assert config.slots.slots_per_period == 3
        assert config.slots.morning_start.get_time() == time(9, 0)
        assert config.slots.afternoon_start.get_time() == time(14, 30)
        assert config.store.url == "https://db.example.org/rest/v1"
        assert config.current_user_email == "maria@example.com"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Config file not found"):
            AppConfig.load_from_yaml(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("slots: [unclosed\n", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(path)

    def test_root_must_be_mapping(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")

        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(path)

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        assert AppConfig.load_from_yaml(path) == AppConfig()

    def test_load_without_default_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            "sessionbooker.config.get_default_config_path",
            lambda: tmp_path / "config.yaml",
        )

        assert AppConfig.load() == AppConfig()

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            AppConfig(timezone="Mars/Olympus_Mons")

        with pytest.raises(ValidationError):
            AppConfig(slots={"slots_per_period": 0})

        with pytest.raises(ValidationError):
            AppConfig(slots={"morning_start": {"hour": 24}})

        with pytest.raises(ValidationError):
            AppConfig(store={"url": "ftp://db.example.org"})

        with pytest.raises(ValidationError):
            AppConfig(confirmation_delay_seconds=-1)
