import sys
from datetime import timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from photoplanner.config import Settings
from photoplanner.sync import resolve_timezone_offset


def test_defaults(monkeypatch):
    monkeypatch.delenv("PHOTOPLAN_DATABASE_URL", raising=False)
    settings = Settings(_env_file=None)

    assert settings.database_url == "sqlite:///./photoplanner.db"
    assert settings.windows_per_task == 5
    assert settings.forecast_horizon_hours == 72
    assert settings.weather_slack == timedelta(hours=1)
    assert settings.timezone_offset_seconds is None
    assert settings.tasks_sheet_url is None


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("PHOTOPLAN_WEATHER_SLACK_MINUTES", "30")
    monkeypatch.setenv("PHOTOPLAN_TIMEZONE_OFFSET_SECONDS", "-25200")
    monkeypatch.setenv("PHOTOPLAN_LOG_JSON", "true")
    monkeypatch.setenv("PHOTOPLAN_TASKS_SHEET_URL", "https://example.com/tasks.csv")

    settings = Settings(_env_file=None)

    assert settings.weather_slack == timedelta(minutes=30)
    assert settings.timezone_offset_seconds == -25200
    assert settings.log_json is True
    assert settings.tasks_sheet_url == "https://example.com/tasks.csv"


def test_timezone_override_falls_back_to_forecast_offset(monkeypatch):
    monkeypatch.delenv("PHOTOPLAN_TIMEZONE_OFFSET_SECONDS", raising=False)

    assert resolve_timezone_offset(Settings(_env_file=None), -25200) == -25200
    assert resolve_timezone_offset(Settings(_env_file=None), None) == 0
    assert resolve_timezone_offset(Settings(_env_file=None, timezone_offset_seconds=3600), -25200) == 3600
    assert resolve_timezone_offset(Settings(_env_file=None, timezone_offset_seconds=0), -25200) == 0


def test_unprefixed_variables_are_ignored(monkeypatch):
    monkeypatch.setenv("WINDOWS_PER_TASK", "9")

    assert Settings(_env_file=None).windows_per_task == 5
