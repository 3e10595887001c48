from datetime import timedelta
from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the planner."""

    database_url: str = Field(default="sqlite:///./photoplanner.db")

    # Base location used when a task has no coordinates of its own
    default_lat: float = Field(default=47.6062)
    default_lng: float = Field(default=-122.3321)

    forecast_days: int = Field(default=3, description="Days of forecast fetched per sync")
    forecast_horizon_hours: int = Field(default=72, description="Hours of weather read per matching run")
    sun_window_days: int = Field(default=3, description="Days of sun windows read per matching run")
    windows_per_task: int = Field(default=5)
    weather_slack_minutes: int = Field(
        default=60, description="Sampling tolerance around golden/blue hour windows"
    )
    timezone_offset_seconds: Optional[int] = Field(
        default=None,
        description="Overrides the forecast's own UTC offset for hour-of-day and weekday filters",
    )

    tasks_sheet_url: Optional[str] = None
    open_meteo_url: str = "https://api.open-meteo.com/v1/forecast"
    request_timeout: float = 10.0

    log_level: str = "INFO"
    log_json: bool = False

    model_config = SettingsConfigDict(
        env_prefix="PHOTOPLAN_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def weather_slack(self) -> timedelta:
        return timedelta(minutes=self.weather_slack_minutes)


@lru_cache
def get_settings() -> Settings:
    return Settings()
