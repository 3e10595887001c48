import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests
import tenacity

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from photoplanner import weather
from photoplanner.config import Settings
from photoplanner.find_windows import find_windows
from photoplanner.schemas import TaskBase


SUNRISE = int(datetime(2024, 6, 3, 12, 12, tzinfo=timezone.utc).timestamp())
SUNSET = int(datetime(2024, 6, 4, 3, 10, tzinfo=timezone.utc).timestamp())
HOUR0 = int(datetime(2024, 6, 3, 7, tzinfo=timezone.utc).timestamp())
LOCAL_MIDNIGHT = int(datetime(2024, 6, 3, 7, tzinfo=timezone.utc).timestamp())


def open_meteo_payload():
    return {
        "latitude": 47.6,
        "longitude": -122.3,
        "utc_offset_seconds": -25200,
        "hourly": {
            "time": [HOUR0, HOUR0 + 3600, HOUR0 + 7200],
            "temperature_2m": [14.0, 15.5, None],
            "cloud_cover": [10, 75, None],
            "precipitation": [0.0, 0.3, None],
            "visibility": [24140.0, 8000.0, None],
        },
        "daily": {
            "time": [LOCAL_MIDNIGHT],
            "sunrise": [SUNRISE],
            "sunset": [SUNSET],
        },
    }


def mock_response(status=200, payload=None, text=""):
    response = MagicMock()
    response.status_code = status
    response.text = text
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    else:
        response.raise_for_status.return_value = None
    return response


@patch("photoplanner.weather.requests.get")
def test_fetch_forecast_parses_hourly_and_daily(mock_get):
    mock_get.return_value = mock_response(payload=open_meteo_payload())

    forecast = weather.fetch_forecast(47.6, -122.3, Settings())

    mock_get.assert_called_once()
    params = mock_get.call_args.kwargs["params"]
    assert params["timeformat"] == "unixtime"
    assert params["forecast_days"] == 3

    assert forecast.utc_offset_seconds == -25200
    assert len(forecast.samples) == 3
    first, second, third = forecast.samples
    assert first.date_time == datetime(2024, 6, 3, 7, tzinfo=timezone.utc)
    assert first.visibility == pytest.approx(24.14)
    assert first.photoday_score == 100
    assert second.photoday_score == 100 - 30 - 20 - 10
    # missing readings stay missing but still get a neutral score
    assert third.clouds is None
    assert third.photoday_score == 100 - 15

    assert len(forecast.sun_times) == 1
    sun = forecast.sun_times[0]
    assert sun.day == date(2024, 6, 3)
    assert sun.golden_morning_start == datetime(2024, 6, 3, 11, 52, tzinfo=timezone.utc)
    assert sun.blue_evening_end == datetime(2024, 6, 4, 3, 10, tzinfo=timezone.utc) + timedelta(minutes=50)


@patch("photoplanner.weather.requests.get")
def test_polar_days_without_sunrise_are_skipped(mock_get):
    payload = open_meteo_payload()
    payload["daily"]["sunrise"] = [None]
    mock_get.return_value = mock_response(payload=payload)

    forecast = weather.fetch_forecast(78.2, 15.6, Settings())

    assert forecast.sun_times == []
    assert len(forecast.samples) == 3


@pytest.mark.parametrize(
    "status, expected_status, fragment",
    [
        (400, 400, "was rejected"),
        (429, 429, "request limit exceeded"),
        (500, 502, "failed with status 500"),
    ],
)
@patch("photoplanner.weather.requests.get")
def test_http_errors_become_weather_service_errors(mock_get, status, expected_status, fragment):
    mock_get.return_value = mock_response(status=status, payload={"error": True, "reason": "Latitude must be in range"})

    with pytest.raises(weather.WeatherServiceError) as excinfo:
        weather.fetch_forecast(47.6, -122.3, Settings())

    assert excinfo.value.status_code == expected_status
    assert fragment in str(excinfo.value)
    assert "Latitude must be in range" in str(excinfo.value)


@patch("photoplanner.weather.requests.get")
def test_network_errors_are_retried_then_reported(mock_get, monkeypatch):
    monkeypatch.setattr(weather._get.retry, "wait", tenacity.wait_none())
    mock_get.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(weather.WeatherServiceError) as excinfo:
        weather.fetch_forecast(47.6, -122.3, Settings())

    assert excinfo.value.status_code == 503
    assert mock_get.call_count == 3


@patch("photoplanner.weather.requests.get")
def test_invalid_json_is_reported(mock_get):
    mock_get.return_value = mock_response(payload=ValueError("not json"))

    with pytest.raises(weather.WeatherServiceError, match="invalid JSON"):
        weather.fetch_forecast(47.6, -122.3, Settings())


@patch("photoplanner.weather.requests.get")
def test_payload_without_forecast_is_reported(mock_get):
    mock_get.return_value = mock_response(payload={"error": True, "reason": "Cannot initialize WeatherVariable"})

    with pytest.raises(weather.WeatherServiceError, match="Cannot initialize WeatherVariable"):
        weather.fetch_forecast(47.6, -122.3, Settings())


@patch("photoplanner.weather.requests.get")
def test_http_error_without_json_uses_body_text(mock_get):
    response = mock_response(status=500, payload=ValueError("not json"), text="  upstream timeout  ")
    mock_get.return_value = response

    with pytest.raises(weather.WeatherServiceError) as excinfo:
        weather.fetch_forecast(47.6, -122.3, Settings())

    assert str(excinfo.value) == "Weather API request failed with status 500. Details: upstream timeout"


def overcast_payload(hours, utc_offset_seconds):
    return {
        "utc_offset_seconds": utc_offset_seconds,
        "hourly": {
            "time": [int(hour.timestamp()) for hour in hours],
            "temperature_2m": [15.0] * len(hours),
            "cloud_cover": [90] * len(hours),
            "precipitation": [0.0] * len(hours),
            "visibility": [20000.0] * len(hours),
        },
        "daily": {"time": [], "sunrise": [], "sunset": []},
    }


@patch("photoplanner.weather.requests.get")
def test_forecast_offset_drives_local_time_filters(mock_get):
    saturday_8am_local = datetime(2024, 6, 8, 15, tzinfo=timezone.utc)
    sunday_10pm_local = datetime(2024, 6, 10, 5, tzinfo=timezone.utc)  # Monday in UTC
    mock_get.return_value = mock_response(
        payload=overcast_payload([saturday_8am_local, sunday_10pm_local], -25200)
    )

    forecast = weather.fetch_forecast(47.6, -122.3, Settings())

    def run(time_window):
        task = TaskBase(task_id="t", title="Overcast", condition="overcast", time_window=time_window)
        return find_windows(task, forecast.samples, [], timezone_offset=forecast.utc_offset_seconds)

    morning = run("morning_only")
    assert [w.start for w in morning["windows"]] == [saturday_8am_local]
    assert morning["windows"][0].reason == "1h window with overcast conditions"

    weekend = run("weekend_only")
    assert [w.start for w in weekend["windows"]] == [saturday_8am_local, sunday_10pm_local]
