from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import requests
import structlog
import tenacity

from .config import Settings
from .find_windows import sample_conditions
from .schemas import WeatherSample
from .sun import SunTimes, calculate_sun_windows
from .weather_score import photo_day_score

logger = structlog.get_logger(__name__)

HOURLY_FIELDS = "temperature_2m,cloud_cover,precipitation,visibility"
DAILY_FIELDS = "sunrise,sunset"


class WeatherServiceError(Exception):
    """Raised when the weather service cannot return a valid forecast."""

    def __init__(self, message: str, *, status_code: int = 502) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class Forecast:
    lat: float
    lng: float
    utc_offset_seconds: int = 0
    samples: List[WeatherSample] = field(default_factory=list)
    sun_times: List[SunTimes] = field(default_factory=list)


@tenacity.retry(
    stop=tenacity.stop_after_attempt(3),
    wait=tenacity.wait_fixed(1),
    retry=tenacity.retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)
def _get(url: str, params: Dict[str, Any], timeout: float) -> requests.Response:
    return requests.get(url, params=params, timeout=timeout)


def fetch_forecast(lat: float, lng: float, settings: Settings) -> Forecast:
    """Fetch hourly weather and daily sunrise/sunset from Open-Meteo.

    Hourly readings become scored ``WeatherSample`` values and each day's
    sunrise/sunset is expanded into golden/blue hour windows.
    """
    params = {
        "latitude": lat,
        "longitude": lng,
        "hourly": HOURLY_FIELDS,
        "daily": DAILY_FIELDS,
        "timezone": "auto",
        "timeformat": "unixtime",
        "forecast_days": settings.forecast_days,
    }
    try:
        resp = _get(settings.open_meteo_url, params, settings.request_timeout)
    except requests.RequestException as exc:
        raise WeatherServiceError(
            "Unable to reach weather service.", status_code=503
        ) from exc

    try:
        resp.raise_for_status()
    except requests.HTTPError as exc:
        raise _build_api_error(resp, lat, lng) from exc

    data = _parse_response_json(resp)
    if not isinstance(data, dict) or "hourly" not in data or "daily" not in data:
        message = "Unknown error from weather API."
        if isinstance(data, dict):
            extra = data.get("reason")
            if isinstance(extra, str) and extra:
                message = extra
        raise WeatherServiceError(
            f"Weather API error: {message}", status_code=502
        )

    offset = data.get("utc_offset_seconds")
    forecast = Forecast(
        lat=lat,
        lng=lng,
        utc_offset_seconds=int(offset) if isinstance(offset, (int, float)) else 0,
    )
    try:
        forecast.samples = _parse_hourly(data["hourly"], lat, lng)
        forecast.sun_times = _parse_daily(data["daily"], forecast.utc_offset_seconds)
    except (KeyError, TypeError, ValueError) as exc:
        raise WeatherServiceError(
            "Weather service returned an unexpected payload.", status_code=502
        ) from exc

    logger.info(
        "forecast_fetched",
        lat=lat,
        lng=lng,
        samples=len(forecast.samples),
        sun_windows=len(forecast.sun_times),
    )
    return forecast


def _at(values: List[Any], index: int) -> Optional[float]:
    if index >= len(values) or values[index] is None:
        return None
    return float(values[index])


def _parse_hourly(hourly: Dict[str, List[Any]], lat: float, lng: float) -> List[WeatherSample]:
    results: List[WeatherSample] = []
    for i, ts in enumerate(hourly["time"]):
        visibility_m = _at(hourly.get("visibility", []), i)
        sample = WeatherSample(
            date_time=datetime.fromtimestamp(int(ts), tz=timezone.utc),
            lat=lat,
            lng=lng,
            clouds=_at(hourly.get("cloud_cover", []), i),
            precip=_at(hourly.get("precipitation", []), i),
            visibility=None if visibility_m is None else visibility_m / 1000,
            temp=_at(hourly.get("temperature_2m", []), i),
        )
        results.append(
            sample.model_copy(update={"photoday_score": photo_day_score(sample_conditions(sample))})
        )
    return results


def _parse_daily(daily: Dict[str, List[Any]], utc_offset_seconds: int) -> List[SunTimes]:
    results: List[SunTimes] = []
    for i, ts in enumerate(daily["time"]):
        sunrise, sunset = daily["sunrise"][i], daily["sunset"][i]
        if sunrise is None or sunset is None:
            continue  # polar day or night
        day = (datetime.fromtimestamp(int(ts), tz=timezone.utc) + timedelta(seconds=utc_offset_seconds)).date()
        results.append(
            calculate_sun_windows(
                datetime.fromtimestamp(int(sunrise), tz=timezone.utc),
                datetime.fromtimestamp(int(sunset), tz=timezone.utc),
                day,
            )
        )
    return results


def _parse_response_json(response: requests.Response):
    try:
        return response.json()
    except ValueError as exc:
        raise WeatherServiceError(
            "Weather service returned invalid JSON.", status_code=502
        ) from exc


def _error_reason(response: requests.Response) -> Optional[str]:
    """Open-Meteo explains rejected requests in a JSON ``reason`` field."""
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("reason"), str):
        reason = payload["reason"]
    else:
        reason = response.text
    reason = reason.strip()
    return _truncate_detail(reason) if reason else None


def _build_api_error(response: requests.Response, lat: float, lng: float) -> WeatherServiceError:
    message, status_code = _friendly_status_message(response.status_code, lat, lng)
    reason = _error_reason(response)
    if reason:
        message = f"{message} Details: {reason}"
    return WeatherServiceError(message, status_code=status_code)


def _friendly_status_message(status: int, lat: float, lng: float) -> tuple[str, int]:
    if status == 400:
        return (
            f"Forecast request for {lat:.4f}, {lng:.4f} was rejected. Please confirm the location.",
            400,
        )
    if status == 401:
        return (
            "Authentication with the weather service failed.",
            500,
        )
    if status == 404:
        return (
            f"No forecast data found for {lat:.4f}, {lng:.4f}.",
            400,
        )
    if status == 429:
        return (
            "Weather service request limit exceeded. Please wait before retrying.",
            429,
        )
    return (f"Weather API request failed with status {status}.", 502)


def _truncate_detail(detail: str, max_length: int = 200) -> str:
    detail = detail.strip()
    if len(detail) > max_length:
        return detail[: max_length - 3] + "..."
    return detail
