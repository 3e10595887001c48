"""Golden and blue hour windows derived from sunrise and sunset.

Golden hour is approximated as the sun being 0-6 degrees above the horizon and
blue hour as 0-6 degrees below it. Both are derived from sunrise/sunset with
fixed minute offsets rather than a solar position model.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

GOLDEN_BEFORE_SUNRISE = timedelta(minutes=20)
GOLDEN_AFTER_SUNRISE = timedelta(minutes=50)
GOLDEN_BEFORE_SUNSET = timedelta(minutes=60)
GOLDEN_AFTER_SUNSET = timedelta(minutes=20)
BLUE_DURATION = timedelta(minutes=30)


@dataclass(frozen=True)
class SunTimes:
    sunrise: datetime
    sunset: datetime
    golden_morning_start: datetime
    golden_morning_end: datetime
    golden_evening_start: datetime
    golden_evening_end: datetime
    blue_morning_start: datetime
    blue_morning_end: datetime
    blue_evening_start: datetime
    blue_evening_end: datetime
    day: Optional[date] = None


def calculate_sun_windows(sunrise: datetime, sunset: datetime, day: Optional[date] = None) -> SunTimes:
    """Derive the golden/blue hour instants for one day.

    Callers guarantee ``sunrise < sunset`` on the same calendar day.
    """
    golden_morning_start = sunrise - GOLDEN_BEFORE_SUNRISE
    golden_evening_end = sunset + GOLDEN_AFTER_SUNSET
    return SunTimes(
        sunrise=sunrise,
        sunset=sunset,
        golden_morning_start=golden_morning_start,
        golden_morning_end=sunrise + GOLDEN_AFTER_SUNRISE,
        golden_evening_start=sunset - GOLDEN_BEFORE_SUNSET,
        golden_evening_end=golden_evening_end,
        blue_morning_start=golden_morning_start - BLUE_DURATION,
        blue_morning_end=golden_morning_start,
        blue_evening_start=golden_evening_end,
        blue_evening_end=golden_evening_end + BLUE_DURATION,
        day=day,
    )


def is_time_in_window(moment: datetime, start: datetime, end: datetime) -> bool:
    return start <= moment <= end


def golden_hour_phase(moment: datetime, sun: SunTimes) -> Optional[str]:
    """Return ``'morning'`` or ``'evening'`` when ``moment`` is in a golden hour."""
    if is_time_in_window(moment, sun.golden_morning_start, sun.golden_morning_end):
        return 'morning'
    if is_time_in_window(moment, sun.golden_evening_start, sun.golden_evening_end):
        return 'evening'
    return None


def blue_hour_phase(moment: datetime, sun: SunTimes) -> Optional[str]:
    if is_time_in_window(moment, sun.blue_morning_start, sun.blue_morning_end):
        return 'morning'
    if is_time_in_window(moment, sun.blue_evening_start, sun.blue_evening_end):
        return 'evening'
    return None
