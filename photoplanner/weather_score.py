"""Photo-day scoring and condition matching for single weather readings."""
import math
from typing import NamedTuple

from .schemas import Condition


class Conditions(NamedTuple):
    clouds: float      # cloud cover, percent
    precip: float      # precipitation, mm/h
    visibility: float  # km
    temp: float        # Celsius


class MatchResult(NamedTuple):
    matches: bool
    reason: str


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _cloud_penalty(clouds: float) -> int:
    if clouds <= 20:
        return 0
    if clouds <= 40:
        return 5
    if clouds <= 60:
        return 15
    if clouds <= 80:
        return 30
    return 45


def _precip_penalty(precip: float) -> int:
    if precip <= 0:
        return 0
    if precip <= 0.5:
        return 20  # drizzle
    if precip <= 2:
        return 35
    return 50


def _visibility_penalty(visibility: float) -> int:
    if visibility >= 20:
        return 0
    if visibility >= 10:
        return 5
    if visibility >= 5:
        return 10
    if visibility >= 1:
        return 15
    return 25


def _temp_penalty(temp: float) -> int:
    if 10 <= temp <= 25:
        return 0
    if 0 <= temp < 10 or 25 < temp <= 35:
        return 3
    return 8


def photo_day_score(conditions: Conditions) -> int:
    """Score a reading 0-100 by subtracting one flat penalty per factor."""
    score = 100
    score -= _cloud_penalty(conditions.clouds)
    score -= _precip_penalty(conditions.precip)
    score -= _visibility_penalty(conditions.visibility)
    score -= _temp_penalty(conditions.temp)
    return max(0, min(100, round_half_up(score)))


def describe_conditions(conditions: Conditions) -> str:
    parts = []
    if conditions.clouds <= 10:
        parts.append('clear skies')
    elif conditions.clouds <= 30:
        parts.append('few clouds')
    elif conditions.clouds <= 60:
        parts.append('partly cloudy')
    elif conditions.clouds <= 85:
        parts.append('mostly cloudy')
    else:
        parts.append('overcast')

    if conditions.precip > 2:
        parts.append('heavy rain')
    elif conditions.precip > 0.5:
        parts.append('rain')
    elif conditions.precip > 0:
        parts.append('light drizzle')

    # visibility is only worth mentioning when it is poor
    if conditions.visibility < 1:
        parts.append('dense fog')
    elif conditions.visibility < 5:
        parts.append('foggy')
    elif conditions.visibility < 10:
        parts.append('misty')

    return ', '.join(parts) or 'normal conditions'


def conditions_match(conditions: Conditions, condition: Condition) -> MatchResult:
    """Decide whether a reading satisfies a task condition, with a reason either way."""
    condition = Condition.parse(condition)
    clouds, precip, visibility, _ = conditions

    if condition in (Condition.CLEAR_ANY, Condition.CLEAR_NOON):
        if clouds <= 30 and precip == 0:
            return MatchResult(True, 'Clear skies with low cloud cover')
        return MatchResult(False, 'Too cloudy or precipitation expected')

    if condition is Condition.OVERCAST:
        if clouds >= 70 and precip < 0.5:
            return MatchResult(True, 'Overcast skies, good for portraits')
        return MatchResult(False, 'Not enough cloud cover')

    if condition is Condition.CLOUDY:
        if clouds >= 40 and precip < 0.5:
            return MatchResult(True, 'Cloudy conditions for soft light')
        return MatchResult(False, 'Conditions too clear or rainy')

    if condition is Condition.FOG:
        if visibility < 5 and precip < 0.5:
            return MatchResult(True, 'Foggy/misty conditions')
        return MatchResult(False, 'No fog or mist present')

    if condition.is_sun_based:
        # time-based conditions, but low cloud and no rain still matter
        if clouds <= 50 and precip == 0:
            return MatchResult(True, 'Good conditions for golden/blue hour')
        return MatchResult(False, 'Weather may obscure golden/blue hour effect')

    return MatchResult(True, 'Any weather conditions acceptable')
