from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple, Type

from .schemas import Condition, SunWindow, TaskBase, TimeWindow, WeatherSample
from .weather_score import Conditions, conditions_match, round_half_up

SLOT = timedelta(hours=1)
DEFAULT_SLACK = timedelta(hours=1)
NO_DATA_SCORE = 60

# Neutral stand-ins for readings missing from a stored sample
DEFAULT_CLOUDS = 50.0
DEFAULT_PRECIP = 0.0
DEFAULT_VISIBILITY = 20.0
DEFAULT_TEMP = 15.0
DEFAULT_SAMPLE_SCORE = 50


@dataclass(frozen=True)
class CandidateWindow:
    start: datetime
    end: datetime
    score: int
    reason: str
    weather_ok: bool = True


def sample_conditions(sample: WeatherSample) -> Conditions:
    return Conditions(
        clouds=DEFAULT_CLOUDS if sample.clouds is None else sample.clouds,
        precip=DEFAULT_PRECIP if sample.precip is None else sample.precip,
        visibility=DEFAULT_VISIBILITY if sample.visibility is None else sample.visibility,
        temp=DEFAULT_TEMP if sample.temp is None else sample.temp,
    )


def _sample_score(sample: WeatherSample) -> int:
    return DEFAULT_SAMPLE_SCORE if sample.photoday_score is None else sample.photoday_score


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def _local_time(moment: datetime, timezone_offset: int) -> datetime:
    return moment + timedelta(seconds=timezone_offset)


def format_window(start: datetime, end: datetime, timezone_offset: int = 0) -> str:
    """Return a friendly string for a window in the location's local time."""
    start_local = _local_time(start, timezone_offset)
    end_local = _local_time(end, timezone_offset)
    start_hour = start_local.hour % 12 or 12
    start_ampm = 'AM' if start_local.hour < 12 else 'PM'
    end_hour = end_local.hour % 12 or 12
    end_ampm = 'AM' if end_local.hour < 12 else 'PM'
    start_minute = f':{start_local.minute:02d}' if start_local.minute else ''
    end_minute = f':{end_local.minute:02d}' if end_local.minute else ''
    start_text = f"{start_local.month}/{start_local.day} {start_hour}{start_minute} {start_ampm}"
    if start_local.date() != end_local.date():
        return f"{start_text} - {end_local.month}/{end_local.day} {end_hour}{end_minute} {end_ampm}"
    return f"{start_text} - {end_hour}{end_minute} {end_ampm}"


class MatchStrategy(ABC):
    def __init__(self, *, weather_slack: timedelta = DEFAULT_SLACK, timezone_offset: int = 0) -> None:
        self.weather_slack = weather_slack
        self.timezone_offset = timezone_offset

    @abstractmethod
    def find(
        self,
        task: TaskBase,
        samples: Sequence[WeatherSample],
        sun_windows: Sequence[SunWindow],
        failures: Counter,
    ) -> List[CandidateWindow]:
        raise NotImplementedError


class SunSyncStrategy(MatchStrategy):
    """Scores the precomputed golden/blue hour windows of each day."""

    SUB_WINDOWS: Dict[Condition, Tuple[Tuple[str, str], ...]] = {
        Condition.GOLDEN_HOUR_ANY: (('morning', 'golden'), ('evening', 'golden')),
        Condition.GOLDEN_HOUR_MORNING: (('morning', 'golden'),),
        Condition.GOLDEN_HOUR_EVENING: (('evening', 'golden'),),
        Condition.BLUE_HOUR_MORNING: (('morning', 'blue'),),
        Condition.BLUE_HOUR_EVENING: (('evening', 'blue'),),
    }

    def find(self, task, samples, sun_windows, failures):
        windows: List[CandidateWindow] = []
        time_window = task.time_window
        for sun in sun_windows:
            if not time_window.allows_day(sun.date.weekday()):
                failures['day excluded by time window'] += 1
                continue
            for phase, light in self.SUB_WINDOWS[task.condition]:
                if phase == 'morning' and not time_window.allows_morning():
                    failures['morning excluded by time window'] += 1
                    continue
                if phase == 'evening' and not time_window.allows_evening():
                    failures['evening excluded by time window'] += 1
                    continue
                start = getattr(sun, f'{light}_{phase}_start')
                end = getattr(sun, f'{light}_{phase}_end')
                if start is None or end is None:
                    failures['sun times missing from forecast'] += 1
                    continue
                score, reason, weather_issue = self.score_window(samples, start, end, task.condition)
                if weather_issue is not None:
                    failures[weather_issue] += 1
                windows.append(
                    CandidateWindow(
                        start=start,
                        end=end,
                        score=score,
                        reason=f'{phase.capitalize()} {light} hour - {reason}',
                        weather_ok=weather_issue is None,
                    )
                )
        return windows

    def score_window(
        self,
        samples: Sequence[WeatherSample],
        start: datetime,
        end: datetime,
        condition: Condition,
    ) -> Tuple[int, str, Optional[str]]:
        """Score a sun window from nearby samples.

        Returns the score, the weather reason and, when the mean reading
        fails the condition, the matcher's explanation.
        """
        nearby = [
            sample for sample in samples
            if start - self.weather_slack <= sample.date_time <= end + self.weather_slack
        ]
        if not nearby:
            return NO_DATA_SCORE, 'No weather data available', None

        readings = [sample_conditions(sample) for sample in nearby]
        score = round_half_up(_mean([_sample_score(sample) for sample in nearby]))
        mean_clouds = round_half_up(_mean([reading.clouds for reading in readings]))

        if any(reading.precip > 0.5 for reading in readings):
            reason = 'Precipitation expected'
        elif mean_clouds < 30:
            reason = 'Clear skies expected'
        elif mean_clouds < 60:
            reason = 'Partly cloudy'
        else:
            reason = 'Mostly cloudy'

        mean_reading = Conditions(
            clouds=_mean([reading.clouds for reading in readings]),
            precip=_mean([reading.precip for reading in readings]),
            visibility=_mean([reading.visibility for reading in readings]),
            temp=_mean([reading.temp for reading in readings]),
        )
        verdict = conditions_match(mean_reading, condition)
        return score, reason, None if verdict.matches else verdict.reason


class WeatherRunStrategy(MatchStrategy):
    """Groups consecutive matching hourly samples into windows."""

    def find(self, task, samples, sun_windows, failures):
        windows: List[CandidateWindow] = []
        run: List[WeatherSample] = []
        for sample in samples:
            blocker = self._time_window_blocker(task.time_window, sample.date_time)
            if blocker is None:
                match = conditions_match(sample_conditions(sample), task.condition)
                if not match.matches:
                    blocker = match.reason
            if blocker is not None:
                failures[blocker] += 1
                self._flush(run, windows, task.condition)
                run = []
                continue
            if run and sample.date_time - run[-1].date_time > SLOT:
                failures['forecast data gaps prevent continuous window'] += 1
                self._flush(run, windows, task.condition)
                run = []
            run.append(sample)
        self._flush(run, windows, task.condition)
        return windows

    def _time_window_blocker(self, time_window: TimeWindow, moment: datetime) -> Optional[str]:
        local = _local_time(moment, self.timezone_offset)
        if not time_window.allows_day(local.weekday()):
            return 'day excluded by time window'
        if local.hour >= 12 and not time_window.allows_evening():
            return 'outside morning hours'
        if local.hour < 12 and not time_window.allows_morning():
            return 'outside evening hours'
        return None

    @staticmethod
    def _flush(run: List[WeatherSample], windows: List[CandidateWindow], condition: Condition) -> None:
        if not run:
            return
        windows.append(
            CandidateWindow(
                start=run[0].date_time,
                end=run[-1].date_time + SLOT,
                score=round_half_up(_mean([_sample_score(sample) for sample in run])),
                reason=f'{len(run)}h window with {condition.value} conditions',
            )
        )


def classify_condition(condition: Condition) -> Type[MatchStrategy]:
    if Condition.parse(condition).is_sun_based:
        return SunSyncStrategy
    return WeatherRunStrategy


def _summarize_failures(failures: Counter) -> Optional[str]:
    if not failures:
        return None
    most_common = failures.most_common(3)
    formatted = ', '.join(f"{reason} (x{count})" for reason, count in most_common)
    return f"No windows matched all constraints. Common blockers: {formatted}."


def find_windows(
    task: TaskBase,
    samples: Sequence[WeatherSample],
    sun_windows: Sequence[SunWindow],
    *,
    weather_slack: timedelta = DEFAULT_SLACK,
    timezone_offset: int = 0,
) -> Dict[str, object]:
    """Given forecast data and a task, find candidate shooting windows."""
    if not samples and not sun_windows:
        return {'windows': [], 'reason_summary': 'No forecast data is available for this location.', 'reason_details': []}
    strategy = classify_condition(task.condition)(
        weather_slack=weather_slack,
        timezone_offset=timezone_offset,
    )
    failures: Counter[str] = Counter()
    windows = strategy.find(task, samples, sun_windows, failures)
    if windows:
        reason_summary = None
    else:
        reason_summary = _summarize_failures(failures)
        if not reason_summary:
            reason_summary = 'No windows matched all constraints.'
    reason_details = [{'reason': reason, 'count': count} for reason, count in failures.most_common()] if failures else []
    return {'windows': windows, 'reason_summary': reason_summary, 'reason_details': reason_details}
