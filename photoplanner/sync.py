"""The task-windows batch run.

Reads a snapshot of tasks and forecast data, matches every task on its own,
then commits the result in one unit of work: stale windows are swept first,
then each matched task's windows are replaced with its ranked set.
"""
from contextlib import AbstractContextManager
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

import structlog

from .config import Settings
from .find_windows import CandidateWindow, find_windows
from .schemas import SunWindow, SyncReport, Task, TaskFailure, WeatherSample

logger = structlog.get_logger(__name__)

DEFAULT_WINDOWS_PER_TASK = 5

Location = Optional[Tuple[float, float]]


class WindowStoreError(Exception):
    """Raised when shooting windows could not be written."""


class ForecastSource(Protocol):
    def get_active_tasks(self) -> List[Task]: ...

    def get_weather_samples(self, location: Location, start: datetime, end: datetime) -> List[WeatherSample]: ...

    def get_sun_windows(self, location: Location, start: date, end: date) -> List[SunWindow]: ...

    def get_utc_offset(self, location: Location) -> Optional[int]: ...


class WindowUnitOfWork(Protocol):
    def delete_windows_ending_before(self, now: datetime) -> int: ...

    def delete_windows_for_task(self, task_id: str) -> int: ...

    def insert_window(self, task_id: str, start: datetime, end: datetime, score: int, reason: str) -> None: ...


class WindowStore(Protocol):
    def unit_of_work(self) -> AbstractContextManager[WindowUnitOfWork]: ...


def resolve_timezone_offset(settings: Settings, forecast_offset: Optional[int]) -> int:
    """The configured override if set, else the offset stored with the forecast."""
    if settings.timezone_offset_seconds is not None:
        return settings.timezone_offset_seconds
    return forecast_offset or 0


def rank_windows(
    candidates: Iterable[CandidateWindow],
    limit: int = DEFAULT_WINDOWS_PER_TASK,
) -> List[CandidateWindow]:
    """Best score first, earlier start breaking ties."""
    ranked = sorted(candidates, key=lambda window: (-window.score, window.start))
    return ranked[:limit]


def match_tasks(
    tasks: Sequence[Task],
    source: ForecastSource,
    now: datetime,
    settings: Settings,
) -> Tuple[Dict[str, List[CandidateWindow]], List[TaskFailure]]:
    """Rank windows for every task, isolating per-task failures."""
    horizon_end = now + timedelta(hours=settings.forecast_horizon_hours)
    today = now.date()
    last_day = today + timedelta(days=settings.sun_window_days)

    forecasts: Dict[Location, Tuple[List[WeatherSample], List[SunWindow], int]] = {}
    matched: Dict[str, List[CandidateWindow]] = {}
    failures: List[TaskFailure] = []

    for task in tasks:
        log = logger.bind(task_id=task.task_id, condition=task.condition.value)
        try:
            location = task.location
            if location not in forecasts:
                forecasts[location] = (
                    source.get_weather_samples(location, now, horizon_end),
                    source.get_sun_windows(location, today, last_day),
                    resolve_timezone_offset(settings, source.get_utc_offset(location)),
                )
            samples, sun_windows, timezone_offset = forecasts[location]
            result = find_windows(
                task,
                samples,
                sun_windows,
                weather_slack=settings.weather_slack,
                timezone_offset=timezone_offset,
            )
        except Exception as exc:
            log.exception("task_match_failed")
            failures.append(TaskFailure(task_id=task.task_id, error=str(exc) or type(exc).__name__))
            continue
        matched[task.task_id] = rank_windows(result['windows'], settings.windows_per_task)
        if not result['windows']:
            log.info("task_no_windows", reason=result['reason_summary'])

    return matched, failures


def persist_windows(store: WindowStore, matched: Dict[str, List[CandidateWindow]], now: datetime) -> int:
    """Sweep stale windows, then replace each matched task's windows."""
    created = 0
    try:
        with store.unit_of_work() as uow:
            swept = uow.delete_windows_ending_before(now)
            logger.debug("stale_windows_swept", count=swept)
            for task_id, windows in matched.items():
                uow.delete_windows_for_task(task_id)
                for window in windows:
                    uow.insert_window(task_id, window.start, window.end, window.score, window.reason)
                    created += 1
    except WindowStoreError:
        raise
    except Exception as exc:
        raise WindowStoreError(f"Failed to store task windows: {exc}") from exc
    return created


def run_task_windows_sync(
    source: ForecastSource,
    store: WindowStore,
    now: datetime,
    settings: Settings,
) -> SyncReport:
    logger.info("task_windows_sync_started", now=now.isoformat())
    tasks = source.get_active_tasks()
    if not tasks:
        logger.info("no_active_tasks")

    matched, failures = match_tasks(tasks, source, now, settings)
    created = persist_windows(store, matched, now)

    report = SyncReport(
        tasks_seen=len(tasks),
        tasks_matched=len(matched),
        windows_created=created,
        failures=failures,
    )
    logger.info(
        "task_windows_sync_finished",
        tasks=report.tasks_seen,
        windows=report.windows_created,
        failed=len(report.failures),
    )
    return report
