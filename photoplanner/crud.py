from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, List, Optional, Sequence, Tuple

import structlog
from sqlalchemy.orm import Session, sessionmaker

from . import models, schemas
from .geo import nearest
from .sun import SunTimes

logger = structlog.get_logger(__name__)

Location = Optional[Tuple[float, float]]


def get_task(db: Session, task_id: str):
    return db.query(models.Task).filter(models.Task.task_id == task_id).first()


def get_tasks(db: Session, active_only: bool = False):
    query = db.query(models.Task)
    if active_only:
        query = query.filter(models.Task.active.is_(True))
    return query.order_by(models.Task.task_id).all()


def upsert_task(db: Session, task: schemas.TaskCreate) -> models.Task:
    db_task = get_task(db, task.task_id)
    if db_task is None:
        db_task = models.Task(task_id=task.task_id)
        db.add(db_task)
    update_data = task.model_dump(exclude={'task_id'})
    update_data['condition'] = task.condition.value
    update_data['time_window'] = task.time_window.value
    for field, value in update_data.items():
        setattr(db_task, field, value)
    return db_task


def get_windows(db: Session, task_id: Optional[str] = None, after: Optional[datetime] = None):
    """Stored windows joined with their task, best first."""
    query = (
        db.query(models.TaskWindow, models.Task)
        .join(models.Task, models.Task.task_id == models.TaskWindow.task_id)
        .filter(models.Task.active.is_(True))
    )
    if task_id is not None:
        query = query.filter(models.TaskWindow.task_id == task_id)
    if after is not None:
        query = query.filter(models.TaskWindow.window_end >= after)
    return query.order_by(models.TaskWindow.score.desc(), models.TaskWindow.window_start).all()


def store_forecast(
    db: Session,
    lat: float,
    lng: float,
    samples: Sequence[schemas.WeatherSample],
    sun_times: Sequence[SunTimes],
    utc_offset_seconds: Optional[int] = None,
) -> None:
    """Upsert hourly samples and sun windows for one location."""
    for sample in samples:
        slot = (
            db.query(models.WeatherSlot)
            .filter_by(date_time=sample.date_time, lat=lat, lng=lng)
            .first()
        )
        if slot is None:
            slot = models.WeatherSlot(date_time=sample.date_time, lat=lat, lng=lng)
            db.add(slot)
        slot.clouds = sample.clouds
        slot.precip = sample.precip
        slot.visibility = sample.visibility
        slot.temp = sample.temp
        slot.photoday_score = sample.photoday_score
        slot.utc_offset_seconds = utc_offset_seconds

    for sun in sun_times:
        row = db.query(models.SunWindow).filter_by(date=sun.day, lat=lat, lng=lng).first()
        if row is None:
            row = models.SunWindow(date=sun.day, lat=lat, lng=lng)
            db.add(row)
        row.sunrise = sun.sunrise
        row.sunset = sun.sunset
        row.golden_morning_start = sun.golden_morning_start
        row.golden_morning_end = sun.golden_morning_end
        row.golden_evening_start = sun.golden_evening_start
        row.golden_evening_end = sun.golden_evening_end
        row.blue_morning_start = sun.blue_morning_start
        row.blue_morning_end = sun.blue_morning_end
        row.blue_evening_start = sun.blue_evening_start
        row.blue_evening_end = sun.blue_evening_end


class SqlForecastSource:
    """Reads tasks and forecast rows, resolving a task to its nearest forecast point."""

    def __init__(self, session_factory: sessionmaker, default_location: Tuple[float, float]) -> None:
        self.session_factory = session_factory
        self.default_location = default_location

    def get_active_tasks(self) -> List[schemas.Task]:
        with self.session_factory() as db:
            return [schemas.Task.model_validate(task) for task in get_tasks(db, active_only=True)]

    def _resolve(self, db: Session, table, location: Location) -> Optional[Tuple[float, float]]:
        points = [(row.lat, row.lng) for row in db.query(table.lat, table.lng).distinct()]
        found = nearest(location or self.default_location, points)
        if found is None:
            return None
        point, distance = found
        logger.debug("forecast_point_resolved", table=table.__tablename__, point=point, distance_km=round(distance, 1))
        return point

    def get_weather_samples(self, location: Location, start: datetime, end: datetime) -> List[schemas.WeatherSample]:
        with self.session_factory() as db:
            point = self._resolve(db, models.WeatherSlot, location)
            if point is None:
                return []
            rows = (
                db.query(models.WeatherSlot)
                .filter(
                    models.WeatherSlot.lat == point[0],
                    models.WeatherSlot.lng == point[1],
                    models.WeatherSlot.date_time >= start,
                    models.WeatherSlot.date_time <= end,
                )
                .order_by(models.WeatherSlot.date_time)
                .all()
            )
            return [schemas.WeatherSample.model_validate(row) for row in rows]

    def get_utc_offset(self, location: Location) -> Optional[int]:
        """UTC offset reported with the latest forecast for the nearest point."""
        with self.session_factory() as db:
            point = self._resolve(db, models.WeatherSlot, location)
            if point is None:
                return None
            return (
                db.query(models.WeatherSlot.utc_offset_seconds)
                .filter(
                    models.WeatherSlot.lat == point[0],
                    models.WeatherSlot.lng == point[1],
                    models.WeatherSlot.utc_offset_seconds.isnot(None),
                )
                .order_by(models.WeatherSlot.date_time.desc())
                .limit(1)
                .scalar()
            )

    def get_sun_windows(self, location: Location, start: date, end: date) -> List[schemas.SunWindow]:
        with self.session_factory() as db:
            point = self._resolve(db, models.SunWindow, location)
            if point is None:
                return []
            rows = (
                db.query(models.SunWindow)
                .filter(
                    models.SunWindow.lat == point[0],
                    models.SunWindow.lng == point[1],
                    models.SunWindow.date >= start,
                    models.SunWindow.date <= end,
                )
                .order_by(models.SunWindow.date)
                .all()
            )
            return [schemas.SunWindow.model_validate(row) for row in rows]


class SqlWindowUnitOfWork:
    def __init__(self, db: Session) -> None:
        self.db = db

    def delete_windows_ending_before(self, now: datetime) -> int:
        return (
            self.db.query(models.TaskWindow)
            .filter(models.TaskWindow.window_end < now)
            .delete(synchronize_session=False)
        )

    def delete_windows_for_task(self, task_id: str) -> int:
        return (
            self.db.query(models.TaskWindow)
            .filter(models.TaskWindow.task_id == task_id)
            .delete(synchronize_session=False)
        )

    def insert_window(self, task_id: str, start: datetime, end: datetime, score: int, reason: str) -> None:
        self.db.add(
            models.TaskWindow(
                task_id=task_id,
                window_start=start,
                window_end=end,
                score=score,
                reason=reason,
            )
        )


class SqlWindowStore:
    def __init__(self, session_factory: sessionmaker) -> None:
        self.session_factory = session_factory

    @contextmanager
    def unit_of_work(self) -> Iterator[SqlWindowUnitOfWork]:
        """One transaction around the sweep and inserts of a run."""
        db = self.session_factory()
        try:
            yield SqlWindowUnitOfWork(db)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
