from datetime import datetime, timedelta, timezone
from typing import List

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy.orm import Session

from . import crud, schemas, tasks_sheet, weather
from .config import get_settings
from .database import SessionLocal, engine, get_db, init_db
from .find_windows import find_windows, format_window
from .logging_config import configure_logging
from .sync import WindowStoreError, rank_windows, resolve_timezone_offset, run_task_windows_sync
from .weather_score import Conditions, describe_conditions, photo_day_score

settings = get_settings()
configure_logging(settings.log_level, settings.log_json)

init_db(engine)

app = FastAPI(title="Photo Planner")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _forecast_source():
    return crud.SqlForecastSource(SessionLocal, (settings.default_lat, settings.default_lng))


def _window_with_task(window, task) -> schemas.ShootingWindowWithTask:
    return schemas.ShootingWindowWithTask(
        id=window.id,
        task_id=window.task_id,
        window_start=window.window_start,
        window_end=window.window_end,
        score=window.score,
        reason=window.reason,
        created_at=window.created_at,
        task_title=task.title,
        task_notes=task.notes,
    )


@app.get("/tasks/", response_model=List[schemas.Task])
def read_tasks(db: Session = Depends(get_db)):
    return crud.get_tasks(db)


@app.get("/tasks/{task_id}", response_model=schemas.Task)
def read_task(task_id: str, db: Session = Depends(get_db)):
    task = crud.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.get("/tasks/{task_id}/windows", response_model=schemas.TaskWindows)
def read_task_windows(task_id: str, db: Session = Depends(get_db)):
    task = crud.get_task(db, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    rows = crud.get_windows(db, task_id=task_id, after=_now())
    return {"task": task, "windows": [window for window, _ in rows]}


@app.get("/windows/", response_model=List[schemas.ShootingWindowWithTask])
def read_windows(db: Session = Depends(get_db)):
    return [_window_with_task(window, task) for window, task in crud.get_windows(db, after=_now())]


@app.post("/suggestions/", response_model=schemas.SuggestionResponse)
def get_suggestions(request: schemas.SuggestionRequest, db: Session = Depends(get_db)):
    """Preview the ranked windows for one task without storing them."""
    db_task = crud.get_task(db, request.task_id)
    if not db_task:
        raise HTTPException(status_code=404, detail="Task not found")
    task = schemas.Task.model_validate(db_task)
    now = _now()
    source = _forecast_source()
    samples = source.get_weather_samples(
        task.location, now, now + timedelta(hours=settings.forecast_horizon_hours)
    )
    sun_windows = source.get_sun_windows(
        task.location, now.date(), now.date() + timedelta(days=settings.sun_window_days)
    )
    timezone_offset = resolve_timezone_offset(settings, source.get_utc_offset(task.location))
    window_result = find_windows(
        task,
        samples,
        sun_windows,
        weather_slack=settings.weather_slack,
        timezone_offset=timezone_offset,
    )
    ranked = rank_windows(window_result["windows"], settings.windows_per_task)
    return {
        "task": task,
        "possible_windows": [
            {
                "display": format_window(window.start, window.end, timezone_offset),
                "start": window.start,
                "end": window.end,
                "score": window.score,
                "reason": window.reason,
            }
            for window in ranked
        ],
        "reason_summary": window_result["reason_summary"],
        "reason_details": window_result["reason_details"],
    }


@app.post("/sync/task-windows", response_model=schemas.SyncReport)
def sync_task_windows():
    try:
        return run_task_windows_sync(
            _forecast_source(),
            crud.SqlWindowStore(SessionLocal),
            _now(),
            settings,
        )
    except WindowStoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))


@app.post("/sync/forecast", response_model=schemas.ForecastSyncResult)
def sync_forecast(db: Session = Depends(get_db)):
    try:
        forecast = weather.fetch_forecast(settings.default_lat, settings.default_lng, settings)
    except weather.WeatherServiceError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc))
    crud.store_forecast(
        db, forecast.lat, forecast.lng, forecast.samples, forecast.sun_times, forecast.utc_offset_seconds
    )
    db.commit()
    return {
        "lat": forecast.lat,
        "lng": forecast.lng,
        "weather_samples": len(forecast.samples),
        "sun_windows": len(forecast.sun_times),
    }


@app.post("/sync/tasks", response_model=schemas.TaskSyncResult)
def sync_tasks(db: Session = Depends(get_db)):
    if not settings.tasks_sheet_url:
        raise HTTPException(status_code=400, detail="Task sheet URL is not configured.")
    try:
        csv_text = tasks_sheet.fetch_sheet(settings.tasks_sheet_url, settings.request_timeout)
        return tasks_sheet.sync_tasks(db, csv_text)
    except tasks_sheet.TaskSheetError as exc:
        raise HTTPException(status_code=502, detail=str(exc))


@app.get("/conditions/score", response_model=schemas.ConditionsScore)
def score_conditions(
    clouds: float = Query(..., ge=0, le=100),
    precip: float = Query(0.0, ge=0),
    visibility: float = Query(20.0, ge=0),
    temp: float = Query(15.0),
):
    conditions = Conditions(clouds=clouds, precip=precip, visibility=visibility, temp=temp)
    return {
        **conditions._asdict(),
        "score": photo_day_score(conditions),
        "description": describe_conditions(conditions),
    }
