"""Scheduled entry point: refresh the forecast and tasks, then recompute task windows.

Run from cron, e.g. hourly:
    python scripts/run_sync.py
"""
from datetime import datetime, timezone
from pathlib import Path
import argparse
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import structlog

from photoplanner import crud, tasks_sheet, weather
from photoplanner.config import get_settings
from photoplanner.database import SessionLocal, engine, init_db
from photoplanner.logging_config import configure_logging
from photoplanner.sync import WindowStoreError, run_task_windows_sync

logger = structlog.get_logger("run_sync")


def sync_forecast(settings) -> None:
    try:
        forecast = weather.fetch_forecast(settings.default_lat, settings.default_lng, settings)
    except weather.WeatherServiceError as exc:
        logger.error("forecast_sync_failed", error=str(exc), status_code=exc.status_code)
        return
    with SessionLocal() as db:
        crud.store_forecast(
            db, forecast.lat, forecast.lng, forecast.samples, forecast.sun_times, forecast.utc_offset_seconds
        )
        db.commit()


def sync_tasks(settings) -> None:
    if not settings.tasks_sheet_url:
        logger.warning("tasks_sheet_not_configured")
        return
    try:
        csv_text = tasks_sheet.fetch_sheet(settings.tasks_sheet_url, settings.request_timeout)
        with SessionLocal() as db:
            tasks_sheet.sync_tasks(db, csv_text)
    except tasks_sheet.TaskSheetError as exc:
        logger.error("tasks_sync_failed", error=str(exc))


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--skip-forecast", action="store_true", help="do not fetch a new forecast")
    parser.add_argument("--skip-tasks", action="store_true", help="do not import the task sheet")
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)
    init_db(engine)

    if not args.skip_forecast:
        sync_forecast(settings)
    if not args.skip_tasks:
        sync_tasks(settings)

    source = crud.SqlForecastSource(SessionLocal, (settings.default_lat, settings.default_lng))
    try:
        report = run_task_windows_sync(
            source, crud.SqlWindowStore(SessionLocal), datetime.now(timezone.utc), settings
        )
    except WindowStoreError as exc:
        logger.error("task_windows_sync_failed", error=str(exc))
        return 1
    for failure in report.failures:
        logger.warning("task_failed", task_id=failure.task_id, error=failure.error)
    return 0


if __name__ == "__main__":
    sys.exit(main())
