"""Import photography tasks from a published spreadsheet CSV.

Expected columns (header row, any order, case-insensitive):
task_id, title, location, radius_km, condition, time_window, notes, active.
Only task_id and title are required.
"""
import csv
import io
from typing import List, Tuple

import requests
import structlog
from sqlalchemy.orm import Session

from . import crud, schemas
from .geo import parse_lat_lng

logger = structlog.get_logger(__name__)

DEFAULT_RADIUS_KM = 10.0
FALSY = {"false", "0", "no"}


class TaskSheetError(Exception):
    """Raised when the task sheet cannot be fetched or understood."""


def fetch_sheet(url: str, timeout: float = 10) -> str:
    try:
        resp = requests.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise TaskSheetError(f"Failed to fetch task sheet: {exc}") from exc
    return resp.text


def _cell(row: dict, key: str) -> str:
    return (row.get(key) or "").strip()


def parse_tasks(csv_text: str) -> Tuple[List[schemas.TaskCreate], int]:
    """Return the parsed tasks and the number of rows skipped."""
    reader = csv.DictReader(io.StringIO(csv_text))
    if reader.fieldnames is None:
        return [], 0
    reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    if "task_id" not in reader.fieldnames or "title" not in reader.fieldnames:
        raise TaskSheetError("Missing required columns: task_id, title")

    tasks: List[schemas.TaskCreate] = []
    skipped = 0
    for row in reader:
        task_id = _cell(row, "task_id")
        title = _cell(row, "title")
        if not task_id or not title:
            skipped += 1
            continue

        location_raw = _cell(row, "location") or None
        coords = parse_lat_lng(location_raw)
        radius_text = _cell(row, "radius_km")
        try:
            radius_km = float(radius_text) if radius_text else DEFAULT_RADIUS_KM
        except ValueError:
            radius_km = DEFAULT_RADIUS_KM

        tasks.append(
            schemas.TaskCreate(
                task_id=task_id,
                title=title,
                location_raw=location_raw,
                lat=coords[0] if coords else None,
                lng=coords[1] if coords else None,
                radius_km=radius_km,
                condition=_cell(row, "condition") or "any",
                time_window=_cell(row, "time_window") or "any_day",
                notes=_cell(row, "notes") or None,
                active=_cell(row, "active").lower() not in FALSY,
            )
        )
    return tasks, skipped


def sync_tasks(db: Session, csv_text: str) -> schemas.TaskSyncResult:
    tasks, skipped = parse_tasks(csv_text)
    for task in tasks:
        crud.upsert_task(db, task)
    db.commit()
    logger.info("tasks_synced", synced=len(tasks), skipped=skipped)
    return schemas.TaskSyncResult(synced=len(tasks), skipped=skipped)
