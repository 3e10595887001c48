import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from photoplanner.schemas import Condition, TimeWindow
from photoplanner.tasks_sheet import TaskSheetError, fetch_sheet, parse_tasks


SHEET = """Task_ID,Title,Location,Radius_km,Condition,Time_Window,Notes,Active
t1,Harbour at dawn,"47.60, -122.33",5,golden-hour-morning,weekend_only,"Bring ND filters, tripod",TRUE
t2,Foggy forest,Rainier foothills,,fog,morning_only,,no
,Missing id,,,,,,
t3,Anything goes,,abc,sunny,sometimes,,
t4,,,,,,,
"""


def test_parse_tasks_reads_all_columns():
    tasks, skipped = parse_tasks(SHEET)

    assert [task.task_id for task in tasks] == ["t1", "t2", "t3"]
    assert skipped == 2

    harbour = tasks[0]
    assert harbour.title == "Harbour at dawn"
    assert harbour.location == (47.60, -122.33)
    assert harbour.radius_km == 5
    assert harbour.condition is Condition.GOLDEN_HOUR_MORNING
    assert harbour.time_window is TimeWindow.WEEKEND_ONLY
    assert harbour.notes == "Bring ND filters, tripod"
    assert harbour.active


def test_free_text_location_has_no_coordinates():
    forest = parse_tasks(SHEET)[0][1]

    assert forest.location_raw == "Rainier foothills"
    assert forest.location is None
    assert forest.radius_km == 10
    assert forest.notes is None
    assert not forest.active


def test_unknown_enum_values_fall_back_to_defaults():
    anything = parse_tasks(SHEET)[0][2]

    assert anything.condition is Condition.ANY
    assert anything.time_window is TimeWindow.ANY_DAY
    assert anything.radius_km == 10
    assert anything.active


def test_only_required_columns():
    tasks, skipped = parse_tasks("task_id,title\na,Alpha\n")

    assert skipped == 0
    assert tasks[0].condition is Condition.ANY
    assert tasks[0].active


def test_missing_required_columns():
    with pytest.raises(TaskSheetError, match="task_id, title"):
        parse_tasks("id,name\n1,Alpha\n")


def test_empty_sheet():
    assert parse_tasks("") == ([], 0)


@patch("photoplanner.tasks_sheet.requests.get")
def test_fetch_sheet_wraps_http_errors(mock_get):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404 Not Found")
    mock_get.return_value = response

    with pytest.raises(TaskSheetError, match="404 Not Found"):
        fetch_sheet("https://example.com/tasks.csv")
