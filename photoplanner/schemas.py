from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Condition(str, Enum):
    GOLDEN_HOUR_MORNING = 'golden-hour-morning'
    GOLDEN_HOUR_EVENING = 'golden-hour-evening'
    GOLDEN_HOUR_ANY = 'golden-hour-any'
    BLUE_HOUR_MORNING = 'blue-hour-morning'
    BLUE_HOUR_EVENING = 'blue-hour-evening'
    FOG = 'fog'
    OVERCAST = 'overcast'
    CLEAR_NOON = 'clear-noon'
    CLEAR_ANY = 'clear-any'
    CLOUDY = 'cloudy'
    ANY = 'any'

    @classmethod
    def parse(cls, value) -> 'Condition':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.ANY

    @property
    def is_sun_based(self) -> bool:
        return self.value.startswith(('golden-hour', 'blue-hour'))


class TimeWindow(str, Enum):
    ANY_DAY = 'any_day'
    MORNING_ONLY = 'morning_only'
    EVENING_ONLY = 'evening_only'
    WEEKEND_ONLY = 'weekend_only'
    WEEKDAY_ONLY = 'weekday_only'

    @classmethod
    def parse(cls, value) -> 'TimeWindow':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.ANY_DAY

    def allows_day(self, day_of_week: int) -> bool:
        """``day_of_week`` follows ``date.weekday()``: Monday is 0."""
        is_weekend = day_of_week >= 5
        if self is TimeWindow.WEEKEND_ONLY:
            return is_weekend
        if self is TimeWindow.WEEKDAY_ONLY:
            return not is_weekend
        return True

    def allows_morning(self) -> bool:
        return self is not TimeWindow.EVENING_ONLY

    def allows_evening(self) -> bool:
        return self is not TimeWindow.MORNING_ONLY


class TaskBase(BaseModel):
    task_id: str
    title: str
    location_raw: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    radius_km: float = 10.0
    condition: Condition = Condition.ANY
    time_window: TimeWindow = TimeWindow.ANY_DAY
    notes: Optional[str] = None
    active: bool = True

    @field_validator('condition', mode='before')
    @classmethod
    def coerce_condition(cls, value) -> Condition:
        return Condition.parse(value)

    @field_validator('time_window', mode='before')
    @classmethod
    def coerce_time_window(cls, value) -> TimeWindow:
        return TimeWindow.parse(value)

    @property
    def location(self) -> Optional[Tuple[float, float]]:
        if self.lat is None or self.lng is None:
            return None
        return self.lat, self.lng


class TaskCreate(TaskBase):
    pass


class Task(TaskBase):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class WeatherSample(BaseModel):
    date_time: datetime
    lat: Optional[float] = None
    lng: Optional[float] = None
    clouds: Optional[float] = None
    precip: Optional[float] = None
    visibility: Optional[float] = None
    temp: Optional[float] = None
    photoday_score: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator('date_time')
    @classmethod
    def normalize_time(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class SunWindow(BaseModel):
    date: date
    lat: Optional[float] = None
    lng: Optional[float] = None
    sunrise: Optional[datetime] = None
    sunset: Optional[datetime] = None
    golden_morning_start: Optional[datetime] = None
    golden_morning_end: Optional[datetime] = None
    golden_evening_start: Optional[datetime] = None
    golden_evening_end: Optional[datetime] = None
    blue_morning_start: Optional[datetime] = None
    blue_morning_end: Optional[datetime] = None
    blue_evening_start: Optional[datetime] = None
    blue_evening_end: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @field_validator(
        'sunrise', 'sunset',
        'golden_morning_start', 'golden_morning_end',
        'golden_evening_start', 'golden_evening_end',
        'blue_morning_start', 'blue_morning_end',
        'blue_evening_start', 'blue_evening_end',
    )
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class ShootingWindow(BaseModel):
    id: Optional[int] = None
    task_id: str
    window_start: datetime
    window_end: datetime
    score: int = Field(ge=0, le=100)
    reason: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('window_start', 'window_end', 'created_at')
    @classmethod
    def normalize_times(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @model_validator(mode='after')
    def check_order(self) -> 'ShootingWindow':
        if self.window_end <= self.window_start:
            raise ValueError('window_end must be after window_start')
        return self


class ShootingWindowWithTask(ShootingWindow):
    task_title: str
    task_notes: Optional[str] = None


class TaskWindows(BaseModel):
    task: Task
    windows: List[ShootingWindow]


class WindowResult(BaseModel):
    display: str
    start: datetime
    end: datetime
    score: int
    reason: str


class ReasonDetail(BaseModel):
    reason: str
    count: int


class WindowSummary(BaseModel):
    possible_windows: List[WindowResult]
    reason_summary: Optional[str] = None
    reason_details: List[ReasonDetail] = Field(default_factory=list)


class SuggestionRequest(BaseModel):
    task_id: str


class SuggestionResponse(WindowSummary):
    task: Task


class TaskFailure(BaseModel):
    task_id: str
    error: str


class SyncReport(BaseModel):
    tasks_seen: int = 0
    tasks_matched: int = 0
    windows_created: int = 0
    failures: List[TaskFailure] = Field(default_factory=list)


class ForecastSyncResult(BaseModel):
    lat: float
    lng: float
    weather_samples: int
    sun_windows: int


class TaskSyncResult(BaseModel):
    synced: int
    skipped: int


class ConditionsScore(BaseModel):
    clouds: float = Field(ge=0, le=100)
    precip: float = Field(ge=0)
    visibility: float = Field(ge=0)
    temp: float
    score: int
    description: str
