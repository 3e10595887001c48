from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Task(Base):
    __tablename__ = "tasks"
    task_id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    location_raw = Column(String, nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)
    radius_km = Column(Float, default=10.0)
    condition = Column(String, default="any")  # raw sheet value, coerced on read
    time_window = Column(String, default="any_day")
    notes = Column(Text, nullable=True)
    active = Column(Boolean, default=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WeatherSlot(Base):
    __tablename__ = "weather_slots"
    __table_args__ = (UniqueConstraint("date_time", "lat", "lng"),)
    id = Column(Integer, primary_key=True, index=True)
    date_time = Column(DateTime(timezone=True), nullable=False, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    clouds = Column(Float, nullable=True)
    precip = Column(Float, nullable=True)
    visibility = Column(Float, nullable=True)  # km
    temp = Column(Float, nullable=True)
    photoday_score = Column(Integer, nullable=True)
    utc_offset_seconds = Column(Integer, nullable=True)  # of the forecast location


class SunWindow(Base):
    __tablename__ = "sun_windows"
    __table_args__ = (UniqueConstraint("date", "lat", "lng"),)
    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, nullable=False, index=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    sunrise = Column(DateTime(timezone=True), nullable=True)
    sunset = Column(DateTime(timezone=True), nullable=True)
    golden_morning_start = Column(DateTime(timezone=True), nullable=True)
    golden_morning_end = Column(DateTime(timezone=True), nullable=True)
    golden_evening_start = Column(DateTime(timezone=True), nullable=True)
    golden_evening_end = Column(DateTime(timezone=True), nullable=True)
    blue_morning_start = Column(DateTime(timezone=True), nullable=True)
    blue_morning_end = Column(DateTime(timezone=True), nullable=True)
    blue_evening_start = Column(DateTime(timezone=True), nullable=True)
    blue_evening_end = Column(DateTime(timezone=True), nullable=True)


class TaskWindow(Base):
    __tablename__ = "task_windows"
    id = Column(Integer, primary_key=True, index=True)
    task_id = Column(String, ForeignKey("tasks.task_id"), nullable=False, index=True)
    window_start = Column(DateTime(timezone=True), nullable=False)
    window_end = Column(DateTime(timezone=True), nullable=False, index=True)
    score = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
