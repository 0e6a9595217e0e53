"""Pydantic models describing pipeline configuration."""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from pathlib import Path
from typing import Literal, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

SAVANT_LEADERBOARD_URL = "https://baseballsavant.mlb.com/leaderboard/custom"

_MONTH_KEY = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class BackoffSettings(BaseModel):
    max_attempts: int = Field(3, ge=1)
    base_delay_seconds: float = Field(30.0, ge=0.0)
    multiplier: float = Field(2.0, ge=1.0)
    max_delay_seconds: float = Field(600.0, ge=0.0)

    model_config = ConfigDict(frozen=True)


class ActiveWindow(BaseModel):
    """Time-of-day window (local to the configured timezone) when games are live."""

    start: time
    end: time
    weekdays: Tuple[int, ...] = (0, 1, 2, 3, 4, 5, 6)

    model_config = ConfigDict(frozen=True)

    @field_validator("weekdays")
    @classmethod
    def _valid_weekdays(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if not value or any(day < 0 or day > 6 for day in value):
            raise ValueError("weekdays must be a non-empty list of integers 0 (Monday) to 6 (Sunday)")
        return value

    def contains(self, moment: datetime) -> bool:
        current = moment.time()
        if self.start <= self.end:
            return moment.weekday() in self.weekdays and self.start <= current < self.end
        # Window wraps past midnight; the tail belongs to the previous day's window.
        if current >= self.start:
            return moment.weekday() in self.weekdays
        if current < self.end:
            return (moment - timedelta(days=1)).weekday() in self.weekdays
        return False


class CadenceSettings(BaseModel):
    active_windows: Tuple[ActiveWindow, ...] = (
        ActiveWindow(start=time(12, 0), end=time(2, 0)),
    )
    active_interval_seconds: float = Field(900.0, gt=0.0)
    idle_interval_seconds: float = Field(21_600.0, gt=0.0)

    model_config = ConfigDict(frozen=True)


class MonthPeriod(BaseModel):
    key: str
    start: date
    end: date

    model_config = ConfigDict(frozen=True)

    @field_validator("key")
    @classmethod
    def _month_key(cls, value: str) -> str:
        if not _MONTH_KEY.match(value):
            raise ValueError(f"month key must look like 'YYYY-MM', got {value!r}")
        return value

    @model_validator(mode="after")
    def _ordered(self) -> "MonthPeriod":
        if self.end < self.start:
            raise ValueError(f"month {self.key} ends before it starts")
        return self


class SeasonCalendar(BaseModel):
    season_year: int = Field(..., ge=1871)
    opening_day: date
    regular_season_end: date
    postseason_end: Optional[date] = None
    allstar_snapshot_date: Optional[date] = None
    months: Tuple[MonthPeriod, ...] = ()

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _consistent_dates(self) -> "SeasonCalendar":
        if self.regular_season_end < self.opening_day:
            raise ValueError("regular_season_end must not precede opening_day")
        if self.postseason_end is not None and self.postseason_end < self.regular_season_end:
            raise ValueError("postseason_end must not precede regular_season_end")
        if self.allstar_snapshot_date is not None and not (
            self.opening_day <= self.allstar_snapshot_date <= self.regular_season_end
        ):
            raise ValueError("allstar_snapshot_date must fall inside the regular season")
        previous_end: Optional[date] = None
        for month in self.months:
            if month.start < self.opening_day or month.end > self.season_end:
                raise ValueError(f"month {month.key} falls outside the season")
            if previous_end is not None and month.start <= previous_end:
                raise ValueError(f"month {month.key} overlaps or precedes the previous month")
            previous_end = month.end
        return self

    @property
    def season_end(self) -> date:
        return self.postseason_end or self.regular_season_end

    def month_periods(self) -> Tuple[MonthPeriod, ...]:
        """Configured month windows, or calendar months clipped to the regular season."""

        if self.months:
            return self.months
        periods = []
        cursor = self.opening_day.replace(day=1)
        while cursor <= self.regular_season_end:
            following = (cursor.replace(day=28) + timedelta(days=4)).replace(day=1)
            start = max(cursor, self.opening_day)
            end = min(following - timedelta(days=1), self.regular_season_end)
            periods.append(MonthPeriod(key=f"{cursor.year:04d}-{cursor.month:02d}", start=start, end=end))
            cursor = following
        return tuple(periods)

    def month(self, key: str) -> MonthPeriod:
        for period in self.month_periods():
            if period.key == key:
                return period
        raise KeyError(f"No month window configured for {key!r}")


class SourceSettings(BaseModel):
    kind: Literal["savant", "csv"] = "savant"
    base_url: str = SAVANT_LEADERBOARD_URL
    timeout_seconds: float = Field(15.0, gt=0.0)
    csv_path: Optional[Path] = None
    min_home_runs: int = Field(0, ge=0)
    min_plate_appearances: Optional[int] = Field(None, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _csv_requires_path(self) -> "SourceSettings":
        if self.kind == "csv" and self.csv_path is None:
            raise ValueError("csv_path is required when source kind is 'csv'")
        return self


class PipelineConfig(BaseModel):
    """Top-level configuration for the ingestion pipeline."""

    season: SeasonCalendar
    db_path: Path = Path("hrderby.sqlite")
    timezone: str = "America/New_York"
    scoring_workers: int = Field(4, ge=1)
    period_finalize_grace_days: int = Field(1, ge=0)
    source: SourceSettings = SourceSettings()
    backoff: BackoffSettings = BackoffSettings()
    cadence: CadenceSettings = CadenceSettings()

    model_config = ConfigDict(frozen=True)

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone {value!r}") from exc
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)
