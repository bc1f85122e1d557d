# greentrain/domain/train_records.py
from __future__ import annotations

from datetime import date
from typing import Annotated, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from greentrain.domain.models import (
    CalendarRule,
    CalendarSpec,
    DateRange,
    RelativeTime,
    Station,
    Train,
)


def _rel(value: str | None) -> RelativeTime | None:
    return RelativeTime.parse(value) if value else None


def _check_weekdays(value: list[int]) -> list[int]:
    bad = [d for d in value if not 1 <= int(d) <= 7]
    if bad:
        raise ValueError(f"weekdays must be 1..7 (Monday=1), got {bad}")
    return value


Weekdays = Annotated[list[int], AfterValidator(_check_weekdays)]


class DateRangeRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    start: date
    end: date
    weekdays: Weekdays | None = None

    def to_domain(self) -> DateRange:
        wd = tuple(self.weekdays) if self.weekdays is not None else None
        return DateRange(start=self.start, end=self.end, weekdays=wd)


class CalendarRuleRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    freq: Literal["DAILY", "WEEKLY"]
    start: date
    end: date
    weekdays: Weekdays | None = None

    def to_domain(self) -> CalendarRule:
        wd = tuple(self.weekdays) if self.weekdays is not None else None
        return CalendarRule(freq=self.freq, start=self.start, end=self.end, weekdays=wd)


class CalendarRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    includes: list[date] = Field(default_factory=list)
    excludes: list[date] = Field(default_factory=list)
    include_ranges: list[DateRangeRecord] = Field(default_factory=list)
    exclude_ranges: list[DateRangeRecord] = Field(default_factory=list)
    rules: list[CalendarRuleRecord] = Field(default_factory=list)


class StationRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    description: str | None = None
    arrival_time: str | None = None
    departure_time: str | None = None
    points: int = Field(0, ge=0)

    @field_validator("arrival_time", "departure_time")
    @classmethod
    def _valid_rel(cls, v: str | None) -> str | None:
        if v:
            RelativeTime.parse(v)
        return v or None

    def to_domain(self) -> Station:
        return Station(
            name=self.name,
            arrival_time=_rel(self.arrival_time),
            departure_time=_rel(self.departure_time),
            description=self.description,
            points=self.points,
        )


class TrainRecord(BaseModel):
    """One entry of trains.json."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(pattern=r"^[A-Za-z0-9_-]+$")
    name: str
    theme: str = ""
    description: str | None = None
    timezone: str | None = None
    status: Literal["draft", "hidden", "paused", "active", "deprecated", "archived"]
    status_note: str | None = None
    carriages: int = Field(ge=1)
    rows_per_carriage: int = Field(ge=1)
    departure_time: str | None = None
    service_days: Weekdays = Field(default_factory=list)
    calendar: CalendarRecord = Field(default_factory=CalendarRecord)
    sales_open_rel: str | None = None
    sales_close_before_departure_minutes: int = Field(0, ge=0)
    stations: list[StationRecord] = Field(min_length=2)

    @field_validator("departure_time", "sales_open_rel")
    @classmethod
    def _valid_rel(cls, v: str | None) -> str | None:
        if v:
            RelativeTime.parse(v)
        return v or None

    @field_validator("timezone")
    @classmethod
    def _valid_tz(cls, v: str | None) -> str | None:
        if not v:
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"unknown timezone {v!r}") from e
        return v

    @model_validator(mode="after")
    def _station_ends(self) -> TrainRecord:
        first, last = self.stations[0], self.stations[-1]
        if first.arrival_time:
            raise ValueError(f"origin station {first.name!r} must not have an arrival_time")
        if last.departure_time:
            raise ValueError(f"terminal station {last.name!r} must not have a departure_time")
        if not (first.departure_time or self.departure_time):
            raise ValueError("origin station has no departure_time")
        return self

    def to_domain(self, default_tz: str) -> Train:
        stations = [s.to_domain() for s in self.stations]
        if stations[0].departure_time is None:
            origin = stations[0]
            stations[0] = Station(
                name=origin.name,
                arrival_time=None,
                departure_time=_rel(self.departure_time),
                description=origin.description,
                points=origin.points,
            )
        cal = self.calendar
        return Train(
            id=self.id,
            name=self.name,
            timezone=self.timezone or default_tz,
            status=self.status,
            carriages=self.carriages,
            rows_per_carriage=self.rows_per_carriage,
            stations=tuple(stations),
            calendar=CalendarSpec(
                service_days=frozenset(self.service_days),
                rules=tuple(r.to_domain() for r in cal.rules),
                include_ranges=tuple(r.to_domain() for r in cal.include_ranges),
                exclude_ranges=tuple(r.to_domain() for r in cal.exclude_ranges),
                includes=tuple(cal.includes),
                excludes=tuple(cal.excludes),
            ),
            sales_open_rel=_rel(self.sales_open_rel),
            sales_close_before_departure_minutes=self.sales_close_before_departure_minutes,
            theme=self.theme,
            description=self.description,
            status_note=self.status_note,
        )
