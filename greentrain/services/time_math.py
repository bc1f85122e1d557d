# greentrain/services/time_math.py
"""
Timezone-correct conversion of train-local relative times into instants,
plus the date arithmetic the rest of the engine relies on.

Every offset calculation in the package goes through this module.
"""
from __future__ import annotations

import logging
import re
import time
from collections.abc import Iterator
from datetime import UTC, date, datetime, timedelta
from functools import lru_cache
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from greentrain.config import settings
from greentrain.domain.errors import InvalidDate
from greentrain.domain.models import Instant, RelativeTime

log = logging.getLogger("time_math")

_DATE_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")


# -------------------- Zones --------------------


def default_tz_name() -> str:
    return getattr(settings, "DEFAULT_TIMEZONE", None) or "Asia/Shanghai"


@lru_cache(maxsize=64)
def _zone(tz_name: str) -> ZoneInfo:
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidDate(f"Unknown timezone: {tz_name!r}") from e


def _offset_seconds(epoch: int, tz: ZoneInfo) -> int:
    off = datetime.fromtimestamp(epoch, tz).utcoffset()
    return int(off.total_seconds()) if off is not None else 0


# -------------------- Parsing --------------------


def parse_relative_time(text: str | RelativeTime) -> RelativeTime:
    if isinstance(text, RelativeTime):
        return text
    return RelativeTime.parse(text)


def is_valid_relative_time(text: str) -> bool:
    try:
        RelativeTime.parse(text)
    except ValueError:
        return False
    return True


def parse_service_date(text: str | date) -> date:
    if isinstance(text, datetime):
        raise InvalidDate(f"Expected a calendar date, got datetime {text!r}")
    if isinstance(text, date):
        return text
    m = _DATE_RE.match(text or "") if isinstance(text, str) else None
    if not m:
        raise InvalidDate(f"Invalid date: {text!r}")
    try:
        return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
    except ValueError as e:
        raise InvalidDate(f"Invalid date: {text!r}") from e


def is_valid_service_date(text: str) -> bool:
    try:
        parse_service_date(text)
    except InvalidDate:
        return False
    return True


# -------------------- Instants --------------------


def instant_from_epoch(epoch: int | float, tz_name: str | None = None) -> Instant:
    tz_name = tz_name or default_tz_name()
    e = int(epoch)
    local = datetime.fromtimestamp(e, _zone(tz_name))
    return Instant(epoch=e, local_iso=local.isoformat(timespec="seconds"), tz_name=tz_name)


def instant_from_datetime(dt: datetime, tz_name: str | None = None) -> Instant:
    """Aware datetimes keep their moment; naive ones are read as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return instant_from_epoch(int(dt.timestamp()), tz_name)


def parse_instant(text: str, tz_name: str | None = None) -> Instant:
    s = (text or "").strip()
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError as e:
        raise InvalidDate(f"Invalid ISO instant: {text!r}") from e
    if dt.tzinfo is None:
        raise InvalidDate(f"ISO instant without offset: {text!r}")
    return instant_from_datetime(dt, tz_name)


def now_instant(tz_name: str | None = None) -> Instant:
    return instant_from_epoch(time.time(), tz_name)


def shift_minutes(instant: Instant, minutes: int) -> Instant:
    return instant_from_epoch(instant.epoch + int(minutes) * 60, instant.tz_name)


def seconds_between(a: Instant, b: Instant) -> int:
    return b.epoch - a.epoch


def to_instant(
    service_date: str | date,
    relative_time: str | RelativeTime,
    tz_name: str | None = None,
) -> Instant:
    """
    Resolve `relative_time` on `service_date` in `tz_name`.

    The wall time is first read as if it were UTC, then corrected by the
    zone offset measured at that approximation. If the offset at the
    corrected instant differs (a DST edge lies in between) the correction
    is applied once more with the new offset.
    """
    d = parse_service_date(service_date)
    rel = parse_relative_time(relative_time)
    tz_name = tz_name or default_tz_name()
    tz = _zone(tz_name)

    target = d + timedelta(days=rel.day_offset)
    wall = datetime(target.year, target.month, target.day, rel.hours, rel.minutes, tzinfo=UTC)
    approx = int(wall.timestamp())

    off1 = _offset_seconds(approx, tz)
    first = approx - off1
    off2 = _offset_seconds(first, tz)
    second = approx - off2
    if off2 != off1:
        log.debug(
            "DST correction %s %s %s: offset %s -> %s", d, rel, tz_name, off1, off2
        )

    inst = instant_from_epoch(second, tz_name)
    local = inst.local
    if (local.date(), local.hour, local.minute) != (target, rel.hours, rel.minutes):
        # Wall time falls in a DST gap: take the later candidate, past the gap.
        inst = instant_from_epoch(max(first, second), tz_name)
        log.debug("Non-existent wall time %s %s in %s -> %s", target, rel, tz_name, inst)
    return inst


# -------------------- Dates --------------------


def compare_dates(a: date, b: date) -> int:
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)


def date_in_range(d: date, start: date, end: date) -> bool:
    return start <= d <= end


def iter_dates(start: date, end: date) -> Iterator[date]:
    cur = start
    while cur <= end:
        yield cur
        cur += timedelta(days=1)


def weekday_of(d: date, tz_name: str | None = None) -> int:
    """
    1..7, Monday=1. A calendar date has the same weekday in every zone, so
    `tz_name` does not change the result; it is only checked to be a known zone.
    """
    _zone(tz_name or default_tz_name())
    return d.isoweekday()


def today(tz_name: str | None = None, now: Instant | None = None) -> date:
    tz = _zone(tz_name or default_tz_name())
    epoch = now.epoch if now is not None else time.time()
    return datetime.fromtimestamp(epoch, tz).date()


# -------------------- Clocks --------------------


class Clock(Protocol):
    def now(self) -> Instant: ...


class SystemClock:
    def __init__(self, tz_name: str | None = None) -> None:
        self.tz_name = tz_name or default_tz_name()

    def now(self) -> Instant:
        return now_instant(self.tz_name)


class FixedClock:
    def __init__(self, instant: Instant) -> None:
        self._instant = instant

    def now(self) -> Instant:
        return self._instant

    def advance(self, minutes: int) -> None:
        self._instant = shift_minutes(self._instant, minutes)
