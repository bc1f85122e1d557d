# greentrain/services/calendar_resolver.py
from __future__ import annotations

import logging
from datetime import date

from greentrain.config import settings
from greentrain.domain.models import CalendarRule, DateRange, Instant, Train
from greentrain.services import time_math

log = logging.getLogger("calendar")

NON_RUNNING_STATUSES = frozenset({"draft", "archived"})


# -------------------- Utils --------------------


def _clip(start: date, end: date, window_start: date, window_end: date) -> tuple[date, date] | None:
    s = max(start, window_start)
    e = min(end, window_end)
    if s > e:
        return None
    return s, e


def _dates_from_range(
    rng: DateRange, window_start: date, window_end: date, tz_name: str
) -> set[date]:
    clipped = _clip(rng.start, rng.end, window_start, window_end)
    if clipped is None:
        return set()
    wanted = set(rng.weekdays) if rng.weekdays is not None else None
    out: set[date] = set()
    for d in time_math.iter_dates(*clipped):
        if wanted is None or time_math.weekday_of(d, tz_name) in wanted:
            out.add(d)
    return out


def _dates_from_rule(
    rule: CalendarRule, window_start: date, window_end: date, tz_name: str
) -> set[date]:
    if rule.freq == "WEEKLY" and not rule.weekdays:
        return set()
    clipped = _clip(rule.start, rule.end, window_start, window_end)
    if clipped is None:
        return set()
    if rule.freq == "DAILY":
        return set(time_math.iter_dates(*clipped))
    if rule.freq == "WEEKLY":
        wanted = set(rule.weekdays or ())
        return {
            d for d in time_math.iter_dates(*clipped) if time_math.weekday_of(d, tz_name) in wanted
        }
    log.warning("Ignoring calendar rule with unknown freq=%r", rule.freq)
    return set()


# -------------------- Public API --------------------


def resolve(train: Train, window_start: date, window_end: date) -> list[date]:
    """
    Service dates of `train` within [window_start, window_end], ascending.

    Inclusions (weekly pattern, rules, include ranges, explicit includes) are
    merged first; exclude ranges and explicit excludes are subtracted after,
    so an exclusion always wins.
    """
    if train.status in NON_RUNNING_STATUSES:
        return []
    if window_start > window_end:
        return []

    tz_name = train.timezone
    cal = train.calendar
    dates: set[date] = set()

    if cal.service_days:
        for d in time_math.iter_dates(window_start, window_end):
            if time_math.weekday_of(d, tz_name) in cal.service_days:
                dates.add(d)

    for rng in cal.include_ranges:
        dates |= _dates_from_range(rng, window_start, window_end, tz_name)

    for rule in cal.rules:
        dates |= _dates_from_rule(rule, window_start, window_end, tz_name)

    for d in cal.includes:
        if time_math.date_in_range(d, window_start, window_end):
            dates.add(d)

    for rng in cal.exclude_ranges:
        dates -= _dates_from_range(rng, window_start, window_end, tz_name)

    dates.difference_update(cal.excludes)

    return sorted(dates)


def is_running_on(train: Train, service_date: date) -> bool:
    return bool(resolve(train, service_date, service_date))


def next_service_date(
    train: Train,
    from_date: date | None = None,
    lookahead_days: int | None = None,
) -> date | None:
    if from_date is None:
        from_date = time_math.today(train.timezone)
    if lookahead_days is None:
        lookahead_days = int(getattr(settings, "NEXT_SERVICE_LOOKAHEAD_DAYS", 365))
    dates = resolve(train, from_date, time_math.add_days(from_date, lookahead_days))
    return dates[0] if dates else None


def upcoming_service_dates(
    train: Train, days: int | None = None, today: date | None = None
) -> list[date]:
    if days is None:
        days = int(getattr(settings, "UPCOMING_DAYS", 90))
    if days <= 0:
        return []
    start = today or time_math.today(train.timezone)
    return resolve(train, start, time_math.add_days(start, days - 1))


def next_departure(
    train: Train, now: Instant, window_days: int | None = None
) -> tuple[date, Instant] | None:
    """First run whose origin departure is at or after `now`."""
    rel = train.origin_departure
    if rel is None:
        return None
    if window_days is None:
        window_days = int(getattr(settings, "UPCOMING_DAYS", 90))
    # Yesterday's run may still be ahead of us when the origin departs after midnight.
    start = time_math.add_days(time_math.today(train.timezone, now), -rel.day_offset)
    for d in upcoming_service_dates(train, window_days + rel.day_offset, start):
        dep = time_math.to_instant(d, rel, train.timezone)
        if dep >= now:
            return d, dep
    return None
