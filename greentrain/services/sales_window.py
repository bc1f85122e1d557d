# greentrain/services/sales_window.py
from __future__ import annotations

import logging
from datetime import date
from typing import Literal

from greentrain.domain.models import Instant, Train
from greentrain.services import calendar_resolver, time_math

log = logging.getLogger("sales")

SaleStatus = Literal["paused", "unavailable", "not_started", "closed", "available"]

# hidden and deprecated trains stay sellable; only these block sales outright.
UNSELLABLE_STATUSES = frozenset({"draft", "archived"})


def open_at(train: Train, service_date: date) -> Instant | None:
    """None means the sale is not time-boxed on the opening side."""
    if train.sales_open_rel is None:
        return None
    return time_math.to_instant(service_date, train.sales_open_rel, train.timezone)


def close_at(train: Train, service_date: date, from_station_index: int) -> Instant:
    rel = train.departure_of(from_station_index)
    departure = time_math.to_instant(service_date, rel, train.timezone)
    return time_math.shift_minutes(departure, -int(train.sales_close_before_departure_minutes))


def sales_window(
    train: Train, service_date: date, from_station_index: int
) -> tuple[Instant | None, Instant]:
    return open_at(train, service_date), close_at(train, service_date, from_station_index)


def status(train: Train, now: Instant, service_date: date, from_station_index: int) -> SaleStatus:
    if train.status == "paused":
        return "paused"
    if train.status in UNSELLABLE_STATUSES:
        return "unavailable"
    if not calendar_resolver.is_running_on(train, service_date):
        return "unavailable"

    opens = open_at(train, service_date)
    if opens is not None and now < opens:
        log.debug("%s %s: sale opens at %s", train.id, service_date, opens)
        return "not_started"

    closes = close_at(train, service_date, from_station_index)
    if now >= closes:
        log.debug("%s %s from=%s: sale closed at %s", train.id, service_date, from_station_index, closes)
        return "closed"
    return "available"


def is_on_sale(train: Train, now: Instant, service_date: date, from_station_index: int) -> bool:
    return status(train, now, service_date, from_station_index) == "available"


def seconds_until_close(
    train: Train, now: Instant, service_date: date, from_station_index: int
) -> int:
    closes = close_at(train, service_date, from_station_index)
    return max(0, time_math.seconds_between(now, closes))


def minutes_until_close(
    train: Train, now: Instant, service_date: date, from_station_index: int
) -> int:
    return seconds_until_close(train, now, service_date, from_station_index) // 60


def seconds_until_open(train: Train, now: Instant, service_date: date) -> int | None:
    opens = open_at(train, service_date)
    if opens is None:
        return None
    return max(0, time_math.seconds_between(now, opens))
