from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from greentrain.domain.models import (
    CalendarSpec,
    Instant,
    RelativeTime,
    Seat,
    Station,
    Ticket,
    Train,
)
from greentrain.services import time_math

SHANGHAI = "Asia/Shanghai"


def rel(text: str) -> RelativeTime:
    return RelativeTime.parse(text)


def at(service_date: str, hhmm: str, tz_name: str = SHANGHAI) -> Instant:
    """Local wall time on a date, e.g. at("2025-08-11", "10:00")."""
    return time_math.to_instant(service_date, f"{hhmm}+00", tz_name)


def make_train(**overrides) -> Train:
    base = Train(
        id="K7701",
        name="K7701",
        theme="聊聊诺兰的新电影",
        timezone=SHANGHAI,
        status="active",
        carriages=10,
        rows_per_carriage=20,
        stations=(
            Station("起始站", departure_time=rel("14:35+00")),
            Station("中途站", arrival_time=rel("15:05+00"), departure_time=rel("15:10+00"), points=2),
            Station("终点站", arrival_time=rel("15:45+00"), points=3),
        ),
        calendar=CalendarSpec(service_days=frozenset({1, 3, 5})),
        sales_open_rel=rel("09:00+00"),
        sales_close_before_departure_minutes=10,
    )
    return replace(base, **overrides)


def make_ticket(
    ticket_id: str,
    depart: Instant,
    arrival: Instant,
    *,
    status: str = "paid",
    train_id: str = "T1",
    service_date: date | None = None,
    user_id: str = "u1",
) -> Ticket:
    return Ticket(
        ticket_id=ticket_id,
        user_id=user_id,
        train_id=train_id,
        service_date=service_date or depart.local.date(),
        timezone=depart.tz_name,
        from_station_index=0,
        to_station_index=1,
        seat=Seat(1, 1, "A"),
        depart=depart,
        arrival=arrival,
        status=status,  # type: ignore[arg-type]
    )


@pytest.fixture
def k7701() -> Train:
    return make_train()


@pytest.fixture
def small_train() -> Train:
    # 2 carriages x 3 rows x 5 letters = 30 seats
    return make_train(
        carriages=2,
        rows_per_carriage=3,
        stations=(
            Station("起始站", departure_time=rel("08:35+00")),
            Station("终点站", arrival_time=rel("09:45+00"), points=1),
        ),
        sales_open_rel=None,
    )
