from dataclasses import replace
from datetime import date

import pytest
from conftest import at, make_ticket

from greentrain.domain import errors
from greentrain.domain.errors import BookingRejected
from greentrain.domain.models import Seat
from greentrain.services import booking, seat_allocator
from greentrain.services.time_math import FixedClock

MONDAY = "2025-08-11"


def _request(**overrides):
    fields = dict(
        train_id="K7701",
        service_date=MONDAY,
        from_station_index=0,
        to_station_index=2,
        seat_strategy="sequential",
        user_id="u1",
    )
    fields.update(overrides)
    return booking.BookingRequest(**fields)


def _book(train, request=None, *, now="10:00", occupied=(), user_tickets=()):
    return booking.book(
        request or _request(),
        catalog={train.id: train},
        occupied=occupied,
        user_tickets=user_tickets,
        clock=FixedClock(at(MONDAY, now)),
    )


def _rejection(train, **kwargs) -> BookingRejected:
    with pytest.raises(BookingRejected) as exc:
        _book(train, **kwargs)
    return exc.value


def test_segment_instants(k7701):
    depart, arrival = booking.segment_instants(k7701, MONDAY, 1, 2)
    assert depart.local_iso == "2025-08-11T15:10:00+08:00"
    assert arrival.local_iso == "2025-08-11T15:45:00+08:00"


def test_points_cost(k7701):
    assert booking.points_cost(k7701, 0, 2) == 5
    assert booking.points_cost(k7701, 1, 2) == 3
    assert booking.points_cost(k7701, 0, 1) == 2


def test_book_drafts_ticket(k7701):
    ticket = _book(k7701)
    assert ticket.status == "pending_payment"
    assert ticket.room_status == "pending"
    assert ticket.seat == Seat(1, 1, "A")
    assert ticket.service_date == date(2025, 8, 11)
    assert ticket.from_station_name == "起始站"
    assert ticket.to_station_name == "终点站"
    assert ticket.depart_abs_local == "2025-08-11T14:35:00+08:00"
    assert ticket.arrival_abs_utc == "2025-08-11T07:45:00Z"
    assert ticket.points_cost == 5
    assert ticket.room_ids.seat == "train-K7701-2025-08-11-seat-01A_2025-08-11T15:45:00+08:00"
    assert ticket.ticket_id.startswith("tkt_")
    assert len(ticket.pnr_code) == 8
    assert ticket.qrcode_payload.endswith(f"/join?ticket={ticket.ticket_id}")
    assert set(ticket.join_tokens) == {"global", "carriage", "row", "seat"}


def test_book_skips_occupied_seats(k7701):
    ticket = _book(k7701, occupied=[Seat(1, 1, "A"), Seat(1, 1, "B")])
    assert ticket.seat == Seat(1, 1, "C")


def test_book_smart_strategy(k7701):
    ticket = _book(k7701, _request(seat_strategy="smart_random"))
    assert ticket.seat == Seat(1, 1, "C")


def test_unknown_train(k7701):
    assert _rejection(k7701, request=_request(train_id="Z9")).code == errors.TRAIN_NOT_FOUND


@pytest.mark.parametrize(
    "overrides",
    [
        {"from_station_index": 2, "to_station_index": 1},
        {"from_station_index": 1, "to_station_index": 1},
        {"to_station_index": 9},
        {"from_station_index": -1},
        {"service_date": "2025-02-30"},
        {"seat_strategy": "window"},
        {"from_station_index": None},
        {"to_station_index": None},
        {"to_station_index": "2"},
    ],
)
def test_invalid_requests(k7701, overrides):
    assert _rejection(k7701, request=_request(**overrides)).code == errors.INVALID_REQUEST


@pytest.mark.parametrize(
    "now, service_date, code",
    [
        ("08:00", MONDAY, errors.SALE_NOT_OPEN),
        ("14:26", MONDAY, errors.SALE_CLOSED),
        ("10:00", "2025-08-12", errors.NOT_ON_SALE),
    ],
)
def test_sale_rejections(k7701, now, service_date, code):
    err = _rejection(k7701, request=_request(service_date=service_date), now=now)
    assert err.code == code
    assert "sale_status" in err.details


def test_paused_train(k7701):
    paused = replace(k7701, status="paused")
    assert _rejection(paused).code == errors.NOT_ON_SALE


def test_user_already_on_this_train(k7701):
    held = make_ticket(
        "t0", at(MONDAY, "15:10"), at(MONDAY, "15:45"), train_id="K7701", service_date=date(2025, 8, 11)
    )
    err = _rejection(k7701, user_tickets=[held])
    assert err.code == errors.USER_ALREADY_ON_TRIP


def test_user_on_overlapping_trip(k7701):
    other = make_ticket("t9", at(MONDAY, "13:00"), at(MONDAY, "15:00"), train_id="Z2048")
    err = _rejection(k7701, user_tickets=[other])
    assert err.code == errors.USER_ALREADY_ON_TRIP
    assert err.details["conflicting_ticket_ids"] == ["t9"]


def test_cancelled_ticket_does_not_block(k7701):
    old = make_ticket(
        "t0", at(MONDAY, "14:35"), at(MONDAY, "15:45"), train_id="K7701", status="cancelled"
    )
    assert _book(k7701, user_tickets=[old]).status == "pending_payment"


def test_sold_out(small_train):
    full = list(seat_allocator.all_seats(small_train))
    request = _request(to_station_index=1)
    err = _rejection(small_train, request=request, now="07:00", occupied=full)
    assert err.code == errors.SOLD_OUT


def test_ticket_payload(k7701):
    ticket = _book(k7701)
    payload = booking.ticket_payload(ticket)
    assert payload["service_date"] == "2025-08-11"
    assert (payload["carriage_number"], payload["row"], payload["seat_letter"]) == (1, 1, "A")
    assert payload["room_ids"]["global"] == ticket.room_ids.global_
    assert payload["depart_abs_utc"] == "2025-08-11T06:35:00Z"
    assert payload["created_at"] == "2025-08-11T02:00:00Z"
    assert payload["status"] == "pending_payment"


def test_segment_instants_rejects_missing_index(k7701):
    with pytest.raises(errors.InvalidStationIndex):
        booking.segment_instants(k7701, MONDAY, None, 2)


def test_train_id_unusable_in_room_ids(k7701):
    odd = replace(k7701, id="G.12")
    err = _rejection(odd, request=_request(train_id="G.12"))
    assert err.code == errors.INVALID_REQUEST
