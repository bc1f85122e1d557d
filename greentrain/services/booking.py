# greentrain/services/booking.py
"""
Ticket drafting: the decision pipeline run for one booking request.

Callers run `book` inside their per-(train_id, service_date) commit section
and persist the returned Ticket; when the seat commit loses a race they call
it again with fresh occupancy.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any, Protocol

from greentrain.config import settings
from greentrain.domain.errors import (
    INVALID_REQUEST,
    NOT_ON_SALE,
    SALE_CLOSED,
    SALE_NOT_OPEN,
    SOLD_OUT,
    TRAIN_NOT_FOUND,
    USER_ALREADY_ON_TRIP,
    BookingRejected,
    GreenTrainError,
)
from greentrain.domain.models import Instant, OccupiedSeat, Seat, Ticket, Train
from greentrain.services import room_identity, sales_window, seat_allocator, time_math, trip_conflict
from greentrain.utils import ticket_codes

log = logging.getLogger("booking")


class TrainLookup(Protocol):
    def get(self, train_id: str) -> Train | None: ...


@dataclass(frozen=True)
class BookingRequest:
    train_id: str
    service_date: date | str
    from_station_index: int
    to_station_index: int
    seat_strategy: str
    user_id: str


# -------------------- Segment helpers --------------------


def segment_instants(
    train: Train, service_date: date | str, from_idx: int, to_idx: int
) -> tuple[Instant, Instant]:
    train.station(from_idx)
    train.station(to_idx)
    if from_idx >= to_idx:
        raise BookingRejected(
            INVALID_REQUEST,
            "Boarding station must come before alighting station",
            {"from_station_index": from_idx, "to_station_index": to_idx},
        )
    depart = time_math.to_instant(service_date, train.departure_of(from_idx), train.timezone)
    arrival = time_math.to_instant(service_date, train.arrival_of(to_idx), train.timezone)
    return depart, arrival


def points_cost(train: Train, from_idx: int, to_idx: int) -> int:
    """Points of every station after boarding, alighting station included."""
    return sum(train.station(k).points for k in range(from_idx + 1, to_idx + 1))


# -------------------- Pipeline --------------------


_SALE_REJECTIONS = {
    "paused": (NOT_ON_SALE, "This train is paused"),
    "unavailable": (NOT_ON_SALE, "This train does not run on that date"),
    "not_started": (SALE_NOT_OPEN, "Ticket sales have not opened yet"),
    "closed": (SALE_CLOSED, "Ticket sales have closed for this departure"),
}


def _lookup(catalog: TrainLookup, train_id: str) -> Train:
    train = catalog.get(train_id)
    if train is None:
        raise BookingRejected(TRAIN_NOT_FOUND, f"Train {train_id!r} not found", {"train_id": train_id})
    return train


def _validated(request: BookingRequest, train: Train) -> tuple[date, Instant, Instant, str]:
    try:
        room_identity.check_train_id(train.id)
        sd = time_math.parse_service_date(request.service_date)
        depart, arrival = segment_instants(
            train, sd, request.from_station_index, request.to_station_index
        )
        strategy = seat_allocator.parse_seat_strategy(request.seat_strategy)
    except BookingRejected:
        raise
    except GreenTrainError as e:
        raise BookingRejected(INVALID_REQUEST, str(e)) from e
    return sd, depart, arrival, strategy


def book(
    request: BookingRequest,
    *,
    catalog: TrainLookup,
    occupied: Iterable[OccupiedSeat | Seat],
    user_tickets: Iterable[Ticket],
    clock: time_math.Clock,
) -> Ticket:
    train = _lookup(catalog, request.train_id)
    sd, depart, arrival, strategy = _validated(request, train)

    now = clock.now()
    sale = sales_window.status(train, now, sd, request.from_station_index)
    if sale != "available":
        code, message = _SALE_REJECTIONS[sale]
        raise BookingRejected(code, message, {"sale_status": sale})

    user_tickets = list(user_tickets)
    if trip_conflict.is_already_on_train(user_tickets, train.id, sd):
        raise BookingRejected(
            USER_ALREADY_ON_TRIP,
            "You already hold a ticket for this train on that date",
            {"train_id": train.id, "service_date": sd.isoformat()},
        )
    conflicts = trip_conflict.conflicting_tickets(user_tickets, depart, arrival)
    if conflicts:
        raise BookingRejected(
            USER_ALREADY_ON_TRIP,
            trip_conflict.conflict_message(conflicts),
            {"conflicting_ticket_ids": [t.ticket_id for t in conflicts]},
        )

    seat = seat_allocator.select_seat(train, strategy, occupied, request.user_id, sd)
    if seat is None:
        raise BookingRejected(SOLD_OUT, "No seats left on this train", {"seat_count": train.seat_count})

    room_ids = room_identity.derive_room_ids(
        train.id, sd, arrival, seat.carriage, seat.row, seat.letter
    )

    ticket_id = f"tkt_{uuid.uuid4().hex[:8]}"
    base_url = getattr(settings, "TICKET_QR_BASE_URL", None) or "https://webgreentrain.example"
    pnr_length = int(getattr(settings, "PNR_LENGTH", 8))
    ticket = Ticket(
        ticket_id=ticket_id,
        user_id=request.user_id,
        train_id=train.id,
        service_date=sd,
        timezone=train.timezone,
        from_station_index=request.from_station_index,
        to_station_index=request.to_station_index,
        seat=Seat(seat.carriage, seat.row, seat.letter),
        depart=depart,
        arrival=arrival,
        room_ids=room_ids,
        order_id=f"ord_{now.epoch * 1000}",
        from_station_name=train.station(request.from_station_index).name,
        to_station_name=train.station(request.to_station_index).name,
        points_cost=points_cost(train, request.from_station_index, request.to_station_index),
        pnr_code=ticket_codes.generate_pnr_code(pnr_length),
        qrcode_payload=ticket_codes.qrcode_payload(ticket_id, base_url),
        join_tokens={kind: ticket_codes.generate_join_token() for kind in room_ids.as_dict()},
        created_at=now,
        train_snapshot=train,
    )
    log.info(
        "Drafted %s user=%s train=%s date=%s seat=%s",
        ticket.ticket_id,
        ticket.user_id,
        train.id,
        sd,
        ticket_codes.seat_short_label(ticket.seat),
    )
    return ticket


# -------------------- Wire form --------------------


def ticket_payload(ticket: Ticket) -> dict[str, Any]:
    return {
        "ticket_id": ticket.ticket_id,
        "user_id": ticket.user_id,
        "order_id": ticket.order_id,
        "train_id": ticket.train_id,
        "service_date": ticket.service_date.isoformat(),
        "timezone": ticket.timezone,
        "from_station_index": ticket.from_station_index,
        "to_station_index": ticket.to_station_index,
        "from_station_name": ticket.from_station_name,
        "to_station_name": ticket.to_station_name,
        "carriage_number": ticket.seat.carriage,
        "row": ticket.seat.row,
        "seat_letter": ticket.seat.letter,
        "depart_abs_local": ticket.depart_abs_local,
        "arrival_abs_local": ticket.arrival_abs_local,
        "depart_abs_utc": ticket.depart_abs_utc,
        "arrival_abs_utc": ticket.arrival_abs_utc,
        "room_ids": ticket.room_ids.as_dict() if ticket.room_ids else None,
        "room_status": ticket.room_status,
        "status": ticket.status,
        "points_cost": ticket.points_cost,
        "pnr_code": ticket.pnr_code,
        "qrcode_payload": ticket.qrcode_payload,
        "join_tokens": dict(ticket.join_tokens),
        "created_at": ticket.created_at.utc_iso if ticket.created_at else None,
    }
