# greentrain/services/room_identity.py
"""
Chat room identifiers scoped to train / service date / segment / seat.

The string shapes are a wire contract shared with chat clients:

    train-{trainId}-{serviceDate}-global_{arrivalISO}
    train-{trainId}-{serviceDate}-carriage-{carriage}_{arrivalISO}
    train-{trainId}-{serviceDate}-seat-row-{row:02d}_{arrivalISO}
    train-{trainId}-{serviceDate}-seat-{row:02d}{letter}_{arrivalISO}

arrivalISO is the local arrival at the rider's alighting station, so a room
empties once its last member has got off.
"""
from __future__ import annotations

import logging
import re
from datetime import date

from greentrain.domain.errors import InvalidDate, InvalidTrainId
from greentrain.domain.models import Instant, RoomIdentityInfo, RoomIds, Ticket, Train
from greentrain.services import time_math
from greentrain.services.seat_allocator import parse_seat_letter
from greentrain.utils.ticket_codes import format_row

log = logging.getLogger("rooms")

_TRAIN_ID = r"(?P<train_id>[A-Za-z0-9_-]+)"
_TRAIN_ID_RE = re.compile(r"[A-Za-z0-9_-]+")
_DATE = r"(?P<date>\d{4}-\d{2}-\d{2})"
_ARRIVAL = r"(?P<arrival>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}[+-]\d{2}:\d{2})"

_ROOM_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("global", re.compile(rf"^train-{_TRAIN_ID}-{_DATE}-global_{_ARRIVAL}$")),
    ("carriage", re.compile(rf"^train-{_TRAIN_ID}-{_DATE}-carriage-(?P<carriage>\d+)_{_ARRIVAL}$")),
    ("row", re.compile(rf"^train-{_TRAIN_ID}-{_DATE}-seat-row-(?P<row>\d{{2,}})_{_ARRIVAL}$")),
    (
        "seat",
        re.compile(rf"^train-{_TRAIN_ID}-{_DATE}-seat-(?P<row>\d{{2,}})(?P<letter>[ABCDF])_{_ARRIVAL}$"),
    ),
)


def check_train_id(train_id: str) -> str:
    """Only ids made of letters, digits, `_` and `-` survive the room id round trip."""
    if not isinstance(train_id, str) or not _TRAIN_ID_RE.fullmatch(train_id):
        raise InvalidTrainId(f"Train id not usable in room ids: {train_id!r}")
    return train_id


def derive_room_ids(
    train_id: str,
    service_date: date,
    arrival: Instant,
    carriage: int,
    row: int,
    seat_letter: str,
) -> RoomIds:
    check_train_id(train_id)
    letter = parse_seat_letter(seat_letter)
    base = f"train-{train_id}-{service_date.isoformat()}"
    arrival_iso = arrival.local_iso
    padded = format_row(row)
    return RoomIds(
        global_=f"{base}-global_{arrival_iso}",
        carriage=f"{base}-carriage-{int(carriage)}_{arrival_iso}",
        row=f"{base}-seat-row-{padded}_{arrival_iso}",
        seat=f"{base}-seat-{padded}{letter}_{arrival_iso}",
    )


def room_ids_for_segment(
    train: Train,
    service_date: date,
    to_station_index: int,
    carriage: int,
    row: int,
    seat_letter: str,
) -> RoomIds:
    arrival = time_math.to_instant(service_date, train.arrival_of(to_station_index), train.timezone)
    return derive_room_ids(train.id, service_date, arrival, carriage, row, seat_letter)


def room_ids_for_ticket(ticket: Ticket) -> list[str]:
    if ticket.room_ids is not None:
        return ticket.room_ids.all()
    return derive_room_ids(
        ticket.train_id,
        ticket.service_date,
        ticket.arrival,
        ticket.seat.carriage,
        ticket.seat.row,
        ticket.seat.letter,
    ).all()


def parse_room_id(text: str) -> RoomIdentityInfo | None:
    if not isinstance(text, str):
        return None
    for kind, pattern in _ROOM_PATTERNS:
        m = pattern.match(text)
        if not m:
            continue
        try:
            sd = time_math.parse_service_date(m.group("date"))
        except InvalidDate:
            return None
        groups = m.groupdict()
        return RoomIdentityInfo(
            train_id=m.group("train_id"),
            service_date=sd,
            type=kind,  # type: ignore[arg-type]
            arrival_iso=m.group("arrival"),
            carriage=int(groups["carriage"]) if groups.get("carriage") else None,
            row=int(groups["row"]) if groups.get("row") else None,
            seat_letter=groups.get("letter"),
        )
    log.debug("Unrecognized room id %r", text)
    return None


def is_valid_room_id(text: str) -> bool:
    return parse_room_id(text) is not None
