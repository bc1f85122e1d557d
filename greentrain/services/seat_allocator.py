# greentrain/services/seat_allocator.py
"""
Seat selection strategies.

Both strategies are pure functions of (train geometry, occupancy, user,
service date). The caller re-runs them against fresh occupancy when a seat
commit loses a race.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import date
from typing import Literal

from greentrain.domain.errors import InvalidSeatLetter, UnknownSeatStrategy
from greentrain.domain.models import SEAT_LETTERS, OccupiedSeat, Seat, Train

log = logging.getLogger("seats")

SeatStrategy = Literal["sequential", "smart_random"]
SEAT_STRATEGIES: tuple[str, ...] = ("sequential", "smart_random")

# Preferred letters when nobody has boarded yet: centre first.
_EMPTY_TRAIN_PREFERENCE: tuple[str, ...] = ("C", "D", "B", "F", "A")

_CROSS_CARRIAGE_BASE = 1000
_CROSS_CARRIAGE_STEP = 100
_ROW_WEIGHT = 10


def parse_seat_letter(letter: str) -> str:
    s = (letter or "").strip().upper() if isinstance(letter, str) else ""
    if s not in SEAT_LETTERS:
        raise InvalidSeatLetter(f"Invalid seat letter: {letter!r}")
    return s


def parse_seat_strategy(name: str) -> SeatStrategy:
    s = (name or "").strip().lower() if isinstance(name, str) else ""
    if s not in SEAT_STRATEGIES:
        raise UnknownSeatStrategy(f"Unknown seat strategy: {name!r}")
    return s  # type: ignore[return-value]


def all_seats(train: Train) -> Iterator[Seat]:
    """Canonical order: carriage, then row, then letter A,B,C,D,F."""
    for carriage in range(1, train.carriages + 1):
        for row in range(1, train.rows_per_carriage + 1):
            for letter in SEAT_LETTERS:
                yield Seat(carriage, row, letter)


def total_seats(train: Train) -> int:
    return train.seat_count


def _keys(occupied: Iterable[Seat]) -> set[tuple[int, int, str]]:
    return {s.key for s in occupied}


def stable_hash(text: str) -> int:
    """
    32-bit rolling hash (h*31 + unit) over UTF-16 code units, read as signed
    and returned as its absolute value. Matches what the web clients compute.
    """
    raw = (text or "").encode("utf-16-le")
    h = 0
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def seat_distance(a: Seat, b: Seat) -> int:
    if a.carriage != b.carriage:
        return _CROSS_CARRIAGE_BASE + _CROSS_CARRIAGE_STEP * abs(a.carriage - b.carriage)
    return _ROW_WEIGHT * abs(a.row - b.row) + abs(a.letter_index - b.letter_index)


def proximity_score(seat: Seat, occupied: Iterable[Seat]) -> float:
    distances = [seat_distance(seat, o) for o in occupied]
    if not distances:
        return 0.0
    return 1000 / (1 + min(distances))


def select_sequential(train: Train, occupied: Iterable[Seat]) -> Seat | None:
    taken = _keys(occupied)
    for seat in all_seats(train):
        if seat.key not in taken:
            return seat
    return None


def select_smart(
    train: Train,
    occupied: Iterable[Seat],
    user_id: str,
    service_date: date | str,
) -> Seat | None:
    occupied = list(occupied)
    taken = _keys(occupied)
    free = [s for s in all_seats(train) if s.key not in taken]
    if not free:
        return None

    if not occupied:
        for letter in _EMPTY_TRAIN_PREFERENCE:
            seat = Seat(1, 1, letter)
            if seat.key not in taken:
                return seat

    scored = [(proximity_score(s, occupied), s) for s in free]
    best = max(score for score, _ in scored)
    ties = [s for score, s in scored if score == best]

    sd = service_date.isoformat() if isinstance(service_date, date) else str(service_date)
    idx = stable_hash(f"{user_id}{sd}") % len(ties)
    log.debug(
        "smart seat user=%s date=%s occupied=%d ties=%d -> idx=%d",
        user_id,
        sd,
        len(occupied),
        len(ties),
        idx,
    )
    return ties[idx]


def select_seat(
    train: Train,
    strategy: str,
    occupied: Iterable[OccupiedSeat | Seat],
    user_id: str,
    service_date: date | str,
) -> Seat | None:
    if strategy == "sequential":
        return select_sequential(train, occupied)
    if strategy == "smart_random":
        return select_smart(train, occupied, user_id, service_date)
    log.warning("Unknown seat strategy %r", strategy)
    return None
