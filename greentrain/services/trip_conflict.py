# greentrain/services/trip_conflict.py
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from greentrain.domain.models import Instant, Ticket

log = logging.getLogger("trip_conflict")

# Statuses that hold a seat for conflict purposes.
ACTIVE_TICKET_STATUSES = frozenset({"paid", "checked_in", "boarded", "completed"})
# Trips not finished yet.
ONGOING_TICKET_STATUSES = frozenset({"paid", "checked_in", "boarded"})


def _intervals_overlap(start1: Instant, end1: Instant, start2: Instant, end2: Instant) -> bool:
    # Half-open [start, end): touching endpoints do not overlap.
    return start1 < end2 and start2 < end1


def _active(tickets: Iterable[Ticket]) -> list[Ticket]:
    return [t for t in tickets if t.status in ACTIVE_TICKET_STATUSES]


def conflicting_tickets(
    tickets: Iterable[Ticket], new_depart: Instant, new_arrival: Instant
) -> list[Ticket]:
    return [
        t
        for t in _active(tickets)
        if _intervals_overlap(t.depart, t.arrival, new_depart, new_arrival)
    ]


def overlaps(tickets: Iterable[Ticket], new_depart: Instant, new_arrival: Instant) -> bool:
    return bool(conflicting_tickets(tickets, new_depart, new_arrival))


def tickets_in_range(tickets: Iterable[Ticket], start: Instant, end: Instant) -> list[Ticket]:
    return conflicting_tickets(tickets, start, end)


def is_already_on_train(tickets: Iterable[Ticket], train_id: str, service_date: date) -> bool:
    """One rider, one seat per train run, whatever the segment times."""
    return any(
        t.train_id == train_id and t.service_date == service_date for t in _active(tickets)
    )


def active_trips(tickets: Iterable[Ticket]) -> list[Ticket]:
    return [t for t in tickets if t.status in ONGOING_TICKET_STATUSES]


def is_on_train(tickets: Iterable[Ticket]) -> bool:
    return any(t.status == "boarded" for t in tickets)


def current_train(tickets: Iterable[Ticket]) -> Ticket | None:
    boarded = [t for t in tickets if t.status == "boarded"]
    if not boarded:
        return None
    boarded.sort(key=lambda t: t.depart)
    if len(boarded) > 1:
        log.warning(
            "User %s has %d boarded tickets (%s); using earliest departure",
            boarded[0].user_id,
            len(boarded),
            ", ".join(t.ticket_id for t in boarded),
        )
    return boarded[0]


def conflict_message(conflicts: list[Ticket]) -> str:
    if not conflicts:
        return "You are already on another train at an overlapping time."
    t = conflicts[0]
    name = t.train_snapshot.name if t.train_snapshot is not None else t.train_id
    when = t.depart.local.strftime("%Y-%m-%d %H:%M")
    return f"You are already booked on {name} ({when}); the trips overlap."
