import logging
from datetime import date

import pytest
from conftest import at, make_ticket

from greentrain.services import trip_conflict


def _window(start, end):
    return at("2025-08-11", start), at("2025-08-11", end)


def test_overlap_detected():
    existing = make_ticket("t1", *_window("10:00", "12:00"))
    assert trip_conflict.overlaps([existing], *_window("11:00", "13:00"))
    assert trip_conflict.overlaps([existing], *_window("09:00", "10:30"))
    assert trip_conflict.overlaps([existing], *_window("10:30", "11:00"))


def test_touching_intervals_do_not_overlap():
    existing = make_ticket("t1", *_window("10:00", "12:00"))
    assert not trip_conflict.overlaps([existing], *_window("12:00", "13:00"))
    assert not trip_conflict.overlaps([existing], *_window("08:00", "10:00"))


@pytest.mark.parametrize(
    "a, b",
    [
        (("10:00", "12:00"), ("11:00", "13:00")),
        (("10:00", "12:00"), ("12:00", "13:00")),
        (("08:00", "09:00"), ("10:00", "11:00")),
        (("10:00", "14:00"), ("11:00", "12:00")),
    ],
)
def test_overlap_is_symmetric(a, b):
    ta = make_ticket("a", *_window(*a))
    tb = make_ticket("b", *_window(*b))
    assert trip_conflict.overlaps([ta], tb.depart, tb.arrival) == trip_conflict.overlaps(
        [tb], ta.depart, ta.arrival
    )


@pytest.mark.parametrize("status", ["pending_payment", "cancelled", "refunded"])
def test_inactive_tickets_never_conflict(status):
    t = make_ticket("t1", *_window("10:00", "12:00"), status=status)
    assert not trip_conflict.overlaps([t], *_window("10:00", "12:00"))
    assert not trip_conflict.is_already_on_train([t], "T1", date(2025, 8, 11))


@pytest.mark.parametrize("status", ["paid", "checked_in", "boarded", "completed"])
def test_active_tickets_conflict(status):
    t = make_ticket("t1", *_window("10:00", "12:00"), status=status)
    assert trip_conflict.conflicting_tickets([t], *_window("11:00", "11:30")) == [t]


def test_tickets_in_range():
    t1 = make_ticket("t1", *_window("08:00", "09:00"))
    t2 = make_ticket("t2", *_window("10:00", "11:00"))
    assert trip_conflict.tickets_in_range([t1, t2], *_window("08:30", "10:30")) == [t1, t2]
    assert trip_conflict.tickets_in_range([t1, t2], *_window("09:00", "10:00")) == []


def test_is_already_on_train():
    t = make_ticket("t1", *_window("10:00", "12:00"), train_id="K7701")
    assert trip_conflict.is_already_on_train([t], "K7701", date(2025, 8, 11))
    assert not trip_conflict.is_already_on_train([t], "K7701", date(2025, 8, 13))
    assert not trip_conflict.is_already_on_train([t], "Z2048", date(2025, 8, 11))


def test_active_trips_exclude_completed():
    done = make_ticket("t1", *_window("08:00", "09:00"), status="completed")
    paid = make_ticket("t2", *_window("10:00", "11:00"), status="paid")
    assert trip_conflict.active_trips([done, paid]) == [paid]


def test_current_train_single():
    boarded = make_ticket("t1", *_window("10:00", "12:00"), status="boarded")
    paid = make_ticket("t2", *_window("13:00", "14:00"))
    assert trip_conflict.is_on_train([boarded, paid])
    assert trip_conflict.current_train([boarded, paid]) is boarded
    assert trip_conflict.current_train([paid]) is None
    assert not trip_conflict.is_on_train([paid])


def test_current_train_several_boarded_logs_and_picks_earliest(caplog):
    late = make_ticket("late", *_window("13:00", "14:00"), status="boarded")
    early = make_ticket("early", *_window("10:00", "12:00"), status="boarded")
    with caplog.at_level(logging.WARNING, logger="trip_conflict"):
        assert trip_conflict.current_train([late, early]) is early
    assert "2 boarded tickets" in caplog.text


def test_conflict_message_mentions_train():
    t = make_ticket("t1", *_window("10:00", "12:00"), train_id="K7701")
    msg = trip_conflict.conflict_message([t])
    assert "K7701" in msg
    assert "2025-08-11 10:00" in msg
