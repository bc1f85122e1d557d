# greentrain/domain/models.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Literal

from greentrain.domain.errors import InvalidRelativeTime, InvalidSeatLetter, InvalidStationIndex

TrainStatus = Literal["draft", "hidden", "paused", "active", "deprecated", "archived"]
TicketStatus = Literal[
    "pending_payment", "paid", "cancelled", "refunded", "completed", "checked_in", "boarded"
]
RoomType = Literal["global", "carriage", "row", "seat"]

TRAIN_STATUSES: tuple[str, ...] = ("draft", "hidden", "paused", "active", "deprecated", "archived")
TICKET_STATUSES: tuple[str, ...] = (
    "pending_payment",
    "paid",
    "cancelled",
    "refunded",
    "completed",
    "checked_in",
    "boarded",
)

# No "E": real-world rail lettering skips it.
SEAT_LETTERS: tuple[str, ...] = ("A", "B", "C", "D", "F")

_REL_TIME_RE = re.compile(r"^([01][0-9]|2[0-3]):([0-5][0-9])\+([0-9]{2})$")


@dataclass(frozen=True)
class RelativeTime:
    """Train-local clock time: HH:mm plus a day offset from the service date."""

    hours: int
    minutes: int
    day_offset: int = 0

    def __post_init__(self) -> None:
        if not (0 <= self.hours <= 23 and 0 <= self.minutes <= 59 and 0 <= self.day_offset <= 99):
            raise InvalidRelativeTime(
                f"Invalid relative time: {self.hours}:{self.minutes}+{self.day_offset}"
            )

    @classmethod
    def parse(cls, text: str) -> RelativeTime:
        m = _REL_TIME_RE.match(text or "") if isinstance(text, str) else None
        if not m:
            raise InvalidRelativeTime(f"Invalid relative time: {text!r}")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)))

    @property
    def minute_of_service(self) -> int:
        return self.day_offset * 1440 + self.hours * 60 + self.minutes

    def __str__(self) -> str:
        return f"{self.hours:02d}:{self.minutes:02d}+{self.day_offset:02d}"


@dataclass(frozen=True, order=True)
class Instant:
    """
    Absolute point in time. Only `epoch` takes part in comparisons; the local
    rendering and zone name ride along for display and room ids.
    Build these through greentrain.services.time_math.
    """

    epoch: int
    local_iso: str = field(compare=False)
    tz_name: str = field(compare=False)

    @property
    def local(self) -> datetime:
        return datetime.fromisoformat(self.local_iso)

    @property
    def utc(self) -> datetime:
        return datetime.fromtimestamp(self.epoch, tz=UTC)

    @property
    def utc_iso(self) -> str:
        return self.utc.strftime("%Y-%m-%dT%H:%M:%SZ")

    @property
    def offset_minutes(self) -> int:
        off = self.local.utcoffset()
        return int(off.total_seconds() // 60) if off is not None else 0

    def __str__(self) -> str:
        return self.local_iso


@dataclass(frozen=True)
class Station:
    name: str
    arrival_time: RelativeTime | None = None  # never on the origin
    departure_time: RelativeTime | None = None  # never on the terminus
    description: str | None = None
    points: int = 0


@dataclass(frozen=True)
class CalendarRule:
    freq: Literal["DAILY", "WEEKLY"]
    start: date
    end: date
    weekdays: tuple[int, ...] | None = None  # 1..7, Monday=1


@dataclass(frozen=True)
class DateRange:
    start: date
    end: date
    weekdays: tuple[int, ...] | None = None  # None = every day


@dataclass(frozen=True)
class CalendarSpec:
    service_days: frozenset[int] = frozenset()
    rules: tuple[CalendarRule, ...] = ()
    include_ranges: tuple[DateRange, ...] = ()
    exclude_ranges: tuple[DateRange, ...] = ()
    includes: tuple[date, ...] = ()
    excludes: tuple[date, ...] = ()


@dataclass(frozen=True)
class Train:
    id: str
    name: str
    timezone: str
    status: TrainStatus
    carriages: int
    rows_per_carriage: int
    stations: tuple[Station, ...]
    calendar: CalendarSpec = field(default_factory=CalendarSpec)
    sales_open_rel: RelativeTime | None = None
    sales_close_before_departure_minutes: int = 0
    theme: str = ""
    description: str | None = None
    status_note: str | None = None

    @property
    def service_days(self) -> frozenset[int]:
        return self.calendar.service_days

    @property
    def seat_count(self) -> int:
        return self.carriages * self.rows_per_carriage * len(SEAT_LETTERS)

    @property
    def origin(self) -> Station | None:
        return self.stations[0] if self.stations else None

    @property
    def terminus(self) -> Station | None:
        return self.stations[-1] if self.stations else None

    @property
    def origin_departure(self) -> RelativeTime | None:
        o = self.origin
        return o.departure_time if o else None

    def station(self, index: int) -> Station:
        if not isinstance(index, int) or isinstance(index, bool):
            raise InvalidStationIndex(index, "not an integer")
        if index < 0 or index >= len(self.stations):
            raise InvalidStationIndex(index, f"train {self.id} has {len(self.stations)} stations")
        return self.stations[index]

    def departure_of(self, index: int) -> RelativeTime:
        st = self.station(index)
        if st.departure_time is None:
            raise InvalidStationIndex(index, f"{st.name} has no departure time")
        return st.departure_time

    def arrival_of(self, index: int) -> RelativeTime:
        st = self.station(index)
        if st.arrival_time is None:
            raise InvalidStationIndex(index, f"{st.name} has no arrival time")
        return st.arrival_time


@dataclass(frozen=True)
class Seat:
    carriage: int
    row: int
    letter: str

    def __post_init__(self) -> None:
        if self.letter not in SEAT_LETTERS:
            raise InvalidSeatLetter(f"Invalid seat letter: {self.letter!r}")

    @property
    def key(self) -> tuple[int, int, str]:
        return (self.carriage, self.row, self.letter)

    @property
    def letter_index(self) -> int:
        return SEAT_LETTERS.index(self.letter)


@dataclass(frozen=True)
class OccupiedSeat(Seat):
    user_id: str = ""

    @property
    def seat(self) -> Seat:
        return Seat(self.carriage, self.row, self.letter)


@dataclass(frozen=True)
class RoomIds:
    global_: str
    carriage: str
    row: str
    seat: str

    def as_dict(self) -> dict[str, str]:
        return {"global": self.global_, "carriage": self.carriage, "row": self.row, "seat": self.seat}

    def all(self) -> list[str]:
        return [self.global_, self.carriage, self.row, self.seat]


@dataclass(frozen=True)
class RoomIdentityInfo:
    train_id: str
    service_date: date
    type: RoomType
    arrival_iso: str
    carriage: int | None = None
    row: int | None = None
    seat_letter: str | None = None


@dataclass
class Ticket:
    ticket_id: str
    user_id: str
    train_id: str
    service_date: date
    timezone: str
    from_station_index: int
    to_station_index: int
    seat: Seat
    depart: Instant
    arrival: Instant
    status: TicketStatus = "pending_payment"
    room_ids: RoomIds | None = None
    room_status: str = "pending"  # pending | open | closed
    order_id: str | None = None
    from_station_name: str | None = None
    to_station_name: str | None = None
    points_cost: int = 0
    pnr_code: str | None = None
    qrcode_payload: str | None = None
    join_tokens: dict[str, str] = field(default_factory=dict)
    created_at: Instant | None = None
    train_snapshot: Train | None = field(default=None, repr=False, compare=False)

    @property
    def depart_abs_local(self) -> str:
        return self.depart.local_iso

    @property
    def arrival_abs_local(self) -> str:
        return self.arrival.local_iso

    @property
    def depart_abs_utc(self) -> str:
        return self.depart.utc_iso

    @property
    def arrival_abs_utc(self) -> str:
        return self.arrival.utc_iso
