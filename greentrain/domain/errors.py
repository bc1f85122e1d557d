# greentrain/domain/errors.py
from __future__ import annotations

from typing import Any


class GreenTrainError(ValueError):
    """Base class for deterministic validation failures. Never retry without fixing the input."""


class InvalidRelativeTime(GreenTrainError):
    pass


class InvalidDate(GreenTrainError):
    pass


class InvalidStationIndex(GreenTrainError):
    def __init__(self, index: Any, reason: str = "") -> None:
        self.index = index
        msg = f"Invalid station index: {index}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)


class InvalidTrainId(GreenTrainError):
    pass


class InvalidSeatLetter(GreenTrainError):
    pass


class UnknownSeatStrategy(GreenTrainError):
    pass


# Booking rejection codes, shared with the web clients.
TRAIN_NOT_FOUND = "TRAIN_NOT_FOUND"
NOT_ON_SALE = "NOT_ON_SALE"
SALE_NOT_OPEN = "SALE_NOT_OPEN"
SALE_CLOSED = "SALE_CLOSED"
USER_ALREADY_ON_TRIP = "USER_ALREADY_ON_TRIP"
SOLD_OUT = "SOLD_OUT"
INVALID_REQUEST = "INVALID_REQUEST"


class BookingRejected(GreenTrainError):
    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"{code}: {message}")
