# greentrain/utils/ticket_codes.py
from __future__ import annotations

import secrets
import string
from urllib.parse import quote

from greentrain.domain.models import Seat

__all__ = [
    "generate_pnr_code",
    "generate_join_token",
    "qrcode_payload",
    "format_row",
    "seat_label",
    "seat_short_label",
]


_PNR_ALPHABET = string.ascii_uppercase + string.digits
_JOIN_TOKEN_PREFIX = "jtk_"


def generate_pnr_code(length: int = 8) -> str:
    """
    Booking reference shown to the rider and printed next to the QR code.
    Uppercase letters and digits only, drawn from `secrets`.
    """
    if length < 1:
        raise ValueError(f"PNR length must be positive, got {length}")
    return "".join(secrets.choice(_PNR_ALPHABET) for _ in range(length))


def generate_join_token() -> str:
    return _JOIN_TOKEN_PREFIX + secrets.token_urlsafe(16)


def qrcode_payload(ticket_id: str, base_url: str) -> str:
    base = (base_url or "").rstrip("/")
    return f"{base}/join?ticket={quote(str(ticket_id), safe='')}"


def format_row(row: int) -> str:
    return f"{int(row):02d}"


def seat_label(seat: Seat) -> str:
    # 1车厢 02排C座
    return f"{seat.carriage}车厢 {format_row(seat.row)}排{seat.letter}座"


def seat_short_label(seat: Seat) -> str:
    return f"{seat.carriage}车{format_row(seat.row)}{seat.letter}"
