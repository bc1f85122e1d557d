# greentrain/services/room_fanout.py
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

from greentrain.domain.models import Ticket
from greentrain.services import room_identity

log = logging.getLogger("room_fanout")

Sender = Callable[[str, str, Any], None]


class RoomFanout:
    """
    Delivers messages to every subscriber of a chat room.

    Subscribers are opaque tokens (a push registration, a socket id...);
    actual delivery goes through the injected `sender(token, room_id, payload)`.
    """

    def __init__(self, sender: Sender):
        self._sender = sender
        # room_id -> tokens
        self._by_room: dict[str, set[str]] = {}
        # token -> room_ids, for unsubscribe_all
        self._by_token: dict[str, set[str]] = {}
        self._lock = threading.RLock()
        self.failed_deliveries = 0

    @staticmethod
    def _check_room(room_id: str) -> None:
        if not room_identity.is_valid_room_id(room_id):
            raise ValueError(f"Invalid room id: {room_id!r}")

    def subscribe(self, token: str, room_id: str) -> bool:
        """Return True when the token was not yet in the room."""
        token = (token or "").strip()
        if not token:
            raise ValueError("Empty subscriber token")
        self._check_room(room_id)
        with self._lock:
            members = self._by_room.setdefault(room_id, set())
            if token in members:
                return False
            members.add(token)
            self._by_token.setdefault(token, set()).add(room_id)
        log.debug("subscribe token=%s room=%s members=%d", token, room_id, len(members))
        return True

    def subscribe_ticket(self, token: str, ticket: Ticket) -> list[str]:
        """All-or-nothing: every room id is checked before any is joined."""
        rooms = room_identity.room_ids_for_ticket(ticket)
        if not (token or "").strip():
            raise ValueError("Empty subscriber token")
        for room_id in rooms:
            self._check_room(room_id)
        with self._lock:
            for room_id in rooms:
                self.subscribe(token, room_id)
        return rooms

    def unsubscribe(self, token: str, room_id: str) -> bool:
        with self._lock:
            members = self._by_room.get(room_id)
            if not members or token not in members:
                return False
            members.discard(token)
            if not members:
                del self._by_room[room_id]
            rooms = self._by_token.get(token)
            if rooms is not None:
                rooms.discard(room_id)
                if not rooms:
                    del self._by_token[token]
        return True

    def unsubscribe_all(self, token: str) -> int:
        with self._lock:
            rooms = list(self._by_token.get(token, ()))
            for room_id in rooms:
                self.unsubscribe(token, room_id)
        if rooms:
            log.info("unsubscribe_all token=%s rooms=%d", token, len(rooms))
        return len(rooms)

    def subscribers(self, room_id: str) -> set[str]:
        with self._lock:
            return set(self._by_room.get(room_id, ()))

    def active_rooms(self) -> list[str]:
        with self._lock:
            return sorted(self._by_room)

    def publish(self, room_id: str, payload: Any) -> int:
        """Send `payload` to every subscriber of `room_id`; returns deliveries that succeeded."""
        self._check_room(room_id)
        # Snapshot so a slow sender never holds the lock.
        targets = sorted(self.subscribers(room_id))
        if not targets:
            return 0

        delivered = 0
        failed = 0
        for token in targets:
            try:
                self._sender(token, room_id, payload)
                delivered += 1
            except Exception as e:
                failed += 1
                with self._lock:
                    self.failed_deliveries += 1
                log.warning("publish failed token=%s room=%s: %s", token, room_id, e)
        log.debug("publish room=%s delivered=%d failed=%d", room_id, delivered, failed)
        return delivered
