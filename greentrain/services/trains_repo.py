# greentrain/services/trains_repo.py
from __future__ import annotations

import json
import logging
import re
import threading
from pathlib import Path

from pydantic import ValidationError

from greentrain.config import settings
from greentrain.domain.models import Instant, Train
from greentrain.domain.train_records import TrainRecord
from greentrain.services import calendar_resolver, time_math

log = logging.getLogger("trains_repo")

# Listed in the app (hidden ones are reachable by direct link only).
ACTIVE_STATUSES = frozenset({"active", "deprecated", "hidden", "paused"})
PUBLIC_STATUSES = frozenset({"active", "deprecated", "paused"})

_HHMM_RE = re.compile(r"\d{2}:\d{2}")


_INSTALL_ROOT = Path(__file__).resolve().parents[2]


def _default_json_path() -> Path:
    configured = Path(getattr(settings, "TRAINS_JSON", None) or "greentrain/data/trains.json")
    if configured.is_absolute() or configured.exists():
        return configured
    # Relative paths fall back to the install location (package data).
    return _INSTALL_ROOT / configured


def _f(path: str | Path) -> Path:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(p))
    return p


class TrainsRepo:
    """
    Read-only train catalog backed by a JSON file.
    Trains are immutable snapshots; reload() swaps the whole index at once.
    """

    def __init__(self, json_path: str | Path | None = None, default_tz: str | None = None) -> None:
        self.json_path = Path(json_path) if json_path else _default_json_path()
        self.default_tz = default_tz or time_math.default_tz_name()

        self._by_id: dict[str, Train] = {}
        self._order: list[str] = []
        self._lock = threading.RLock()
        self._loaded = False

    # -------------------- Public API --------------------

    def load(self) -> int:
        p = _f(self.json_path)
        raw = json.loads(p.read_text(encoding="utf-8"))
        if isinstance(raw, dict):
            raw = raw.get("trains") or []
        if not isinstance(raw, list):
            raise ValueError(f"{p}: expected a list of trains")

        by_id: dict[str, Train] = {}
        order: list[str] = []
        skipped = 0
        for i, item in enumerate(raw):
            try:
                rec = TrainRecord.model_validate(item)
            except ValidationError as e:
                skipped += 1
                tid = item.get("id") if isinstance(item, dict) else None
                log.warning("Skipping train #%d (id=%r): %s", i, tid, e.errors()[:3])
                continue
            if rec.id in by_id:
                log.warning("Duplicate train id %s in %s; keeping the first", rec.id, p)
                continue
            by_id[rec.id] = rec.to_domain(self.default_tz)
            order.append(rec.id)

        with self._lock:
            self._by_id = by_id
            self._order = order
            self._loaded = True
        log.info("Loaded %d trains (skipped=%d) from %s", len(by_id), skipped, p)
        return len(by_id)

    def reload(self) -> int:
        return self.load()

    def get(self, train_id: str) -> Train | None:
        self._ensure_loaded()
        return self._by_id.get((train_id or "").strip())

    def list_all(self) -> list[Train]:
        self._ensure_loaded()
        with self._lock:
            return [self._by_id[i] for i in self._order]

    def list_active(self) -> list[Train]:
        return [t for t in self.list_all() if t.status in ACTIVE_STATUSES]

    def list_public(self) -> list[Train]:
        return [t for t in self.list_all() if t.status in PUBLIC_STATUSES]

    def search(self, query: str) -> list[Train]:
        q = (query or "").strip().lower()
        if not q:
            return self.list_public()
        m = _HHMM_RE.search(q)
        hhmm = m.group(0) if m else None

        out: list[Train] = []
        for t in self.list_public():
            if q in t.theme.lower() or q in t.name.lower():
                out.append(t)
            elif any(q in s.name.lower() for s in t.stations):
                out.append(t)
            elif hhmm and t.origin_departure and str(t.origin_departure).startswith(hhmm):
                out.append(t)
        return out

    def sorted_by_next_departure(self, now: Instant) -> list[tuple[Train, Instant]]:
        """Public trains with an upcoming run, soonest first."""
        items: list[tuple[Train, Instant]] = []
        for t in self.list_public():
            nxt = calendar_resolver.next_departure(t, now)
            if nxt is None:
                continue
            items.append((t, nxt[1]))
        items.sort(key=lambda pair: (pair[1], pair[0].id))
        return items

    # -------------------- Internals --------------------

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()


# -------------------- Singleton --------------------

_repo: TrainsRepo | None = None


def get_repo() -> TrainsRepo:
    global _repo
    if _repo is None:
        _repo = TrainsRepo()
        _repo.load()
    return _repo
