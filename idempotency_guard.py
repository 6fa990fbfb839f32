"""
Idempotency Guard for Duplicate Prevention
Fingerprints each logical match event and remembers which ones were applied,
so a double-tapped row or a retried webhook is only processed once
"""

import hashlib
import json
import os
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional
import config
from event_classifier import normalize_notes
from match_events import (
    CardEvent,
    GoalEvent,
    MatchEvent,
    PeriodTransitionEvent,
    SubstitutionEvent,
    actor_identity,
)


def idempotency_key(event: MatchEvent) -> str:
    """
    Deterministic fingerprint of (match, kind, actor, minute, notes)

    Wall-clock fields (event_id, recorded_at) are left out so the
    same row typed twice hashes the same. Cards are keyed on the card as
    typed, before any second-yellow escalation.
    """
    if isinstance(event, GoalEvent):
        kind, actor = 'goal', actor_identity(event.scorer)
    elif isinstance(event, CardEvent):
        kind, actor = f"card:{event.card.value}", actor_identity(event.player)
    elif isinstance(event, SubstitutionEvent):
        kind, actor = 'substitution', f"{event.player_off.player_id}>{event.player_on.player_id}"
    elif isinstance(event, PeriodTransitionEvent):
        kind, actor = f"period:{event.period.value}", 'match'
    else:
        raise TypeError(f"Not a match event: {event!r}")

    parts = [event.match_id, kind, actor, str(event.minute), normalize_notes(event.notes)]
    digest = hashlib.sha256('|'.join(parts).encode('utf-8')).hexdigest()
    return f"{event.match_id}:{digest[:32]}"


@dataclass(frozen=True)
class IdempotencyEntry:
    key: str
    first_seen_at: datetime
    expires_at: datetime
    summary: Dict

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def to_dict(self) -> Dict:
        return {
            'first_seen_at': self.first_seen_at.isoformat(),
            'expires_at': self.expires_at.isoformat(),
            'summary': self.summary,
        }

    @classmethod
    def from_dict(cls, key: str, data: Dict) -> 'IdempotencyEntry':
        return cls(
            key=key,
            first_seen_at=datetime.fromisoformat(data['first_seen_at']),
            expires_at=datetime.fromisoformat(data['expires_at']),
            summary=data.get('summary', {}),
        )


class MemoryIdempotencyStore:
    """
    Idempotency keys held in process memory
    One store is shared by every open match, so access goes through its own lock
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self.clock = clock
        self.entries: Dict[str, IdempotencyEntry] = {}
        self._lock = threading.RLock()

    def get(self, key: str) -> Optional[IdempotencyEntry]:
        with self._lock:
            return self.entries.get(key)

    def has(self, key: str) -> bool:
        """True if the key is present and not yet expired"""
        with self._lock:
            entry = self.entries.get(key)
        if entry is None:
            return False
        return not entry.is_expired(self.clock())

    def put(self, key: str, meta: Dict, ttl_seconds: int):
        with self._lock:
            now = self.clock()
            existing = self.entries.get(key)
            first_seen = existing.first_seen_at if existing and not existing.is_expired(now) else now
            self.entries[key] = IdempotencyEntry(
                key=key,
                first_seen_at=first_seen,
                expires_at=now + timedelta(seconds=ttl_seconds),
                summary=dict(meta),
            )

    def sweep_expired(self) -> int:
        """
        Remove expired keys to bound storage
        Returns the number of keys removed
        """
        with self._lock:
            now = self.clock()
            expired = [key for key, entry in self.entries.items() if entry.is_expired(now)]
            for key in expired:
                del self.entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self.entries)


class JsonIdempotencyStore(MemoryIdempotencyStore):
    """Idempotency keys persisted to a JSON file, rewritten on every change"""

    def __init__(self, db_file: str = config.IDEMPOTENCY_DB_FILE,
                 clock: Callable[[], datetime] = datetime.now):
        super().__init__(clock=clock)
        self.db_file = db_file
        self.logger = logging.getLogger(__name__)
        self.entries = self._load_database()

    def _load_database(self) -> Dict[str, IdempotencyEntry]:
        """Load idempotency keys from file"""
        if not os.path.exists(self.db_file):
            return {}
        try:
            with open(self.db_file, 'r', encoding='utf-8') as f:
                raw = json.load(f)
            return {key: IdempotencyEntry.from_dict(key, data) for key, data in raw.items()}
        except (json.JSONDecodeError, KeyError, ValueError, IOError) as e:
            self.logger.warning(f"Error loading idempotency database: {e}. Starting fresh.")
            return {}

    def _save_database(self):
        """Persist keys to file; callers hold the store lock"""
        try:
            with open(self.db_file, 'w', encoding='utf-8') as f:
                json.dump({key: entry.to_dict() for key, entry in self.entries.items()}, f, indent=2)
        except IOError as e:
            self.logger.error(f"Error saving idempotency database: {e}")

    def put(self, key: str, meta: Dict, ttl_seconds: int):
        with self._lock:
            super().put(key, meta, ttl_seconds)
            self._save_database()

    def sweep_expired(self) -> int:
        with self._lock:
            removed = super().sweep_expired()
            if removed:
                self._save_database()
        return removed


@dataclass(frozen=True)
class GuardDecision:
    process: bool
    key: str


class IdempotencyGuard:
    """Decide whether an event still needs processing"""

    def __init__(self, store=None, ttl_hours: float = config.IDEMPOTENCY_TTL_HOURS):
        self.store = store if store is not None else MemoryIdempotencyStore()
        self.ttl_seconds = int(ttl_hours * 3600)
        self.logger = logging.getLogger(__name__)

    def should_process(self, event: MatchEvent) -> GuardDecision:
        """
        Check if the event was already applied within the retention window

        Returns:
            GuardDecision with process=False for duplicates
        """
        key = idempotency_key(event)
        if self.store.has(key):
            self.logger.info(f"Duplicate event {key} ({event.kind.value} at {event.minute}')")
            return GuardDecision(process=False, key=key)
        return GuardDecision(process=True, key=key)

    def mark_processed(self, key: str, event_summary: Dict):
        """Record that the event behind key changed match state"""
        self.store.put(key, event_summary, self.ttl_seconds)

    def sweep(self) -> int:
        """Best-effort eviction of expired keys"""
        removed = self.store.sweep_expired()
        if removed:
            self.logger.info(f"Evicted {removed} expired idempotency keys")
        return removed
