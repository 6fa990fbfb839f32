"""Shared fixtures for the matchday ledger tests."""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import pytest

from event_classifier import EventClassifier
from event_ledger import MemoryEventLedger
from idempotency_guard import IdempotencyGuard, MemoryIdempotencyStore
from match_console import MatchConsole
from match_events import DispatchResult
from runtime_state import MatchLockRegistry


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2024, 9, 7, 14, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDispatcher:
    """Dispatcher double that remembers every payload it was handed."""

    def __init__(self, result: Optional[DispatchResult] = None) -> None:
        self.payloads: List[Dict] = []
        self.result = result or DispatchResult(success=True, status_code=200)

    def dispatch(self, payload: Dict) -> DispatchResult:
        self.payloads.append(payload)
        return self.result


def row(event: str, minute=None, match_id: str = "M1", **fields) -> Dict:
    data = {"match_id": match_id, "event": event}
    if minute is not None:
        data["minute"] = minute
    data.update(fields)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def classifier() -> EventClassifier:
    return EventClassifier()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def ledger() -> MemoryEventLedger:
    return MemoryEventLedger()


@pytest.fixture
def guard(clock: FakeClock) -> IdempotencyGuard:
    return IdempotencyGuard(MemoryIdempotencyStore(clock=clock), ttl_hours=24)


@pytest.fixture
def console(ledger, guard, dispatcher, classifier) -> MatchConsole:
    return MatchConsole(
        ledger=ledger,
        guard=guard,
        dispatcher=dispatcher,
        classifier=classifier,
        locks=MatchLockRegistry(),
    )
