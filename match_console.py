"""
Matchday Console
Owns the per-match state and runs every operator row through
parse -> duplicate check -> lifecycle check -> card escalation ->
state update -> notification
"""

import logging
import threading
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple
import config
from event_classifier import EventClassifier
from event_ledger import MemoryEventLedger
from idempotency_guard import IdempotencyGuard
from logger_config import DispatchMonitor
from match_events import (
    AnomalyCode,
    AnomalyWarning,
    CardEvent,
    DispatchResult,
    GoalEvent,
    Match,
    MatchEvent,
    Period,
    PeriodTransitionEvent,
    SubmissionOutcome,
    SubmissionResult,
    ValidationError,
    is_opposition,
)
from match_lifecycle import MatchLifecycle
from notification_assembler import DerivedState, assemble
from pitch_time import PlayerTimeLedger
from runtime_state import MATCH_LOCKS, MatchLockRegistry
from scoreboard import (
    DisciplineRecord,
    Score,
    assists_by_player,
    derive_discipline,
    derive_score,
    goals_by_player,
)


@dataclass(frozen=True)
class PlayerMatchSummary:
    name: str
    started: bool = False
    appeared: bool = False
    minutes: int = 0
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    sin_bins: int = 0


class MatchState:
    """
    Aggregate for one match: the accepted events plus everything derived
    from them. Score and discipline are recomputed from the events; the
    pitch-time ledger is updated incrementally and can be rebuilt by replay.
    """

    def __init__(self, match: Match, match_duration: int = config.MATCH_DURATION_MINUTES,
                 stoppage_allowance: int = config.INJURY_TIME_DEFAULT):
        self.match = match
        self.events: List[MatchEvent] = []
        self.lifecycle = MatchLifecycle(Period.PRE)
        self.pitch = PlayerTimeLedger(match_duration=match_duration, stoppage_allowance=stoppage_allowance)
        self.anomalies: List[Tuple[str, AnomalyWarning]] = []
        self.match.current_period = Period.PRE
        self.match.started_at = None
        self.refresh_score()

    @classmethod
    def replay(cls, match: Match, events: Iterable[MatchEvent], **kwargs) -> 'MatchState':
        """Rebuild the state from scratch by re-applying stored events"""
        state = cls(replace(match), **kwargs)
        for event in events:
            state.apply(event)
        return state

    def apply(self, event: MatchEvent) -> List[AnomalyWarning]:
        """
        Apply an already classified event

        Raises:
            ValidationError: the event is not legal in the current period;
                nothing has been changed in that case
        """
        self.lifecycle.advance(event)
        anomalies = []
        if isinstance(event, CardEvent) and event.orphaned:
            anomalies.append(AnomalyWarning(
                code=AnomalyCode.ORPHANED_SECOND_YELLOW,
                message=f"No earlier yellow on record for {event.player.name}",
                minute=event.minute,
                player=event.player.name,
            ))
        anomalies.extend(self.pitch.apply(event))
        self.events.append(event)

        if isinstance(event, PeriodTransitionEvent) and event.period == Period.FIRST:
            self.match.started_at = event.recorded_at
        self.match.current_period = self.lifecycle.period
        self.refresh_score()

        self.anomalies.extend((event.event_id, a) for a in anomalies)
        return anomalies

    def refresh_score(self):
        score = derive_score(self.events, self.match.is_home_team)
        self.match.home_score = score.home
        self.match.away_score = score.away

    @property
    def period(self) -> Period:
        return self.lifecycle.period

    @property
    def score(self) -> Score:
        return Score(home=self.match.home_score, away=self.match.away_score)

    @property
    def discipline(self) -> Dict[str, DisciplineRecord]:
        return derive_discipline(self.events)

    def snapshot(self, key: Optional[str] = None, anomalies: Iterable[AnomalyWarning] = ()) -> DerivedState:
        return DerivedState(
            match_id=self.match.match_id,
            is_home_team=self.match.is_home_team,
            score=self.score,
            opponent=self.match.opponent,
            period=self.period,
            goals_by_player=goals_by_player(self.events),
            anomalies=tuple(anomalies),
            idempotency_key=key,
        )

    def player_summaries(self) -> Dict[str, PlayerMatchSummary]:
        """Appearances, goals, assists, cards and minutes per player"""
        goals = goals_by_player(self.events)
        assists = assists_by_player(self.events)
        discipline = self.discipline

        names: Dict[str, str] = {pid: s.player.name for pid, s in self.pitch.players.items()}
        for event in self.events:
            if isinstance(event, GoalEvent) and not is_opposition(event.scorer):
                names.setdefault(event.scorer.player_id, event.scorer.name)
                if event.assist is not None:
                    names.setdefault(event.assist.player_id, event.assist.name)
            elif isinstance(event, CardEvent) and not is_opposition(event.player):
                names.setdefault(event.player.player_id, event.player.name)

        summaries = {}
        for player_id, name in names.items():
            pitch_state = self.pitch.state(player_id)
            record = discipline.get(player_id)
            summaries[player_id] = PlayerMatchSummary(
                name=name,
                started=bool(pitch_state and pitch_state.started),
                appeared=bool(pitch_state and pitch_state.appeared),
                minutes=self.pitch.minutes(player_id),
                goals=goals.get(player_id, 0),
                assists=assists.get(player_id, 0),
                yellow_cards=record.yellow_cards if record else 0,
                red_cards=record.red_cards if record else 0,
                sin_bins=record.sin_bins if record else 0,
            )
        return summaries


class MatchCoordinator:
    """Single owner of one match's state; all writes go through its lock"""

    def __init__(self, match: Match, classifier: EventClassifier, guard: IdempotencyGuard,
                 ledger, dispatcher=None, monitor: Optional[DispatchMonitor] = None,
                 lock: Optional[threading.RLock] = None,
                 match_duration: int = config.MATCH_DURATION_MINUTES,
                 stoppage_allowance: int = config.INJURY_TIME_DEFAULT):
        self.classifier = classifier
        self.guard = guard
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.monitor = monitor or DispatchMonitor()
        self.lock = lock or threading.RLock()
        self.logger = logging.getLogger(__name__)
        self._state_options = {'match_duration': match_duration, 'stoppage_allowance': stoppage_allowance}

        stored = ledger.read_all(match.match_id)
        self.state = MatchState.replay(match, stored, **self._state_options)
        if stored:
            self.logger.info(f"Match {match.match_id}: restored {len(stored)} events, score {self.state.score}")

    @property
    def match(self) -> Match:
        return self.state.match

    def submit(self, raw: Dict) -> SubmissionResult:
        """
        Process one operator row

        State is committed under the match lock; the notification goes out
        afterwards and its outcome never changes the committed state.
        """
        with self.lock:
            result = self._apply(raw)

        if result.outcome == SubmissionOutcome.APPLIED and result.payload is not None:
            result.dispatch = self._dispatch(result.payload)
        return result

    def _reject(self, error: ValidationError, key: Optional[str] = None) -> SubmissionResult:
        self.logger.warning(f"Rejected input for {self.match.match_id}: [{error.code}] {error.message}")
        return SubmissionResult(outcome=SubmissionOutcome.REJECTED, key=key, error=error)

    def _apply(self, raw: Dict) -> SubmissionResult:
        try:
            event = self.classifier.parse(raw, match_id=self.match.match_id)
        except ValidationError as e:
            return self._reject(e)

        if event.match_id != self.match.match_id:
            return self._reject(ValidationError(
                f"Event for {event.match_id} sent to match {self.match.match_id}",
                code='match_mismatch', field='match_id',
            ))

        decision = self.guard.should_process(event)
        if not decision.process:
            self.logger.info(f"Skipping duplicate: {event.kind.value} at {event.minute}' ({decision.key})")
            return SubmissionResult(outcome=SubmissionOutcome.DUPLICATE, key=decision.key, event=event)

        try:
            self.state.lifecycle.check(event)
        except ValidationError as e:
            return self._reject(e, key=decision.key)

        if (isinstance(event, PeriodTransitionEvent) and event.period == Period.FIRST
                and not event.starting_players and self.match.starting_players):
            event = replace(event, starting_players=self.match.starting_players)

        event, _ = self.classifier.escalate(event, self.state.events)

        try:
            self.ledger.append(event)
        except OSError as e:
            self.logger.error(f"Ledger write failed for {self.match.match_id}: {e}")
            return self._reject(ValidationError(
                f"Event ledger unavailable: {e}", code='ledger_unavailable',
            ), key=decision.key)

        anomalies = self.state.apply(event)

        self.guard.mark_processed(decision.key, {
            'event_id': event.event_id,
            'kind': event.kind.value,
            'minute': event.minute,
        })

        for anomaly in anomalies:
            self.logger.warning(f"Anomaly [{anomaly.code}] in {self.match.match_id}: {anomaly.message}")
        self.logger.info(
            f"Applied {event.kind.value} at {event.minute}' in {self.match.match_id}, score {self.state.score}"
        )

        payload = assemble(event, self.state.snapshot(decision.key, anomalies))
        return SubmissionResult(
            outcome=SubmissionOutcome.APPLIED,
            key=decision.key,
            event=event,
            anomalies=tuple(anomalies),
            payload=payload,
        )

    def _dispatch(self, payload: Dict) -> Optional[DispatchResult]:
        if self.dispatcher is None:
            return None
        try:
            dispatch = self.dispatcher.dispatch(payload)
        except Exception as e:
            self.logger.error(f"Dispatcher raised for {payload.get('event_type')}: {e}", exc_info=True)
            dispatch = DispatchResult(success=False, error_detail=str(e))

        if dispatch.success:
            self.monitor.record_success()
        else:
            self.monitor.record_failure(self.match.match_id, payload.get('event_type'), dispatch.error_detail)
        return dispatch

    def replay(self) -> MatchState:
        """Fresh state rebuilt from the ledger, for consistency checks"""
        with self.lock:
            return MatchState.replay(self.match, self.ledger.read_all(self.match.match_id), **self._state_options)


class MatchConsole:
    """Entry point for the matchday operator: one coordinator per match"""

    def __init__(self, ledger=None, guard: Optional[IdempotencyGuard] = None, dispatcher=None,
                 classifier: Optional[EventClassifier] = None, locks: MatchLockRegistry = MATCH_LOCKS,
                 monitor: Optional[DispatchMonitor] = None,
                 match_duration: int = config.MATCH_DURATION_MINUTES,
                 stoppage_allowance: int = config.INJURY_TIME_DEFAULT):
        self.ledger = ledger if ledger is not None else MemoryEventLedger()
        self.guard = guard or IdempotencyGuard()
        self.dispatcher = dispatcher
        self.classifier = classifier or EventClassifier()
        self.locks = locks
        self.monitor = monitor or DispatchMonitor()
        self.match_duration = match_duration
        self.stoppage_allowance = stoppage_allowance
        self.coordinators: Dict[str, MatchCoordinator] = {}
        self._registry_lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def open_match(self, match_id: str, is_home_team: bool, opponent: str = '',
                   starting_players: Iterable[str] = ()) -> MatchCoordinator:
        """
        Register a match (or return the one already open)

        Args:
            match_id: Fixture identifier
            is_home_team: Whether our team is the home side in this fixture
            opponent: Opposition name for notifications
            starting_players: Default starting lineup used by kick-off

        Raises:
            ValidationError: a starting player name cannot be read
        """
        match_id = str(match_id).strip()
        if not match_id:
            raise ValidationError("match_id is required", code='missing_match_id', field='match_id')

        starters = self.classifier.lineup(starting_players)

        with self._registry_lock:
            if match_id in self.coordinators:
                return self.coordinators[match_id]

            match = Match(match_id=match_id, is_home_team=is_home_team, opponent=opponent,
                          starting_players=starters)
            coordinator = MatchCoordinator(
                match, self.classifier, self.guard, self.ledger,
                dispatcher=self.dispatcher,
                monitor=self.monitor,
                lock=self.locks.lock_for(match_id),
                match_duration=self.match_duration,
                stoppage_allowance=self.stoppage_allowance,
            )
            self.coordinators[match_id] = coordinator
            self.logger.info(f"Opened match {match_id} ({'home' if is_home_team else 'away'} vs {opponent or '?'})")
            return coordinator

    def close_match(self, match_id: str):
        with self._registry_lock:
            self.coordinators.pop(match_id, None)
        self.locks.release(match_id)

    def submit(self, raw: Dict, match_id: Optional[str] = None) -> SubmissionResult:
        """Route an operator row to its match"""
        target = str((raw.get('match_id') if isinstance(raw, dict) else None) or match_id or '').strip()
        coordinator = self.coordinators.get(target)
        if coordinator is None:
            error = ValidationError(f"Match {target or '?'} is not open", code='unknown_match', field='match_id')
            self.logger.warning(f"Rejected input: [{error.code}] {error.message}")
            return SubmissionResult(outcome=SubmissionOutcome.REJECTED, error=error)
        return coordinator.submit(raw)

    def state(self, match_id: str) -> MatchState:
        return self.coordinators[match_id].state

    def periodic_maintenance(self) -> int:
        """Evict expired idempotency keys"""
        return self.guard.sweep()
