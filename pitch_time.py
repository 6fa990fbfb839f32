"""
Player-Time Ledger
Tracks who is on the pitch and accumulates minutes played across
kick-off, substitutions, sendings-off and full time
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
import config
from match_events import (
    AnomalyCode,
    AnomalyWarning,
    CardEvent,
    GoalEvent,
    MatchEvent,
    Period,
    PeriodTransitionEvent,
    PlayerRef,
    SENDING_OFF_CARDS,
    SubstitutionEvent,
    is_opposition,
)


class PitchStatus(Enum):
    NOT_YET_ON_PITCH = 'not_yet_on_pitch'
    ON_PITCH = 'on_pitch'
    OFF_PITCH = 'off_pitch'


@dataclass
class PlayerPitchState:
    """One player's time on the pitch in one match"""
    player: PlayerRef
    status: PitchStatus = PitchStatus.NOT_YET_ON_PITCH
    entered_at_minute: Optional[int] = None
    cumulative_minutes: int = 0
    started: bool = False
    sent_off: bool = False
    stints: List[Tuple[int, int]] = field(default_factory=list)

    @property
    def on_pitch(self) -> bool:
        return self.status == PitchStatus.ON_PITCH

    @property
    def appeared(self) -> bool:
        return self.on_pitch or bool(self.stints)

    def enter(self, minute: int):
        self.status = PitchStatus.ON_PITCH
        self.entered_at_minute = minute

    def leave(self, minute: int) -> int:
        """
        Close the open interval and fold it into cumulative_minutes
        Returns the raw interval length (negative if minute precedes entry)
        """
        length = minute - self.entered_at_minute
        self.stints.append((self.entered_at_minute, max(minute, self.entered_at_minute)))
        self.cumulative_minutes += max(0, length)
        self.status = PitchStatus.OFF_PITCH
        self.entered_at_minute = None
        return length


class PlayerTimeLedger:
    """Pitch-time state machine for the players of one match"""

    def __init__(self, match_duration: int = config.MATCH_DURATION_MINUTES,
                 stoppage_allowance: int = config.INJURY_TIME_DEFAULT):
        self.match_duration = match_duration
        self.stoppage_allowance = stoppage_allowance
        self.players: Dict[str, PlayerPitchState] = {}
        self.closed = False
        self.logger = logging.getLogger(__name__)

    @property
    def minute_cap(self) -> int:
        """Most minutes any one player can be credited with"""
        return self.match_duration + self.stoppage_allowance

    def _state(self, player: PlayerRef) -> PlayerPitchState:
        if player.player_id not in self.players:
            self.players[player.player_id] = PlayerPitchState(player=player)
        return self.players[player.player_id]

    def _anomaly(self, code: str, message: str, minute: int, player: Optional[PlayerRef] = None) -> AnomalyWarning:
        self.logger.warning(f"Pitch-time anomaly {code} at {minute}': {message}")
        return AnomalyWarning(code=code, message=message, minute=minute,
                              player=player.name if player else None)

    def _close(self, state: PlayerPitchState, minute: int) -> List[AnomalyWarning]:
        anomalies: List[AnomalyWarning] = []
        entered = state.entered_at_minute
        if state.leave(minute) < 0:
            anomalies.append(self._anomaly(
                AnomalyCode.STINT_ENDS_BEFORE_START,
                f"{state.player.name} left at {minute}' before coming on at {entered}'; counted as 0",
                minute, state.player,
            ))
        if state.cumulative_minutes > self.minute_cap:
            anomalies.append(self._anomaly(
                AnomalyCode.MINUTES_EXCEED_ALLOWANCE,
                f"{state.player.name} credited {state.cumulative_minutes} minutes; capped at {self.minute_cap}",
                minute, state.player,
            ))
            state.cumulative_minutes = self.minute_cap
        return anomalies

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def kickoff(self, starting_players: Iterable[PlayerRef], minute: int = 0) -> List[AnomalyWarning]:
        """Put the starting set on the pitch"""
        starters = list(starting_players)
        if not starters:
            return [self._anomaly(AnomalyCode.NO_STARTING_LINEUP,
                                  "Kick-off recorded without a starting lineup", minute)]
        for player in starters:
            state = self._state(player)
            state.started = True
            state.enter(minute)
        self.logger.info(f"Kick-off: {len(starters)} starters on the pitch")
        return []

    def substitute(self, minute: int, player_off: PlayerRef, player_on: PlayerRef) -> List[AnomalyWarning]:
        """
        Swap two players at minute

        A player_off who is not on the pitch, or a player_on who already is,
        is logged as an anomaly and the rest of the substitution still applies.
        A player_on who was sent off stays off.
        """
        anomalies: List[AnomalyWarning] = []

        off_state = self._state(player_off)
        if off_state.on_pitch:
            anomalies.extend(self._close(off_state, minute))
        else:
            anomalies.append(self._anomaly(
                AnomalyCode.SUB_OFF_NOT_ON_PITCH,
                f"{player_off.name} substituted off but was not on the pitch",
                minute, player_off,
            ))
            off_state.status = PitchStatus.OFF_PITCH

        on_state = self._state(player_on)
        if on_state.sent_off:
            anomalies.append(self._anomaly(
                AnomalyCode.SUB_ON_SENT_OFF,
                f"{player_on.name} substituted on but was sent off earlier; left off the pitch",
                minute, player_on,
            ))
        elif on_state.on_pitch:
            anomalies.append(self._anomaly(
                AnomalyCode.SUB_ON_ALREADY_ON_PITCH,
                f"{player_on.name} substituted on but was already on the pitch since {on_state.entered_at_minute}'",
                minute, player_on,
            ))
        else:
            on_state.enter(minute)

        return anomalies

    def send_off(self, minute: int, player: PlayerRef) -> List[AnomalyWarning]:
        """A red card ends the player's match"""
        state = self.players.get(player.player_id)
        if state is None or not state.on_pitch:
            return []
        state.sent_off = True
        return self._close(state, minute)

    def full_time(self, minute: Optional[int] = None) -> List[AnomalyWarning]:
        """Close every open interval; minute defaults to the match duration"""
        if minute is None:
            minute = self.match_duration

        anomalies: List[AnomalyWarning] = []
        for state in self.players.values():
            if state.on_pitch:
                anomalies.extend(self._close(state, minute))
        self.closed = True

        allowance = self.minute_cap
        capped = any(a.code == AnomalyCode.MINUTES_EXCEED_ALLOWANCE for a in anomalies)
        if minute > allowance and not capped:
            anomalies.append(self._anomaly(
                AnomalyCode.MINUTES_EXCEED_ALLOWANCE,
                f"Full time at {minute}' is beyond {allowance}' (duration + stoppage allowance)",
                minute,
            ))
        return anomalies

    def apply(self, event: MatchEvent) -> List[AnomalyWarning]:
        """Route a match event to the transition it implies"""
        if isinstance(event, PeriodTransitionEvent):
            if event.period == Period.FIRST:
                return self.kickoff(event.starting_players, event.minute)
            if event.period == Period.FULL:
                return self.full_time(event.minute)
            # Minutes run on the match clock; half-time closes nothing
            return []

        if isinstance(event, SubstitutionEvent):
            return self.substitute(event.minute, event.player_off, event.player_on)

        if isinstance(event, CardEvent):
            if event.card in SENDING_OFF_CARDS and not is_opposition(event.player):
                return self.send_off(event.minute, event.player)
            return []

        if isinstance(event, GoalEvent) and not is_opposition(event.scorer):
            state = self.players.get(event.scorer.player_id)
            if state is None or not state.on_pitch:
                return [self._anomaly(
                    AnomalyCode.SCORER_NOT_ON_PITCH,
                    f"{event.scorer.name} scored but is not on the pitch",
                    event.minute, event.scorer,
                )]
        return []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def on_pitch(self) -> List[PlayerRef]:
        return [s.player for s in self.players.values() if s.on_pitch]

    def state(self, player_id: str) -> Optional[PlayerPitchState]:
        return self.players.get(player_id)

    def minutes(self, player_id: str, at_minute: Optional[int] = None) -> int:
        """
        Minutes played so far; at_minute counts the open interval up to that
        point without closing it
        """
        state = self.players.get(player_id)
        if state is None:
            return 0
        total = state.cumulative_minutes
        if at_minute is not None and state.on_pitch:
            total += max(0, at_minute - state.entered_at_minute)
        return min(total, self.minute_cap)

    def minutes_table(self, at_minute: Optional[int] = None) -> Dict[str, int]:
        return {s.player.name: self.minutes(pid, at_minute) for pid, s in self.players.items()}
