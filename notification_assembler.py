"""
Notification Assembler
Maps a classified event plus the derived match state onto the flat payload
the Make.com router expects. Pure: no I/O, no state changes.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple
from match_events import (
    AnomalyWarning,
    CardEvent,
    CardKind,
    GoalEvent,
    MatchEvent,
    Period,
    PeriodTransitionEvent,
    SubstitutionEvent,
    is_opposition,
)
from scoreboard import Score, goal_milestone

logger = logging.getLogger(__name__)


class EventType:
    GOAL = 'goal'
    GOAL_OPPOSITION = 'goal_opposition'
    CARD = 'card'
    CARD_OPPOSITION = 'card_opposition'
    CARD_SECOND_YELLOW = 'card_second_yellow'
    SUBSTITUTION = 'substitution'
    KICK_OFF = 'kick_off'
    HALF_TIME = 'half_time'
    SECOND_HALF = 'second_half'
    FULL_TIME = 'full_time'


PERIOD_EVENT_TYPES = {
    Period.FIRST: EventType.KICK_OFF,
    Period.HALF_TIME: EventType.HALF_TIME,
    Period.SECOND: EventType.SECOND_HALF,
    Period.FULL: EventType.FULL_TIME,
}


@dataclass(frozen=True)
class DerivedState:
    """Read-only view of a match after an event was applied"""
    match_id: str
    is_home_team: bool
    score: Score
    opponent: str = ''
    period: Period = Period.PRE
    goals_by_player: Dict[str, int] = field(default_factory=dict)
    anomalies: Tuple[AnomalyWarning, ...] = ()
    idempotency_key: Optional[str] = None


def event_type_for(event: MatchEvent) -> str:
    if isinstance(event, GoalEvent):
        return EventType.GOAL_OPPOSITION if is_opposition(event.scorer) else EventType.GOAL
    if isinstance(event, CardEvent):
        if is_opposition(event.player):
            return EventType.CARD_OPPOSITION
        if event.card == CardKind.SECOND_YELLOW:
            return EventType.CARD_SECOND_YELLOW
        return EventType.CARD
    if isinstance(event, SubstitutionEvent):
        return EventType.SUBSTITUTION
    if isinstance(event, PeriodTransitionEvent):
        return PERIOD_EVENT_TYPES[event.period]
    raise TypeError(f"Not a match event: {event!r}")


def _result_for(score: Score, is_home_team: bool) -> str:
    ours, theirs = score.ours(is_home_team), score.theirs(is_home_team)
    if ours > theirs:
        return 'win'
    if ours < theirs:
        return 'loss'
    return 'draw'


def _event_fields(event: MatchEvent, state: DerivedState) -> Dict:
    if isinstance(event, GoalEvent):
        if is_opposition(event.scorer):
            return {}
        goal_count = state.goals_by_player.get(event.scorer.player_id, 1)
        return {
            'player': event.scorer.name,
            'assist': event.assist.name if event.assist else None,
            'player_goal_count': goal_count,
            'milestone': goal_milestone(goal_count),
        }

    if isinstance(event, CardEvent):
        fields = {'card_type': event.card.value}
        if not is_opposition(event.player):
            fields['player'] = event.player.name
        if event.card == CardKind.SECOND_YELLOW:
            fields['first_yellow_minute'] = event.first_yellow_minute
            fields['orphaned'] = event.orphaned
        return fields

    if isinstance(event, SubstitutionEvent):
        return {'player_off': event.player_off.name, 'player_on': event.player_on.name}

    if isinstance(event, PeriodTransitionEvent):
        if event.period == Period.FIRST:
            return {'starting_players': [p.name for p in event.starting_players]}
        if event.period == Period.FULL:
            return {'result': _result_for(state.score, state.is_home_team)}
    return {}


def assemble(event: MatchEvent, state: DerivedState) -> Dict:
    """
    Build the outbound notification payload

    Event-specific fields are best effort: if they cannot be built the
    payload still goes out with the common fields and partial=True.
    """
    payload = {
        'event_type': event_type_for(event),
        'event_id': event.event_id,
        'match_id': state.match_id,
        'minute': event.minute,
        'home_score': state.score.home,
        'away_score': state.score.away,
        'tracked_side': 'home' if state.is_home_team else 'away',
        'opponent': state.opponent,
        'notes': event.notes,
    }
    if state.idempotency_key:
        payload['idempotency_key'] = state.idempotency_key
    if state.anomalies:
        payload['anomalies'] = [a.code for a in state.anomalies]

    try:
        payload.update(_event_fields(event, state))
    except (AttributeError, KeyError, TypeError) as e:
        logger.warning(f"Partial payload for {payload['event_type']} at {event.minute}': {e}")
        payload['partial'] = True

    return payload
