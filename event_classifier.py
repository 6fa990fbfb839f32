"""
Event Classifier
Turns a raw operator row from the live match sheet into a typed match event:
validates the minute and names, attributes the event to our team or the
opposition, and escalates red cards to second yellows
"""

import logging
import re
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Tuple
import config
from match_events import (
    AnomalyCode,
    AnomalyWarning,
    CardEvent,
    CardKind,
    GoalEvent,
    MatchEvent,
    OPPOSITION,
    PeriodTransitionEvent,
    Period,
    PlayerRef,
    SubstitutionEvent,
    ValidationError,
    is_opposition,
)

EVENT_ALIASES = {
    'goal': 'goal',
    'card': 'card',
    'booking': 'card',
    'discipline': 'card',
    'yellow card': 'card',
    'red card': 'card',
    'sin bin': 'card',
    'sub': 'substitution',
    'subs': 'substitution',
    'substitution': 'substitution',
    'kick off': Period.FIRST,
    'kickoff': Period.FIRST,
    'first half': Period.FIRST,
    'half time': Period.HALF_TIME,
    'halftime': Period.HALF_TIME,
    'ht': Period.HALF_TIME,
    'second half': Period.SECOND,
    'second half kick off': Period.SECOND,
    '2nd half': Period.SECOND,
    'full time': Period.FULL,
    'fulltime': Period.FULL,
    'ft': Period.FULL,
}

CARD_ALIASES = {
    'yellow': CardKind.YELLOW,
    'yellow card': CardKind.YELLOW,
    'red': CardKind.RED,
    'red card': CardKind.RED,
    'second yellow': CardKind.SECOND_YELLOW,
    '2nd yellow': CardKind.SECOND_YELLOW,
    '2nd yellow red': CardKind.SECOND_YELLOW,
    'second yellow red': CardKind.SECOND_YELLOW,
    'sin bin': CardKind.SIN_BIN,
    'sinbin': CardKind.SIN_BIN,
}

# Used when the operator leaves the minute blank on a status update
DEFAULT_PERIOD_MINUTES = {
    Period.FIRST: 0,
    Period.HALF_TIME: config.HALF_TIME_MINUTE,
    Period.SECOND: config.HALF_TIME_MINUTE,
    Period.FULL: config.MATCH_DURATION_MINUTES,
}

_STOPPAGE_MINUTE = re.compile(r'^(\d+)\s*\+\s*(\d+)$')


def normalize_label(value: str) -> str:
    """Lower-case, drop punctuation, collapse whitespace"""
    cleaned = re.sub(r"[^\w\s]", ' ', str(value).replace("'", ''))
    return ' '.join(cleaned.casefold().replace('_', ' ').split())


def normalize_display_name(value: str) -> str:
    return ' '.join(str(value).split())


def normalize_notes(value) -> str:
    if value is None:
        return ''
    return ' '.join(str(value).split()).casefold()


def parse_minute(value, field: str = 'minute') -> int:
    """
    Parse an operator minute: integers, digit strings, or stoppage notation
    such as "45+2"

    Raises:
        ValidationError: non-numeric or outside the accepted range
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Minute is required, got {value!r}", code='invalid_minute', field=field)

    if isinstance(value, int):
        minute = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"Minute must be a whole number, got {value}", code='invalid_minute', field=field)
        minute = int(value)
    else:
        text = str(value).strip().rstrip("'")
        stoppage = _STOPPAGE_MINUTE.match(text)
        if stoppage:
            minute = int(stoppage.group(1)) + int(stoppage.group(2))
        elif text.isdecimal():
            minute = int(text)
        else:
            raise ValidationError(f"Minute is not a number: {value!r}", code='invalid_minute', field=field)

    if not config.MIN_EVENT_MINUTE <= minute <= config.MAX_EVENT_MINUTE:
        raise ValidationError(
            f"Minute {minute} outside {config.MIN_EVENT_MINUTE}-{config.MAX_EVENT_MINUTE}",
            code='minute_out_of_range',
            field=field,
        )
    return minute


class EventClassifier:
    """Classify operator input into match events"""

    def __init__(self, roster: Optional[Dict[str, str]] = None,
                 goal_markers: Iterable[str] = config.OPPOSITION_GOAL_MARKERS,
                 card_markers: Iterable[str] = config.OPPOSITION_CARD_MARKERS,
                 straight_red_cards: bool = config.STRAIGHT_RED_CARDS):
        """
        Args:
            roster: Optional alias -> canonical name map ("T. Green" -> "Tom Green")
                so different spellings resolve to one player id
            goal_markers: "player" values meaning the opposition scored
            card_markers: "player" values meaning an opposition card
            straight_red_cards: Keep reds without an earlier yellow as straight reds
        """
        self.roster = {normalize_label(alias): normalize_display_name(name)
                       for alias, name in (roster or {}).items()}
        self.goal_markers = {normalize_label(m) for m in goal_markers}
        self.card_markers = {normalize_label(m) for m in card_markers}
        self.straight_red_cards = straight_red_cards
        self.logger = logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Names
    # ------------------------------------------------------------------

    def player_ref(self, name, field: str = 'player') -> PlayerRef:
        """Resolve a typed name to a stable player reference"""
        if name is None or not str(name).strip():
            raise ValidationError(f"{field} is empty", code='empty_player', field=field)

        key = normalize_label(name)
        if not key:
            raise ValidationError(f"Cannot read a player name from {name!r}", code='invalid_player', field=field)
        if key in self.goal_markers or key in self.card_markers:
            raise ValidationError(f"{name!r} is reserved for opposition events", code='reserved_player', field=field)

        display = self.roster.get(key, normalize_display_name(name))
        return PlayerRef(player_id=normalize_label(display), name=display)

    def lineup(self, names, field: str = 'starting_players') -> Tuple[PlayerRef, ...]:
        """
        Resolve a starting lineup, one entry per player id in the order given

        Raises:
            ValidationError: names is a single string or not a sequence of names
        """
        if not names:
            return ()
        if isinstance(names, (str, bytes, dict)) or not hasattr(names, '__iter__'):
            raise ValidationError(
                f"{field} must be a list of names, got {type(names).__name__}",
                code='invalid_lineup', field=field,
            )

        starters: List[PlayerRef] = []
        seen = set()
        for name in names:
            ref = self.player_ref(name, field=field)
            if ref.player_id not in seen:
                seen.add(ref.player_id)
                starters.append(ref)
        return tuple(starters)

    def _is_marker(self, name, markers) -> bool:
        return name is not None and normalize_label(name) in markers

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    def parse(self, raw: Dict, match_id: Optional[str] = None) -> MatchEvent:
        """
        Validate an operator row and build the un-escalated event

        Args:
            raw: Row with match_id, minute, event, player, assist, card_type,
                player_off, player_on, notes, timestamp, starting_players
            match_id: Fallback when the row carries no match_id

        Returns:
            GoalEvent, CardEvent, SubstitutionEvent or PeriodTransitionEvent

        Raises:
            ValidationError: the row cannot be accepted as typed
        """
        if not isinstance(raw, dict):
            raise ValidationError("Event input must be a mapping", code='invalid_input')

        match_id = str(raw.get('match_id') or match_id or '').strip()
        if not match_id:
            raise ValidationError("match_id is required", code='missing_match_id', field='match_id')

        event_name = normalize_label(raw.get('event') or '')
        kind = EVENT_ALIASES.get(event_name)
        if kind is None:
            raise ValidationError(f"Unknown event {raw.get('event')!r}", code='unknown_event', field='event')

        common = {
            'event_id': str(raw.get('event_id') or uuid.uuid4().hex),
            'match_id': match_id,
            'notes': normalize_display_name(raw.get('notes') or ''),
            'recorded_at': str(raw.get('timestamp') or datetime.now(timezone.utc).isoformat()),
        }

        if isinstance(kind, Period):
            return self._parse_period(raw, kind, common)
        if kind == 'goal':
            return self._parse_goal(raw, common)
        if kind == 'card':
            return self._parse_card(raw, event_name, common)
        return self._parse_substitution(raw, common)

    def _parse_period(self, raw: Dict, period: Period, common: Dict) -> PeriodTransitionEvent:
        minute_value = raw.get('minute')
        if minute_value is None or str(minute_value).strip() == '':
            minute = DEFAULT_PERIOD_MINUTES[period]
        else:
            minute = parse_minute(minute_value)

        starters: Tuple[PlayerRef, ...] = ()
        if period == Period.FIRST:
            starters = self.lineup(raw.get('starting_players'))

        return PeriodTransitionEvent(minute=minute, period=period, starting_players=starters, **common)

    def _parse_goal(self, raw: Dict, common: Dict) -> GoalEvent:
        minute = parse_minute(raw.get('minute'))
        player = raw.get('player')

        if self._is_marker(player, self.goal_markers):
            if raw.get('assist'):
                self.logger.warning(f"Ignoring assist {raw.get('assist')!r} on opposition goal at {minute}'")
            return GoalEvent(minute=minute, scorer=OPPOSITION, **common)

        scorer = self.player_ref(player)
        assist = None
        if raw.get('assist') and str(raw.get('assist')).strip():
            assist = self.player_ref(raw.get('assist'), field='assist')
            if assist.player_id == scorer.player_id:
                raise ValidationError("Scorer cannot assist their own goal", code='assist_is_scorer', field='assist')

        return GoalEvent(minute=minute, scorer=scorer, assist=assist, **common)

    def _parse_card(self, raw: Dict, event_name: str, common: Dict) -> CardEvent:
        minute = parse_minute(raw.get('minute'))

        card_label = normalize_label(raw.get('card_type') or '')
        if not card_label and event_name in CARD_ALIASES:
            card_label = event_name
        card = CARD_ALIASES.get(card_label)
        if card is None:
            raise ValidationError(
                f"Unknown card type {raw.get('card_type')!r}", code='unknown_card_type', field='card_type'
            )

        player = raw.get('player')
        if self._is_marker(player, self.card_markers):
            return CardEvent(minute=minute, player=OPPOSITION, card=card, **common)

        return CardEvent(minute=minute, player=self.player_ref(player), card=card, **common)

    def _parse_substitution(self, raw: Dict, common: Dict) -> SubstitutionEvent:
        minute = parse_minute(raw.get('minute'))

        for field in ('player_off', 'player_on'):
            if self._is_marker(raw.get(field), self.goal_markers | self.card_markers):
                raise ValidationError(
                    "Opposition substitutions are not tracked", code='opposition_substitution', field=field
                )

        player_off = self.player_ref(raw.get('player_off'), field='player_off')
        player_on = self.player_ref(raw.get('player_on'), field='player_on')
        if player_off.player_id == player_on.player_id:
            raise ValidationError(
                f"{player_off.name} cannot replace themselves", code='same_player_substitution', field='player_on'
            )

        return SubstitutionEvent(minute=minute, player_off=player_off, player_on=player_on, **common)

    # ------------------------------------------------------------------
    # Card escalation
    # ------------------------------------------------------------------

    def escalate(self, event: MatchEvent, history: Iterable[MatchEvent]) -> Tuple[MatchEvent, List[AnomalyWarning]]:
        """
        Reclassify reds for a player already on a yellow as second yellows

        The back-reference points at the player's first yellow in this match.
        Without one the card is still accepted, flagged orphaned.
        """
        if not isinstance(event, CardEvent) or is_opposition(event.player):
            return event, []
        if event.card not in (CardKind.RED, CardKind.SECOND_YELLOW):
            return event, []

        first_yellow = find_first_yellow(history, event.match_id, event.player.player_id)

        if first_yellow is not None:
            return replace(event, card=CardKind.SECOND_YELLOW, orphaned=False,
                           first_yellow_minute=first_yellow.minute), []

        if event.card == CardKind.RED and self.straight_red_cards:
            return event, []

        anomaly = AnomalyWarning(
            code=AnomalyCode.ORPHANED_SECOND_YELLOW,
            message=f"No earlier yellow on record for {event.player.name}",
            minute=event.minute,
            player=event.player.name,
        )
        return replace(event, card=CardKind.SECOND_YELLOW, orphaned=True, first_yellow_minute=None), [anomaly]

    def classify(self, raw: Dict, history: Iterable[MatchEvent] = (),
                 match_id: Optional[str] = None) -> Tuple[MatchEvent, List[AnomalyWarning]]:
        """Parse and escalate in one step"""
        return self.escalate(self.parse(raw, match_id=match_id), history)


def find_first_yellow(history: Iterable[MatchEvent], match_id: str, player_id: str) -> Optional[CardEvent]:
    for past in history:
        if (isinstance(past, CardEvent)
                and past.match_id == match_id
                and past.card == CardKind.YELLOW
                and not is_opposition(past.player)
                and past.player.player_id == player_id):
            return past
    return None
