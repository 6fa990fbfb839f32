"""
Append-only Match Event Ledger
Events are stored in submission order and never rewritten
"""

import json
import os
import logging
from typing import Dict, List, Optional
import config
from match_events import (
    OPPOSITION,
    Actor,
    CardEvent,
    CardKind,
    GoalEvent,
    MatchEvent,
    Period,
    PeriodTransitionEvent,
    PlayerRef,
    SubstitutionEvent,
    is_opposition,
)


def _player_to_record(player: Optional[PlayerRef]) -> Optional[Dict]:
    if player is None:
        return None
    return {'id': player.player_id, 'name': player.name}


def _actor_to_record(actor: Actor) -> Dict:
    if is_opposition(actor):
        return {'opposition': True}
    return _player_to_record(actor)


def _player_from_record(data: Optional[Dict]) -> Optional[PlayerRef]:
    if data is None:
        return None
    return PlayerRef(player_id=data['id'], name=data['name'])


def _actor_from_record(data: Dict) -> Actor:
    if data.get('opposition'):
        return OPPOSITION
    return _player_from_record(data)


def event_to_record(event: MatchEvent) -> Dict:
    """Flatten an event into a JSON-safe dict"""
    record = {
        'kind': event.kind.value,
        'event_id': event.event_id,
        'match_id': event.match_id,
        'minute': event.minute,
        'notes': event.notes,
        'recorded_at': event.recorded_at,
    }
    if isinstance(event, GoalEvent):
        record['scorer'] = _actor_to_record(event.scorer)
        record['assist'] = _player_to_record(event.assist)
    elif isinstance(event, CardEvent):
        record['player'] = _actor_to_record(event.player)
        record['card'] = event.card.value
        record['orphaned'] = event.orphaned
        record['first_yellow_minute'] = event.first_yellow_minute
    elif isinstance(event, SubstitutionEvent):
        record['player_off'] = _player_to_record(event.player_off)
        record['player_on'] = _player_to_record(event.player_on)
    elif isinstance(event, PeriodTransitionEvent):
        record['period'] = event.period.value
        record['starting_players'] = [_player_to_record(p) for p in event.starting_players]
    return record


def event_from_record(record: Dict) -> MatchEvent:
    """Rebuild an event written by event_to_record"""
    common = {
        'event_id': record['event_id'],
        'match_id': record['match_id'],
        'minute': record['minute'],
        'notes': record.get('notes', ''),
        'recorded_at': record.get('recorded_at', ''),
    }
    kind = record['kind']
    if kind == 'goal':
        return GoalEvent(scorer=_actor_from_record(record['scorer']),
                         assist=_player_from_record(record.get('assist')), **common)
    if kind == 'card':
        return CardEvent(player=_actor_from_record(record['player']),
                         card=CardKind(record['card']),
                         orphaned=record.get('orphaned', False),
                         first_yellow_minute=record.get('first_yellow_minute'), **common)
    if kind == 'substitution':
        return SubstitutionEvent(player_off=_player_from_record(record['player_off']),
                                 player_on=_player_from_record(record['player_on']), **common)
    if kind == 'period_transition':
        return PeriodTransitionEvent(
            period=Period(record['period']),
            starting_players=tuple(_player_from_record(p) for p in record.get('starting_players', [])),
            **common,
        )
    raise ValueError(f"Unknown event kind in ledger: {kind!r}")


class MemoryEventLedger:
    """Per-match event lists held in memory"""

    def __init__(self):
        self._events: Dict[str, List[MatchEvent]] = {}

    def append(self, event: MatchEvent):
        self._events.setdefault(event.match_id, []).append(event)

    def read_all(self, match_id: str) -> List[MatchEvent]:
        """Events for one match in submission order"""
        return list(self._events.get(match_id, []))

    def match_ids(self) -> List[str]:
        return list(self._events)


class JsonLinesEventLedger(MemoryEventLedger):
    """
    Ledger persisted as one JSON object per line
    The file is only ever appended to; it is read back once at start-up
    """

    def __init__(self, ledger_file: str = config.EVENT_LEDGER_FILE):
        super().__init__()
        self.ledger_file = ledger_file
        self.logger = logging.getLogger(__name__)
        self._load()

    def _load(self):
        if not os.path.exists(self.ledger_file):
            return
        with open(self.ledger_file, 'r', encoding='utf-8') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    super().append(event_from_record(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError) as e:
                    self.logger.error(f"Skipping unreadable ledger line {line_no}: {e}")

    def append(self, event: MatchEvent):
        """Write the event to disk, then make it visible to readers"""
        with open(self.ledger_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(event_to_record(event), ensure_ascii=False) + '\n')
        super().append(event)
