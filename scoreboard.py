"""
Score & Discipline Deriver
Score and card totals are folds over the event log, never stored counters
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from match_events import (
    CardEvent,
    CardKind,
    GoalEvent,
    MatchEvent,
    OPPOSITION,
    SENDING_OFF_CARDS,
    actor_identity,
    is_opposition,
)


@dataclass(frozen=True)
class Score:
    home: int = 0
    away: int = 0

    def ours(self, is_home_team: bool) -> int:
        return self.home if is_home_team else self.away

    def theirs(self, is_home_team: bool) -> int:
        return self.away if is_home_team else self.home

    def __str__(self) -> str:
        return f"{self.home}-{self.away}"


def apply_goal(score: Score, goal: GoalEvent, is_home_team: bool) -> Score:
    """
    Add one goal to the scoreboard

    Our goals go on our side of the board, which is home or away depending on
    the fixture; opposition goals go on the other side.
    """
    scored_by_us = not is_opposition(goal.scorer)
    if scored_by_us == is_home_team:
        return Score(home=score.home + 1, away=score.away)
    return Score(home=score.home, away=score.away + 1)


def derive_score(events: Iterable[MatchEvent], is_home_team: bool) -> Score:
    score = Score()
    for event in events:
        if isinstance(event, GoalEvent):
            score = apply_goal(score, event, is_home_team)
    return score


def goals_by_player(events: Iterable[MatchEvent]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in events:
        if isinstance(event, GoalEvent) and not is_opposition(event.scorer):
            counts[event.scorer.player_id] = counts.get(event.scorer.player_id, 0) + 1
    return counts


def assists_by_player(events: Iterable[MatchEvent]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for event in events:
        if isinstance(event, GoalEvent) and event.assist is not None:
            counts[event.assist.player_id] = counts.get(event.assist.player_id, 0) + 1
    return counts


def goal_milestone(goal_count: int) -> Optional[str]:
    """Brace / hat-trick label for a scorer's running total"""
    if goal_count == 2:
        return 'brace'
    if goal_count == 3:
        return 'hat_trick'
    return None


@dataclass(frozen=True)
class DisciplineEntry:
    event_id: str
    minute: int
    card: CardKind
    orphaned: bool = False
    first_yellow_minute: Optional[int] = None


@dataclass
class DisciplineRecord:
    """Cards for one of our players, or for the opposition as a whole"""
    subject: str
    name: str
    cards: List[DisciplineEntry] = field(default_factory=list)

    def add(self, event: CardEvent):
        """
        Append a card, keeping every second yellow either linked to an
        earlier yellow in this record or flagged orphaned
        """
        orphaned = event.orphaned
        first_yellow_minute = event.first_yellow_minute
        if event.card == CardKind.SECOND_YELLOW and subject_is_tracked(self.subject):
            yellows = [c for c in self.cards if c.card == CardKind.YELLOW]
            if not yellows:
                orphaned, first_yellow_minute = True, None
            elif first_yellow_minute is None and not orphaned:
                first_yellow_minute = yellows[0].minute
        self.cards.append(DisciplineEntry(
            event_id=event.event_id,
            minute=event.minute,
            card=event.card,
            orphaned=orphaned,
            first_yellow_minute=first_yellow_minute,
        ))

    @property
    def yellow_cards(self) -> int:
        return sum(1 for c in self.cards if c.card == CardKind.YELLOW)

    @property
    def red_cards(self) -> int:
        # A second yellow counts once, as a red; orphaned ones included
        return sum(1 for c in self.cards if c.card in SENDING_OFF_CARDS)

    @property
    def sin_bins(self) -> int:
        return sum(1 for c in self.cards if c.card == CardKind.SIN_BIN)

    @property
    def orphaned_second_yellows(self) -> int:
        return sum(1 for c in self.cards if c.card == CardKind.SECOND_YELLOW and c.orphaned)

    @property
    def sent_off(self) -> bool:
        return self.red_cards > 0


def subject_is_tracked(subject: str) -> bool:
    return subject != actor_identity(OPPOSITION)


def derive_discipline(events: Iterable[MatchEvent]) -> Dict[str, DisciplineRecord]:
    """Discipline records keyed by player id ('opposition' for the other team)"""
    records: Dict[str, DisciplineRecord] = {}
    for event in events:
        if not isinstance(event, CardEvent):
            continue
        subject = actor_identity(event.player)
        if subject not in records:
            name = OPPOSITION.label if is_opposition(event.player) else event.player.name
            records[subject] = DisciplineRecord(subject=subject, name=name)
        records[subject].add(event)
    return records


@dataclass(frozen=True)
class DisciplineTotals:
    yellow_cards: int = 0
    red_cards: int = 0
    sin_bins: int = 0
    orphaned_second_yellows: int = 0


def discipline_totals(records: Dict[str, DisciplineRecord], opposition: bool = False) -> DisciplineTotals:
    """Sum cards for our team, or for the opposition"""
    selected = [r for s, r in records.items() if subject_is_tracked(s) != opposition]
    return DisciplineTotals(
        yellow_cards=sum(r.yellow_cards for r in selected),
        red_cards=sum(r.red_cards for r in selected),
        sin_bins=sum(r.sin_bins for r in selected),
        orphaned_second_yellows=sum(r.orphaned_second_yellows for r in selected),
    )
