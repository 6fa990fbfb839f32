"""
Match Event Model
Immutable event variants, the match record, and the result types
returned to the operator console
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Dict, Optional, Tuple, Union


class Period(Enum):
    PRE = 'pre'
    FIRST = 'first'
    HALF_TIME = 'half_time'
    SECOND = 'second'
    FULL = 'full'


class EventKind(Enum):
    GOAL = 'goal'
    CARD = 'card'
    SUBSTITUTION = 'substitution'
    PERIOD_TRANSITION = 'period_transition'


class CardKind(Enum):
    YELLOW = 'yellow'
    RED = 'red'
    SECOND_YELLOW = 'second_yellow'
    SIN_BIN = 'sin_bin'


SENDING_OFF_CARDS = (CardKind.RED, CardKind.SECOND_YELLOW)


@dataclass(frozen=True)
class PlayerRef:
    """One of our players, addressed by a stable id rather than the typed name"""
    player_id: str
    name: str


@dataclass(frozen=True)
class Opposition:
    """The other team as a whole - its players are not tracked individually"""
    label: str = 'Opposition'


OPPOSITION = Opposition()

Actor = Union[PlayerRef, Opposition]


def is_opposition(actor: Actor) -> bool:
    return isinstance(actor, Opposition)


def actor_identity(actor: Actor) -> str:
    if isinstance(actor, Opposition):
        return 'opposition'
    return actor.player_id


# ----------------------------------------------------------------------
# Event variants. Each carries exactly the fields its kind needs.
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class GoalEvent:
    event_id: str
    match_id: str
    minute: int
    scorer: Actor
    assist: Optional[PlayerRef] = None
    notes: str = ''
    recorded_at: str = ''

    kind: ClassVar[EventKind] = EventKind.GOAL

    @property
    def actor(self) -> Actor:
        return self.scorer


@dataclass(frozen=True)
class CardEvent:
    event_id: str
    match_id: str
    minute: int
    player: Actor
    card: CardKind
    orphaned: bool = False
    first_yellow_minute: Optional[int] = None
    notes: str = ''
    recorded_at: str = ''

    kind: ClassVar[EventKind] = EventKind.CARD

    @property
    def actor(self) -> Actor:
        return self.player


@dataclass(frozen=True)
class SubstitutionEvent:
    event_id: str
    match_id: str
    minute: int
    player_off: PlayerRef
    player_on: PlayerRef
    notes: str = ''
    recorded_at: str = ''

    kind: ClassVar[EventKind] = EventKind.SUBSTITUTION

    @property
    def actor(self) -> Actor:
        return self.player_off


@dataclass(frozen=True)
class PeriodTransitionEvent:
    event_id: str
    match_id: str
    minute: int
    period: Period
    starting_players: Tuple[PlayerRef, ...] = ()
    notes: str = ''
    recorded_at: str = ''

    kind: ClassVar[EventKind] = EventKind.PERIOD_TRANSITION


MatchEvent = Union[GoalEvent, CardEvent, SubstitutionEvent, PeriodTransitionEvent]


@dataclass
class Match:
    """
    Match record. home_score / away_score are a cache of the score derived
    from the event log and are rewritten after every accepted event.
    """
    match_id: str
    is_home_team: bool
    opponent: str = ''
    started_at: Optional[str] = None
    current_period: Period = Period.PRE
    home_score: int = 0
    away_score: int = 0
    starting_players: Tuple[PlayerRef, ...] = ()


# ----------------------------------------------------------------------
# Errors and results
# ----------------------------------------------------------------------

class ValidationError(Exception):
    """Operator input rejected before any state was touched"""

    def __init__(self, message: str, code: str = 'invalid', field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.field = field

    def to_dict(self) -> Dict:
        return {'code': self.code, 'message': self.message, 'field': self.field}


class PeriodTransitionError(ValidationError):
    """Requested period is not the legal successor of the current one"""

    def __init__(self, current: Period, requested: Period):
        super().__init__(
            f"Cannot move from {current.value} to {requested.value}",
            code='illegal_transition',
            field='event',
        )
        self.current = current
        self.requested = requested


class OutOfPlayError(ValidationError):
    """Goal, card or substitution submitted while the ball is not in play"""

    def __init__(self, kind: EventKind, period: Period):
        super().__init__(
            f"{kind.value} not accepted during {period.value}",
            code=f"not_in_play_{period.value}",
            field='event',
        )
        self.kind = kind
        self.period = period


class AnomalyCode:
    ORPHANED_SECOND_YELLOW = 'orphaned_second_yellow'
    SUB_OFF_NOT_ON_PITCH = 'sub_off_not_on_pitch'
    SUB_ON_ALREADY_ON_PITCH = 'sub_on_already_on_pitch'
    STINT_ENDS_BEFORE_START = 'stint_ends_before_start'
    SCORER_NOT_ON_PITCH = 'scorer_not_on_pitch'
    NO_STARTING_LINEUP = 'no_starting_lineup'
    MINUTES_EXCEED_ALLOWANCE = 'minutes_exceed_allowance'
    SUB_ON_SENT_OFF = 'sub_on_sent_off'


@dataclass(frozen=True)
class AnomalyWarning:
    """Data-quality signal recorded next to an event that was still applied"""
    code: str
    message: str
    minute: Optional[int] = None
    player: Optional[str] = None

    def to_dict(self) -> Dict:
        return {'code': self.code, 'message': self.message, 'minute': self.minute, 'player': self.player}


@dataclass(frozen=True)
class DispatchResult:
    success: bool
    error_detail: Optional[str] = None
    status_code: Optional[int] = None


class SubmissionOutcome(Enum):
    APPLIED = 'applied'
    DUPLICATE = 'duplicate'
    REJECTED = 'rejected'


@dataclass
class SubmissionResult:
    outcome: SubmissionOutcome
    key: Optional[str] = None
    event: Optional[MatchEvent] = None
    anomalies: Tuple[AnomalyWarning, ...] = ()
    payload: Optional[Dict] = None
    dispatch: Optional[DispatchResult] = None
    error: Optional[ValidationError] = None

    @property
    def success(self) -> bool:
        """Duplicates count as success - the event was already handled"""
        return self.outcome in (SubmissionOutcome.APPLIED, SubmissionOutcome.DUPLICATE)

    @property
    def dispatch_failed(self) -> bool:
        return self.dispatch is not None and not self.dispatch.success

    def to_dict(self) -> Dict:
        return {
            'outcome': self.outcome.value,
            'key': self.key,
            'anomalies': [a.to_dict() for a in self.anomalies],
            'payload': self.payload,
            'dispatch': None if self.dispatch is None else {
                'success': self.dispatch.success,
                'error_detail': self.dispatch.error_detail,
            },
            'error': None if self.error is None else self.error.to_dict(),
        }
