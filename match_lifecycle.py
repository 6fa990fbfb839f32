"""
Match Lifecycle State Machine
Pre-match -> first half -> half-time -> second half -> full time
"""

import logging
from typing import Optional
from match_events import (
    MatchEvent,
    OutOfPlayError,
    Period,
    PeriodTransitionEvent,
    PeriodTransitionError,
)

NEXT_PERIOD = {
    Period.PRE: Period.FIRST,
    Period.FIRST: Period.HALF_TIME,
    Period.HALF_TIME: Period.SECOND,
    Period.SECOND: Period.FULL,
}

IN_PLAY_PERIODS = (Period.FIRST, Period.SECOND)


class MatchLifecycle:
    """Gate which events are legal in the current period"""

    def __init__(self, period: Period = Period.PRE):
        self.period = period
        self.logger = logging.getLogger(__name__)

    @property
    def expected_next(self) -> Optional[Period]:
        return NEXT_PERIOD.get(self.period)

    @property
    def in_play(self) -> bool:
        return self.period in IN_PLAY_PERIODS

    @property
    def finished(self) -> bool:
        return self.period == Period.FULL

    def check(self, event: MatchEvent):
        """
        Raise if the event is not legal now. Never changes state.

        Raises:
            PeriodTransitionError: period change out of order
            OutOfPlayError: goal, card or substitution outside the two halves
        """
        if isinstance(event, PeriodTransitionEvent):
            if event.period != self.expected_next:
                raise PeriodTransitionError(self.period, event.period)
            return

        if not self.in_play:
            raise OutOfPlayError(event.kind, self.period)

    def advance(self, event: MatchEvent):
        """Check the event, then move to its period if it is a transition"""
        self.check(event)
        if isinstance(event, PeriodTransitionEvent):
            self.logger.info(f"Match {event.match_id}: {self.period.value} -> {event.period.value}")
            self.period = event.period
