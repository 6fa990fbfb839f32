"""Tests for the player-time ledger."""

from conftest import row
from match_events import AnomalyCode, PlayerRef
from pitch_time import PitchStatus, PlayerTimeLedger

A = PlayerRef("a", "A")
B = PlayerRef("b", "B")
C = PlayerRef("c", "C")


def _codes(anomalies):
    return [a.code for a in anomalies]


class TestMinutes:
    """Tests for minutes accumulation."""

    def test_substitution_splits_minutes(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        ledger.substitute(60, A, C)
        ledger.full_time(90)
        assert ledger.minutes("a") == 60
        assert ledger.minutes("b") == 90
        assert ledger.minutes("c") == 30

    def test_minutes_sum_to_on_pitch_time(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        ledger.substitute(30, A, C)
        ledger.substitute(70, C, A)
        ledger.full_time(90)
        assert ledger.minutes("a") == 30 + 20
        assert ledger.minutes("c") == 40
        assert sum(ledger.minutes_table().values()) == 2 * 90

    def test_full_time_defaults_to_duration(self) -> None:
        ledger = PlayerTimeLedger(match_duration=80)
        ledger.kickoff([A])
        ledger.full_time()
        assert ledger.minutes("a") == 80
        assert ledger.closed is True

    def test_send_off_closes_interval(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        ledger.send_off(55, A)
        ledger.full_time(90)
        assert ledger.minutes("a") == 55
        assert ledger.state("a").status == PitchStatus.OFF_PITCH

    def test_minutes_at_a_point_in_play(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A])
        assert ledger.minutes("a", at_minute=25) == 25
        assert ledger.minutes("a") == 0
        assert ledger.state("a").on_pitch

    def test_unknown_player(self) -> None:
        assert PlayerTimeLedger().minutes("nobody") == 0

    def test_unused_substitute_never_appears(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A])
        ledger.full_time(90)
        assert ledger.state("c") is None
        assert ledger.state("a").appeared
        assert ledger.state("a").started

    def test_stints_recorded(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        ledger.substitute(30, A, C)
        ledger.substitute(70, C, A)
        ledger.full_time(90)
        assert ledger.state("a").stints == [(0, 30), (70, 90)]


class TestAnomalies:
    """Tests for operator mistakes recorded as anomalies."""

    def test_sub_off_not_on_pitch(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A])
        anomalies = ledger.substitute(60, B, C)
        assert _codes(anomalies) == [AnomalyCode.SUB_OFF_NOT_ON_PITCH]
        assert ledger.state("c").on_pitch

    def test_sub_on_already_on_pitch(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        anomalies = ledger.substitute(60, A, B)
        assert _codes(anomalies) == [AnomalyCode.SUB_ON_ALREADY_ON_PITCH]
        assert ledger.state("b").entered_at_minute == 0
        assert ledger.minutes("a") == 60

    def test_negative_interval_clamped(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A])
        ledger.substitute(60, A, C)
        anomalies = ledger.substitute(50, C, A)
        assert _codes(anomalies) == [AnomalyCode.STINT_ENDS_BEFORE_START]
        assert ledger.minutes("c") == 0

    def test_kickoff_without_lineup(self) -> None:
        ledger = PlayerTimeLedger()
        assert _codes(ledger.kickoff([])) == [AnomalyCode.NO_STARTING_LINEUP]
        assert ledger.on_pitch() == []

    def test_full_time_beyond_allowance(self) -> None:
        ledger = PlayerTimeLedger(match_duration=90, stoppage_allowance=5)
        ledger.kickoff([A])
        assert ledger.full_time(95) == []
        ledger = PlayerTimeLedger(match_duration=90, stoppage_allowance=5)
        ledger.kickoff([A])
        assert _codes(ledger.full_time(96)) == [AnomalyCode.MINUTES_EXCEED_ALLOWANCE]
        assert ledger.minutes("a") == 95

    def test_late_full_time_caps_every_player(self) -> None:
        ledger = PlayerTimeLedger(match_duration=90, stoppage_allowance=5)
        ledger.kickoff([A, B])
        ledger.substitute(80, B, C)
        anomalies = ledger.full_time(120)
        assert _codes(anomalies) == [AnomalyCode.MINUTES_EXCEED_ALLOWANCE]
        assert anomalies[0].player == "A"
        assert ledger.minutes_table() == {"A": 95, "B": 80, "C": 40}

    def test_minutes_in_play_capped(self) -> None:
        ledger = PlayerTimeLedger(match_duration=90, stoppage_allowance=5)
        ledger.kickoff([A])
        assert ledger.minutes("a", at_minute=130) == ledger.minute_cap

    def test_send_off_for_player_not_on_pitch_is_ignored(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A])
        assert ledger.send_off(40, B) == []

    def test_sent_off_player_cannot_come_back_on(self) -> None:
        ledger = PlayerTimeLedger()
        ledger.kickoff([A, B])
        ledger.send_off(40, A)
        anomalies = ledger.substitute(60, B, A)
        assert _codes(anomalies) == [AnomalyCode.SUB_ON_SENT_OFF]
        assert not ledger.state("a").on_pitch
        assert ledger.state("a").sent_off
        ledger.full_time(90)
        assert ledger.minutes("a") == 40
        assert ledger.minutes("b") == 60


class TestApply:
    """Tests for routing match events into transitions."""

    def test_event_sequence(self, classifier) -> None:
        ledger = PlayerTimeLedger()
        events = [
            classifier.parse(row("Kick Off", 0, starting_players=["Tom Green", "Sam Hill"])),
            classifier.parse(row("Half Time", 45)),
            classifier.parse(row("Second Half", 45)),
            classifier.parse(row("Sub", 60, player_off="Tom Green", player_on="Ali Khan")),
            classifier.parse(row("Full Time", 90)),
        ]
        for event in events:
            assert ledger.apply(event) == []
        assert ledger.minutes_table() == {"Tom Green": 60, "Sam Hill": 90, "Ali Khan": 30}

    def test_tracked_red_card_sends_off(self, classifier) -> None:
        ledger = PlayerTimeLedger()
        ledger.apply(classifier.parse(row("Kick Off", 0, starting_players=["Tom Green"])))
        red, _ = classifier.classify(row("Card", 70, player="Tom Green", card_type="Red"))
        ledger.apply(red)
        assert ledger.minutes("tom green") == 70
        assert ledger.on_pitch() == []

    def test_yellow_and_opposition_red_leave_pitch_alone(self, classifier) -> None:
        ledger = PlayerTimeLedger()
        ledger.apply(classifier.parse(row("Kick Off", 0, starting_players=["Tom Green"])))
        ledger.apply(classifier.parse(row("Card", 20, player="Tom Green", card_type="Yellow")))
        ledger.apply(classifier.parse(row("Card", 30, player="Opposition", card_type="Red")))
        assert [p.player_id for p in ledger.on_pitch()] == ["tom green"]

    def test_scorer_not_on_pitch(self, classifier) -> None:
        ledger = PlayerTimeLedger()
        ledger.apply(classifier.parse(row("Kick Off", 0, starting_players=["Tom Green"])))
        anomalies = ledger.apply(classifier.parse(row("Goal", 12, player="Sam Hill")))
        assert _codes(anomalies) == [AnomalyCode.SCORER_NOT_ON_PITCH]
        assert ledger.apply(classifier.parse(row("Goal", 13, player="Tom Green"))) == []
        assert ledger.apply(classifier.parse(row("Goal", 14, player="Goal"))) == []
