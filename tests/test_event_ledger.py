"""Tests for the append-only event ledger."""

from conftest import row
from event_ledger import JsonLinesEventLedger, MemoryEventLedger, event_from_record, event_to_record
from match_events import OPPOSITION, CardKind


class TestRecords:
    """Tests for record conversion of the less obvious fields."""

    def test_opposition_actor_survives(self, classifier) -> None:
        event = classifier.parse(row("Goal", 10, player="Goal"))
        record = event_to_record(event)
        assert record["scorer"] == {"opposition": True}
        assert event_from_record(record).scorer == OPPOSITION

    def test_escalated_card_keeps_back_reference(self, classifier) -> None:
        yellow = classifier.parse(row("Card", 20, player="Tom Green", card_type="Yellow"))
        red, _ = classifier.classify(row("Card", 70, player="Tom Green", card_type="Red"), history=[yellow])
        restored = event_from_record(event_to_record(red))
        assert restored.card == CardKind.SECOND_YELLOW
        assert restored.first_yellow_minute == 20
        assert restored == red


class TestMemoryEventLedger:
    """Tests for ordering and isolation."""

    def test_events_kept_in_submission_order(self, classifier) -> None:
        ledger = MemoryEventLedger()
        late = classifier.parse(row("Goal", 80, player="Tom Green"))
        early = classifier.parse(row("Goal", 10, player="Sam Hill"))
        ledger.append(late)
        ledger.append(early)
        assert ledger.read_all("M1") == [late, early]

    def test_matches_are_separate(self, classifier) -> None:
        ledger = MemoryEventLedger()
        ledger.append(classifier.parse(row("Goal", 10, match_id="M1", player="Tom Green")))
        ledger.append(classifier.parse(row("Goal", 10, match_id="M2", player="Tom Green")))
        assert len(ledger.read_all("M1")) == 1
        assert sorted(ledger.match_ids()) == ["M1", "M2"]
        assert ledger.read_all("M3") == []

    def test_read_all_returns_a_copy(self, classifier) -> None:
        ledger = MemoryEventLedger()
        ledger.append(classifier.parse(row("Goal", 10, player="Tom Green")))
        ledger.read_all("M1").clear()
        assert len(ledger.read_all("M1")) == 1


class TestJsonLinesEventLedger:
    """Tests for the file-backed ledger."""

    def test_reload_from_file(self, tmp_path, classifier) -> None:
        ledger_file = str(tmp_path / "events.jsonl")
        ledger = JsonLinesEventLedger(ledger_file=ledger_file)
        kickoff = classifier.parse(row("Kick Off", 0, starting_players=["Tom Green"]))
        goal = classifier.parse(row("Goal", 12, player="Tom Green", assist="Sam Hill"))
        ledger.append(kickoff)
        ledger.append(goal)

        reopened = JsonLinesEventLedger(ledger_file=ledger_file)
        assert reopened.read_all("M1") == [kickoff, goal]

    def test_unreadable_line_is_skipped(self, tmp_path, classifier) -> None:
        ledger_file = tmp_path / "events.jsonl"
        ledger = JsonLinesEventLedger(ledger_file=str(ledger_file))
        ledger.append(classifier.parse(row("Goal", 12, player="Tom Green")))
        with open(ledger_file, "a", encoding="utf-8") as f:
            f.write("{broken\n\n")
        ledger.append(classifier.parse(row("Goal", 30, player="Tom Green")))

        reopened = JsonLinesEventLedger(ledger_file=str(ledger_file))
        assert [e.minute for e in reopened.read_all("M1")] == [12, 30]
