"""Tests for the replay command line."""

import json
import logging

import pytest

import main


@pytest.fixture(autouse=True)
def isolated_logging(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    root = logging.getLogger()
    saved_handlers, saved_level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = saved_handlers
    root.setLevel(saved_level)


def _write(tmp_path, data) -> str:
    path = tmp_path / "match.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestMain:
    """Tests for the replay entry point."""

    def test_replays_file_with_match_block(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, {
            "match": {"match_id": "M1", "is_home_team": False, "opponent": "Rovers",
                      "starting_players": ["A", "B"]},
            "events": [
                {"event": "Kick Off", "minute": 0},
                {"event": "Goal", "minute": 12, "player": "A"},
                {"event": "Goal", "minute": 12, "player": "A"},
                {"event": "Goal", "minute": 30, "player": "Goal"},
                {"event": "Half Time", "minute": 45},
                {"event": "Second Half", "minute": 45},
                {"event": "Full Time", "minute": 90},
            ],
        })

        assert main.main([path]) == 0

        out = capsys.readouterr().out
        assert "duplicate" in out
        assert "Match M1: 1-1 (full)" in out
        assert "90 min" in out

    def test_rejected_rows_give_exit_code_one(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, [{"event": "Full Time", "minute": 90}])
        assert main.main([path, "--match-id", "M7"]) == 1
        assert "[illegal_transition]" in capsys.readouterr().out

    def test_missing_match_id(self, tmp_path) -> None:
        path = _write(tmp_path, [{"event": "Kick Off", "minute": 0}])
        assert main.main([path]) == 2

    def test_unreadable_file(self, tmp_path) -> None:
        assert main.main([str(tmp_path / "missing.json")]) == 2

    def test_starters_option(self, tmp_path, capsys) -> None:
        path = _write(tmp_path, [{"event": "Kick Off", "minute": 0}, {"event": "HT"},
                                {"event": "Second Half"}, {"event": "FT"}])
        assert main.main([path, "--match-id", "M2", "--starters", "A, B"]) == 0
        out = capsys.readouterr().out
        assert "A" in out and "B" in out
        assert "no_starting_lineup" not in out

    def test_persist_writes_ledger(self, tmp_path) -> None:
        path = _write(tmp_path, [{"event": "Kick Off", "minute": 0}])
        assert main.main([path, "--match-id", "M3", "--persist"]) == 0
        assert (tmp_path / "match_events.jsonl").exists()
        assert (tmp_path / "idempotency_keys.json").exists()
