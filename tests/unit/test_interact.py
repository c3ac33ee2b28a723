"""Unit tests for fuzzy matching and the console surface."""

from __future__ import annotations

import pytest

from decadog.sprint.interact import ConsoleSurface, EndOfInput, fuzzy_filter

LOGINS = ["alice", "alicia-dev", "bob", "carol", "malice"]


def test_substring_matches_come_first_shortest_first() -> None:
    assert fuzzy_filter("alic", LOGINS)[:3] == ["alice", "malice", "alicia-dev"]


def test_matching_is_case_insensitive() -> None:
    assert fuzzy_filter("BOB", LOGINS) == ["bob"]


def test_similarity_matches_follow_substring_matches() -> None:
    result = fuzzy_filter("carl", LOGINS)

    assert result[0] == "carol"
    assert "bob" not in result


def test_empty_query_returns_all_sorted() -> None:
    assert fuzzy_filter("", ["bob", "Alice", "carol"]) == ["Alice", "bob", "carol"]


def test_no_match_returns_empty() -> None:
    assert fuzzy_filter("zzzzzz", LOGINS) == []


def test_result_is_deterministic_and_limited() -> None:
    candidates = [f"user{i}" for i in range(30)]

    first = fuzzy_filter("user", list(reversed(candidates)), limit=5)

    assert first == fuzzy_filter("user", candidates, limit=5)
    assert len(first) == 5


def test_console_confirm(monkeypatch: pytest.MonkeyPatch) -> None:
    answers = iter(["", "n", "yes"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))
    surface = ConsoleSurface()

    assert surface.confirm("Proceed?") is True
    assert surface.confirm("Proceed?") is False
    assert surface.confirm("Proceed?", default=False) is True


def test_console_choose_one_reprompts_on_invalid(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    answers = iter(["9", "x", "2"])
    monkeypatch.setattr("builtins.input", lambda prompt: next(answers))

    assert ConsoleSurface().choose_one("Select", ["a", "b"]) == 1
    assert "Invalid selection" in capsys.readouterr().out


def test_console_prompt_text_treats_eof_as_empty(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("builtins.input", _eof)

    assert ConsoleSurface().prompt_text("Issue number") == ""


def _eof(prompt: str) -> str:
    raise EOFError


def test_console_confirm_is_no_on_end_of_input(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("builtins.input", _eof)

    assert ConsoleSurface().confirm("Assign to milestone 'Sprint 3'?") is False


def test_console_choose_one_raises_on_end_of_input(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("builtins.input", _eof)

    with pytest.raises(EndOfInput):
        ConsoleSurface().choose_one("Select user", ["alice", "bob"])
