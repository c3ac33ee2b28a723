"""Unit tests for creating a sprint milestone."""

from __future__ import annotations

from datetime import date, datetime, timezone
from unittest.mock import Mock

from conftest import ScriptedSurface

from decadog.github.client import GitHubClient
from decadog.github.models import Milestone
from decadog.sprint.create import create_sprint, sprint_dates
from decadog.zenhub.client import ZenhubClient

TODAY = date(2024, 5, 1)
START = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
DUE = datetime(2024, 5, 14, 12, tzinfo=timezone.utc)


def _tracker() -> Mock:
    tracker = Mock(spec=GitHubClient)
    tracker.create_milestone.side_effect = lambda title, due_on, description="": Milestone(
        id=20, number=7, title=title
    )
    return tracker


def test_sprint_dates_cover_two_weeks_from_midday() -> None:
    assert sprint_dates(TODAY) == (START, DUE)


def test_create_sprint_records_start_date_on_board() -> None:
    tracker = _tracker()
    board = Mock(spec=ZenhubClient)
    ui = ScriptedSurface(confirms=[True], texts=["7"])

    milestone = create_sprint(tracker=tracker, ui=ui, board=board, today=TODAY)

    assert milestone == Milestone(id=20, number=7, title="Sprint 7")
    tracker.create_milestone.assert_called_once_with("Sprint 7", due_on=DUE)
    board.set_start_date.assert_called_once_with(milestone, START)


def test_create_sprint_without_board() -> None:
    tracker = _tracker()
    ui = ScriptedSurface(confirms=[True], texts=[" 8 "])

    milestone = create_sprint(tracker=tracker, ui=ui, today=TODAY)

    assert milestone is not None
    assert milestone.title == "Sprint 8"


def test_declined_creation_does_nothing() -> None:
    tracker = _tracker()
    board = Mock(spec=ZenhubClient)

    assert create_sprint(tracker=tracker, ui=ScriptedSurface(confirms=[False]), board=board) is None
    tracker.create_milestone.assert_not_called()
    board.set_start_date.assert_not_called()


def test_missing_sprint_number_does_nothing() -> None:
    tracker = _tracker()
    ui = ScriptedSurface(confirms=[True], texts=[""])

    assert create_sprint(tracker=tracker, ui=ui, today=TODAY) is None
    tracker.create_milestone.assert_not_called()
    assert "No sprint number given; nothing created." in ui.shown
