"""Create a new sprint: a milestone running for two weeks from today."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Protocol

from decadog.github.models import Milestone
from decadog.sprint.interact import InteractionSurface

logger = logging.getLogger(__name__)

SPRINT_DAYS = 14
# Zenhub's own UI stores sprint dates at midday.
SPRINT_START_HOUR = 12


class MilestoneCreator(Protocol):
    def create_milestone(
        self, title: str, *, due_on: datetime, description: str = ""
    ) -> Milestone: ...


class StartDateBoard(Protocol):
    def set_start_date(self, milestone: Milestone, start_date: datetime) -> datetime: ...


def sprint_dates(today: date) -> tuple[datetime, datetime]:
    """Return the start and due date of a sprint starting on ``today``."""

    start = datetime.combine(today, time(hour=SPRINT_START_HOUR), tzinfo=timezone.utc)
    return start, start + timedelta(days=SPRINT_DAYS - 1)


def create_sprint(
    *,
    tracker: MilestoneCreator,
    ui: InteractionSurface,
    board: StartDateBoard | None = None,
    today: date | None = None,
) -> Milestone | None:
    """Ask for a sprint number and create ``Sprint <number>``.

    The Zenhub start date is recorded when a board is available.

    Returns:
        The new milestone, or ``None`` when the maintainer backed out.
    """

    if not ui.confirm("Create sprint from today for two weeks?"):
        return None

    number = ui.prompt_text("Sprint number").strip()
    if not number:
        ui.show("No sprint number given; nothing created.")
        return None

    start, due_on = sprint_dates(today or date.today())
    milestone = tracker.create_milestone(f"Sprint {number}", due_on=due_on)
    if board is not None:
        board.set_start_date(milestone, start)
    else:
        logger.info("No Zenhub board; sprint start date not recorded")

    logger.info(
        "Sprint created",
        extra={
            "milestone": milestone.title,
            "start": start.isoformat(),
            "due_on": due_on.isoformat(),
        },
    )
    return milestone
