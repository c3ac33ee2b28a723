"""Finish an open sprint.

An issue counts towards a sprint when it was closed after the sprint started
and carries a Zenhub estimate. Finishing a sprint:

1. reviews closed issues: those closed since the sprint start that belong to no
   milestone (offering to attach them to the sprint) and those already closed
   in the sprint, asking for an estimate wherever one is missing;
2. lists the issues still open in the sprint;
3. asks how many points were planned and prints the points report;
4. on confirmation, retitles and closes the milestone, then takes the open
   issues out of it.

Issues labelled :data:`OBSOLETE_LABEL` and Zenhub epics are left out of the
review.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from decadog.config.resolver import Config
from decadog.github.models import Issue, Milestone
from decadog.sprint.interact import InteractionSurface
from decadog.sprint.session import (
    AssignmentVerificationFailed,
    NoMilestonesAvailable,
    SessionError,
)
from decadog.zenhub.client import IssueDetails

logger = logging.getLogger(__name__)

ESTIMATES: tuple[int, ...] = (0, 1, 2, 3, 5, 8, 13)
OBSOLETE_LABEL = "Z-obsolete"


class InvalidPlannedPoints(SessionError):
    def __init__(self, planned: int, reason: str) -> None:
        super().__init__(f"Planned points {planned} rejected: {reason}")
        self.planned = planned
        self.reason = reason


@dataclass(frozen=True, slots=True)
class SprintPoints:
    """Points summary of a sprint.

    ``in_milestone`` counts every estimated issue in the milestone, open or
    closed; ``in_milestone_open`` only those still open.
    """

    planned: int
    in_milestone: int
    in_milestone_open: int

    def __post_init__(self) -> None:
        if self.planned < 0:
            raise InvalidPlannedPoints(self.planned, "must not be negative")
        if self.planned < self.in_milestone_open:
            raise InvalidPlannedPoints(
                self.planned,
                f"too low, {self.in_milestone_open} points are still open in the sprint",
            )
        if self.planned > self.in_milestone:
            raise InvalidPlannedPoints(
                self.planned, f"too high, the milestone only holds {self.in_milestone} points"
            )

    @property
    def done_in_sprint(self) -> int:
        return self.planned - self.in_milestone_open

    @property
    def done_out_of_sprint(self) -> int:
        return self.in_milestone - self.planned

    @property
    def done_total(self) -> int:
        return self.done_in_sprint + self.done_out_of_sprint

    def title_for(self, title: str) -> str:
        """Milestone title recording the result, e.g. ``Sprint 3 [8/10 + 2]``."""

        return f"{title} [{self.done_in_sprint}/{self.planned} + {self.done_out_of_sprint}]"

    def report(self, title: str) -> str:
        return (
            f"*{title}* Report\n"
            "---\n"
            f"We completed *{self.done_in_sprint}* planned points out of *{self.planned}* "
            f"({self.in_milestone_open} remaining).\n"
            f"We also did {self.done_out_of_sprint} out of sprint points.\n"
            f"In total, we finished *{self.done_total} points* of work."
        )


class SprintTracker(Protocol):
    def list_milestones(self) -> list[Milestone]: ...

    def list_milestone_issues(self, milestone: Milestone, *, state: str = "all") -> list[Issue]: ...

    def list_closed_issues_without_milestone(self, since: datetime) -> list[Issue]: ...

    def set_milestone(self, issue: Issue, milestone: Milestone) -> Issue: ...

    def clear_milestone(self, issue: Issue) -> Issue: ...

    def update_milestone(
        self, milestone: Milestone, *, title: str | None = None, state: str | None = None
    ) -> Milestone: ...

    def close_milestone(self, milestone: Milestone) -> Milestone: ...


class EstimateBoard(Protocol):
    def get_start_date(self, milestone: Milestone) -> datetime: ...

    def get_issue_details(self, issue: Issue) -> IssueDetails: ...

    def set_estimate(self, issue: Issue, estimate: int) -> None: ...


@dataclass(frozen=True, slots=True)
class FinishOutcome:
    """What finishing a sprint did."""

    milestone: Milestone
    points: SprintPoints | None
    attached: tuple[int, ...]
    estimated: tuple[tuple[int, int], ...]
    removed: tuple[int, ...]
    closed: bool


class SprintFinisher:
    """Walks the maintainer through closing a sprint milestone."""

    def __init__(
        self,
        *,
        config: Config,
        tracker: SprintTracker,
        board: EstimateBoard,
        ui: InteractionSurface,
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._board = board
        self._ui = ui

        self._attached: list[int] = []
        self._estimated: list[tuple[int, int]] = []

    def run(self) -> FinishOutcome:
        """Run the finishing workflow.

        Raises:
            NoMilestonesAvailable: The repository has no open milestone.
            TrackerError: GitHub or Zenhub could not be reached or rejected a request.
            EndOfInput: Input was closed while a choice was pending.
        """

        milestones = self._tracker.list_milestones()
        if not milestones:
            raise NoMilestonesAvailable(self._config.repository)
        index = self._ui.choose_one("Sprint to finish", [str(m) for m in milestones])
        milestone = milestones[index]

        started = self._board.get_start_date(milestone)
        logger.info(
            "Finishing sprint",
            extra={"milestone": milestone.title, "started": started.isoformat()},
        )

        self._review_closed_issues(milestone, started)

        open_issues = self._tracker.list_milestone_issues(milestone, state="open")
        self._ui.show("")
        self._ui.show("Issues open in sprint:")
        for issue in open_issues:
            self._ui.show(str(issue))

        points = self._ask_planned_points(milestone)
        if points is None:
            return self._outcome(milestone, points, removed=(), closed=False)

        self._ui.show(points.report(milestone.title))
        if not self._ui.confirm("Close sprint?", default=False):
            return self._outcome(milestone, points, removed=(), closed=False)

        renamed = self._tracker.update_milestone(milestone, title=points.title_for(milestone.title))
        closed = self._tracker.close_milestone(renamed)
        self._ui.show("Milestone closed. Removing open issues from it...")
        removed: list[int] = []
        for issue in open_issues:
            self._tracker.clear_milestone(issue)
            removed.append(issue.number)

        logger.info(
            "Sprint finished",
            extra={"milestone": closed.title, "removed": removed, "planned": points.planned},
        )
        return self._outcome(closed, points, removed=tuple(removed), closed=True)

    def _outcome(
        self,
        milestone: Milestone,
        points: SprintPoints | None,
        *,
        removed: tuple[int, ...],
        closed: bool,
    ) -> FinishOutcome:
        return FinishOutcome(
            milestone=milestone,
            points=points,
            attached=tuple(self._attached),
            estimated=tuple(self._estimated),
            removed=removed,
            closed=closed,
        )

    def _report(self, error: SessionError) -> None:
        logger.warning(str(error))
        self._ui.show(str(error))

    def _review_closed_issues(self, milestone: Milestone, started: datetime) -> None:
        self._ui.show("")
        self._ui.show("Issues for review:")

        candidates = [
            *self._tracker.list_closed_issues_without_milestone(started),
            *self._tracker.list_milestone_issues(milestone, state="closed"),
        ]
        for issue in candidates:
            if OBSOLETE_LABEL in issue.labels:
                continue
            if issue.milestone is not None and not issue.in_milestone(milestone):
                continue
            details = self._board.get_issue_details(issue)
            if details.is_epic:
                continue

            shown = False
            if issue.milestone is None:
                self._ui.show(str(issue))
                shown = True
                if not self._ui.confirm(f"Assign to milestone '{milestone.title}'?"):
                    continue
                self._attach(issue, milestone)

            if details.estimate is None:
                if not shown:
                    self._ui.show(str(issue))
                choice = self._ui.choose_one("Estimate", [str(e) for e in ESTIMATES])
                self._board.set_estimate(issue, ESTIMATES[choice])
                self._estimated.append((issue.number, ESTIMATES[choice]))

    def _attach(self, issue: Issue, milestone: Milestone) -> None:
        updated = self._tracker.set_milestone(issue, milestone)
        if updated.in_milestone(milestone):
            self._attached.append(issue.number)
            return
        actual = updated.milestone.title if updated.milestone else "no milestone"
        self._report(
            AssignmentVerificationFailed(issue.number, f"milestone {milestone.title}", actual)
        )

    def _count_points(self, milestone: Milestone) -> tuple[int, int]:
        total = 0
        still_open = 0
        for issue in self._tracker.list_milestone_issues(milestone, state="all"):
            estimate = self._board.get_issue_details(issue).estimate or 0
            total += estimate
            if issue.is_open:
                still_open += estimate
        return total, still_open

    def _ask_planned_points(self, milestone: Milestone) -> SprintPoints | None:
        self._ui.show("")
        self._ui.show("Calculating points summary...")
        total, still_open = self._count_points(milestone)
        self._ui.show(f"{total} points in the milestone, {still_open} of them still open.")

        while True:
            raw = self._ui.prompt_text("Points planned this sprint (empty or q: quit)").strip()
            if raw in {"", "q"}:
                return None
            try:
                planned = int(raw)
            except ValueError:
                self._ui.show(f"Invalid number of planned points {raw!r}.")
                continue
            try:
                return SprintPoints(
                    planned=planned, in_milestone=total, in_milestone_open=still_open
                )
            except InvalidPlannedPoints as e:
                self._report(e)
