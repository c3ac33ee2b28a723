"""Interactive sprint start session.

The session is an explicit state machine::

    SELECT_MILESTONE -> [SELECT_PIPELINE] -> PROMPT_TICKET
    PROMPT_TICKET -> CONFIRM_ASSIGN_MILESTONE -> CONFIRM_ASSIGN_USER -> PROMPT_TICKET
    PROMPT_TICKET -> DONE

``SELECT_PIPELINE`` only happens when a Zenhub board is available. Closing
input after a milestone is chosen finishes the session. Tracker
failures (:class:`decadog.github.client.TrackerError`) end the session; a
ticket that cannot be found or an assignment that does not stick is reported
and the loop carries on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from decadog.config.resolver import Config
from decadog.github.models import Issue, Milestone, User
from decadog.sprint.interact import EndOfInput, FuzzyMatcher, InteractionSurface, fuzzy_filter
from decadog.zenhub.client import Pipeline

logger = logging.getLogger(__name__)

BODY_EXCERPT_CHARS = 500


class SessionState(str, Enum):
    SELECT_MILESTONE = "select_milestone"
    SELECT_PIPELINE = "select_pipeline"
    PROMPT_TICKET = "prompt_ticket"
    CONFIRM_ASSIGN_MILESTONE = "confirm_assign_milestone"
    CONFIRM_ASSIGN_USER = "confirm_assign_user"
    DONE = "done"


ALLOWED_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.SELECT_MILESTONE: {SessionState.SELECT_PIPELINE, SessionState.PROMPT_TICKET},
    SessionState.SELECT_PIPELINE: {SessionState.PROMPT_TICKET},
    SessionState.PROMPT_TICKET: {
        SessionState.PROMPT_TICKET,
        SessionState.CONFIRM_ASSIGN_MILESTONE,
        SessionState.DONE,
    },
    SessionState.CONFIRM_ASSIGN_MILESTONE: {SessionState.CONFIRM_ASSIGN_USER},
    SessionState.CONFIRM_ASSIGN_USER: {SessionState.PROMPT_TICKET},
    SessionState.DONE: set(),
}


class IllegalTransitionError(ValueError):
    pass


def transition(*, current: SessionState, to: SessionState) -> SessionState:
    if to not in ALLOWED_TRANSITIONS.get(current, set()):
        raise IllegalTransitionError(f"Illegal transition: {current.value} -> {to.value}")
    return to


class SessionError(Exception):
    """Base class for sprint session failures."""


class NoMilestonesAvailable(SessionError):
    def __init__(self, repository: str) -> None:
        super().__init__(f"No open milestones in {repository}")
        self.repository = repository


class TicketNotFound(SessionError):
    def __init__(self, number: int) -> None:
        super().__init__(f"Issue #{number} not found")
        self.number = number


class AssignmentVerificationFailed(SessionError):
    """The tracker accepted an update but the returned issue does not reflect it."""

    def __init__(self, number: int, expected: str, actual: str) -> None:
        super().__init__(
            f"Issue #{number} was not updated: expected {expected}, tracker reports {actual}"
        )
        self.number = number
        self.expected = expected
        self.actual = actual


class IssueTracker(Protocol):
    def list_milestones(self) -> list[Milestone]: ...

    def get_issue(self, issue_number: int) -> Issue | None: ...

    def set_milestone(self, issue: Issue, milestone: Milestone) -> Issue: ...

    def list_users(self) -> list[User]: ...

    def assign_user(self, issue: Issue, user: User) -> Issue: ...


class PipelineBoard(Protocol):
    def list_pipelines(self) -> list[Pipeline]: ...

    def move_issue(self, issue: Issue, pipeline: Pipeline, position: str = "top") -> None: ...


@dataclass(frozen=True, slots=True)
class SessionOutcome:
    """What a finished session achieved."""

    milestone: Milestone
    milestone_assigned: tuple[int, ...]
    users_assigned: tuple[tuple[int, str], ...]
    verification_failures: tuple[int, ...]


class SprintSession:
    """Walks the maintainer through attaching tickets to a sprint milestone."""

    def __init__(
        self,
        *,
        config: Config,
        tracker: IssueTracker,
        ui: InteractionSurface,
        board: PipelineBoard | None = None,
        matcher: FuzzyMatcher = fuzzy_filter,
    ) -> None:
        self._config = config
        self._tracker = tracker
        self._ui = ui
        self._board = board
        self._matcher = matcher

        self.state = SessionState.SELECT_MILESTONE
        self._milestone: Milestone | None = None
        self._pipeline: Pipeline | None = None
        self._issue: Issue | None = None
        self._users: list[User] | None = None
        self._moved: set[int] = set()

        self._milestone_assigned: list[int] = []
        self._users_assigned: list[tuple[int, str]] = []
        self._verification_failures: list[int] = []

        self._handlers: dict[SessionState, Callable[[], SessionState]] = {
            SessionState.SELECT_MILESTONE: self._select_milestone,
            SessionState.SELECT_PIPELINE: self._select_pipeline,
            SessionState.PROMPT_TICKET: self._prompt_ticket,
            SessionState.CONFIRM_ASSIGN_MILESTONE: self._confirm_assign_milestone,
            SessionState.CONFIRM_ASSIGN_USER: self._confirm_assign_user,
        }

    @property
    def milestone(self) -> Milestone:
        if self._milestone is None:
            raise RuntimeError("No milestone selected yet")
        return self._milestone

    def run(self) -> SessionOutcome:
        """Run the session until the user finishes it.

        Raises:
            NoMilestonesAvailable: The repository has no open milestone.
            TrackerError: The tracker could not be reached or rejected a request.
            EndOfInput: Input was closed before a milestone was chosen.
        """

        logger.info("Sprint session started", extra={"repo": self._config.repository})
        while self.state is not SessionState.DONE:
            try:
                next_state = self._handlers[self.state]()
            except EndOfInput:
                if self._milestone is None:
                    raise
                logger.info("Input closed; finishing session", extra={"state": self.state.value})
                self.state = SessionState.DONE
                break
            self.state = transition(current=self.state, to=next_state)

        outcome = SessionOutcome(
            milestone=self.milestone,
            milestone_assigned=tuple(self._milestone_assigned),
            users_assigned=tuple(self._users_assigned),
            verification_failures=tuple(self._verification_failures),
        )
        logger.info(
            "Sprint session finished",
            extra={
                "milestone": outcome.milestone.title,
                "milestone_assigned": list(outcome.milestone_assigned),
                "verification_failures": list(outcome.verification_failures),
            },
        )
        return outcome

    def _report(self, error: SessionError) -> None:
        logger.warning(str(error))
        self._ui.show(str(error))

    def _current_issue(self) -> Issue:
        if self._issue is None:
            raise RuntimeError("No issue selected")
        return self._issue

    def _select_milestone(self) -> SessionState:
        milestones = self._tracker.list_milestones()
        if not milestones:
            raise NoMilestonesAvailable(self._config.repository)

        index = self._ui.choose_one("Select milestone", [str(m) for m in milestones])
        self._milestone = milestones[index]
        logger.info(
            "Milestone selected",
            extra={"milestone": self._milestone.title, "number": self._milestone.number},
        )

        if self._board is not None:
            return SessionState.SELECT_PIPELINE
        return SessionState.PROMPT_TICKET

    def _select_pipeline(self) -> SessionState:
        assert self._board is not None

        pipelines = self._board.list_pipelines()
        if not pipelines:
            self._ui.show("No Zenhub pipelines found; issues will not be moved.")
            return SessionState.PROMPT_TICKET

        index = self._ui.choose_one("Select pipeline", [p.name for p in pipelines])
        self._pipeline = pipelines[index]
        return SessionState.PROMPT_TICKET

    def _prompt_ticket(self) -> SessionState:
        self._issue = None
        raw = self._ui.prompt_text("Issue number (empty or q: finish)").strip()
        if raw in {"", "q"}:
            return SessionState.DONE

        try:
            number = int(raw.lstrip("#"))
        except ValueError:
            number = 0
        if number <= 0:
            self._ui.show(f"Invalid issue number {raw!r}.")
            return SessionState.PROMPT_TICKET

        issue = self._tracker.get_issue(number)
        if issue is None:
            self._report(TicketNotFound(number))
            return SessionState.PROMPT_TICKET

        self._issue = issue
        return SessionState.CONFIRM_ASSIGN_MILESTONE

    def _confirm_assign_milestone(self) -> SessionState:
        issue = self._current_issue()
        milestone = self.milestone

        self._ui.show(str(issue))
        if issue.body.strip():
            excerpt = issue.body.strip()
            if len(excerpt) > BODY_EXCERPT_CHARS:
                excerpt = excerpt[:BODY_EXCERPT_CHARS].rstrip() + "..."
            self._ui.show(excerpt)

        if issue.in_milestone(milestone):
            self._ui.show("Already in milestone.")
        elif self._ui.confirm(f"Assign to milestone '{milestone.title}'?"):
            updated = self._tracker.set_milestone(issue, milestone)
            if updated.in_milestone(milestone):
                self._issue = updated
                self._milestone_assigned.append(issue.number)
            else:
                actual = updated.milestone.title if updated.milestone else "no milestone"
                self._verification_failures.append(issue.number)
                self._report(
                    AssignmentVerificationFailed(
                        issue.number, f"milestone {milestone.title}", actual
                    )
                )

        self._move_to_pipeline()
        return SessionState.CONFIRM_ASSIGN_USER

    def _move_to_pipeline(self) -> None:
        issue = self._current_issue()
        if self._board is None or self._pipeline is None:
            return
        if not issue.in_milestone(self.milestone):
            return

        if self._pipeline.contains(issue) or issue.number in self._moved:
            self._ui.show("Already in pipeline.")
            return
        self._board.move_issue(issue, self._pipeline)
        self._moved.add(issue.number)

    def _confirm_assign_user(self) -> SessionState:
        issue = self._current_issue()

        if issue.assignees:
            question = f"Assigned to {', '.join(issue.assignees)}. Reassign?"
        else:
            question = "Assign a user?"
        if not self._ui.confirm(question, default=False):
            return SessionState.PROMPT_TICKET

        if self._users is None:
            self._users = self._tracker.list_users()
        by_login = {user.login: user for user in self._users}

        query = self._ui.prompt_text("Search user")
        candidates = self._matcher(query, list(by_login))
        if not candidates:
            self._ui.show(f"No users matching {query!r}.")
            return SessionState.PROMPT_TICKET

        index = self._ui.choose_one("Select user", candidates)
        user = by_login[candidates[index]]
        if issue.assignees == (user.login,):
            self._ui.show(f"Already assigned to {user.login}.")
            return SessionState.PROMPT_TICKET

        updated = self._tracker.assign_user(issue, user)
        if updated.is_assigned_to(user):
            self._issue = updated
            self._users_assigned.append((issue.number, user.login))
        else:
            self._verification_failures.append(issue.number)
            self._report(
                AssignmentVerificationFailed(
                    issue.number,
                    f"assignee {user.login}",
                    ", ".join(updated.assignees) or "no assignees",
                )
            )
        return SessionState.PROMPT_TICKET
