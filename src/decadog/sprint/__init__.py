"""Interactive sprint planning."""

from decadog.sprint.create import create_sprint, sprint_dates
from decadog.sprint.finish import (
    FinishOutcome,
    InvalidPlannedPoints,
    SprintFinisher,
    SprintPoints,
)
from decadog.sprint.interact import ConsoleSurface, EndOfInput, InteractionSurface, fuzzy_filter
from decadog.sprint.session import (
    AssignmentVerificationFailed,
    NoMilestonesAvailable,
    SessionError,
    SessionOutcome,
    SessionState,
    SprintSession,
    TicketNotFound,
)

__all__ = [
    "AssignmentVerificationFailed",
    "ConsoleSurface",
    "EndOfInput",
    "FinishOutcome",
    "InteractionSurface",
    "InvalidPlannedPoints",
    "NoMilestonesAvailable",
    "SessionError",
    "SessionOutcome",
    "SessionState",
    "SprintFinisher",
    "SprintPoints",
    "SprintSession",
    "TicketNotFound",
    "create_sprint",
    "fuzzy_filter",
    "sprint_dates",
]
