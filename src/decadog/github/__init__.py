"""GitHub issue tracker access."""

from decadog.github.client import GitHubClient, TrackerError
from decadog.github.models import Issue, Milestone, User

__all__ = ["GitHubClient", "Issue", "Milestone", "TrackerError", "User"]
