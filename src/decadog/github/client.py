"""GitHub API client wrapper for the sprint workflow.

Collections (milestones, collaborators, milestone issues) go through PyGithub;
single-issue reads and all updates go through a small ``requests`` session so
that the JSON GitHub returns after a change can be used to verify the change
took effect.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests
from github import Auth, Github, GithubException
from github.Repository import Repository

from decadog.github.models import Issue, Milestone, User

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class TrackerError(Exception):
    """Raised when the issue tracker cannot be reached or rejects a request."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message if status is None else f"{message} [HTTP {status}]")
        self.status = status


class GitHubClient:
    """Small wrapper around PyGithub and the GitHub REST API.

    Implements the issue tracker operations the sprint session needs.
    """

    def __init__(
        self,
        *,
        owner: str,
        repo: str,
        token: str,
        base_url: str = "https://api.github.com",
        repo_handle: Repository | None = None,
        github_api: Github | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")
        if not owner or not repo:
            raise ValueError("GitHub owner and repo are required")

        self._repository_name = f"{owner.strip('/')}/{repo.strip('/')}"
        self._rest_base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "decadog",
            }
        )

        if repo_handle is not None:
            self._repo = repo_handle
            self._github = github_api
            logger.debug("Using injected Repository instance")
            return

        self._github = github_api or Github(auth=Auth.Token(token), base_url=self._rest_base_url)
        try:
            self._repo = self._github.get_repo(self._repository_name)
        except GithubException as e:
            raise TrackerError(
                f"Cannot open repository {self._repository_name}", status=e.status
            ) from e
        except requests.RequestException as e:
            raise TrackerError(f"Cannot reach GitHub: {e}") from e

        logger.info(
            "Authenticated with GitHub and connected to repository",
            extra={"repo": self._repository_name},
        )

    @property
    def repository(self) -> str:
        """Return the configured repository name ("owner/repo")."""

        return self._repository_name

    def _issues_url(self, *, issue_number: int) -> str:
        if issue_number <= 0:
            raise ValueError("issue_number must be a positive integer")
        return f"{self._rest_base_url}/repos/{self._repository_name}/issues/{issue_number}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        logger.debug("GitHub request", extra={"method": method, "url": url})
        try:
            return self._session.request(method, url, timeout=DEFAULT_TIMEOUT_SECONDS, **kwargs)
        except requests.RequestException as e:
            raise TrackerError(f"GitHub request failed: {method} {url}: {e}") from e

    @staticmethod
    def _raise_for_status(resp: requests.Response, action: str) -> None:
        if resp.ok:
            return
        message = ""
        try:
            payload = resp.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message = str(payload.get("message") or "")
        raise TrackerError(
            f"GitHub rejected {action}" + (f": {message}" if message else ""),
            status=resp.status_code,
        )

    def _patch_issue(self, issue: Issue, payload: dict[str, Any], action: str) -> Issue:
        resp = self._request("PATCH", self._issues_url(issue_number=issue.number), json=payload)
        self._raise_for_status(resp, action)
        return Issue.from_json(resp.json())

    def get_repository_id(self) -> int:
        """Return the numeric GitHub id of the repository (needed by Zenhub)."""

        return int(self._repo.id)

    def list_milestones(self) -> list[Milestone]:
        """List the open milestones of the repository."""

        try:
            milestones = [_milestone(m) for m in self._repo.get_milestones(state="open")]
        except GithubException as e:
            raise TrackerError("Cannot list milestones", status=e.status) from e
        except requests.RequestException as e:
            raise TrackerError(f"Cannot list milestones: {e}") from e

        logger.debug("Milestones listed", extra={"count": len(milestones)})
        return milestones

    def list_users(self) -> list[User]:
        """List the users that can be assigned to issues in the repository."""

        try:
            users = [User(login=u.login, id=u.id) for u in self._repo.get_collaborators()]
        except GithubException as e:
            raise TrackerError("Cannot list collaborators", status=e.status) from e
        except requests.RequestException as e:
            raise TrackerError(f"Cannot list collaborators: {e}") from e

        logger.debug("Collaborators listed", extra={"count": len(users)})
        return users

    def get_issue(self, issue_number: int) -> Issue | None:
        """Fetch an issue by number; ``None`` if it does not exist."""

        resp = self._request("GET", self._issues_url(issue_number=issue_number))
        if resp.status_code in {404, 410}:
            logger.info(
                "Issue not found",
                extra={"repo": self._repository_name, "issue_number": issue_number},
            )
            return None
        self._raise_for_status(resp, f"fetching issue #{issue_number}")
        return Issue.from_json(resp.json())

    def set_milestone(self, issue: Issue, milestone: Milestone) -> Issue:
        """Assign an issue to a milestone, replacing any existing milestone.

        Returns:
            The issue as GitHub reports it after the update.
        """

        updated = self._patch_issue(
            issue,
            {"milestone": milestone.number},
            f"setting milestone on issue #{issue.number}",
        )
        logger.info(
            "Issue milestone set",
            extra={
                "repo": self._repository_name,
                "issue_number": issue.number,
                "requested_milestone": milestone.number,
                "returned_milestone": updated.milestone.number if updated.milestone else None,
            },
        )
        return updated

    def assign_user(self, issue: Issue, user: User) -> Issue:
        """Assign a user to an issue, replacing any existing assignees.

        Returns:
            The issue as GitHub reports it after the update.
        """

        updated = self._patch_issue(
            issue,
            {"assignees": [user.login]},
            f"assigning {user.login} to issue #{issue.number}",
        )
        logger.info(
            "Issue assigned",
            extra={
                "repo": self._repository_name,
                "issue_number": issue.number,
                "requested_assignee": user.login,
                "returned_assignees": list(updated.assignees),
            },
        )
        return updated

    def clear_milestone(self, issue: Issue) -> Issue:
        """Remove an issue from whatever milestone it is in."""

        updated = self._patch_issue(
            issue, {"milestone": None}, f"clearing milestone on issue #{issue.number}"
        )
        logger.info(
            "Issue milestone cleared",
            extra={"repo": self._repository_name, "issue_number": issue.number},
        )
        return updated

    def list_milestone_issues(self, milestone: Milestone, *, state: str = "all") -> list[Issue]:
        """List the issues (not pull requests) in a milestone.

        Args:
            milestone: The milestone to list.
            state: ``open``, ``closed`` or ``all``.
        """

        try:
            gh_milestone = self._repo.get_milestone(milestone.number)
            issues = [
                _issue(i)
                for i in self._repo.get_issues(milestone=gh_milestone, state=state)
                if i.pull_request is None
            ]
        except GithubException as e:
            raise TrackerError(
                f"Cannot list issues in milestone {milestone.title}", status=e.status
            ) from e
        except requests.RequestException as e:
            raise TrackerError(f"Cannot list issues in milestone {milestone.title}: {e}") from e

        logger.debug(
            "Milestone issues listed",
            extra={"milestone": milestone.number, "state": state, "count": len(issues)},
        )
        return issues

    def list_closed_issues_without_milestone(self, since: datetime) -> list[Issue]:
        """List issues closed on or after ``since`` that belong to no milestone."""

        try:
            issues = [
                _issue(i)
                for i in self._repo.get_issues(milestone="none", state="closed", since=since)
                if i.pull_request is None and i.closed_at is not None and i.closed_at >= since
            ]
        except GithubException as e:
            raise TrackerError("Cannot list closed issues", status=e.status) from e
        except requests.RequestException as e:
            raise TrackerError(f"Cannot list closed issues: {e}") from e

        logger.debug(
            "Closed issues without milestone listed",
            extra={"since": since.isoformat(), "count": len(issues)},
        )
        return issues

    def _milestones_url(self, number: int | None = None) -> str:
        url = f"{self._rest_base_url}/repos/{self._repository_name}/milestones"
        return url if number is None else f"{url}/{number}"

    def create_milestone(
        self, title: str, *, due_on: datetime, description: str = ""
    ) -> Milestone:
        """Create an open milestone due on ``due_on``."""

        payload: dict[str, Any] = {"title": title, "due_on": _github_timestamp(due_on)}
        if description:
            payload["description"] = description
        resp = self._request("POST", self._milestones_url(), json=payload)
        self._raise_for_status(resp, f"creating milestone {title!r}")
        milestone = Milestone.from_json(resp.json())
        logger.info(
            "Milestone created",
            extra={"repo": self._repository_name, "milestone": milestone.number, "title": title},
        )
        return milestone

    def update_milestone(
        self, milestone: Milestone, *, title: str | None = None, state: str | None = None
    ) -> Milestone:
        """Change a milestone's title and/or state; returns the updated milestone."""

        payload: dict[str, Any] = {}
        if title is not None:
            payload["title"] = title
        if state is not None:
            payload["state"] = state
        if not payload:
            return milestone

        resp = self._request("PATCH", self._milestones_url(milestone.number), json=payload)
        self._raise_for_status(resp, f"updating milestone {milestone.title!r}")
        updated = Milestone.from_json(resp.json())
        logger.info(
            "Milestone updated",
            extra={"repo": self._repository_name, "milestone": milestone.number, **payload},
        )
        return updated

    def close_milestone(self, milestone: Milestone) -> Milestone:
        return self.update_milestone(milestone, state="closed")

    def close(self) -> None:
        self._session.close()
        if self._github is not None:
            self._github.close()


def _github_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _milestone(m: Any) -> Milestone:
    return Milestone(
        id=m.id,
        number=m.number,
        title=m.title or "",
        state=m.state or "",
        description=m.description or "",
    )


def _issue(i: Any) -> Issue:
    return Issue(
        id=i.id,
        number=i.number,
        title=i.title or "",
        state=i.state or "",
        body=i.body or "",
        milestone=_milestone(i.milestone) if i.milestone is not None else None,
        assignees=tuple(a.login for a in i.assignees or []),
        labels=tuple(label.name for label in i.labels or []),
    )
