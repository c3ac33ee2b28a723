"""Zenhub board access (pipelines, estimates and sprint start dates).

Only used when a Zenhub token is configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import requests

from decadog.github.client import DEFAULT_TIMEOUT_SECONDS, TrackerError
from decadog.github.models import Issue, Milestone

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Pipeline:
    """A Zenhub board column."""

    id: str
    name: str
    issue_numbers: tuple[int, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return self.name

    def contains(self, issue: Issue) -> bool:
        return issue.number in self.issue_numbers


@dataclass(frozen=True, slots=True)
class Board:
    pipelines: tuple[Pipeline, ...]

    @staticmethod
    def from_json(data: dict[str, Any]) -> Board:
        pipelines: list[Pipeline] = []
        for raw in data.get("pipelines") or []:
            if not isinstance(raw, dict):
                continue
            numbers = tuple(
                item["issue_number"]
                for item in raw.get("issues") or []
                if isinstance(item, dict) and isinstance(item.get("issue_number"), int)
            )
            pipelines.append(
                Pipeline(
                    id=str(raw.get("id") or ""),
                    name=str(raw.get("name") or ""),
                    issue_numbers=numbers,
                )
            )
        return Board(pipelines=tuple(pipelines))


@dataclass(frozen=True, slots=True)
class IssueDetails:
    """Zenhub's view of a GitHub issue."""

    estimate: int | None = None
    is_epic: bool = False

    @staticmethod
    def from_json(data: dict[str, Any]) -> IssueDetails:
        raw = data.get("estimate")
        estimate = raw.get("value") if isinstance(raw, dict) else None
        return IssueDetails(
            estimate=estimate if isinstance(estimate, int) else None,
            is_epic=bool(data.get("is_epic")),
        )


def _parse_start_date(data: dict[str, Any]) -> datetime:
    raw = data.get("start_date")
    if not isinstance(raw, str):
        raise TrackerError("Zenhub returned no start date")
    try:
        value = datetime.fromisoformat(raw)
    except ValueError as e:
        raise TrackerError(f"Zenhub returned an invalid start date {raw!r}") from e
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class ZenhubClient:
    """Small ``requests`` wrapper around the Zenhub v1 REST API."""

    def __init__(
        self, *, token: str, repository_id: int, base_url: str = "https://api.zenhub.io"
    ) -> None:
        if not token:
            raise ValueError("Zenhub token is required")

        self._repository_id = repository_id
        self._base_url = base_url.rstrip("/")
        self._session = requests.Session()
        self._session.headers.update(
            {
                "X-Authentication-Token": token,
                "User-Agent": "decadog",
            }
        )

    def _url(self, path: str) -> str:
        return f"{self._base_url}/p1/repositories/{self._repository_id}/{path.lstrip('/')}"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        logger.debug("Zenhub request", extra={"method": method, "url": url})
        try:
            resp = self._session.request(method, url, timeout=DEFAULT_TIMEOUT_SECONDS, **kwargs)
        except requests.RequestException as e:
            raise TrackerError(f"Zenhub request failed: {method} {url}: {e}") from e
        if not resp.ok:
            raise TrackerError(
                f"Zenhub rejected {method} {url}: {resp.text.strip()}", status=resp.status_code
            )
        return resp

    def get_board(self) -> Board:
        resp = self._request("GET", self._url("board"))
        return Board.from_json(resp.json())

    def list_pipelines(self) -> list[Pipeline]:
        return list(self.get_board().pipelines)

    def move_issue(self, issue: Issue, pipeline: Pipeline, position: str = "top") -> None:
        """Move an issue to a pipeline (``position`` is ``top``, ``bottom`` or an index)."""

        self._request(
            "POST",
            self._url(f"issues/{issue.number}/moves"),
            json={"pipeline_id": pipeline.id, "position": position},
        )
        logger.info(
            "Issue moved to pipeline",
            extra={"issue_number": issue.number, "pipeline": pipeline.name, "position": position},
        )

    def get_issue_details(self, issue: Issue) -> IssueDetails:
        resp = self._request("GET", self._url(f"issues/{issue.number}"))
        return IssueDetails.from_json(resp.json())

    def set_estimate(self, issue: Issue, estimate: int) -> None:
        self._request(
            "PUT", self._url(f"issues/{issue.number}/estimate"), json={"estimate": estimate}
        )
        logger.info("Issue estimated", extra={"issue_number": issue.number, "estimate": estimate})

    def get_start_date(self, milestone: Milestone) -> datetime:
        """Return when the sprint behind ``milestone`` started."""

        resp = self._request("GET", self._url(f"milestones/{milestone.number}/start_date"))
        return _parse_start_date(resp.json())

    def set_start_date(self, milestone: Milestone, start_date: datetime) -> datetime:
        resp = self._request(
            "POST",
            self._url(f"milestones/{milestone.number}/start_date"),
            json={"start_date": start_date.isoformat()},
        )
        logger.info(
            "Milestone start date set",
            extra={"milestone": milestone.number, "start_date": start_date.isoformat()},
        )
        return _parse_start_date(resp.json())

    def close(self) -> None:
        self._session.close()
