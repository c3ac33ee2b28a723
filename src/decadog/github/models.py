"""Minimal GitHub records used by the sprint workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class Milestone:
    """A GitHub milestone; one sprint."""

    id: int
    number: int
    title: str
    state: str = "open"
    description: str = ""

    def __str__(self) -> str:
        return f"{self.title} ({self.state})"

    @staticmethod
    def from_json(data: dict[str, Any]) -> Milestone:
        number = data.get("number")
        if not isinstance(number, int):
            raise ValueError("Invalid milestone response: missing number")
        return Milestone(
            id=int(data.get("id") or 0),
            number=number,
            title=str(data.get("title") or ""),
            state=str(data.get("state") or ""),
            description=str(data.get("description") or ""),
        )


@dataclass(frozen=True, slots=True)
class User:
    """A GitHub account that can be assigned to issues."""

    login: str
    id: int = 0

    def __str__(self) -> str:
        return self.login


@dataclass(frozen=True, slots=True)
class Issue:
    """A GitHub issue, as needed to plan a sprint."""

    id: int
    number: int
    title: str
    state: str = "open"
    body: str = ""
    milestone: Milestone | None = None
    assignees: tuple[str, ...] = field(default_factory=tuple)
    labels: tuple[str, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        if self.milestone is not None:
            return f"{self.number} ({self.state}) [{self.milestone.title}]: {self.title}"
        return f"{self.number} ({self.state}): {self.title}"

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    def in_milestone(self, milestone: Milestone) -> bool:
        return self.milestone is not None and self.milestone.id == milestone.id

    def is_assigned_to(self, user: User) -> bool:
        return user.login in self.assignees

    @staticmethod
    def from_json(data: dict[str, Any]) -> Issue:
        number = data.get("number")
        if not isinstance(number, int) or number <= 0:
            raise ValueError("Invalid issue response: missing number")

        milestone_raw = data.get("milestone")
        milestone = Milestone.from_json(milestone_raw) if isinstance(milestone_raw, dict) else None

        assignees: list[str] = []
        for item in data.get("assignees") or []:
            if isinstance(item, dict):
                login = item.get("login")
                if isinstance(login, str) and login.strip():
                    assignees.append(login)

        labels = tuple(
            str(item["name"])
            for item in data.get("labels") or []
            if isinstance(item, dict) and item.get("name")
        )

        return Issue(
            id=int(data.get("id") or 0),
            number=number,
            title=str(data.get("title") or ""),
            state=str(data.get("state") or ""),
            body=str(data.get("body") or ""),
            milestone=milestone,
            assignees=tuple(assignees),
            labels=labels,
        )
