"""Test configuration and fixtures."""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence

import pytest
from pydantic import SecretStr

from decadog.config.layers import SourceLayer, SourceUnavailable
from decadog.config.resolver import Config
from decadog.sprint.interact import InteractionSurface


class DictLayer(SourceLayer):
    """An in-memory layer; ``broken=True`` simulates an unreadable store."""

    def __init__(self, name: str, values: dict[str, str], broken: bool = False) -> None:
        self.name = name
        self.values = values
        self.broken = broken
        self.reads: list[str] = []

    def read_field(self, field_name: str) -> str | None:
        self.reads.append(field_name)
        if self.broken:
            raise SourceUnavailable(self.name, "simulated failure")
        return self.values.get(field_name)


class ScriptedSurface(InteractionSurface):
    """Replays canned answers and records everything shown."""

    def __init__(
        self,
        *,
        choices: Iterable[int] = (),
        texts: Iterable[str] = (),
        confirms: Iterable[bool] = (),
    ) -> None:
        self.choices = list(choices)
        self.texts = list(texts)
        self.confirms = list(confirms)
        self.shown: list[str] = []
        self.questions: list[str] = []
        self.options: list[list[str]] = []

    def choose_one(self, prompt: str, options: Sequence[str]) -> int:
        self.options.append(list(options))
        return self.choices.pop(0)

    def prompt_text(self, prompt: str) -> str:
        return self.texts.pop(0) if self.texts else ""

    def confirm(self, message: str, default: bool = True) -> bool:
        self.questions.append(message)
        return self.confirms.pop(0)

    def show(self, message: str) -> None:
        self.shown.append(message)


@pytest.fixture
def config() -> Config:
    """Provide a resolved configuration without Zenhub."""
    return Config(
        owner="octo-org",
        repo="octo-repo",
        github_token=SecretStr("ghp_test_token"),
    )


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove any DECADOG_* variables inherited from the outer environment."""
    for name in list(os.environ):
        if name.startswith("DECADOG_"):
            monkeypatch.delenv(name, raising=False)
