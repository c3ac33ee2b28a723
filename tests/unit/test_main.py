"""Unit tests for the CLI entrypoint and its exit codes."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
from conftest import ScriptedSurface

from decadog import main as cli
from decadog.github.client import GitHubClient, TrackerError
from decadog.github.models import Milestone
from decadog.zenhub.client import ZenhubClient

BASE_ARGS = ["--no-keyring", "--log-level", "WARNING"]


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, clean_env: None) -> Path:
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def configured(workdir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    (workdir / "decadog.yml").write_text(
        "version: 1\nowner: acme\nrepo: widgets\ngithub_token: ghp_file_token\n",
        encoding="utf-8",
    )
    return workdir


def test_config_show_masks_secrets(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DECADOG_OWNER", "other-acme")

    assert cli.main([*BASE_ARGS, "config", "show"]) == 0

    out = capsys.readouterr().out
    assert "owner: other-acme" in out
    assert "repo: widgets" in out
    assert "github_token: ghp***" in out
    assert "ghp_file_token" not in out


def test_missing_field_exits_with_config_error(
    workdir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert cli.main([*BASE_ARGS, "config", "show"]) == 2
    assert "owner" in capsys.readouterr().err


def test_invalid_field_exits_with_config_error(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DECADOG_VERSION", "7")

    assert cli.main([*BASE_ARGS, "config", "show"]) == 2
    assert "version" in capsys.readouterr().err


def test_explicit_config_path_must_exist(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["--config", "missing.yml", *BASE_ARGS, "config", "show"]) == 2
    assert "missing.yml" in capsys.readouterr().err


def test_explicit_config_path(workdir: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = workdir / "elsewhere.yaml"
    path.write_text("owner: acme\nrepo: widgets\ngithub_token: ghp_abcdef\n", encoding="utf-8")

    assert cli.main(["--config", str(path), *BASE_ARGS, "config", "show"]) == 0
    assert "owner: acme" in capsys.readouterr().out


def _patch_tracker(monkeypatch: pytest.MonkeyPatch, tracker: Mock) -> Mock:
    factory = Mock(return_value=tracker)
    monkeypatch.setattr(cli, "GitHubClient", factory)
    return factory


def test_sprint_start_without_milestones(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.return_value = []
    factory = _patch_tracker(monkeypatch, tracker)

    assert cli.main([*BASE_ARGS, "sprint", "start"]) == 3

    assert "No open milestones in acme/widgets" in capsys.readouterr().err
    factory.assert_called_once_with(
        owner="acme",
        repo="widgets",
        token="ghp_file_token",
        base_url="https://api.github.com/",
    )
    tracker.close.assert_called_once()


def test_sprint_start_tracker_error(configured: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.side_effect = TrackerError("boom", status=500)
    _patch_tracker(monkeypatch, tracker)

    assert cli.main([*BASE_ARGS, "sprint", "start"]) == 1
    tracker.close.assert_called_once()


def test_sprint_start_completes(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.return_value = [Milestone(id=1, number=1, title="Sprint 1")]
    _patch_tracker(monkeypatch, tracker)
    monkeypatch.setattr(cli, "ConsoleSurface", lambda: ScriptedSurface(choices=[0], texts=[""]))
    zenhub_factory = Mock()
    monkeypatch.setattr(cli, "ZenhubClient", zenhub_factory)

    assert cli.main([*BASE_ARGS, "sprint", "start"]) == 0

    assert "Sprint 'Sprint 1': 0 issue(s) added" in capsys.readouterr().out
    zenhub_factory.assert_not_called()


def test_sprint_start_with_zenhub(configured: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DECADOG_ZENHUB_TOKEN", "zh_env_token")
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.return_value = [Milestone(id=1, number=1, title="Sprint 1")]
    tracker.get_repository_id.return_value = 1234
    _patch_tracker(monkeypatch, tracker)
    monkeypatch.setattr(
        cli, "ConsoleSurface", lambda: ScriptedSurface(choices=[0, 0], texts=[""])
    )
    zenhub = Mock()
    zenhub.list_pipelines.return_value = []
    zenhub_factory = Mock(return_value=zenhub)
    monkeypatch.setattr(cli, "ZenhubClient", zenhub_factory)

    assert cli.main([*BASE_ARGS, "sprint", "start"]) == 0

    zenhub_factory.assert_called_once_with(
        token="zh_env_token", repository_id=1234, base_url="https://api.zenhub.io/"
    )
    zenhub.close.assert_called_once()


def test_version(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--version"])
    assert excinfo.value.code == 0
    assert "decadog" in capsys.readouterr().out


def test_invalid_log_level_env_exits_with_config_error(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DECADOG_LOG_LEVEL", "verbose")

    assert cli.main(["--no-keyring", "config", "show"]) == 2
    assert "log_level" in capsys.readouterr().err


def test_log_level_option_is_case_insensitive(configured: Path) -> None:
    assert cli.main(["--no-keyring", "--log-level", "debug", "config", "show"]) == 0


def test_unknown_log_level_option_is_rejected(configured: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--no-keyring", "--log-level", "foo", "config", "show"])
    assert excinfo.value.code == 2


def test_dotenv_file_feeds_configuration(
    configured: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (configured / ".env").write_text("DECADOG_OWNER=dotenv-acme\n", encoding="utf-8")

    assert cli.main([*BASE_ARGS, "config", "show"]) == 0
    assert "owner: dotenv-acme" in capsys.readouterr().out


def test_end_of_input_at_milestone_prompt_exits_interrupted(
    configured: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.return_value = [Milestone(id=1, number=1, title="Sprint 1")]
    _patch_tracker(monkeypatch, tracker)

    def _eof(prompt: str) -> str:
        raise EOFError

    monkeypatch.setattr("builtins.input", _eof)

    assert cli.main([*BASE_ARGS, "sprint", "start"]) == 130
    tracker.set_milestone.assert_not_called()
    tracker.close.assert_called_once()


def test_sprint_finish_requires_zenhub(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    factory = _patch_tracker(monkeypatch, Mock(spec=GitHubClient))

    assert cli.main([*BASE_ARGS, "sprint", "finish"]) == 2
    assert "zenhub_token" in capsys.readouterr().err
    factory.assert_not_called()


def test_sprint_finish_left_open(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("DECADOG_ZENHUB_TOKEN", "zh_env_token")
    tracker = Mock(spec=GitHubClient)
    tracker.list_milestones.return_value = [Milestone(id=1, number=1, title="Sprint 1")]
    tracker.get_repository_id.return_value = 1234
    tracker.list_closed_issues_without_milestone.return_value = []
    tracker.list_milestone_issues.return_value = []
    _patch_tracker(monkeypatch, tracker)
    zenhub = Mock(spec=ZenhubClient)
    zenhub.get_start_date.return_value = datetime(2024, 5, 1, 12, tzinfo=timezone.utc)
    monkeypatch.setattr(cli, "ZenhubClient", Mock(return_value=zenhub))
    monkeypatch.setattr(cli, "ConsoleSurface", lambda: ScriptedSurface(choices=[0], texts=["q"]))

    assert cli.main([*BASE_ARGS, "sprint", "finish"]) == 0

    assert "Sprint 'Sprint 1' left open" in capsys.readouterr().out
    tracker.close_milestone.assert_not_called()
    zenhub.close.assert_called_once()


def test_sprint_create(
    configured: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    tracker = Mock(spec=GitHubClient)
    tracker.create_milestone.return_value = Milestone(id=5, number=7, title="Sprint 7")
    _patch_tracker(monkeypatch, tracker)
    monkeypatch.setattr(
        cli, "ConsoleSurface", lambda: ScriptedSurface(confirms=[True], texts=["7"])
    )

    assert cli.main([*BASE_ARGS, "sprint", "create"]) == 0

    assert "Created 'Sprint 7'" in capsys.readouterr().out
    assert tracker.create_milestone.call_args.args == ("Sprint 7",)
    tracker.close.assert_called_once()
