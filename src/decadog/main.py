"""CLI entrypoint for decadog.

Commands:
- ``decadog sprint start``: assign issues to a sprint milestone, and people to issues
- ``decadog sprint finish``: review estimates, report points and close a sprint (needs Zenhub)
- ``decadog sprint create``: create a two-week sprint milestone starting today
- ``decadog config show``: print the resolved configuration (secrets masked)
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import ValidationError

from decadog import __version__
from decadog.config.resolver import (
    Config,
    ConfigError,
    MissingField,
    default_layers,
    describe,
    resolve,
)
from decadog.config.settings import LOG_LEVELS, RuntimeSettings
from decadog.github.client import GitHubClient, TrackerError
from decadog.logging import configure_logging
from decadog.sprint.create import create_sprint
from decadog.sprint.finish import SprintFinisher
from decadog.sprint.interact import ConsoleSurface, EndOfInput
from decadog.sprint.session import NoMilestonesAvailable, SprintSession
from decadog.zenhub.client import ZenhubClient

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2
EXIT_NO_MILESTONES = 3
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="decadog",
        description="GitHub and Zenhub sprint toolkit. Octocat++.",
    )
    parser.add_argument("--version", action="version", version=f"decadog {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to a config file (defaults to ./decadog.yml if present)",
    )
    parser.add_argument(
        "--no-keyring",
        action="store_true",
        help="Do not read tokens from the OS keyring",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=None,
        help="Logging level (overrides DECADOG_LOG_LEVEL)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "text"],
        default=None,
        help="Log format written to stderr (overrides DECADOG_LOG_FORMAT)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    sprint = subparsers.add_parser("sprint", help="Manage sprints")
    sprint_commands = sprint.add_subparsers(dest="sprint_command", required=True)
    sprint_commands.add_parser(
        "start", help="Assign issues to a sprint milestone, and people to issues"
    )
    sprint_commands.add_parser(
        "finish", help="Review estimates, report points and close a sprint (needs Zenhub)"
    )
    sprint_commands.add_parser("create", help="Create a two-week sprint starting today")

    config = subparsers.add_parser("config", help="Inspect configuration")
    config_commands = config.add_subparsers(dest="config_command", required=True)
    config_commands.add_parser("show", help="Print the resolved configuration, secrets masked")

    return parser


@contextmanager
def _clients(config: Config) -> Iterator[tuple[GitHubClient, ZenhubClient | None]]:
    github = GitHubClient(
        owner=config.owner,
        repo=config.repo,
        token=config.github_token.get_secret_value(),
        base_url=config.github_url,
    )
    zenhub: ZenhubClient | None = None
    try:
        if config.zenhub_token is not None:
            zenhub = ZenhubClient(
                token=config.zenhub_token.get_secret_value(),
                repository_id=github.get_repository_id(),
                base_url=config.zenhub_url,
            )
        else:
            logger.info("No Zenhub token configured; Zenhub features are disabled")
        yield github, zenhub
    finally:
        github.close()
        if zenhub is not None:
            zenhub.close()


def _start_sprint(config: Config) -> int:
    with _clients(config) as (github, zenhub):
        session = SprintSession(config=config, tracker=github, ui=ConsoleSurface(), board=zenhub)
        outcome = session.run()

    print(
        f"Sprint '{outcome.milestone.title}': {len(outcome.milestone_assigned)} issue(s) added, "
        f"{len(outcome.users_assigned)} assignment(s) made"
    )
    if outcome.verification_failures:
        numbers = ", ".join(f"#{n}" for n in outcome.verification_failures)
        print(f"Unverified updates (check on GitHub): {numbers}", file=sys.stderr)
    return EXIT_OK


def _finish_sprint(config: Config) -> int:
    if config.zenhub_token is None:
        raise MissingField("zenhub_token")

    with _clients(config) as (github, zenhub):
        assert zenhub is not None
        finisher = SprintFinisher(config=config, tracker=github, board=zenhub, ui=ConsoleSurface())
        outcome = finisher.run()

    if outcome.closed:
        print(
            f"Closed '{outcome.milestone.title}'; "
            f"{len(outcome.removed)} open issue(s) removed from it"
        )
    else:
        print(f"Sprint '{outcome.milestone.title}' left open")
    return EXIT_OK


def _create_sprint(config: Config) -> int:
    with _clients(config) as (github, zenhub):
        milestone = create_sprint(tracker=github, ui=ConsoleSurface(), board=zenhub)

    if milestone is not None:
        print(f"Created '{milestone.title}'")
    return EXIT_OK


SPRINT_COMMANDS = {
    "start": _start_sprint,
    "finish": _finish_sprint,
    "create": _create_sprint,
}


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        runtime = RuntimeSettings()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Runtime settings error (check your environment and .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(args.log_level or runtime.log_level, args.log_format or runtime.log_format)

    config_path = Path(args.config) if args.config else None
    if config_path is not None and not config_path.is_file():
        print(f"Configuration error: config file {config_path} not found", file=sys.stderr)
        return EXIT_CONFIG

    try:
        config = resolve(default_layers(config_path=config_path, use_keyring=not args.no_keyring))

        if args.command == "config":
            for field, value in describe(config).items():
                print(f"{field}: {value}")
            return EXIT_OK

        if args.command == "sprint":
            return SPRINT_COMMANDS[args.sprint_command](config)

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    except NoMilestonesAvailable as e:
        print(f"{e}.", file=sys.stderr)
        return EXIT_NO_MILESTONES

    except TrackerError as e:
        logger.error("Tracker request failed", extra={"status": e.status})
        print(f"Tracker error: {e}", file=sys.stderr)
        return EXIT_FAILURE

    except (KeyboardInterrupt, EndOfInput):
        print(file=sys.stderr)
        return EXIT_INTERRUPTED

    except Exception:
        logger.exception("Command failed")
        return EXIT_FAILURE


if __name__ == "__main__":
    raise SystemExit(main())
