"""Resolution of layered configuration into a single :class:`Config` record.

Layers are consulted highest priority first. For every field the first layer
holding a non-blank value wins, and lower layers are not consulted for that
field. The conventional order built by :func:`default_layers` is::

    keyring > environment (DECADOG_*) > config file > defaults
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, SecretStr

from decadog.config.layers import (
    DOTENV_FILE,
    DefaultsLayer,
    EnvLayer,
    FileLayer,
    SecretLayer,
    SourceLayer,
    SourceUnavailable,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

DEFAULT_GITHUB_URL = "https://api.github.com/"
DEFAULT_ZENHUB_URL = "https://api.zenhub.io/"

# Declaration order is the order fields are resolved and validated in.
FIELDS: tuple[str, ...] = (
    "version",
    "owner",
    "repo",
    "github_url",
    "github_token",
    "zenhub_url",
    "zenhub_token",
)
REQUIRED_FIELDS: frozenset[str] = frozenset({"owner", "repo", "github_token"})
SECRET_FIELDS: frozenset[str] = frozenset({"github_token", "zenhub_token"})


class ConfigError(Exception):
    """Base class for configuration resolution failures."""


class MissingField(ConfigError):
    """A required field was not supplied by any layer."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required setting '{field}'")
        self.field = field


class InvalidField(ConfigError):
    """A field was supplied but has the wrong shape."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"Invalid setting '{field}': {reason}")
        self.field = field
        self.reason = reason


class Config(BaseModel):
    """The resolved settings record. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    version: int = SCHEMA_VERSION
    owner: str
    repo: str
    github_url: str = DEFAULT_GITHUB_URL
    github_token: SecretStr
    zenhub_url: str = DEFAULT_ZENHUB_URL
    zenhub_token: SecretStr | None = None

    @property
    def repository(self) -> str:
        """Return the repository name in the form ``owner/repo``."""

        return f"{self.owner}/{self.repo}"

    @property
    def has_zenhub(self) -> bool:
        """Whether Zenhub-dependent features are enabled."""

        return self.zenhub_token is not None


def _validate_version(raw: str) -> int:
    try:
        version = int(raw.strip())
    except ValueError:
        raise InvalidField("version", f"expected an integer, got {raw!r}") from None
    if version != SCHEMA_VERSION:
        raise InvalidField(
            "version", f"unsupported schema version {version} (expected {SCHEMA_VERSION})"
        )
    return version


def _validate_name(field: str, raw: str) -> str:
    value = raw.strip()
    if "/" in value or any(ch.isspace() for ch in value):
        raise InvalidField(field, f"{value!r} must not contain '/' or whitespace")
    return value


def _validate_url(field: str, raw: str) -> str:
    value = raw.strip()
    parsed = urlparse(value)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise InvalidField(field, f"{value!r} is not an http(s) URL")
    return value


def _scan(layers: Sequence[SourceLayer]) -> dict[str, tuple[str, str]]:
    """Return ``{field: (value, layer name)}`` for every field some layer supplies."""

    broken: set[int] = set()
    found: dict[str, tuple[str, str]] = {}

    for field in FIELDS:
        for index, layer in enumerate(layers):
            if index in broken:
                continue
            try:
                value = layer.read_field(field)
            except SourceUnavailable as e:
                logger.warning(str(e), extra={"layer": e.layer, "reason": e.reason})
                broken.add(index)
                continue
            if value is None or not value.strip():
                continue
            found[field] = (value, layer.name)
            break

    return found


def resolve(layers: Sequence[SourceLayer]) -> Config:
    """Merge ``layers`` (highest priority first) into a validated :class:`Config`.

    Raises:
        MissingField: The first required field, in declaration order, no layer supplies.
        InvalidField: A supplied field fails its shape check.
    """

    found = _scan(layers)

    for field in FIELDS:
        if field in REQUIRED_FIELDS and field not in found:
            raise MissingField(field)

    logger.debug(
        "Resolved configuration sources",
        extra={"sources": {field: source for field, (_, source) in found.items()}},
    )

    values: dict[str, object] = {}
    for field, (raw, _) in found.items():
        if field == "version":
            values[field] = _validate_version(raw)
        elif field in {"owner", "repo"}:
            values[field] = _validate_name(field, raw)
        elif field in {"github_url", "zenhub_url"}:
            values[field] = _validate_url(field, raw)
        elif field in SECRET_FIELDS:
            values[field] = SecretStr(raw.strip())
        else:
            values[field] = raw

    return Config(**values)


def default_layers(
    *,
    config_path: Path | None = None,
    environ: Mapping[str, str] | None = None,
    env_file: Path | None = Path(DOTENV_FILE),
    use_keyring: bool = True,
) -> list[SourceLayer]:
    """Build the conventional layer stack, highest priority first.

    ``env_file`` (default ``.env`` in the working directory) backs the environment
    layer, the same file :class:`decadog.config.settings.RuntimeSettings` reads.
    """

    layers: list[SourceLayer] = []
    if use_keyring:
        layers.append(SecretLayer())
    layers.append(EnvLayer(environ=environ, env_file=env_file))
    layers.append(FileLayer(path=config_path))
    layers.append(
        DefaultsLayer({"github_url": DEFAULT_GITHUB_URL, "zenhub_url": DEFAULT_ZENHUB_URL})
    )
    return layers


def describe(config: Config) -> dict[str, str]:
    """Return the resolved settings as strings, with secrets masked."""

    out: dict[str, str] = {}
    for field in FIELDS:
        value = getattr(config, field)
        if value is None:
            continue
        if isinstance(value, SecretStr):
            secret = value.get_secret_value()
            out[field] = f"{secret[:3]}***" if len(secret) > 6 else "***"
        else:
            out[field] = str(value)
    return out
