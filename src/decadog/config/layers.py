"""Configuration source layers.

A layer is one backing store of configuration values. Layers answer
``read_field(name)`` with a string, or ``None`` when they simply do not hold
that field. A layer whose whole backing store is broken raises
:class:`SourceUnavailable` instead, so the resolver can tell the two apart.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path

import keyring
import yaml
from dotenv import dotenv_values
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES: tuple[str, ...] = ("decadog.yml", "decadog.yaml", "decadog.json")
ENV_PREFIX = "DECADOG"
DOTENV_FILE = ".env"

KEYRING_USERNAME = "decadog"
KEYRING_SERVICES: dict[str, str] = {
    "github_token": "decadog_github_token",
    "zenhub_token": "decadog_zenhub_token",
}


class SourceUnavailable(Exception):
    """Raised when a layer's backing store cannot be read at all."""

    def __init__(self, layer: str, reason: str) -> None:
        super().__init__(f"Configuration source '{layer}' unavailable: {reason}")
        self.layer = layer
        self.reason = reason


class SourceLayer(ABC):
    """A single named provider of configuration values."""

    name: str = "layer"

    @abstractmethod
    def read_field(self, field_name: str) -> str | None:
        """Return the value of ``field_name`` from this layer, if present.

        Raises:
            SourceUnavailable: If the backing store cannot be read.
        """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class ConfigLoader(yaml.SafeLoader):
    """A SafeLoader that only reads ``true``/``false`` as booleans.

    YAML 1.1 would turn ``on``, ``off``, ``yes`` and ``no`` into booleans too,
    which silently rewrites values such as ``repo: on``.
    """


ConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != "tag:yaml.org,2002:bool"]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ConfigLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


class FileLayer(SourceLayer):
    """Values from a YAML (or JSON) config file.

    Without an explicit ``path`` the first existing file out of
    :data:`CONFIG_FILE_NAMES` in ``directory`` (default: the working directory)
    is used. A missing file is an empty layer.
    """

    name = "file"

    def __init__(self, path: Path | None = None, directory: Path | None = None) -> None:
        self._explicit_path = path
        self._directory = directory
        self._values: dict[str, str] | None = None

    @property
    def path(self) -> Path | None:
        """The file this layer reads, or ``None`` when no config file exists."""

        if self._explicit_path is not None:
            return self._explicit_path if self._explicit_path.is_file() else None

        directory = self._directory if self._directory is not None else Path.cwd()
        for candidate in CONFIG_FILE_NAMES:
            path = directory / candidate
            if path.is_file():
                return path
        return None

    def read_field(self, field_name: str) -> str | None:
        if self._values is None:
            self._values = self._load()
        return self._values.get(field_name)

    def _load(self) -> dict[str, str]:
        path = self.path
        if path is None:
            logger.debug("No config file found; file layer is empty")
            return {}

        try:
            raw = yaml.load(path.read_text(encoding="utf-8"), Loader=ConfigLoader)
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailable(self.name, f"cannot read {path}: {e}") from e
        except yaml.YAMLError as e:
            raise SourceUnavailable(self.name, f"cannot parse {path}: {e}") from e

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise SourceUnavailable(self.name, f"{path} must contain a mapping of settings")

        values: dict[str, str] = {}
        for key, value in raw.items():
            if value is None:
                continue
            if isinstance(value, (dict, list)):
                raise SourceUnavailable(
                    self.name, f"{path}: value for '{key}' must be a scalar"
                )
            values[str(key)] = str(value).lower() if isinstance(value, bool) else str(value)

        logger.debug("Loaded config file", extra={"path": str(path), "keys": sorted(values)})
        return values


class EnvLayer(SourceLayer):
    """Values from prefixed environment variables, e.g. ``DECADOG_OWNER``.

    When ``env_file`` is given, variables set in that dotenv file are used for
    anything the process environment does not set.
    """

    name = "env"

    def __init__(
        self,
        prefix: str = ENV_PREFIX,
        environ: Mapping[str, str] | None = None,
        env_file: Path | None = None,
    ) -> None:
        self._prefix = prefix
        self._environ = environ if environ is not None else os.environ
        self._env_file = env_file
        self._dotenv: dict[str, str | None] | None = None

    def variable_name(self, field_name: str) -> str:
        return f"{self._prefix}_{field_name.upper()}"

    def read_field(self, field_name: str) -> str | None:
        variable = self.variable_name(field_name)
        value = self._environ.get(variable)
        if value is not None or self._env_file is None:
            return value

        if self._dotenv is None:
            self._dotenv = self._load_dotenv(self._env_file)
        return self._dotenv.get(variable)

    def _load_dotenv(self, path: Path) -> dict[str, str | None]:
        if not path.is_file():
            return {}
        try:
            values = dotenv_values(path, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailable(self.name, f"cannot read {path}: {e}") from e
        logger.debug("Loaded dotenv file", extra={"path": str(path)})
        return dict(values)


class SecretLayer(SourceLayer):
    """Tokens stored in the OS secret store via :mod:`keyring`.

    Only ``github_token`` and ``zenhub_token`` are ever looked up; every other
    field is absent from this layer.
    """

    name = "keyring"

    def __init__(self, backend: KeyringBackend | None = None) -> None:
        self._backend = backend
        self._cache: dict[str, str | None] = {}

    def read_field(self, field_name: str) -> str | None:
        service = KEYRING_SERVICES.get(field_name)
        if service is None:
            return None
        if field_name in self._cache:
            return self._cache[field_name]

        backend = self._backend if self._backend is not None else keyring.get_keyring()
        try:
            value = backend.get_password(service, KEYRING_USERNAME)
        except KeyringError as e:
            raise SourceUnavailable(self.name, f"secret store unavailable: {e}") from e

        self._cache[field_name] = value
        return value


class DefaultsLayer(SourceLayer):
    """Fixed fallback values, consulted last."""

    name = "defaults"

    def __init__(self, values: Mapping[str, str]) -> None:
        self._values = dict(values)

    def read_field(self, field_name: str) -> str | None:
        return self._values.get(field_name)
