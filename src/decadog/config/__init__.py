"""Layered configuration: config file, environment and OS keyring."""

from decadog.config.layers import (
    DefaultsLayer,
    EnvLayer,
    FileLayer,
    SecretLayer,
    SourceLayer,
    SourceUnavailable,
)
from decadog.config.resolver import (
    Config,
    ConfigError,
    InvalidField,
    MissingField,
    default_layers,
    resolve,
)

__all__ = [
    "Config",
    "ConfigError",
    "DefaultsLayer",
    "EnvLayer",
    "FileLayer",
    "InvalidField",
    "MissingField",
    "SecretLayer",
    "SourceLayer",
    "SourceUnavailable",
    "default_layers",
    "resolve",
]
