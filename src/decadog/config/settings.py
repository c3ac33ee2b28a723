"""Process-level runtime settings.

These are not part of the resolved :class:`decadog.config.resolver.Config`
record; they only tune how the process itself behaves (logging).

Environment variables:
- DECADOG_LOG_LEVEL   (optional, default INFO; case-insensitive)
- DECADOG_LOG_FORMAT  (optional, ``json`` or ``text``)

A local ``.env`` file is honoured as well.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class RuntimeSettings(BaseSettings):
    """Logging settings for the CLI process."""

    log_level: LogLevel = Field(
        default="INFO",
        description="Root logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log line format written to stderr",
    )

    model_config = SettingsConfigDict(
        env_prefix="DECADOG_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalise_level(cls, value: object) -> object:
        return value.strip().upper() if isinstance(value, str) else value
