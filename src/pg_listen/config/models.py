"""Pydantic configuration models for the listener."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

# Longest channel name accepted before escaping, in UTF-8 bytes.
MAX_CHANNEL_BYTES = 512

PRINT_HANDLER = "-"


class DispatchMode(StrEnum):
    """How each notification is delivered."""

    PRINT = "print"
    HANDLER = "handler"


class LogFormat(StrEnum):
    """Log line rendering on stderr."""

    TEXT = "text"
    JSON = "json"


class HandlerConfig(BaseModel):
    """External handler program invoked once per notification.

    ``command`` left unset (or set to ``-``) selects print mode: payloads are
    written to stdout instead of being piped to a program.
    """

    command: str | None = None
    args: list[str] = Field(default_factory=list)

    @property
    def mode(self) -> DispatchMode:
        if self.command is None or self.command == PRINT_HANDLER:
            return DispatchMode.PRINT
        return DispatchMode.HANDLER

    @model_validator(mode="after")
    def check_args_need_command(self) -> Self:
        if self.args and self.mode == DispatchMode.PRINT:
            msg = "handler args were given but no handler command is configured"
            raise ValueError(msg)
        return self


class ReconnectConfig(BaseModel):
    """Backoff applied between failed reconnect attempts."""

    initial_delay_seconds: float = Field(default=1.0, gt=0)
    multiplier: float = Field(default=2.0, ge=1.0)
    # None means the delay keeps doubling without a ceiling.
    max_delay_seconds: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def check_ceiling(self) -> Self:
        if (
            self.max_delay_seconds is not None
            and self.max_delay_seconds < self.initial_delay_seconds
        ):
            msg = "max_delay_seconds must not be lower than initial_delay_seconds"
            raise ValueError(msg)
        return self


class StartupConfig(BaseModel):
    """Initial connection attempts before the listener gives up."""

    connect_attempts: int = Field(default=1, ge=1)
    retry_wait_seconds: float = Field(default=1.0, gt=0)
    retry_max_wait_seconds: float = Field(default=30.0, gt=0)


class LoggingConfig(BaseModel):
    """stderr log settings."""

    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: LogFormat = LogFormat.TEXT
    component: str = Field(default="pg_listen", min_length=1)


class ListenerConfig(BaseModel, extra="forbid"):
    """Everything the listener needs: where to connect, what to LISTEN on,
    and what to do with each notification."""

    dsn: SecretStr
    channel: str
    handler: HandlerConfig = HandlerConfig()
    reconnect: ReconnectConfig = ReconnectConfig()
    startup: StartupConfig = StartupConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("channel")
    @classmethod
    def validate_channel(cls, v: str) -> str:
        if not v:
            msg = "channel name must not be empty"
            raise ValueError(msg)
        if "\x00" in v:
            msg = "channel name must not contain NUL characters"
            raise ValueError(msg)
        size = len(v.encode("utf-8"))
        if size > MAX_CHANNEL_BYTES:
            msg = (
                f"channel name is {size} bytes long, "
                f"the maximum is {MAX_CHANNEL_BYTES}"
            )
            raise ValueError(msg)
        return v
