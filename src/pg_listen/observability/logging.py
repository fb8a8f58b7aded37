"""structlog configuration for stderr log lines.

Text lines look like::

    2024-05-01T12:00:00 - pg_listen - INFO - supervisor.connected attempt=1

i.e. ``<timestamp> - <component> - <LEVEL> - <event> [key=value ...]``.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

from pg_listen.config.models import LogFormat, LoggingConfig

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


class ComponentAdder:
    """Stamp every event with the component name unless it already has one."""

    def __init__(self, component: str) -> None:
        self._component = component

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("component", self._component)
        return event_dict


class LineRenderer:
    """Render an event dict as a single ``ts - component - LEVEL - event`` line."""

    def __call__(
        self, logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> str:
        timestamp = event_dict.pop("timestamp", "")
        level = str(event_dict.pop("level", method_name)).upper()
        component = event_dict.pop("component", "")
        event = event_dict.pop("event", "")
        exc = event_dict.pop("exception", None)

        line = f"{timestamp} - {component} - {level} - {event}"
        if event_dict:
            line += " " + " ".join(f"{k}={v}" for k, v in event_dict.items())
        if exc:
            line += "\n" + exc
        return line


def build_processors(config: LoggingConfig) -> list[Any]:
    processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt=TIMESTAMP_FORMAT, utc=True),
        ComponentAdder(config.component),
        structlog.processors.format_exc_info,
    ]
    if config.format == LogFormat.JSON:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(LineRenderer())
    return processors


def configure_logging(
    config: LoggingConfig | None = None, stream: TextIO | None = None
) -> None:
    """Route structlog output to *stream* (stderr by default).

    Stdout is reserved for notification payloads in print mode.
    """
    cfg = config or LoggingConfig()
    structlog.configure(
        processors=build_processors(cfg),
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, cfg.level.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stderr),
        cache_logger_on_first_use=False,
    )
