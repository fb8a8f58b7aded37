"""Print-mode dispatcher: one payload per line on stdout."""

from __future__ import annotations

import sys
from typing import BinaryIO

import structlog

from pg_listen.channel.base import Notification
from pg_listen.config.models import DispatchMode

logger = structlog.get_logger()


class PrintDispatcher:
    """Writes each payload, followed by a newline, to a binary stream."""

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self._stream = stream if stream is not None else sys.stdout.buffer

    @property
    def mode(self) -> DispatchMode:
        return DispatchMode.PRINT

    def dispatch(self, notification: Notification) -> bool:
        try:
            self._stream.write(notification.payload + b"\n")
            # line-at-a-time so downstream pipes see payloads immediately
            self._stream.flush()
        except (OSError, ValueError) as exc:
            logger.error(
                "print.write_failed",
                channel=notification.channel,
                pid=notification.pid,
                error=str(exc),
            )
            return False
        return True

    def close(self) -> None:
        try:
            self._stream.flush()
        except (OSError, ValueError) as exc:
            logger.error("print.flush_failed", error=str(exc))
