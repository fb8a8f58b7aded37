"""Handler-mode dispatcher: one external process per notification.

The payload reaches the handler only through its standard input. The
dispatcher writes it, closes the pipe, and hands the process to the reaper
without waiting for it.
"""

from __future__ import annotations

import subprocess
from collections.abc import Callable, Sequence
from contextlib import suppress
from typing import Any

import structlog

from pg_listen.channel.base import Notification
from pg_listen.config.models import DispatchMode, HandlerConfig
from pg_listen.dispatch.reaper import ProcessReaper

logger = structlog.get_logger()

Spawn = Callable[..., Any]


class HandlerDispatcher:
    """Starts ``command *args`` for every notification and pipes in the payload.

    Failures (pipe or spawn errors, a handler that exits before reading) are
    logged and drop only the affected notification.
    """

    def __init__(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        reaper: ProcessReaper | None = None,
        spawn: Spawn = subprocess.Popen,
    ) -> None:
        self._command = command
        self._args = list(args)
        self._reaper = reaper or ProcessReaper()
        self._spawn = spawn

    @classmethod
    def from_config(cls, config: HandlerConfig) -> HandlerDispatcher:
        if config.command is None:
            msg = "HandlerDispatcher requires a handler command"
            raise ValueError(msg)
        return cls(config.command, config.args)

    @property
    def mode(self) -> DispatchMode:
        return DispatchMode.HANDLER

    @property
    def argv(self) -> list[str]:
        return [self._command, *self._args]

    @property
    def reaper(self) -> ProcessReaper:
        return self._reaper

    def dispatch(self, notification: Notification) -> bool:
        return self.invoke(notification.payload)

    def invoke(self, payload: bytes) -> bool:
        try:
            proc = self._spawn(self.argv, stdin=subprocess.PIPE, close_fds=True)
        except OSError as exc:
            # covers pipe creation as well as exec failures
            logger.error(
                "handler.spawn_failed",
                command=self._command,
                error=str(exc),
            )
            return False

        ok = self._feed(proc, payload)
        self._reaper.adopt(proc)
        logger.debug(
            "handler.started", pid=proc.pid, command=self._command, bytes=len(payload)
        )
        return ok

    def _feed(self, proc: Any, payload: bytes) -> bool:
        stdin = proc.stdin
        try:
            stdin.write(payload)
            stdin.close()
        except OSError as exc:
            # typically EPIPE: the handler exited without reading its input
            logger.error(
                "handler.write_failed",
                pid=proc.pid,
                command=self._command,
                error=str(exc),
            )
            with suppress(OSError):
                stdin.close()
            return False
        return True

    def close(self) -> None:
        if self._reaper.active:
            logger.info("handler.detached", running=self._reaper.active)
