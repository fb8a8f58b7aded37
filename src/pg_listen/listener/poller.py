"""Blocking readiness wait on the connection socket."""

from __future__ import annotations

import os
import selectors
from contextlib import suppress

import structlog

logger = structlog.get_logger()

_CONNECTION = "connection"
_WAKEUP = "wakeup"


class ReadinessError(Exception):
    """The readiness wait failed; the connection can no longer be trusted."""


class ReadinessPoller:
    """Waits, without a timeout, until the connection has data or a wake-up.

    A non-blocking self-pipe lets :meth:`wake`, called from another thread or
    a signal handler, interrupt the wait.
    """

    def __init__(self) -> None:
        self._selector = selectors.DefaultSelector()
        self._wake_r, self._wake_w = os.pipe()
        os.set_blocking(self._wake_r, False)
        os.set_blocking(self._wake_w, False)
        self._selector.register(self._wake_r, selectors.EVENT_READ, _WAKEUP)

    def wait(self, fd: int) -> bool:
        """Block until *fd* is readable (True) or the poller is woken (False)."""
        try:
            self._selector.register(fd, selectors.EVENT_READ, _CONNECTION)
        except (OSError, ValueError, KeyError) as exc:
            raise ReadinessError(f"cannot watch socket {fd}: {exc}") from exc

        try:
            events = self._selector.select()
        except (OSError, ValueError) as exc:
            raise ReadinessError(f"readiness wait failed: {exc}") from exc
        finally:
            with suppress(KeyError, ValueError):
                self._selector.unregister(fd)

        ready = False
        for key, _mask in events:
            if key.data == _WAKEUP:
                self._clear_wakeups()
            elif key.data == _CONNECTION:
                ready = True
        return ready

    def sleep(self, seconds: float) -> None:
        """Sleep for up to *seconds*, returning early when woken."""
        if self._selector.select(timeout=seconds):
            self._clear_wakeups()

    def wake(self) -> None:
        # a full pipe already guarantees a pending wake-up
        with suppress(BlockingIOError):
            os.write(self._wake_w, b"\0")

    def _clear_wakeups(self) -> None:
        while True:
            try:
                if not os.read(self._wake_r, 512):
                    return
            except BlockingIOError:
                return

    def close(self) -> None:
        self._selector.close()
        os.close(self._wake_r)
        os.close(self._wake_w)
