"""Detached handler processes: waited on in the background, never joined."""

from __future__ import annotations

import subprocess
import threading
import time

import structlog

logger = structlog.get_logger()


class ProcessReaper:
    """Takes ownership of spawned handler processes and reaps them.

    Each adopted process gets a daemon thread that blocks in ``wait()`` and
    logs the exit status. Nothing is ever killed: a handler that never exits
    keeps its thread parked for the life of the listener.
    """

    def __init__(self) -> None:
        self._threads: list[threading.Thread] = []

    @property
    def active(self) -> int:
        """Number of adopted processes that have not exited yet."""
        self._prune()
        return len(self._threads)

    def adopt(self, proc: subprocess.Popen[bytes]) -> None:
        self._prune()
        thread = threading.Thread(
            target=self._wait,
            args=(proc,),
            name=f"reaper-{proc.pid}",
            daemon=True,
        )
        thread.start()
        self._threads.append(thread)

    @staticmethod
    def _wait(proc: subprocess.Popen[bytes]) -> None:
        returncode = proc.wait()
        if returncode == 0:
            logger.info("handler.exited", pid=proc.pid, returncode=returncode)
        else:
            logger.warning("handler.failed", pid=proc.pid, returncode=returncode)

    def _prune(self) -> None:
        self._threads = [t for t in self._threads if t.is_alive()]

    def join(self, timeout: float | None = None) -> bool:
        """Wait for adopted processes to exit; True if all of them did."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in list(self._threads):
            remaining = (
                None if deadline is None else max(0.0, deadline - time.monotonic())
            )
            thread.join(remaining)
        return self.active == 0
