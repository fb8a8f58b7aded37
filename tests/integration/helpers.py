"""Shared helpers for PostgreSQL integration tests."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from typing import Any

import psycopg2.extensions

from pg_listen.listener.runner import Listener

Connection = psycopg2.extensions.connection


def wait_for(predicate: Callable[[], Any], *, timeout: float = 10.0) -> Any:
    """Poll *predicate* until it returns something truthy, and return that."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(0.05)
    raise TimeoutError(f"condition not met after {timeout}s")


def listener_backend(admin: Connection, channel: str) -> int | None:
    """Backend pid of the session whose last statement was LISTEN on *channel*."""
    with admin.cursor() as cur:
        cur.execute(
            "SELECT pid FROM pg_stat_activity "
            "WHERE query = %s AND pid <> pg_backend_pid() "
            "ORDER BY backend_start DESC LIMIT 1",
            (f'LISTEN "{channel}"',),
        )
        row = cur.fetchone()
    return row[0] if row else None


def notify(admin: Connection, channel: str, payload: str) -> None:
    with admin.cursor() as cur:
        cur.execute("SELECT pg_notify(%s, %s)", (channel, payload))


class RunningListener:
    """A Listener running on a background thread."""

    def __init__(self, listener: Listener) -> None:
        self.listener = listener
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, daemon=True)

    def _run(self) -> None:
        try:
            self.listener.run()
        except BaseException as exc:  # checked by the test through .error
            self.error = exc

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self.listener.stop()
        self._thread.join(timeout=10)
        assert not self._thread.is_alive(), "listener did not stop"
