"""Dispatcher protocol.

A dispatcher receives each drained notification exactly once and must return
without waiting for any downstream work to finish.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from pg_listen.channel.base import Notification
from pg_listen.config.models import DispatchMode


@runtime_checkable
class Dispatcher(Protocol):
    """Protocol that every notification dispatcher must satisfy."""

    @property
    def mode(self) -> DispatchMode:
        """Which dispatch strategy this is."""
        ...

    def dispatch(self, notification: Notification) -> bool:
        """Deliver one notification; False if it was dropped."""
        ...

    def close(self) -> None:
        """Release resources. Must not wait for running handlers."""
        ...
