"""Reconnect delay sequence."""

from __future__ import annotations

from pg_listen.config.models import ReconnectConfig


class BackoffPolicy:
    """Exponential reconnect delay: 0 before the first attempt, then 1s, 2s, 4s...

    A delay of 0 means "attempt immediately". Without ``max_delay`` the
    sequence keeps doubling.
    """

    def __init__(
        self,
        initial: float = 1.0,
        multiplier: float = 2.0,
        max_delay: float | None = None,
    ) -> None:
        if initial <= 0:
            msg = "initial delay must be positive"
            raise ValueError(msg)
        if multiplier < 1:
            msg = "multiplier must be at least 1"
            raise ValueError(msg)
        self._initial = initial
        self._multiplier = multiplier
        self._max_delay = max_delay

    @classmethod
    def from_config(cls, config: ReconnectConfig) -> BackoffPolicy:
        return cls(
            initial=config.initial_delay_seconds,
            multiplier=config.multiplier,
            max_delay=config.max_delay_seconds,
        )

    def next_delay(self, previous: float) -> float:
        """Delay to apply after a failure that followed *previous* seconds."""
        delay = self._initial if previous <= 0 else previous * self._multiplier
        if self._max_delay is not None:
            delay = min(delay, self._max_delay)
        return delay

    @staticmethod
    def reset() -> float:
        return 0.0
