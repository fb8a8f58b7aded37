"""Channel subscription service protocol.

Defines Notification and Subscription (the values flowing through the
listener) and ChannelService (the protocol a pub/sub backend must satisfy).
The listener never touches driver objects directly; it only calls these
methods on the connection handle the service returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


class ChannelError(Exception):
    """Base class for channel service failures."""


class ConnectError(ChannelError):
    """The backend could not be reached. Transient, worth retrying."""


class InvalidTargetError(ChannelError):
    """The connection target itself is malformed. Never retried."""


class InvalidChannelNameError(ChannelError):
    """The channel name could not be turned into a safe identifier."""


class SubscribeError(ChannelError):
    """The backend rejected the LISTEN statement."""


class ConnectionLostError(ChannelError):
    """An established connection turned out to be dead."""


@dataclass(frozen=True, slots=True)
class Subscription:
    """The channel to LISTEN on, with its escaped SQL identifier."""

    channel: str
    identifier: str


@dataclass(frozen=True, slots=True)
class Notification:
    """One NOTIFY delivery.

    ``payload`` holds the bytes as the server sent them, in the connection's
    client encoding.
    """

    channel: str
    payload: bytes
    pid: int


@runtime_checkable
class ChannelService(Protocol):
    """Protocol that every pub/sub backend must satisfy."""

    def connect(self, target: str) -> Any:
        """Open a new connection to *target*."""
        ...

    def quote_channel(self, conn: Any, channel: str) -> Subscription:
        """Escape *channel* for use in a LISTEN statement."""
        ...

    def subscribe(self, conn: Any, subscription: Subscription) -> None:
        """Register interest in the subscription's channel."""
        ...

    def is_healthy(self, conn: Any) -> bool:
        """Cheap, non-blocking check of cached connection state."""
        ...

    def socket_handle(self, conn: Any) -> int:
        """File descriptor to wait on for incoming data."""
        ...

    def consume_ready_data(self, conn: Any) -> None:
        """Read available wire data into the connection's buffer."""
        ...

    def next_notification(self, conn: Any) -> Notification | None:
        """Pop the oldest buffered notification, or None when empty."""
        ...

    def close(self, conn: Any) -> None:
        """Release the connection."""
        ...
