"""PostgreSQL LISTEN/NOTIFY channel service built on psycopg2."""

from __future__ import annotations

from typing import Any

import psycopg2
import psycopg2.extensions
import structlog

from pg_listen.channel.base import (
    ConnectError,
    ConnectionLostError,
    InvalidChannelNameError,
    InvalidTargetError,
    Notification,
    SubscribeError,
    Subscription,
)

logger = structlog.get_logger()


def _error_text(exc: BaseException) -> str:
    return str(exc).strip() or type(exc).__name__


class PostgresChannelService:
    """Talks to PostgreSQL through psycopg2 in autocommit mode.

    ``LISTEN`` only takes effect once committed, so the connection must never
    sit inside an open transaction.
    """

    def connect(self, target: str) -> Any:
        try:
            conn = psycopg2.connect(target)
        except psycopg2.ProgrammingError as exc:
            # libpq rejected the connection string before touching the network
            raise InvalidTargetError(_error_text(exc)) from exc
        except psycopg2.OperationalError as exc:
            raise ConnectError(_error_text(exc)) from exc
        conn.autocommit = True
        logger.debug(
            "postgres.connected",
            server_version=conn.server_version,
            encoding=conn.encoding,
        )
        return conn

    def quote_channel(self, conn: Any, channel: str) -> Subscription:
        try:
            identifier = psycopg2.extensions.quote_ident(channel, conn)
        except (psycopg2.Error, TypeError, UnicodeError) as exc:
            msg = f"cannot escape channel name {channel!r}: {_error_text(exc)}"
            raise InvalidChannelNameError(msg) from exc
        return Subscription(channel=channel, identifier=identifier)

    def subscribe(self, conn: Any, subscription: Subscription) -> None:
        try:
            with conn.cursor() as cur:
                cur.execute(f"LISTEN {subscription.identifier}")
        except (psycopg2.OperationalError, psycopg2.InterfaceError) as exc:
            raise ConnectionLostError(_error_text(exc)) from exc
        except psycopg2.Error as exc:
            raise SubscribeError(_error_text(exc)) from exc

    def is_healthy(self, conn: Any) -> bool:
        return conn is not None and conn.closed == 0

    def socket_handle(self, conn: Any) -> int:
        try:
            return int(conn.fileno())
        except psycopg2.Error as exc:
            raise ConnectionLostError(_error_text(exc)) from exc

    def consume_ready_data(self, conn: Any) -> None:
        try:
            conn.poll()
        except psycopg2.Error as exc:
            raise ConnectionLostError(_error_text(exc)) from exc

    def next_notification(self, conn: Any) -> Notification | None:
        if not conn.notifies:
            return None
        notify = conn.notifies.pop(0)
        return Notification(
            channel=notify.channel,
            payload=notify.payload.encode(self._codec(conn)),
            pid=notify.pid,
        )

    def close(self, conn: Any) -> None:
        # close() is idempotent and also releases connections marked broken
        if conn is not None:
            conn.close()

    @staticmethod
    def _codec(conn: Any) -> str:
        """Python codec matching the connection's client encoding."""
        return psycopg2.extensions.encodings.get(conn.encoding, "utf-8")
