"""Connection supervisor: sole owner of the subscription connection.

State machine::

    DISCONNECTED --connect ok--> CONNECTED --LISTEN ok--> SUBSCRIBED
         ^   |                        |                       |
         |   +--connect failed: backoff, sleep, retry         |
         +----------- connection lost / unhealthy ------------+

A rejected LISTEN is not retried: the channel is fixed for the process
lifetime, so repeated rejection means misconfiguration.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterator
from enum import StrEnum
from typing import Any

import structlog
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from pg_listen.channel.base import (
    ChannelService,
    ConnectError,
    ConnectionLostError,
    InvalidChannelNameError,
    Notification,
    Subscription,
)
from pg_listen.config.models import StartupConfig
from pg_listen.listener.backoff import BackoffPolicy

logger = structlog.get_logger()

Sleep = Callable[[float], None]


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"


class ConnectionSupervisor:
    """Sole owner of the connection handle and the backoff counter.

    ``sleep`` is injectable so reconnect timing can be tested without real
    delays.
    """

    def __init__(
        self,
        service: ChannelService,
        target: str,
        channel: str,
        *,
        backoff: BackoffPolicy | None = None,
        startup: StartupConfig | None = None,
        sleep: Sleep = time.sleep,
    ) -> None:
        self._service = service
        self._target = target
        self._channel = channel
        self._backoff = backoff or BackoffPolicy()
        self._startup = startup or StartupConfig()
        self._sleep = sleep

        self._conn: Any = None
        self._state = ConnectionState.DISCONNECTED
        self._subscription: Subscription | None = None
        self._delay = self._backoff.reset()
        self._reconnects = 0
        self._stopping = False

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def channel(self) -> str:
        return self._channel

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    @property
    def delay(self) -> float:
        """Current backoff delay in seconds (0 after a successful connect)."""
        return self._delay

    @property
    def reconnects(self) -> int:
        return self._reconnects

    # -- Startup ---------------------------------------------------------------

    def start(self) -> None:
        """Open the first connection and escape the channel name.

        Raises on failure; nothing here is recovered locally.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self._startup.connect_attempts),
            wait=wait_exponential(
                multiplier=self._startup.retry_wait_seconds,
                max=self._startup.retry_max_wait_seconds,
            ),
            retry=retry_if_exception_type(ConnectError),
            before_sleep=self._log_startup_retry,
            sleep=self._sleep,
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                logger.info(
                    "supervisor.connecting",
                    attempt=attempt.retry_state.attempt_number,
                )
                conn = self._service.connect(self._target)

        self._adopt(conn)
        try:
            self._subscription = self._service.quote_channel(conn, self._channel)
        except InvalidChannelNameError:
            self.close()
            raise
        logger.info("supervisor.connected", channel=self._channel)

    @staticmethod
    def _log_startup_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.error(
            "supervisor.connect_failed",
            attempt=retry_state.attempt_number,
            retry_in=wait,
            error=str(exc),
        )

    # -- Steady state ----------------------------------------------------------

    def ensure_subscribed(self) -> bool:
        """Reconnect and re-LISTEN if needed.

        Returns True when a subscription was (re)asserted on this call, which
        means a fresh connection whose buffer has not been drained yet.
        """
        if self._state == ConnectionState.SUBSCRIBED and self._service.is_healthy(
            self._conn
        ):
            return False

        if self._state == ConnectionState.SUBSCRIBED:
            logger.error("supervisor.connection_unhealthy", channel=self._channel)
            self.mark_disconnected("health check failed")

        while self._state != ConnectionState.SUBSCRIBED:
            if self._stopping:
                return False
            if self._state == ConnectionState.DISCONNECTED:
                self._reconnect()
            if self._state == ConnectionState.CONNECTED:
                self._subscribe()
        return True

    def _reconnect(self) -> None:
        """Loop until a new connection is established or stop() is called."""
        while not self._stopping:
            if self._delay > 0:
                logger.error(
                    "supervisor.reconnect_backoff", sleep_seconds=self._delay
                )
                self._sleep(self._delay)
                if self._stopping:
                    return
            logger.info("supervisor.reconnecting", channel=self._channel)
            try:
                conn = self._service.connect(self._target)
            except ConnectError as exc:
                self._delay = self._backoff.next_delay(self._delay)
                logger.error("supervisor.reconnect_failed", error=str(exc))
                continue
            self._adopt(conn)
            self._reconnects += 1
            logger.info("supervisor.connected", reconnects=self._reconnects)
            return

    def _subscribe(self) -> None:
        assert self._subscription is not None, "start() must run before subscribing"
        logger.info("supervisor.listening", channel=self._subscription.channel)
        try:
            self._service.subscribe(self._conn, self._subscription)
        except ConnectionLostError as exc:
            # lost mid-LISTEN is a connectivity failure, not a rejection
            self._delay = self._backoff.next_delay(self._delay)
            self.mark_disconnected(str(exc))
            return
        self._state = ConnectionState.SUBSCRIBED

    def _adopt(self, conn: Any) -> None:
        self._conn = conn
        self._state = ConnectionState.CONNECTED
        self._delay = self._backoff.reset()

    def socket_handle(self) -> int:
        return self._service.socket_handle(self._conn)

    def consume_ready_data(self) -> bool:
        """Pull wire data into the buffer; False if the connection died."""
        try:
            self._service.consume_ready_data(self._conn)
        except ConnectionLostError as exc:
            self.mark_disconnected(str(exc))
            return False
        return True

    def drain(self) -> Iterator[Notification]:
        """Yield buffered notifications in arrival order until none remain."""
        while self._state != ConnectionState.DISCONNECTED:
            notification = self._service.next_notification(self._conn)
            if notification is None:
                return
            yield notification

    def mark_disconnected(self, reason: str) -> None:
        """Discard the current connection; the next ensure_subscribed reconnects.

        Anything still buffered on the old connection is dropped with it.
        """
        logger.error("supervisor.disconnected", reason=reason)
        self.close()

    def stop(self) -> None:
        """Abandon any reconnect loop in progress."""
        self._stopping = True

    def close(self) -> None:
        if self._conn is not None:
            self._service.close(self._conn)
        self._conn = None
        self._state = ConnectionState.DISCONNECTED
