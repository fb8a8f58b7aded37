"""The listener main loop.

Everything runs on one thread. The readiness wait is the only place the loop
blocks; handler processes run on their own and are never waited for here.
"""

from __future__ import annotations

import signal
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from pg_listen.channel.base import ChannelService, ConnectionLostError
from pg_listen.config.models import ListenerConfig
from pg_listen.dispatch.base import Dispatcher
from pg_listen.listener.backoff import BackoffPolicy
from pg_listen.listener.poller import ReadinessError, ReadinessPoller
from pg_listen.listener.supervisor import ConnectionSupervisor, Sleep

logger = structlog.get_logger()


@dataclass
class ListenerStats:
    received: int = 0
    dispatched: int = 0
    failed: int = 0
    wakeups: int = 0


class Listener:
    """Bridges one LISTEN channel to a dispatcher until stopped.

    Lifecycle:
        1. Connect and escape the channel name (fatal on failure)
        2. Ensure the connection is healthy and subscribed, reconnecting
           with backoff when it is not
        3. Block until the socket is readable
        4. Consume wire data, then drain and dispatch every buffered
           notification in arrival order
        5. Repeat from 2 until :meth:`stop`
    """

    def __init__(
        self,
        supervisor: ConnectionSupervisor,
        dispatcher: Dispatcher,
        *,
        poller: ReadinessPoller | None = None,
        handle_signals: bool = True,
    ) -> None:
        self._supervisor = supervisor
        self._dispatcher = dispatcher
        self._poller = poller or ReadinessPoller()
        self._handle_signals = handle_signals
        self._running = False
        self._stats = ListenerStats()

    @classmethod
    def from_config(
        cls,
        config: ListenerConfig,
        service: ChannelService,
        dispatcher: Dispatcher,
        *,
        sleep: Sleep | None = None,
        handle_signals: bool = True,
    ) -> Listener:
        poller = ReadinessPoller()
        supervisor = ConnectionSupervisor(
            service,
            config.dsn.get_secret_value(),
            config.channel,
            backoff=BackoffPolicy.from_config(config.reconnect),
            startup=config.startup,
            # backoff sleeps end early on stop()
            sleep=sleep or poller.sleep,
        )
        return cls(
            supervisor, dispatcher, poller=poller, handle_signals=handle_signals
        )

    @property
    def stats(self) -> ListenerStats:
        return self._stats

    @property
    def running(self) -> bool:
        return self._running

    def run(self) -> None:
        """Run until stopped (blocking). Startup failures propagate."""
        self._running = True
        try:
            self._supervisor.start()
            if self._handle_signals:
                self._install_signal_handlers()
            logger.info(
                "listener.started",
                channel=self._supervisor.channel,
                mode=self._dispatcher.mode.value,
            )
            while self._running:
                self._step()
        finally:
            self._shutdown()

    def _step(self) -> None:
        """One loop iteration; every path back to the top is a normal one."""
        if self._supervisor.ensure_subscribed():
            # the LISTEN round-trip may have carried notifications in with it
            self._drain()
        if not self._running:
            return

        try:
            fd = self._supervisor.socket_handle()
            readable = self._poller.wait(fd)
        except (ConnectionLostError, ReadinessError) as exc:
            logger.error("listener.wait_failed", error=str(exc))
            self._supervisor.mark_disconnected(str(exc))
            return

        if not readable:
            return
        self._stats.wakeups += 1
        if not self._supervisor.consume_ready_data():
            return
        self._drain()

    def _drain(self) -> None:
        for notification in self._supervisor.drain():
            self._stats.received += 1
            logger.debug(
                "listener.notification",
                channel=notification.channel,
                pid=notification.pid,
                bytes=len(notification.payload),
            )
            if self._dispatcher.dispatch(notification):
                self._stats.dispatched += 1
            else:
                self._stats.failed += 1

    def stop(self) -> None:
        """Ask the loop to exit; safe to call from a signal handler."""
        self._running = False
        self._supervisor.stop()
        self._poller.wake()

    def _install_signal_handlers(self) -> None:
        def _shutdown(signum: int, frame: Any) -> None:
            logger.info("listener.shutdown_signal", signal=signum)
            self.stop()

        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)

    def _shutdown(self) -> None:
        self._running = False
        try:
            self._dispatcher.close()
        finally:
            try:
                self._supervisor.close()
            finally:
                self._poller.close()
        logger.info(
            "listener.stopped",
            reconnects=self._supervisor.reconnects,
            **asdict(self._stats),
        )
