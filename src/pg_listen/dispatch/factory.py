"""Dispatcher factory: maps DispatchMode to concrete dispatcher classes."""

from __future__ import annotations

from collections.abc import Callable
from typing import BinaryIO

from pg_listen.config.models import DispatchMode, HandlerConfig
from pg_listen.dispatch.base import Dispatcher
from pg_listen.dispatch.handler import HandlerDispatcher
from pg_listen.dispatch.printer import PrintDispatcher

_Builder = Callable[[HandlerConfig, BinaryIO | None], Dispatcher]


def _print(config: HandlerConfig, stream: BinaryIO | None) -> Dispatcher:
    return PrintDispatcher(stream)


def _handler(config: HandlerConfig, stream: BinaryIO | None) -> Dispatcher:
    return HandlerDispatcher.from_config(config)


_DISPATCH_REGISTRY: dict[DispatchMode, _Builder] = {
    DispatchMode.PRINT: _print,
    DispatchMode.HANDLER: _handler,
}


def create_dispatcher(
    config: HandlerConfig, *, stream: BinaryIO | None = None
) -> Dispatcher:
    """Create the dispatcher selected by the handler configuration.

    *stream* only applies to print mode and defaults to stdout.
    """
    build = _DISPATCH_REGISTRY.get(config.mode)
    if build is None:
        msg = f"Unknown dispatch mode: {config.mode}"
        raise ValueError(msg)
    return build(config, stream)
