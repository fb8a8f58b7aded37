"""Typer CLI for pg-listen."""

from __future__ import annotations

from typing import Any

import structlog
import typer
from rich.console import Console

from pg_listen.channel.base import ChannelError
from pg_listen.channel.postgres import PostgresChannelService
from pg_listen.config.loader import load_listener_config
from pg_listen.config.models import PRINT_HANDLER, ListenerConfig, LogFormat
from pg_listen.dispatch.factory import create_dispatcher
from pg_listen.listener.runner import Listener
from pg_listen.observability.logging import configure_logging

logger = structlog.get_logger()
# stdout carries payloads in print mode, so user-facing messages go to stderr
console = Console(stderr=True)
app = typer.Typer(
    name="pg-listen",
    help="Bridge a PostgreSQL LISTEN channel to stdout or a handler program.",
    add_completion=False,
)


def _overrides(
    target: str,
    channel: str,
    handler: list[str] | None,
    log_level: str | None,
    log_format: LogFormat | None,
    max_backoff: float | None,
    connect_attempts: int | None,
) -> dict[str, Any]:
    overrides: dict[str, Any] = {"dsn": target, "channel": channel}
    if handler:
        command, *args = handler
        if command == PRINT_HANDLER and args:
            console.print(
                "[red]Handler arguments given without a handler program[/red]"
            )
            raise typer.Exit(2)
        overrides["handler"] = {"command": command, "args": args}
    if log_level is not None:
        overrides.setdefault("logging", {})["level"] = log_level.lower()
    if log_format is not None:
        overrides.setdefault("logging", {})["format"] = log_format.value
    if max_backoff is not None:
        overrides["reconnect"] = {"max_delay_seconds": max_backoff}
    if connect_attempts is not None:
        overrides["startup"] = {"connect_attempts": connect_attempts}
    return overrides


def _load(config_path: str | None, overrides: dict[str, Any]) -> ListenerConfig:
    try:
        return load_listener_config(config_path, overrides)
    except (OSError, TypeError, ValueError) as exc:
        console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(1) from exc


@app.command(
    # options stop at TARGET so every argument after HANDLER reaches the handler
    context_settings={"allow_interspersed_args": False},
    no_args_is_help=True,
)
def listen(
    target: str = typer.Argument(
        ..., help="libpq connection string or URI, e.g. postgresql://host/db"
    ),
    channel: str = typer.Argument(..., help="Channel to LISTEN on"),
    handler: list[str] | None = typer.Argument(
        None,
        help=(
            "Program to run for each notification, followed by its arguments. "
            "The payload is written to its stdin. Omit or use '-' to print "
            "payloads to stdout. Options for pg-listen itself go before TARGET."
        ),
        show_default=False,
    ),
    config_path: str | None = typer.Option(
        None, "--config", "-c", help="Listener YAML config"
    ),
    log_level: str | None = typer.Option(
        None, "--log-level", help="debug, info, warning, error or critical"
    ),
    log_format: LogFormat | None = typer.Option(
        None, "--log-format", help="Log line format on stderr"
    ),
    max_backoff: float | None = typer.Option(
        None, "--max-backoff", help="Ceiling for the reconnect delay in seconds"
    ),
    connect_attempts: int | None = typer.Option(
        None,
        "--connect-attempts",
        help="Initial connection attempts before giving up",
    ),
) -> None:
    """Print or hand off every notification published on CHANNEL."""
    config = _load(
        config_path,
        _overrides(
            target,
            channel,
            handler,
            log_level,
            log_format,
            max_backoff,
            connect_attempts,
        ),
    )
    configure_logging(config.logging)

    dispatcher = create_dispatcher(config.handler)
    listener = Listener.from_config(config, PostgresChannelService(), dispatcher)
    logger.info(
        "listener.configured",
        channel=config.channel,
        mode=config.handler.mode.value,
        handler=config.handler.command,
    )

    try:
        listener.run()
    except ChannelError as exc:
        logger.critical(
            "listener.fatal", error_type=type(exc).__name__, error=str(exc)
        )
        raise typer.Exit(1) from exc
    except KeyboardInterrupt:
        logger.info("listener.interrupted")
        return
    except Exception as exc:
        logger.critical("listener.crashed", error=str(exc), exc_info=True)
        raise typer.Exit(1) from exc
