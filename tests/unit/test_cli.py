"""Unit tests for the pg-listen command line."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from pg_listen.channel.base import ConnectError, SubscribeError
from pg_listen.cli import app
from pg_listen.config.models import DispatchMode, LogFormat
from pg_listen.dispatch.handler import HandlerDispatcher
from pg_listen.dispatch.printer import PrintDispatcher

runner = CliRunner()

DSN = "postgresql://localhost/app"


@pytest.fixture
def mocks():
    with (
        patch("pg_listen.cli.configure_logging") as configure_logging,
        patch("pg_listen.cli.PostgresChannelService") as service_cls,
        patch("pg_listen.cli.Listener") as listener_cls,
    ):
        yield MagicMock(
            configure_logging=configure_logging,
            service_cls=service_cls,
            listener_cls=listener_cls,
            listener=listener_cls.from_config.return_value,
        )


def _built(mocks):
    """The config and dispatcher handed to Listener.from_config."""
    args = mocks.listener_cls.from_config.call_args.args
    return args[0], args[2]


class TestListenCommand:
    def test_print_mode_by_default(self, mocks):
        result = runner.invoke(app, [DSN, "orders"])

        assert result.exit_code == 0, result.output
        config, dispatcher = _built(mocks)
        assert config.dsn.get_secret_value() == DSN
        assert config.channel == "orders"
        assert config.handler.mode == DispatchMode.PRINT
        assert isinstance(dispatcher, PrintDispatcher)
        mocks.listener.run.assert_called_once()

    def test_dash_selects_print_mode(self, mocks):
        result = runner.invoke(app, [DSN, "orders", "-"])

        assert result.exit_code == 0, result.output
        _, dispatcher = _built(mocks)
        assert isinstance(dispatcher, PrintDispatcher)

    def test_handler_and_arguments_passed_through(self, mocks):
        result = runner.invoke(app, [DSN, "orders", "/usr/bin/logger", "-t", "x"])

        assert result.exit_code == 0, result.output
        config, dispatcher = _built(mocks)
        assert config.handler.command == "/usr/bin/logger"
        assert config.handler.args == ["-t", "x"]
        assert isinstance(dispatcher, HandlerDispatcher)
        assert dispatcher.argv == ["/usr/bin/logger", "-t", "x"]

    def test_handler_arguments_matching_options_are_forwarded(self, mocks):
        result = runner.invoke(
            app, [DSN, "orders", "/usr/bin/grep", "-c", "foo", "--log-level", "x"]
        )

        assert result.exit_code == 0, result.output
        config, dispatcher = _built(mocks)
        assert config.handler.args == ["-c", "foo", "--log-level", "x"]
        assert dispatcher.argv == [
            "/usr/bin/grep",
            "-c",
            "foo",
            "--log-level",
            "x",
        ]
        assert config.logging.level == "info"

    def test_help_after_handler_goes_to_handler(self, mocks):
        result = runner.invoke(app, [DSN, "orders", "/usr/bin/prog", "--help"])

        assert result.exit_code == 0, result.output
        config, _ = _built(mocks)
        assert config.handler.args == ["--help"]
        mocks.listener.run.assert_called_once()

    def test_option_after_target_is_not_parsed(self, mocks):
        result = runner.invoke(app, [DSN, "orders", "--max-backoff", "5"])

        assert result.exit_code == 0, result.output
        config, _ = _built(mocks)
        assert config.handler.command == "--max-backoff"
        assert config.reconnect.max_delay_seconds is None

    def test_unknown_option_is_usage_error(self, mocks):
        result = runner.invoke(app, ["--bogus", DSN, "orders"])

        assert result.exit_code == 2
        mocks.listener_cls.from_config.assert_not_called()

    def test_dash_with_arguments_is_usage_error(self, mocks):
        result = runner.invoke(app, [DSN, "orders", "-", "extra"])

        assert result.exit_code == 2
        mocks.listener_cls.from_config.assert_not_called()

    def test_options_override_config(self, mocks):
        result = runner.invoke(
            app,
            [
                "--log-level",
                "DEBUG",
                "--log-format",
                "json",
                "--max-backoff",
                "60",
                "--connect-attempts",
                "4",
                DSN,
                "orders",
            ],
        )

        assert result.exit_code == 0, result.output
        config, _ = _built(mocks)
        assert config.logging.level == "debug"
        assert config.logging.format == LogFormat.JSON
        assert config.reconnect.max_delay_seconds == 60
        assert config.startup.connect_attempts == 4
        mocks.configure_logging.assert_called_once_with(config.logging)

    def test_config_file(self, mocks, tmp_path):
        path = tmp_path / "listener.yaml"
        path.write_text("handler:\n  command: /bin/cat\n  args: [-u]\n")

        result = runner.invoke(app, ["--config", str(path), DSN, "orders"])

        assert result.exit_code == 0, result.output
        config, _ = _built(mocks)
        assert config.handler.command == "/bin/cat"
        assert config.handler.args == ["-u"]

    def test_invalid_channel_is_config_error(self, mocks):
        result = runner.invoke(app, [DSN, ""])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        mocks.listener_cls.from_config.assert_not_called()

    def test_missing_config_file(self, mocks, tmp_path):
        result = runner.invoke(
            app, ["-c", str(tmp_path / "absent.yaml"), DSN, "orders"]
        )
        assert result.exit_code == 1

    @pytest.mark.parametrize(
        "exc", [ConnectError("refused"), SubscribeError("permission denied")]
    )
    def test_channel_errors_exit_1(self, mocks, exc):
        mocks.listener.run.side_effect = exc
        result = runner.invoke(app, [DSN, "orders"])
        assert result.exit_code == 1

    def test_interrupt_exits_cleanly(self, mocks):
        mocks.listener.run.side_effect = KeyboardInterrupt
        result = runner.invoke(app, [DSN, "orders"])
        assert result.exit_code == 0

    def test_unexpected_error_exits_1(self, mocks):
        mocks.listener.run.side_effect = RuntimeError("bug")
        result = runner.invoke(app, [DSN, "orders"])
        assert result.exit_code == 1

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "--max-backoff" in result.output
        assert "--connect-attempts" in result.output
