"""Unit tests for src/core/logging.py module."""

import io
import json
import logging
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest
from loguru import logger
from pytest_mock import MockerFixture

from src.core.config import LogConfig, Settings
from src.core.logging import (
    InterceptHandler,
    _state,
    format_console_with_context,
    serialize_for_json,
    setup_logging,
)


def make_record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "time": datetime(2024, 3, 1, 10, 0, 0, 123000, tzinfo=UTC),
        "level": SimpleNamespace(name="INFO"),
        "message": "API Response - Method: GET",
        "name": "src.api.envelope.formatter",
        "function": "_log_response",
        "module": "formatter",
        "line": 42,
        "extra": {},
        "exception": None,
    }
    record.update(overrides)
    return record


@pytest.mark.unit
class TestConsoleFormatter:
    """Tests for the console formatter."""

    def test_basic_line(self) -> None:
        line = format_console_with_context(make_record())

        assert line.startswith("<green>2024-03-01 10:00:00.123</green>")
        assert "src.api.envelope.formatter:_log_response:42" in line
        assert line.endswith(" | {message}\n")

    def test_priority_fields_first(self) -> None:
        """Correlation IDs are shortened and placed before other context."""
        line = format_console_with_context(
            make_record(extra={"route": "x", "correlation_id": "1234567890abcdef"})
        )

        assert line.index("12345678") < line.index("route=x")
        assert "1234567890abcdef" not in line

    def test_sensitive_extra_is_redacted(self) -> None:
        line = format_console_with_context(make_record(extra={"api_key": "abc"}))

        assert "api_key=[REDACTED]" in line
        assert "abc" not in line

    def test_message_is_a_placeholder(self) -> None:
        """Envelope JSON in messages is never read as format fields or markup."""
        line = format_console_with_context(make_record(message='Data: {"a":"<b>"}'))

        assert "Data:" not in line
        assert line.endswith(" | {message}\n")

    def test_markup_in_messages_is_logged_verbatim(self) -> None:
        """Tag-like payload text reaches a colorized sink unchanged."""
        output = io.StringIO()
        handler_id = logger.add(output, format=format_console_with_context, colorize=True)
        try:
            logger.info('Data: {"html":"</b><red>x</red>"}')
        finally:
            logger.remove(handler_id)

        assert 'Data: {"html":"</b><red>x</red>"}' in output.getvalue()

    def test_exception_placeholder(self) -> None:
        line = format_console_with_context(make_record(exception=object()))

        assert line.endswith("\n{exception}\n")


@pytest.mark.unit
class TestJsonFormatter:
    """Tests for the JSON formatter."""

    def test_fields(self) -> None:
        entry = json.loads(
            serialize_for_json(
                make_record(extra={"correlation_id": "abc", "password": "x", "_hidden": 1})
            )
        )

        assert entry["level"] == "INFO"
        assert entry["logger"] == "src.api.envelope.formatter"
        assert entry["line"] == 42
        assert entry["correlation_id"] == "abc"
        assert entry["password"] == "[REDACTED]"
        assert "_hidden" not in entry

    def test_exception(self) -> None:
        exception = SimpleNamespace(type=ValueError, value=ValueError("bad"))

        entry = json.loads(serialize_for_json(make_record(exception=exception)))

        assert entry["exception"] == {"type": "ValueError", "value": "bad"}


@pytest.mark.unit
class TestSetupLogging:
    """Tests for logging setup."""

    @pytest.fixture
    def unconfigured(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(_state, "configured", False)

    @pytest.mark.usefixtures("unconfigured")
    @pytest.mark.parametrize("formatter_type", ["console", "json"])
    def test_configures_once(self, mocker: MockerFixture, formatter_type: str) -> None:
        mock_logger = mocker.patch("src.core.logging.logger")
        mocker.patch("src.core.logging.logging.basicConfig")
        settings = Settings(
            log_config=LogConfig(log_level="WARNING", log_formatter_type=formatter_type)
        )

        setup_logging(settings)
        setup_logging(settings)

        mock_logger.remove.assert_called_once()
        mock_logger.add.assert_called_once()
        assert mock_logger.add.call_args.kwargs["level"] == "WARNING"
        assert _state.configured is True

    @pytest.mark.usefixtures("unconfigured")
    def test_uvicorn_loggers_are_intercepted(self, mocker: MockerFixture) -> None:
        mocker.patch("src.core.logging.logger")
        mocker.patch("src.core.logging.logging.basicConfig")

        setup_logging(Settings())

        uvicorn_logger = logging.getLogger("uvicorn.access")
        assert isinstance(uvicorn_logger.handlers[0], InterceptHandler)
        assert uvicorn_logger.propagate is False


@pytest.mark.unit
class TestInterceptHandler:
    """Tests for standard logging interception."""

    def test_forwards_to_loguru(self, mocker: MockerFixture) -> None:
        mock_logger = mocker.patch("src.core.logging.logger")
        mock_logger.level.return_value.name = "WARNING"
        record = logging.LogRecord("uvicorn", logging.WARNING, __file__, 1, "slow %s", ("x",), None)

        InterceptHandler().emit(record)

        mock_logger.opt.return_value.log.assert_called_once_with("WARNING", "slow x")

    def test_unknown_level_uses_number(self, mocker: MockerFixture) -> None:
        mock_logger = mocker.patch("src.core.logging.logger")
        mock_logger.level.side_effect = ValueError("unknown level")
        record = logging.LogRecord("lib", 15, __file__, 1, "custom", None, None)
        record.levelname = "CUSTOM"

        InterceptHandler().emit(record)

        mock_logger.opt.return_value.log.assert_called_once_with(15, "custom")
