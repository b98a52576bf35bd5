"""Unit tests for src/core/logging.py module."""

import json
import logging
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any

import pytest
from loguru import logger
from pytest_mock import MockerFixture

from src.core.config import LogConfig, Settings
from src.core.logging import (
    DEFAULT_LOG_FORMAT,
    InterceptHandler,
    _state,
    format_console_with_context,
    serialize_for_json,
    setup_logging,
)


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None]:
    """Start every test with unconfigured logging."""
    logger.remove()
    _state.configured = False
    yield
    logger.remove()
    _state.configured = False


def make_record(**overrides: Any) -> dict[str, Any]:  # noqa: ANN401
    """Build a minimal Loguru-like record."""

    class Level:
        name = "INFO"

    record: dict[str, Any] = {
        "time": datetime(2024, 6, 14, 12, 0, 0, 123456, tzinfo=UTC),
        "level": Level(),
        "name": "src.contract.normalizer",
        "function": "normalize",
        "line": 42,
        "message": "Normalized {value}",
        "extra": {},
        "exception": None,
    }
    record.update(overrides)
    return record


@pytest.mark.unit
class TestSetupLogging:
    """Configuring Loguru once per process."""

    def test_console_formatter(self, mocker: MockerFixture) -> None:
        """The console formatter adds a stdout sink."""
        add = mocker.patch("src.core.logging.logger.add")
        settings = Settings(log_config=LogConfig(log_formatter_type="console", log_level="DEBUG"))

        setup_logging(settings)

        assert add.call_count == 1
        assert add.call_args.kwargs["level"] == "DEBUG"
        assert add.call_args.kwargs["format"] is format_console_with_context
        assert _state.configured is True

    def test_json_formatter(self, mocker: MockerFixture) -> None:
        """The JSON formatter adds a structured sink."""
        add = mocker.patch("src.core.logging.logger.add")
        settings = Settings(log_config=LogConfig(log_formatter_type="json"))

        setup_logging(settings)

        sink = add.call_args.args[0]
        assert callable(sink)
        assert add.call_args.kwargs["diagnose"] is False

    def test_configures_once(self, mocker: MockerFixture) -> None:
        """Later calls do nothing."""
        add = mocker.patch("src.core.logging.logger.add")
        settings = Settings(log_config=LogConfig(log_formatter_type="console"))

        setup_logging(settings)
        setup_logging(settings)

        assert add.call_count == 1

    def test_routes_standard_logging(self, mocker: MockerFixture) -> None:
        """The standard library root logger is intercepted."""
        mocker.patch("src.core.logging.logger.add")

        setup_logging(Settings(log_config=LogConfig(log_formatter_type="console")))

        assert any(isinstance(h, InterceptHandler) for h in logging.getLogger().handlers)


@pytest.mark.unit
class TestFormatters:
    """Console and JSON formatting."""

    def test_console_format(self) -> None:
        """Records render with level, location and escaped message."""
        output = format_console_with_context(make_record())

        assert output.startswith("<green>2024-06-14 12:00:00.123</green>")
        assert "<cyan>src.contract.normalizer:normalize:42</cyan>" in output
        assert output.endswith("Normalized {{value}}\n")

    def test_console_format_context(self) -> None:
        """Public extra fields are shown; private and empty ones are not."""
        record = make_record(
            extra={"schema": "UserDto", "_internal": 1, "missing": None, "long": "x" * 150}
        )

        output = format_console_with_context(record)

        assert "schema=UserDto" in output
        assert "_internal" not in output
        assert "missing" not in output
        assert "long=" + "x" * 97 + "..." in output

    def test_console_format_exception_placeholder(self) -> None:
        """Exceptions are rendered by Loguru through a placeholder."""
        output = format_console_with_context(make_record(exception=object()))

        assert "\n{exception}" in output

    def test_console_format_fallback(self) -> None:
        """Malformed records fall back to the default format."""
        assert format_console_with_context({"time": None}) == DEFAULT_LOG_FORMAT + "\n"

    def test_json_format(self) -> None:
        """Records become one JSON line with public extras."""
        record = make_record(extra={"status": 201, "_hidden": True})

        entry = json.loads(serialize_for_json(record))

        assert entry == {
            "timestamp": "2024-06-14T12:00:00.123456+00:00",
            "level": "INFO",
            "message": "Normalized {value}",
            "logger": "src.contract.normalizer",
            "function": "normalize",
            "line": 42,
            "status": 201,
        }

    def test_json_format_exception(self, mocker: MockerFixture) -> None:
        """Exceptions are summarized by type and value."""
        exception = mocker.Mock(type=ValueError, value=ValueError("bad"))

        entry = json.loads(serialize_for_json(make_record(exception=exception)))

        assert entry["exception"] == {"type": "ValueError", "value": "bad"}


@pytest.mark.unit
class TestInterceptHandler:
    """Forwarding standard logging to Loguru."""

    def test_forwards_records(self) -> None:
        """Standard records arrive in Loguru with their level."""
        messages: list[Any] = []
        logger.add(messages.append, level="DEBUG", format="{level}|{message}")
        std_logger = logging.getLogger("tests.intercept")
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(logging.DEBUG)
        std_logger.propagate = False

        std_logger.warning("Schema %s rebuilt", "UserDto")

        assert [str(m).strip() for m in messages] == ["WARNING|Schema UserDto rebuilt"]

    def test_unknown_level_uses_number(self) -> None:
        """Custom standard levels are forwarded by number."""
        messages: list[Any] = []
        logger.add(messages.append, level=0, format="{level.no}|{message}")
        std_logger = logging.getLogger("tests.intercept.custom")
        std_logger.handlers = [InterceptHandler()]
        std_logger.setLevel(1)
        std_logger.propagate = False

        std_logger.log(15, "between debug and info")

        assert [str(m).strip() for m in messages] == ["15|between debug and info"]
