from __future__ import annotations

import io
import os
import logging
from typing import Generator
from unittest.mock import patch

import pytest

import peerkeeper.utils.logger as logger_module
from peerkeeper.utils.logger import (
    ColoredFormatter,
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)


@pytest.fixture
def clean_logger_state() -> Generator[None, None, None]:
    """Reset the peerkeeper root logger around each test."""
    root_logger = logging.getLogger("peerkeeper")
    saved_propagate = root_logger.propagate
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    logger_module._configured.clear()

    yield

    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)
    root_logger.propagate = saved_propagate
    logger_module._configured.clear()


def _record(level: int, msg: str) -> logging.LogRecord:
    return logging.LogRecord(
        name="peerkeeper.test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


@pytest.mark.unit
class TestColoredFormatter:
    """Tests for ColoredFormatter ANSI color formatting."""

    def test_color_applied_when_enabled(self) -> None:
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=True)

        with patch.object(ColoredFormatter, "_should_use_color", return_value=True):
            result = formatter.format(_record(logging.WARNING, "retrying"))

        assert result.startswith(ColoredFormatter.COLORS["WARNING"])
        assert "retrying" in result

    def test_plain_when_disabled(self) -> None:
        formatter = ColoredFormatter("%(levelname)s: %(message)s", use_color=False)
        assert formatter.format(_record(logging.ERROR, "boom")) == "ERROR: boom"

    def test_record_not_mutated(self) -> None:
        """Test other handlers still see the plain level name."""
        formatter = ColoredFormatter("%(levelname)s", use_color=True)
        record = _record(logging.INFO, "x")

        with patch.object(ColoredFormatter, "_should_use_color", return_value=True):
            formatter.format(record)

        assert record.levelname == "INFO"

    def test_no_color_env(self) -> None:
        with patch.dict(os.environ, {"NO_COLOR": "1"}):
            assert ColoredFormatter._should_use_color() is False

    def test_ci_env(self) -> None:
        with patch.dict(os.environ, {"CI": "true"}, clear=True):
            assert ColoredFormatter._should_use_color() is False


@pytest.mark.unit
@pytest.mark.usefixtures("clean_logger_state")
class TestSetupLogging:
    """Tests for setup_logging, get_logger and disable_logging."""

    def test_setup_writes_to_stream(self) -> None:
        stream = io.StringIO()
        setup_logging(level=logging.DEBUG, stream=stream)

        get_logger("registry").debug("fetched %s", "react")

        assert is_logging_configured() is True
        assert "fetched react" in stream.getvalue()

    def test_setup_replaces_previous_handler(self) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())

        assert len(logging.getLogger("peerkeeper").handlers) == 1

    def test_level_filters_messages(self) -> None:
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, stream=stream)

        log = get_logger("cache")
        log.info("hidden")
        log.warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    @pytest.mark.parametrize(
        "name, expected",
        [
            (None, "peerkeeper"),
            ("peerkeeper", "peerkeeper"),
            ("http", "peerkeeper.http"),
            ("peerkeeper.core", "peerkeeper.core"),
        ],
    )
    def test_get_logger_namespace(self, name: object, expected: str) -> None:
        assert get_logger(name).name == expected

    def test_unconfigured_logger_is_silent(self) -> None:
        log = get_logger("silent")
        assert any(isinstance(h, logging.NullHandler) for h in log.handlers)

    def test_disable_logging(self) -> None:
        stream = io.StringIO()
        setup_logging(stream=stream)
        disable_logging()

        get_logger("any").error("should not appear")

        assert is_logging_configured() is False
        assert stream.getvalue() == ""
