from __future__ import annotations

import logging

import pytest

from app.core.logging import (
    RequestContextFilter,
    _ContainerFormatter,
    _JsonFormatter,
    setup_logging,
)


@pytest.mark.parametrize(
    ("name", "expected"),
    [("debug", logging.DEBUG), ("warning", logging.WARNING), ("nonexistent", logging.INFO)],
)
def test_setup_logging_sets_root_level(name: str, expected: int) -> None:
    setup_logging(name)
    assert logging.getLogger().level == expected


@pytest.mark.parametrize("noisy", ["uvicorn", "httpx", "sqlalchemy.engine"])
def test_setup_logging_caps_noisy_loggers_at_warning(noisy: str) -> None:
    setup_logging("debug")
    assert logging.getLogger(noisy).level == logging.WARNING


def test_setup_logging_allows_uvicorn_at_error() -> None:
    setup_logging("error")
    assert logging.getLogger("uvicorn").level == logging.ERROR


def test_setup_logging_installs_request_filter_on_handler() -> None:
    setup_logging("info", json_format=True)
    [handler] = logging.getLogger().handlers
    assert any(isinstance(f, RequestContextFilter) for f in handler.filters)
    assert isinstance(handler.formatter, _JsonFormatter)


def _format(level: int, lineno: int = 12) -> str:
    record = logging.LogRecord(
        name="app.services.progress_service",
        level=level,
        pathname="progress_service.py",
        lineno=lineno,
        msg="Rejected completion of locked topic",
        args=(),
        exc_info=None,
    )
    return _ContainerFormatter().format(record)


def test_formatter_excludes_location_below_warning() -> None:
    output = _format(logging.INFO)
    assert "Rejected completion of locked topic" in output
    assert "[progress_service.py:" not in output


@pytest.mark.parametrize("level", [logging.WARNING, logging.ERROR])
def test_formatter_includes_location_from_warning(level: int) -> None:
    assert "[progress_service.py:42]" in _format(level, lineno=42)


def test_formatter_is_single_line_with_millis() -> None:
    output = _format(logging.INFO)
    assert "\n" not in output
    # 2026-01-01T00:00:00.123+0000
    assert output[19] == "."
