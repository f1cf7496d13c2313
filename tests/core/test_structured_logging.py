"""Tests for JSON log output and request-id propagation.

Log aggregation filters on top-level keys; a record that lands as plain
text or loses its student/course context cannot be found again.
"""

from __future__ import annotations

import json
import logging
import sys

from app.core.logging import RequestContextFilter, _JsonFormatter, request_id_var


def _record(msg: str = "msg", level: int = logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="app.services.progress_service",
        level=level,
        pathname="progress_service.py",
        lineno=7,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Topic completed")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "app.services.progress_service"
    assert parsed["message"] == "Topic completed"
    assert "timestamp" in parsed


def test_json_formatter_lifts_progress_context() -> None:
    record = _record(student_id="s-1", course_id="c-1", topic_id="t-1", request_id="r-9")
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["student_id"] == "s-1"
    assert parsed["course_id"] == "c-1"
    assert parsed["topic_id"] == "t-1"
    assert parsed["request_id"] == "r-9"


def test_json_formatter_omits_missing_context() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert "student_id" not in parsed
    assert "status_code" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    try:
        raise ValueError("ledger exploded")
    except ValueError:
        record = _record("upsert failed", logging.ERROR)
        record.exc_info = sys.exc_info()
        output = _JsonFormatter().format(record)

    assert "ValueError: ledger exploded" in json.loads(output)["exception"]


def test_filter_stamps_current_request_id() -> None:
    token = request_id_var.set("req-42")
    try:
        record = _record()
        assert RequestContextFilter().filter(record) is True
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-42"  # type: ignore[attr-defined]


def test_filter_defaults_outside_a_request() -> None:
    record = _record()
    RequestContextFilter().filter(record)
    assert record.request_id == "-"  # type: ignore[attr-defined]


def test_filter_keeps_explicit_request_id() -> None:
    record = _record(request_id="explicit")
    RequestContextFilter().filter(record)
    assert record.request_id == "explicit"  # type: ignore[attr-defined]
