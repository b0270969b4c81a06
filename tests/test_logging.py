import io
import json
import logging

import pytest

from ideaboard.core.logging import JsonFormatter, RequestContextFilter, configure_logging
from ideaboard.core.request_context import (
    principal_id_ctx,
    request_id_ctx,
    resolve_request_id,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(message: str) -> logging.LogRecord:
    return logging.LogRecord("ideaboard.test", logging.INFO, __file__, 1, message, (), None)


@pytest.mark.parametrize("raw", ["req-promote-twice", "abc.DEF_123:9"])
def test_plain_request_ids_are_kept(raw):
    assert resolve_request_id(raw) == raw


@pytest.mark.parametrize("raw", [None, "", "has spaces", "line\nbreak", "x" * 129])
def test_unusable_request_ids_are_replaced(raw):
    resolved = resolve_request_id(raw)

    assert resolved != raw
    assert len(resolved) == 32


def test_records_carry_request_and_user():
    request_token = request_id_ctx.set("req-7")
    principal_token = principal_id_ctx.set("42")
    try:
        record = _record("vote cast")
        RequestContextFilter().filter(record)
    finally:
        principal_id_ctx.reset(principal_token)
        request_id_ctx.reset(request_token)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["request_id"] == "req-7"
    assert payload["user_id"] == "42"
    assert payload["message"] == "vote cast"
    assert "exception" not in payload


def test_json_lines_include_exception_type(restore_root_logger):
    stream = io.StringIO()
    configure_logging("INFO", "json", stream=stream)

    try:
        raise LookupError("missing row")
    except LookupError:
        logging.getLogger("ideaboard.test").exception("lookup failed")

    payload = json.loads(stream.getvalue().strip().splitlines()[-1])
    assert payload["level"] == "ERROR"
    assert payload["request_id"] == "-"
    assert payload["exception_type"] == "LookupError"


def test_text_format_and_quiet_library_loggers(restore_root_logger):
    stream = io.StringIO()
    configure_logging("debug", "text", stream=stream)

    logging.getLogger("ideaboard.test").debug("recompute done")
    logging.getLogger("sqlalchemy.engine").info("SELECT 1")

    output = stream.getvalue()
    assert "[req=- user=-] recompute done" in output
    assert "SELECT 1" not in output
