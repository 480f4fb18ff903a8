"""Tests for log formatting."""

import json
import logging
import sys

from restodesk.core.logging import DevFormatter, JSONFormatter, record_context


def _record(msg="OTP issued", extra=None, exc_info=None):
    logger = logging.getLogger("restodesk.test")
    return logger.makeRecord(
        logger.name, logging.INFO, __file__, 1, msg, (), exc_info, extra=extra
    )


def test_record_context_only_returns_extras():
    record = _record(extra={"account_id": "abc", "email": "a***e@example.com"})
    assert record_context(record) == {"account_id": "abc", "email": "a***e@example.com"}
    assert record_context(_record()) == {}


def test_json_formatter_emits_extras_as_keys():
    record = _record(extra={"account_id": "abc", "path": "/auth/login"})
    entry = json.loads(JSONFormatter().format(record))
    assert entry["message"] == "OTP issued"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "restodesk.test"
    assert entry["account_id"] == "abc"
    assert entry["path"] == "/auth/login"


def test_json_formatter_keeps_fixed_fields_over_extras():
    record = _record(extra={"level": "spoofed"})
    entry = json.loads(JSONFormatter().format(record))
    assert entry["level"] == "INFO"


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(msg="Unhandled error", exc_info=sys.exc_info())
    entry = json.loads(JSONFormatter().format(record))
    assert "RuntimeError: boom" in entry["exception"]


def test_dev_formatter_appends_sorted_pairs():
    record = _record(extra={"path": "/auth/login", "account_id": "abc"})
    line = DevFormatter().format(record)
    assert line.endswith("| OTP issued | account_id=abc path=/auth/login")


def test_dev_formatter_without_extras():
    line = DevFormatter().format(_record())
    assert line.endswith("| restodesk.test | OTP issued")
