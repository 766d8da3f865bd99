"""Tests for the structured log formatters."""
import json
import logging

from log import JSONFormatter, TextFormatter, get_logger, short_hash


def _record(**extra):
    record = logging.LogRecord("yuedu.test", logging.INFO, __file__, 1, "Analysis cache hit", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_keeps_whitelisted_fields():
    line = JSONFormatter().format(_record(component="analysis", text_hash="abcd1234", secret="x"))
    entry = json.loads(line)
    assert entry["msg"] == "Analysis cache hit"
    assert entry["level"] == "info"
    assert entry["component"] == "analysis"
    assert entry["text_hash"] == "abcd1234"
    assert "secret" not in entry


def test_text_formatter_appends_fields():
    line = TextFormatter().format(_record(component="store", count=3))
    assert line.endswith("Analysis cache hit component=store count=3")


def test_get_logger_attaches_one_handler():
    first = get_logger("yuedu.test.handlers")
    second = get_logger("yuedu.test.handlers")
    assert first is second
    assert len(second.handlers) == 1


def test_short_hash():
    assert short_hash("0123456789abcdef") == "01234567"
    assert short_hash("") == ""
