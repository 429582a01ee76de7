"""
Tests for logging configuration
"""
import json
import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from wellness_lending.config.logging import CustomJsonFormatter, build_logging_config
from wellness_lending.config.settings import Settings


def _record(**extra):
    record = logging.LogRecord("wellness_lending.loans", logging.WARNING, __file__, 1, "Loan overdue", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_adds_context_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s", environment="test")

    payload = json.loads(formatter.format(_record(loan_id="L1", admin_id="A1")))

    assert isinstance(formatter, JsonFormatter)
    assert payload["message"] == "Loan overdue"
    assert payload["level"] == "WARNING"
    assert payload["logger"] == "wellness_lending.loans"
    assert payload["environment"] == "test"
    assert payload["loan_id"] == "L1"
    assert payload["admin_id"] == "A1"
    assert "timestamp" in payload


def test_json_formatter_includes_exception():
    formatter = CustomJsonFormatter("%(message)s")
    try:
        raise ValueError("boom")
    except ValueError:
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

    payload = json.loads(formatter.format(record))

    assert payload["exception"]["type"] == "ValueError"
    assert payload["exception"]["message"] == "boom"


def test_console_formatter_selection():
    assert build_logging_config(Settings(LOG_JSON=True))["handlers"]["console"]["formatter"] == "json"
    assert build_logging_config(Settings(ENVIRONMENT="development"))["handlers"]["console"]["formatter"] == "colored"
    assert build_logging_config(Settings(ENVIRONMENT="production"))["handlers"]["console"]["formatter"] == "standard"


def test_file_handlers_need_a_log_dir(tmp_path):
    assert "json_file" not in build_logging_config(Settings(LOG_DIR=None))["handlers"]

    handlers = build_logging_config(Settings(LOG_DIR=str(tmp_path)))["handlers"]

    assert handlers["json_file"]["formatter"] == "json"
    assert handlers["file"]["filename"] == str(tmp_path / "app.log")
