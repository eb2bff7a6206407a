"""
Unit tests for diagnostics and access logging.
"""

import json
import logging

from tinyhttp.diagnostics import RequestLog, log_access, log_event, log_failed_call


def make_entry(**overrides) -> RequestLog:
    fields = dict(
        client_ip="127.0.0.1",
        target="/about.htm",
        route="static",
        status_code=200,
        content_length=42,
        duration_ms=1.234,
        timestamp="15/Jan/2026:12:30:45 +0000",
    )
    fields.update(overrides)
    return RequestLog(**fields)


class TestDiagnostics:
    """Tests for the two diagnostic call shapes."""

    def test_log_event(self, caplog):
        """Test a plain message at the given level."""
        caplog.set_level(logging.DEBUG, logger="tinyhttp")

        log_event(logging.getLogger("tinyhttp.test"), "Invalid line 3", logging.WARNING)

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].getMessage() == "Invalid line 3"

    def test_log_failed_call(self, caplog):
        """Test the call name, return code and errno are all logged."""
        caplog.set_level(logging.DEBUG, logger="tinyhttp")

        log_failed_call(logging.getLogger("tinyhttp.test"), "accept()", -1, errno=22)

        assert caplog.records[-1].levelno == logging.ERROR
        assert caplog.records[-1].getMessage() == "accept() failed (returned -1, errno=22)"

    def test_log_failed_call_without_errno(self, caplog):
        """Test a failure with a return code only."""
        caplog.set_level(logging.DEBUG, logger="tinyhttp")

        log_failed_call(logging.getLogger("tinyhttp.test"), "write()", 3, level=logging.WARNING)

        assert caplog.records[-1].getMessage() == "write() failed (returned 3)"


class TestRequestLog:
    """Tests for access log entries."""

    def test_text_format(self):
        """Test the Apache-style line."""
        line = make_entry().to_text()

        assert line == '127.0.0.1 - - [15/Jan/2026:12:30:45 +0000] "GET /about.htm" 200 42 1.23ms'

    def test_text_format_without_response(self):
        """Test invalid requests show a dash for the status."""
        line = make_entry(target="-", route="invalid", status_code=0, content_length=0).to_text()

        assert '"GET -" - 0' in line

    def test_json_format(self, caplog):
        """Test JSON access lines."""
        caplog.set_level(logging.INFO, logger="tinyhttp.access")

        log_access(make_entry(), "json")

        record = json.loads(caplog.records[-1].getMessage())
        assert record["route"] == "static"
        assert record["status_code"] == 200
        assert record["duration_ms"] == 1.23

    def test_access_logger_name(self, caplog):
        """Test access lines go to their own logger."""
        caplog.set_level(logging.INFO, logger="tinyhttp.access")

        log_access(make_entry())

        assert caplog.records[-1].name == "tinyhttp.access"
