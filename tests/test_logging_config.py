"""
Tests for log redaction and formatting.
"""

import json
import logging

import pytest


@pytest.mark.unit
class TestRedaction:
    def test_bearer_token(self):
        from aichat.logging_config import redact_sensitive_data

        result = redact_sensitive_data("Authorization: Bearer sk-abcdef123456")

        assert "sk-abcdef123456" not in result
        assert "[REDACTED]" in result

    def test_redis_password(self):
        from aichat.logging_config import redact_sensitive_data

        result = redact_sensitive_data("connecting to redis://:hunter2pass@localhost:6379/0")

        assert "hunter2pass" not in result

    def test_plain_text_untouched(self):
        from aichat.logging_config import redact_sensitive_data

        assert redact_sensitive_data("Enqueued seq 3 (tagged)") == "Enqueued seq 3 (tagged)"


@pytest.mark.unit
class TestJSONFormatter:
    def test_extra_fields_included(self):
        from aichat.logging_config import JSONFormatter

        record = logging.LogRecord(
            name="aichat.oracle.completion",
            level=logging.WARNING,
            pathname=__file__,
            lineno=1,
            msg="Completion attempt 1 failed",
            args=(),
            exc_info=None,
        )
        record.seq = 4
        record.attempt = 1

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "WARNING"
        assert data["seq"] == 4
        assert data["attempt"] == 1
