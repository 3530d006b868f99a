"""Tests for observability utilities."""

import json
import logging
from logging.handlers import TimedRotatingFileHandler

from warelay.observability.correlation import correlation_scope, get_correlation_id
from warelay.observability.logging import JsonFormatter, configure_logging, get_logger
from warelay.observability.redaction import (
    hash_identifier,
    redact_string,
    redact_value,
    safe_log_context,
)


class TestRedaction:
    def test_redact_phone_number(self):
        result = redact_string("Call me at +51 987 654 321")
        assert "987" not in result
        assert "[REDACTED]" in result

    def test_redact_recipient_identifier(self):
        assert "51987654321" not in redact_string("sending to 51987654321")

    def test_redact_chat_id(self):
        result = redact_string("to 51987654321@c.us and 5511999998888@s.whatsapp.net")
        assert "@c.us" not in result
        assert "whatsapp.net" not in result

    def test_redact_email(self):
        assert "user@example.com" not in redact_string("Email: user@example.com")

    def test_short_numbers_kept(self):
        assert redact_string("HTTP 400") == "HTTP 400"

    def test_redact_value_dict_only_keys(self):
        result = redact_value({"numbers": "987654321", "message": "hi"})
        assert "987654321" not in result
        assert "numbers" in result

    def test_redact_value_list_only_len(self):
        assert redact_value(["51987654321", "51123456789"]) == "list(len=2)"

    def test_safe_log_context(self):
        ctx = safe_log_context(phone="+5511999998888", count=42, ok=True, missing=None)
        assert "[REDACTED]" in ctx["phone"]
        assert ctx["count"] == "42"
        assert ctx["ok"] == "true"
        assert ctx["missing"] == "null"

    def test_hash_identifier_stable_and_short(self):
        assert hash_identifier("51987654321@c.us") == hash_identifier("51987654321@c.us")
        assert len(hash_identifier("51987654321@c.us")) == 12
        assert hash_identifier("a") != hash_identifier("b")


class TestJsonLogging:
    def _record(self, **extra):
        record = logging.LogRecord("warelay.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_format_includes_core_fields(self):
        payload = json.loads(JsonFormatter().format(self._record()))
        assert payload["level"] == "INFO"
        assert payload["logger"] == "warelay.test"
        assert payload["message"] == "hello world"
        assert "timestamp" in payload
        assert "correlationId" not in payload

    def test_format_includes_correlation_and_extra_fields(self):
        with correlation_scope("cid-1"):
            line = JsonFormatter().format(self._record(extra_fields={"to_hash": "abc"}))
        payload = json.loads(line)
        assert payload["correlationId"] == "cid-1"
        assert payload["to_hash"] == "abc"

    def test_correlation_scope_resets(self):
        with correlation_scope() as cid:
            assert get_correlation_id() == cid
        assert get_correlation_id() == ""

    def test_loggers_share_warelay_root(self):
        assert get_logger("warelay.domain.dispatch").name == "warelay.domain.dispatch"
        assert get_logger("scripts").name == "warelay.scripts"

    def test_configure_logging_adds_rotating_file(self, tmp_path):
        root = configure_logging("DEBUG", str(tmp_path / "logs"))
        try:
            handlers = [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]
            assert len(handlers) == 1
            assert root.level == logging.DEBUG

            # idempotent
            configure_logging("INFO", str(tmp_path / "logs"))
            assert len([h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]) == 1
        finally:
            for handler in [h for h in root.handlers if isinstance(h, TimedRotatingFileHandler)]:
                root.removeHandler(handler)
                handler.close()
            root.setLevel(logging.INFO)
