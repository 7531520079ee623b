"""Tests for structured logging and request correlation."""
import json
import logging

from common_lib.observability import CustomJsonFormatter, get_request_id, request_id_ctx


def _format(message: str) -> dict:
    formatter = CustomJsonFormatter("%(levelname)s %(name)s %(message)s")
    record = logging.LogRecord("search_api.test", logging.INFO, __file__, 1, message, None, None)
    return json.loads(formatter.format(record))


def test_default_request_id():
    assert get_request_id() == "system"
    assert _format("boot")["request_id"] == "system"


def test_request_id_from_context():
    token = request_id_ctx.set("abc-123")
    try:
        payload = _format("searching")
    finally:
        request_id_ctx.reset(token)

    assert payload["request_id"] == "abc-123"
    assert payload["message"] == "searching"
    assert payload["levelname"] == "INFO"
    assert payload["name"] == "search_api.test"
    assert "timestamp" in payload
    assert payload["service"]
