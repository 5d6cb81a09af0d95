import json
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))
os.environ.setdefault("DB_URL", "sqlite://")

from donation_app.core.logging import JsonLogFormatter
from donation_app.middlewares import actor_ctx_var, request_id_ctx_var
from donation_app.middlewares.request_id import _incoming_request_id


def test_json_formatter_includes_context_and_extra_data():
    record = logging.LogRecord("donation_app.test", logging.INFO, __file__, 1, "donation.%s", ("saved",), None)
    record.extra_data = {"donation_id": 7}

    request_token = request_id_ctx_var.set("req-123")
    actor_token = actor_ctx_var.set("partner@example.org")
    try:
        payload = json.loads(JsonLogFormatter().format(record))
    finally:
        request_id_ctx_var.reset(request_token)
        actor_ctx_var.reset(actor_token)

    assert payload["message"] == "donation.saved"
    assert payload["level"] == "INFO"
    assert payload["request_id"] == "req-123"
    assert payload["actor"] == "partner@example.org"
    assert payload["donation_id"] == 7
    assert payload["timestamp"].endswith("Z")


def test_extra_data_cannot_replace_reserved_fields():
    record = logging.LogRecord("donation_app.test", logging.WARNING, __file__, 1, "donation.update_outgoing.failed", None, None)
    record.extra_data = {"message": "overwritten", "level": "DEBUG", "deltas": {3: (-2, 0)}}

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["message"] == "donation.update_outgoing.failed"
    assert payload["level"] == "WARNING"
    assert payload["deltas"] == {"3": [-2, 0]}
    assert "request_id" not in payload


def test_request_id_is_reused_only_when_safe():
    assert _incoming_request_id("abc-123") == "abc-123"
    generated = _incoming_request_id("bad id\nwith newline")
    assert generated != "bad id\nwith newline"
    assert len(generated) == 32
    assert len(_incoming_request_id(None)) == 32
