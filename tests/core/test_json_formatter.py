from __future__ import annotations

import json
import logging

from soapscribe.core.logging import JsonFormatter


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="soapscribe.sessions",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Suggestion created",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_known_fields_and_nulls_for_missing() -> None:
    payload = json.loads(JsonFormatter().format(_record(session_id="abc", request_token=3)))

    assert payload["logger"] == "soapscribe.sessions"
    assert payload["level"] == "INFO"
    assert payload["message"] == "Suggestion created"
    assert payload["session_id"] == "abc"
    assert payload["request_token"] == 3
    assert payload["request_id"] is None
    assert payload["status_code"] is None


def test_drops_unlisted_extra_fields() -> None:
    payload = json.loads(JsonFormatter().format(_record(note_text="SUBJECTIVE: chest pain")))

    assert "note_text" not in payload
    assert "chest pain" not in json.dumps(payload)
