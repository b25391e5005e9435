# src/convention_messenger/tests/test_logging/test_formatters.py
import json
import logging
import uuid

from convention_messenger.core.logging.formatters import ColorFormatter, JsonFormatter


def make_record():
    return logging.LogRecord("convention_messenger", logging.INFO, __file__, 10, "hello %s", ("tester",), None)


def test_json_formatter_basic_fields():
    rec = make_record()
    rec.team_id = "team-1"  # simulate extra=
    rec.request_id = "req-1"

    data = json.loads(JsonFormatter(env="testing", service="svc").format(rec))

    assert data["message"] == "hello tester"
    assert data["level"] == "INFO"
    assert data["service"] == "svc"
    assert data["env"] == "testing"
    assert "timestamp" in data
    assert data["request_id"] == "req-1"
    assert data["team_id"] == "team-1"
    assert "version" in data


def test_json_formatter_stringifies_uuid_extras():
    rec = make_record()
    edition_id = uuid.uuid4()
    rec.edition_id = edition_id

    data = json.loads(JsonFormatter(env="dev").format(rec))

    assert data["edition_id"] == str(edition_id)
    assert data["service"] == "convention-messenger"


def test_json_formatter_skips_standard_record_attributes():
    data = json.loads(JsonFormatter().format(make_record()))
    # LogRecord internals are not repeated as extras
    assert "args" not in data
    assert "msg" not in data
    assert "levelno" not in data


def test_color_formatter_appends_extras():
    rec = make_record()
    rec.request_id = "req-9"
    rec.conversations_created = 3

    line = ColorFormatter().format(rec)

    assert "hello tester" in line
    assert "req-9" in line
    assert "conversations_created=3" in line
    assert "request_id=" not in line
