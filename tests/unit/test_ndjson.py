"""
Unit tests for alarmd.transport.ndjson.

These tests validate:
- iter_json_objects() handles single and concatenated JSON objects
- decode_envelope() maps every command name onto its dataclass
- body validation failures still yield an envelope carrying the error and
  the peer's ``unique`` id
- malformed envelopes raise ValueError
- encode_response() produces one newline-terminated JSON line
"""

from __future__ import annotations

import json

import pytest

from alarmd.domain.commands import (
    AlarmAdd,
    AlarmDelete,
    AlarmDismissCommand,
    AlarmUpdate,
    Response,
    RestartCommand,
    StatusCommand,
    TestRequest,
    TimeZoneCommand,
)
from alarmd.transport.ndjson import decode_envelope, encode_response, iter_json_objects


def _line(name: str, body=None, unique: str = "u1") -> str:
    data = {"name": name}
    if body is not None:
        data["body"] = body
    return json.dumps({"data": data, "unique": unique})


def test_iter_json_objects_single_and_concatenated() -> None:
    assert list(iter_json_objects('{"a": 1}')) == [{"a": 1}]
    assert list(iter_json_objects('{"a": 1}{"b": 2}')) == [{"a": 1}, {"b": 2}]
    assert list(iter_json_objects("   ")) == []
    assert list(iter_json_objects('[1, 2] {"a": 1}')) == [{"a": 1}]


@pytest.mark.parametrize(
    "line, expected",
    [
        (_line("alarm_add", {"hour": 6, "minute": 15}), AlarmAdd(6, 15)),
        (_line("alarm_add", {"hour": 6, "minute": 15, "message": "hi"}), AlarmAdd(6, 15, "hi")),
        (_line("alarm_add", {"hour": 6, "minute": 15, "message": ""}), AlarmAdd(6, 15, None)),
        (_line("alarm_update", {"hour": 0, "minute": 59}), AlarmUpdate(0, 59)),
        (_line("alarm_delete"), AlarmDelete()),
        (_line("alarm_dismiss"), AlarmDismissCommand()),
        (_line("status"), StatusCommand()),
        (_line("restart"), RestartCommand()),
        (_line("time_zone", {"zone": "Europe/Berlin"}), TimeZoneCommand("Europe/Berlin")),
        (_line("test_request", {"message": "ping"}), TestRequest("ping")),
    ],
)
def test_decode_commands(line: str, expected) -> None:
    env = decode_envelope(line)
    assert env.command == expected
    assert env.unique == "u1"
    assert env.error is None


@pytest.mark.parametrize(
    "line, reason",
    [
        (_line("alarm_add"), "missing or invalid `body`"),
        (_line("alarm_add", ""), "missing or invalid `body`"),
        (_line("alarm_add", {}), "missing field `hour`"),
        (_line("alarm_add", {"minute": 6}), "missing field `hour`"),
        (_line("alarm_add", {"hour": "6", "minute": 4}), "invalid type for `hour`, expected integer"),
        (_line("alarm_add", {"hour": True, "minute": 4}), "invalid type for `hour`, expected integer"),
        (_line("alarm_update", {"hour": 6}), "missing field `minute`"),
        (_line("alarm_update", {"hour": 6, "minute": "4"}), "invalid type for `minute`, expected integer"),
        (_line("alarm_update", {"hour": 6, "minute": 60}), "60, not in range 0..=59"),
        (_line("alarm_add", {"hour": 24, "minute": 0}), "24, not in range 0..=23"),
        (_line("alarm_add", {"hour": 6, "minute": 0, "message": "x" * 101}), "message too long"),
        (_line("test_request", {"message": "x" * 101}), "message too long"),
        (_line("test_request", {}), "missing field `message`"),
        (_line("test_request", {"message": ""}), "message must not be empty"),
        (_line("test_request", {"message": 5}), "invalid type for `message`, expected string"),
        (_line("time_zone", {"zone": "Mars/Base"}), "unknown timezone"),
        (_line("time_zone", {"zone": 3}), "unknown timezone"),
        (_line("launch_rockets"), "Unknown command: launch_rockets"),
    ],
)
def test_invalid_bodies_yield_error_envelope(line: str, reason: str) -> None:
    env = decode_envelope(line)
    assert env.command is None
    assert env.error == reason
    assert env.unique == "u1"


def test_message_of_exactly_100_chars_is_accepted() -> None:
    env = decode_envelope(_line("test_request", {"message": "é" * 100}))
    assert env.command == TestRequest("é" * 100)


@pytest.mark.parametrize(
    "line",
    [
        "",
        "{}",
        "not json",
        '{"data": {"name": "status"}}',
        '{"data": {"name": "status"}, "unique": 1}',
        '{"data": {"name": "status"}, "unique": true}',
        '{"data": "status", "unique": "u"}',
    ],
)
def test_malformed_envelopes_raise(line: str) -> None:
    with pytest.raises(ValueError):
        decode_envelope(line)


def test_encode_response() -> None:
    raw = encode_response(Response.error("nope", "u9"))
    assert raw.endswith(b"\n")
    assert raw.count(b"\n") == 1
    assert json.loads(raw) == {"data": {"name": "error", "data": "nope"}, "unique": "u9"}

    raw = encode_response(Response.status({"alarm": None}, "u1"))
    assert json.loads(raw)["data"] == {"name": "status", "data": {"alarm": None}}
