from __future__ import annotations

import json
from typing import Any, Dict, Iterator, Optional

from alarmd.config.settings import DEFAULTS
from alarmd.domain.commands import (
    AlarmAdd,
    AlarmDelete,
    AlarmDismissCommand,
    AlarmUpdate,
    Command,
    Envelope,
    Response,
    RestartCommand,
    StatusCommand,
    TestRequest,
    TimeZoneCommand,
)
from alarmd.domain.errors import ValidationError
from alarmd.domain.models import is_valid_zone


def _int_in_range(body: Dict[str, Any], key: str, lo: int, hi: int) -> int:
    """
    Read a JSON integer field and check it lies in ``lo..=hi``.

    Booleans and numeric strings are rejected: ``"6"`` is not an hour.

    Raises
    ------
    ValidationError
        If the field is missing, not an integer or out of range.
    """
    if key not in body:
        raise ValidationError(f"missing field `{key}`")
    v = body[key]
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValidationError(f"invalid type for `{key}`, expected integer")
    if not lo <= v <= hi:
        raise ValidationError(f"{v}, not in range {lo}..={hi}")
    return v


def _message_text(body: Dict[str, Any]) -> str:
    v = body["message"]
    if not isinstance(v, str):
        raise ValidationError("invalid type for `message`, expected string")
    if len(v) > DEFAULTS.max_message_chars:
        raise ValidationError("message too long")
    return v


def _optional_message(body: Dict[str, Any]) -> Optional[str]:
    """Read an optional ``message``; empty strings count as absent."""
    if body.get("message") is None:
        return None
    return _message_text(body) or None


def _required_message(body: Dict[str, Any]) -> str:
    if body.get("message") is None:
        raise ValidationError("missing field `message`")
    v = _message_text(body)
    if not v:
        raise ValidationError("message must not be empty")
    return v


def _body(data: Dict[str, Any]) -> Dict[str, Any]:
    body = data.get("body")
    if not isinstance(body, dict):
        raise ValidationError("missing or invalid `body`")
    return body


def _decode_command(data: Dict[str, Any]) -> Command:
    """
    Decode the ``data`` member of an inbound envelope into a command.

    Supported command names
    -----------------------
    - ``alarm_add`` / ``alarm_update`` -> body ``{hour, minute, message?}``
    - ``alarm_delete``, ``alarm_dismiss``, ``status``, ``restart`` -> no body
    - ``time_zone`` -> body ``{zone}``
    - ``test_request`` -> body ``{message}``

    Raises
    ------
    ValidationError
        If the name is unknown or the body fails validation.
    """
    name = data.get("name")

    if name in ("alarm_add", "alarm_update"):
        body = _body(data)
        hour = _int_in_range(body, "hour", 0, 23)
        minute = _int_in_range(body, "minute", 0, 59)
        message = _optional_message(body)
        cls = AlarmAdd if name == "alarm_add" else AlarmUpdate
        return cls(hour=hour, minute=minute, message=message)

    if name == "alarm_delete":
        return AlarmDelete()
    if name == "alarm_dismiss":
        return AlarmDismissCommand()
    if name == "status":
        return StatusCommand()
    if name == "restart":
        return RestartCommand()

    if name == "time_zone":
        zone = _body(data).get("zone")
        if not isinstance(zone, str) or not is_valid_zone(zone):
            raise ValidationError("unknown timezone")
        return TimeZoneCommand(zone=zone)

    if name == "test_request":
        return TestRequest(message=_required_message(_body(data)))

    raise ValidationError(f"Unknown command: {name}")


def iter_json_objects(text: str) -> Iterator[Dict[str, Any]]:
    """
    Yield one or more JSON objects found in a string.

    This function is robust against inputs where multiple JSON objects are
    accidentally concatenated without delimiters, e.g.::

        '{"a": 1}{"b": 2}'

    Only dictionary objects are yielded (non-dict JSON like lists/strings are ignored).

    Raises
    ------
    json.JSONDecodeError
        If the text is not valid JSON (a ``ValueError`` subclass).
    """
    s = text.strip()
    if not s:
        return

    dec = json.JSONDecoder()
    i = 0
    n = len(s)

    while i < n:
        while i < n and s[i].isspace():
            i += 1
        if i >= n:
            break

        obj, end = dec.raw_decode(s, i)
        if isinstance(obj, dict):
            yield obj
        i = end


def decode_envelope(line: str) -> Envelope:
    """
    Decode an NDJSON line into a command envelope.

    Lines whose envelope is well formed but whose command fails validation
    still decode: the returned :class:`Envelope` has ``command=None`` and
    ``error`` set, so the caller can answer the peer with an error reply
    carrying the same ``unique`` id.

    Parameters
    ----------
    line
        Input line containing one (or more concatenated) JSON objects; the
        first object is used.

    Returns
    -------
    Envelope
        Decoded envelope.

    Raises
    ------
    ValueError
        If the line is not JSON, or lacks a ``data`` object or a string
        ``unique`` id.
    """
    for obj in iter_json_objects(line):
        data = obj.get("data")
        unique = obj.get("unique")
        if not isinstance(data, dict):
            raise ValueError("Envelope has no `data` object")
        if not isinstance(unique, str):
            raise ValueError("Envelope has no string `unique` id")
        try:
            return Envelope(command=_decode_command(data), unique=unique)
        except ValidationError as e:
            return Envelope(command=None, unique=unique, error=e.reason)

    raise ValueError("No JSON object found in line")


def encode_response(resp: Response) -> bytes:
    """Serialize a response as one UTF-8 NDJSON line (newline included)."""
    return (json.dumps(resp.to_dict(), separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")
