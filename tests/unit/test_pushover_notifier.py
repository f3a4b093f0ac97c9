"""
Unit tests for alarmd.notification.pushover_notifier.

These tests validate Pushover delivery using mocked HTTP calls:
- correct form fields, URL and options passed to requests.post
- HTTP errors and network failures surface as TransportError

No real network requests are made.
"""

from __future__ import annotations

from typing import Any, Dict
from unittest.mock import MagicMock

import pytest
import requests

from alarmd.domain.errors import TransportError
from alarmd.domain.models import Priority
from alarmd.notification.base import PushAck, render_params
from alarmd.notification.pushover_notifier import PUSHOVER_URL, PushoverConfig, PushoverTransport


def test_render_params() -> None:
    assert render_params("a", "u", "hi", Priority.HIGH) == {
        "token": "a",
        "user": "u",
        "message": "hi",
        "priority": "1",
    }


def test_send_posts_form_fields(monkeypatch) -> None:
    """
    send() should POST the four form fields and return the provider ack.
    """
    mock_response = MagicMock()
    mock_response.raise_for_status.return_value = None
    mock_response.json.return_value = {"status": 1, "request": "abc"}

    def fake_post(url: str, data: Dict[str, Any], headers: Dict[str, str], timeout: float, verify: bool):
        assert url == PUSHOVER_URL
        assert data == {"token": "app", "user": "user", "message": "wake", "priority": "1"}
        assert headers["User-Agent"].startswith("alarmd/")
        assert timeout == 2.0
        assert verify is True
        return mock_response

    monkeypatch.setattr("requests.post", fake_post)

    ack = PushoverTransport(PushoverConfig(timeout_s=2.0)).send("app", "user", "wake", Priority.HIGH)

    assert ack == PushAck(status=1, request="abc")
    mock_response.raise_for_status.assert_called_once()


def test_send_normal_priority(monkeypatch) -> None:
    captured: Dict[str, Any] = {}
    mock_response = MagicMock()
    mock_response.json.return_value = {"status": 1}

    def fake_post(url: str, data: Dict[str, Any], **kwargs):
        captured.update(data)
        return mock_response

    monkeypatch.setattr("requests.post", fake_post)

    PushoverTransport().send("app", "user", "test", Priority.NORMAL)

    assert captured["priority"] == "0"


def test_http_error_becomes_transport_error(monkeypatch) -> None:
    mock_response = MagicMock()
    mock_response.raise_for_status.side_effect = requests.HTTPError("400 Bad Request")

    monkeypatch.setattr("requests.post", lambda *a, **k: mock_response)

    with pytest.raises(TransportError, match="400"):
        PushoverTransport().send("app", "user", "wake", Priority.HIGH)


def test_network_error_becomes_transport_error(monkeypatch) -> None:
    def fake_post(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr("requests.post", fake_post)

    with pytest.raises(TransportError):
        PushoverTransport().send("app", "user", "wake", Priority.HIGH)


def test_non_json_body_becomes_transport_error(monkeypatch) -> None:
    mock_response = MagicMock()
    mock_response.json.side_effect = ValueError("not json")
    monkeypatch.setattr("requests.post", lambda *a, **k: mock_response)

    with pytest.raises(TransportError):
        PushoverTransport().send("app", "user", "wake", Priority.HIGH)
