"""
Unit tests for alarmd.bootstrap.build_app_system.

The composed system is built from a temporary config.yaml; the runtime is
never started, so no network connection is attempted.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from alarmd.bootstrap import build_app_system
from alarmd.domain.models import Timezone
from alarmd.notification.pushover_notifier import PushoverTransport


@pytest.fixture(autouse=True)
def tokens(monkeypatch) -> None:
    for key in ("TOKEN_APP", "TOKEN_USER", "LOCATION_SQLITE", "LOG_LEVEL"):
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    monkeypatch.setenv("TOKEN_APP", "app")
    monkeypatch.setenv("TOKEN_USER", "user")


def test_build_app_system_wires_components(tmp_path: Path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        f"storage: {{path: {tmp_path / 'data' / 'alarms.db'}}}\n"
        "timezone: Europe/London\n"
        "schedule: {fire_repeat: 2, fire_interval_s: 1.0}\n",
        encoding="utf-8",
    )
    restarts = []

    wiring = build_app_system(str(cfg_path), restart_hook=lambda: restarts.append(1))
    try:
        assert wiring.store.get_timezone() == Timezone("Europe/London")
        assert wiring.store.get_random_phrase()
        assert wiring.schedule.schedule.is_alive()
        assert wiring.schedule.schedule.timezone == Timezone("Europe/London")

        dispatcher = wiring.controller.dispatcher
        assert isinstance(dispatcher.transport, PushoverTransport)
        assert (dispatcher.token_app, dispatcher.token_user) == ("app", "user")

        wiring.controller.restart_hook()
        assert restarts == [1]
        assert not wiring.runtime.stopped
    finally:
        wiring.runtime.stop()
        wiring.store.close()

    assert not wiring.schedule.schedule.is_alive()
