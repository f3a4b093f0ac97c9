"""
Unit tests for alarmd.services.controller.RemoteController.

These tests validate command orchestration:
- add/update/delete/time_zone persist and then send Reset, replying with status
- update/delete are refused inside the edit blackout of the *existing* alarm
- validation failures become error replies carrying the peer's unique id
- dismiss is forwarded as AlarmDismiss
- test pushes go to the dispatcher with class TEST; rejections reply with error
- restart invokes the restart hook
- storage write failures become error replies instead of escaping

No threads or network I/O are involved: the store is a real in-memory
SqliteStore, the actor handle and dispatcher are fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo

import pytest

from alarmd.core.state.sqlite_store import SqliteStore
from alarmd.domain.commands import (
    AlarmAdd,
    AlarmDelete,
    AlarmDismissCommand,
    AlarmUpdate,
    Envelope,
    RestartCommand,
    StatusCommand,
    TestRequest,
    TimeZoneCommand,
)
from alarmd.domain.errors import TooManyRequests, TransportError
from alarmd.domain.messages import AlarmDismiss, ControlMessage, Reset
from alarmd.domain.models import Alarm, DispatchProgress, RequestClass, Timezone
from alarmd.notification.base import PushAck
from alarmd.services.controller import NO_ALARM, TOO_CLOSE, RemoteController


@dataclass
class FakeHandle:
    """Records control messages sent to the actor."""

    sent: List[ControlMessage] = field(default_factory=list)
    accept: bool = True

    def send(self, msg: ControlMessage) -> bool:
        self.sent.append(msg)
        return self.accept

    def progress(self) -> DispatchProgress:
        return DispatchProgress(running=True, attempt=2, total=40, message="wake")


@dataclass
class FakeDispatcher:
    calls: List[tuple] = field(default_factory=list)
    fail_with: Optional[Exception] = None

    def dispatch(self, request_class: RequestClass, message: str, index: Optional[int] = None) -> PushAck:
        self.calls.append((request_class, message))
        if self.fail_with is not None:
            raise self.fail_with
        return PushAck(status=1)


@dataclass
class Rig:
    store: SqliteStore
    handle: FakeHandle
    dispatcher: FakeDispatcher
    controller: RemoteController
    restarts: List[bool]


def _clock_at(hour: int, minute: int):
    def clock(tz: Timezone) -> datetime:
        return datetime(2026, 3, 1, hour, minute, tzinfo=ZoneInfo(tz.zone_name))

    return clock


@pytest.fixture
def rig() -> Rig:
    store = SqliteStore(":memory:")
    handle = FakeHandle()
    dispatcher = FakeDispatcher()
    restarts: List[bool] = []
    controller = RemoteController(
        store=store,
        schedule=handle,
        dispatcher=dispatcher,
        restart_hook=lambda: restarts.append(True),
        clock=_clock_at(12, 0),
    )
    yield Rig(store, handle, dispatcher, controller, restarts)
    store.close()


def _env(cmd, unique: str = "u1") -> Envelope:
    return Envelope(command=cmd, unique=unique)


def test_add_persists_resets_and_replies_status(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(_env(AlarmAdd(6, 15, "rise")))

    assert rig.store.get_alarm() == Alarm(6, 15, "rise")
    assert rig.handle.sent == [Reset()]
    assert resp.name == "status"
    assert resp.unique == "u1"
    assert resp.data["alarm"] == {"hour": 6, "minute": 15, "message": "rise"}
    assert resp.data["dispatch"]["attempt"] == 2


def test_add_when_alarm_exists_replies_error(rig: Rig) -> None:
    rig.store.add_alarm(6, 15)

    resp = rig.controller.handle_envelope(_env(AlarmAdd(7, 0), "u7"))

    assert resp.name == "error"
    assert resp.data == "only one alarm allowed"
    assert resp.unique == "u7"
    assert rig.handle.sent == []


def test_update_outside_blackout(rig: Rig) -> None:
    rig.store.add_alarm(18, 15)

    resp = rig.controller.handle_envelope(_env(AlarmUpdate(19, 0)))

    assert resp.name == "status"
    assert rig.store.get_alarm() == Alarm(19, 0)
    assert rig.handle.sent == [Reset()]


def test_update_inside_blackout_is_refused(rig: Rig) -> None:
    rig.store.add_alarm(13, 0)

    resp = rig.controller.handle_envelope(_env(AlarmUpdate(20, 0)))

    assert resp.name == "error"
    assert resp.data == TOO_CLOSE == "Current time too close to alarm to edit"
    assert rig.store.get_alarm() == Alarm(13, 0)
    assert rig.handle.sent == []


def test_blackout_uses_configured_timezone(rig: Rig) -> None:
    seen: List[str] = []

    def clock(tz: Timezone) -> datetime:
        seen.append(tz.zone_name)
        return datetime(2026, 3, 1, 12, 0, tzinfo=ZoneInfo(tz.zone_name))

    rig.controller.clock = clock
    rig.store.set_timezone("Asia/Tokyo")
    rig.store.add_alarm(20, 0)

    rig.controller.handle_envelope(_env(AlarmDelete()))

    assert seen == ["Asia/Tokyo"]


def test_delete_inside_blackout_is_refused(rig: Rig) -> None:
    rig.store.add_alarm(14, 0)

    resp = rig.controller.handle_envelope(_env(AlarmDelete()))

    assert resp.data == TOO_CLOSE
    assert rig.store.get_alarm() == Alarm(14, 0)


def test_delete_outside_blackout(rig: Rig) -> None:
    rig.store.add_alarm(6, 0)

    resp = rig.controller.handle_envelope(_env(AlarmDelete()))

    assert resp.name == "status"
    assert resp.data["alarm"] is None
    assert rig.handle.sent == [Reset()]


def test_update_or_delete_without_alarm(rig: Rig) -> None:
    assert rig.controller.handle_envelope(_env(AlarmUpdate(6, 0))).data == NO_ALARM
    assert rig.controller.handle_envelope(_env(AlarmDelete())).data == NO_ALARM
    assert rig.handle.sent == []


def test_time_zone_persists_and_resets(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(_env(TimeZoneCommand("Europe/Paris")))

    assert rig.store.get_timezone() == Timezone("Europe/Paris")
    assert resp.data["time_zone"] == "Europe/Paris"
    assert rig.handle.sent == [Reset()]


def test_dismiss_forwards_to_actor(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(_env(AlarmDismissCommand()))
    assert rig.handle.sent == [AlarmDismiss()]
    assert resp.name == "status"


def test_test_request_goes_to_dispatcher(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(_env(TestRequest("ping")))

    assert rig.dispatcher.calls == [(RequestClass.TEST, "ping")]
    assert rig.handle.sent == []
    assert resp.name == "status"


@pytest.mark.parametrize(
    "error, text",
    [
        (TooManyRequests(10), "Too many requests made in the past hour: 10"),
        (TransportError("push failed: 500"), "push failed: 500"),
    ],
)
def test_test_request_failures_reply_error(rig: Rig, error: Exception, text: str) -> None:
    rig.dispatcher.fail_with = error

    resp = rig.controller.handle_envelope(_env(TestRequest("ping"), "u5"))

    assert resp.name == "error"
    assert resp.data == text
    assert resp.unique == "u5"


def test_status_reply(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(_env(StatusCommand()))

    assert resp.name == "status"
    assert set(resp.data) == {"alarm", "time_zone", "uptime_app", "uptime_ws", "uptime", "version", "dispatch"}
    assert resp.data["uptime_ws"] == 0


def test_restart_invokes_hook_without_reply(rig: Rig) -> None:
    assert rig.controller.handle_envelope(_env(RestartCommand())) is None
    assert rig.restarts == [True]


def test_invalid_envelope_replies_error(rig: Rig) -> None:
    resp = rig.controller.handle_envelope(Envelope(command=None, unique="u3", error="message too long"))

    assert resp.name == "error"
    assert resp.data == "message too long"
    assert resp.unique == "u3"


def test_dropped_reset_still_replies(rig: Rig) -> None:
    rig.handle.accept = False
    resp = rig.controller.handle_envelope(_env(AlarmAdd(6, 0)))
    assert resp.name == "status"


@pytest.mark.parametrize(
    "cmd",
    [AlarmUpdate(6, 0), AlarmDelete(), TimeZoneCommand("Asia/Tokyo")],
)
def test_storage_write_failure_replies_error(rig: Rig, cmd) -> None:
    rig.store.add_alarm(18, 0)
    rig.store._conn.execute("PRAGMA query_only = ON")

    resp = rig.controller.handle_envelope(_env(cmd, "u8"))

    assert resp.name == "error"
    assert "readonly" in resp.data
    assert resp.unique == "u8"
    assert rig.handle.sent == []
    assert rig.store.get_alarm() == Alarm(18, 0)


def test_storage_failure_on_add_replies_error(rig: Rig) -> None:
    rig.store._conn.execute("PRAGMA query_only = ON")

    resp = rig.controller.handle_envelope(_env(AlarmAdd(6, 0), "u9"))

    assert resp.name == "error"
    assert resp.unique == "u9"
    assert rig.handle.sent == []
