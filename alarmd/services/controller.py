from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Protocol

from alarmd.config.settings import DEFAULTS
from alarmd.core.edit_window import can_edit
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
from alarmd.domain.errors import AlarmdError, TooManyRequests, TransportError
from alarmd.domain.messages import AlarmDismiss, ControlMessage, Reset
from alarmd.domain.models import Alarm, DispatchProgress, RequestClass, Timezone
from alarmd.log import setup_logging
from alarmd.notification.dispatcher import NotificationDispatcher
from alarmd.services.status import StatusSnapshot, build_status

TAG = __name__
logger = setup_logging()

TOO_CLOSE = "Current time too close to alarm to edit"
NO_ALARM = "no alarm set"


class AlarmStore(Protocol):
    def get_alarm(self) -> Optional[Alarm]:
        ...

    def add_alarm(self, hour: int, minute: int, message: Optional[str] = None) -> Alarm:
        ...

    def update_alarm(self, hour: int, minute: int, message: Optional[str] = None) -> Alarm:
        ...

    def delete_alarm(self) -> None:
        ...

    def get_timezone(self) -> Timezone:
        ...

    def set_timezone(self, zone_name: str) -> Timezone:
        ...


class ScheduleHandle(Protocol):
    def send(self, msg: ControlMessage) -> bool:
        ...

    def progress(self) -> DispatchProgress:
        ...


def _wall_clock(tz: Timezone) -> datetime:
    return tz.now()


def _no_restart() -> None:
    logger.bind(tag=TAG).warning("restart requested but no restart hook is installed")


@dataclass
class RemoteController:
    """
    Map remote-control commands onto storage, the alarm actor and the
    dispatcher, and produce the reply for each.

    Responsibilities
    ----------------
    - Validate edits of an existing alarm against the edit window, evaluated
      at the current time in the configured timezone.
    - Persist alarm/timezone changes, then send :class:`Reset` to the actor.
    - Forward dismiss to the actor as :class:`AlarmDismiss`.
    - Route test pushes straight to the dispatcher (class TEST).
    - Build status snapshots.

    Notes
    -----
    The controller never touches the actor's in-memory state; the actor
    re-reads storage on Reset. All failures become ``error`` replies.

    Parameters
    ----------
    store
        Storage collaborator.
    schedule
        Handle to the running alarm actor.
    dispatcher
        Dispatcher used for test pushes.
    restart_hook
        Called for ``restart``; expected to stop the runtime so a supervisor
        can start the process again.
    clock
        ``tz -> aware datetime`` used for the edit window.
    started_at
        ``time.monotonic()`` at process start.
    connected_at
        ``time.monotonic()`` when the current control connection was made;
        maintained by the receiver thread.
    """

    store: AlarmStore
    schedule: ScheduleHandle
    dispatcher: NotificationDispatcher
    restart_hook: Callable[[], None] = _no_restart
    clock: Callable[[Timezone], datetime] = _wall_clock
    blackout_s: int = DEFAULTS.edit_blackout_s
    started_at: float = field(default_factory=time.monotonic)
    connected_at: Optional[float] = None

    def handle_envelope(self, env: Envelope) -> Optional[Response]:
        """
        Handle one decoded envelope and return the reply to send, if any.

        Envelopes that failed validation produce an ``error`` reply with the
        validation reason and the original ``unique`` id.
        """
        if env.command is None:
            reason = env.error or "invalid command"
            logger.bind(tag=TAG).warning(f"Rejected command ({env.unique}): {reason}")
            return Response.error(reason, env.unique)

        try:
            return self.handle_command(env.command, env.unique)
        except AlarmdError as e:
            logger.bind(tag=TAG).warning(f"{type(env.command).__name__} failed: {e}")
            return Response.error(str(e), env.unique)

    def handle_command(self, cmd: Command, unique: str = "") -> Optional[Response]:
        """
        Execute one command.

        Raises
        ------
        AlarmdError
            Storage, validation, rate-limit or transport failures.
        """
        if isinstance(cmd, AlarmAdd):
            self.store.add_alarm(cmd.hour, cmd.minute, cmd.message)
            return self._changed(unique)

        if isinstance(cmd, AlarmUpdate):
            refusal = self._edit_refusal()
            if refusal:
                return Response.error(refusal, unique)
            self.store.update_alarm(cmd.hour, cmd.minute, cmd.message)
            return self._changed(unique)

        if isinstance(cmd, AlarmDelete):
            refusal = self._edit_refusal()
            if refusal:
                return Response.error(refusal, unique)
            self.store.delete_alarm()
            return self._changed(unique)

        if isinstance(cmd, TimeZoneCommand):
            self.store.set_timezone(cmd.zone)
            return self._changed(unique)

        if isinstance(cmd, AlarmDismissCommand):
            self.schedule.send(AlarmDismiss())
            return self.status_response(unique)

        if isinstance(cmd, TestRequest):
            return self._test_request(cmd.message, unique)

        if isinstance(cmd, StatusCommand):
            return self.status_response(unique)

        if isinstance(cmd, RestartCommand):
            logger.bind(tag=TAG).info("Restart requested")
            self.restart_hook()
            return None

        raise AlarmdError(f"Unsupported command: {cmd!r}")

    def status(self) -> StatusSnapshot:
        return build_status(
            alarm=self.store.get_alarm(),
            tz=self.store.get_timezone(),
            started_at=self.started_at,
            connected_at=self.connected_at,
            progress=self.schedule.progress(),
        )

    def status_response(self, unique: str = "") -> Response:
        return Response.status(self.status().to_dict(), unique)

    def _changed(self, unique: str) -> Response:
        if not self.schedule.send(Reset()):
            logger.bind(tag=TAG).error("Reset dropped; alarm actor inbox is full")
        return self.status_response(unique)

    def _edit_refusal(self) -> Optional[str]:
        alarm = self.store.get_alarm()
        if alarm is None:
            return NO_ALARM
        now = self.clock(self.store.get_timezone())
        if not can_edit(now.time(), alarm.hour, alarm.minute, self.blackout_s):
            return TOO_CLOSE
        return None

    def _test_request(self, message: str, unique: str) -> Response:
        try:
            self.dispatcher.dispatch(RequestClass.TEST, message)
        except TooManyRequests as e:
            logger.bind(tag=TAG).warning(f"test push rejected: {e}")
            return Response.error(str(e), unique)
        except TransportError as e:
            logger.bind(tag=TAG).error(f"test push failed: {e}")
            return Response.error(str(e), unique)
        return self.status_response(unique)
