from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime
from queue import Empty
from typing import Callable, Optional, Protocol

from alarmd.config.settings import DEFAULTS
from alarmd.domain.errors import ConfigLoadError
from alarmd.domain.messages import AlarmDismiss, AlarmFire, ControlMessage, Reset
from alarmd.domain.models import Alarm, DispatchProgress, Timezone
from alarmd.log import setup_logging
from alarmd.notification.dispatcher import NotificationDispatcher
from alarmd.runtime.alarm_ticker import AlarmTickerThread, FiredKey
from alarmd.runtime.control_bus import ControlBus
from alarmd.runtime.dispatch_sequence import DispatchSequenceThread

TAG = __name__
logger = setup_logging()


class ScheduleStore(Protocol):
    """Storage operations the actor reads on (re)load."""

    def get_alarm(self) -> Optional[Alarm]:
        ...

    def get_timezone(self) -> Timezone:
        ...

    def get_random_phrase(self) -> Optional[str]:
        ...


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Tuning of the alarm actor and the tasks it supervises.

    Parameters
    ----------
    fire_repeat
        Attempts per dispatch sequence (N).
    fire_interval_s
        Delay between attempts (D).
    tick_interval_s
        Ticker poll period.
    control_queue_size
        Capacity of the actor inbox.
    fallback_message
        Announced when no custom message is set and no phrase is available.
    poll_timeout_s
        How long the actor waits on its inbox before re-checking for shutdown.
    """

    fire_repeat: int = DEFAULTS.fire_repeat
    fire_interval_s: float = DEFAULTS.fire_interval_s
    tick_interval_s: float = DEFAULTS.tick_interval_s
    control_queue_size: int = DEFAULTS.control_queue_size
    fallback_message: str = DEFAULTS.fallback_message
    poll_timeout_s: float = 0.5


class AlarmSchedule:
    """
    Actor owning the alarm, the timezone and the tasks that act on them.

    Responsibilities
    ----------------
    - Hold the in-memory alarm/timezone snapshot; nothing else mutates it.
    - Own at most one :class:`AlarmTickerThread` and at most one
      :class:`DispatchSequenceThread`. Replacing either cancels the old one
      first.
    - Consume :data:`ControlMessage` values from one queue, strictly in
      arrival order, on a single thread.

    Message Handling
    ----------------
    Reset
        Cancel the ticker, reload timezone and alarm, start a new ticker if
        an alarm exists. A running dispatch sequence is left alone. If the
        reload fails the previous snapshot is kept and no ticker runs. The
        new ticker inherits the last fired minute, so a Reset during the
        alarm's second cannot fire it again.
    AlarmFire
        Cancel any running sequence, resolve the message, start a new one.
    AlarmDismiss
        Cancel the running sequence; no-op when none is running.

    Parameters
    ----------
    store
        Storage collaborator.
    dispatcher
        Dispatcher used by dispatch sequences.
    bus
        Actor inbox. Created from ``cfg.control_queue_size`` when omitted.
    cfg
        Schedule tuning.
    clock
        Optional ``tz -> aware datetime`` used by tickers instead of the
        real clock.
    """

    def __init__(
        self,
        store: ScheduleStore,
        dispatcher: NotificationDispatcher,
        bus: Optional[ControlBus] = None,
        cfg: Optional[ScheduleConfig] = None,
        clock: Optional[Callable[[Timezone], datetime]] = None,
    ):
        self._store = store
        self._dispatcher = dispatcher
        self._cfg = cfg or ScheduleConfig()
        self._bus = bus or ControlBus.with_capacity(self._cfg.control_queue_size)
        self._clock = clock

        self._alarm: Optional[Alarm] = None
        self._timezone = Timezone()
        self._ticker: Optional[AlarmTickerThread] = None
        self._last_fired: Optional[FiredKey] = None
        self._dispatch: Optional[DispatchSequenceThread] = None

        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="alarm-actor", daemon=True)

    @classmethod
    def init(
        cls,
        store: ScheduleStore,
        dispatcher: NotificationDispatcher,
        cfg: Optional[ScheduleConfig] = None,
    ) -> "ControlHandle":
        """
        Load state, start the ticker (if an alarm exists) and the actor thread.

        Returns
        -------
        ControlHandle
            Handle used to send control messages and read progress.
        """
        schedule = cls(store, dispatcher, cfg=cfg)
        schedule.start()
        return ControlHandle(schedule)

    # --- read-only views ---
    @property
    def bus(self) -> ControlBus:
        return self._bus

    @property
    def alarm(self) -> Optional[Alarm]:
        return self._alarm

    @property
    def timezone(self) -> Timezone:
        return self._timezone

    @property
    def ticker(self) -> Optional[AlarmTickerThread]:
        return self._ticker

    @property
    def dispatch_sequence(self) -> Optional[DispatchSequenceThread]:
        return self._dispatch

    def progress(self) -> DispatchProgress:
        seq = self._dispatch
        return seq.progress if seq is not None else DispatchProgress()

    # --- lifecycle ---
    def load(self) -> None:
        """
        Initial load of timezone and alarm.

        Errors are logged; the actor then starts with UTC and no alarm.
        """
        try:
            self._timezone = self._store.get_timezone()
        except ConfigLoadError as e:
            logger.bind(tag=TAG).error(f"timezone load failed, using UTC: {e}")
        try:
            self._alarm = self._store.get_alarm()
        except ConfigLoadError as e:
            logger.bind(tag=TAG).error(f"alarm load failed: {e}")
            self._alarm = None
        if self._alarm is not None:
            self._start_ticker(self._alarm)

    def start(self) -> None:
        if not self._thread.is_alive():
            self.load()
            self._thread.start()

    def stop(self) -> None:
        """Stop the actor and cancel both supervised tasks."""
        self._stop.set()
        self._cancel_ticker()
        self._cancel_dispatch()

    def join(self, timeout: float | None = 2.0) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    # --- message handling ---
    def handle(self, msg: ControlMessage) -> None:
        """Process one control message on the caller's thread."""
        if isinstance(msg, Reset):
            self._on_reset()
        elif isinstance(msg, AlarmFire):
            self._on_fire(msg.message)
        elif isinstance(msg, AlarmDismiss):
            self._on_dismiss()
        else:
            logger.bind(tag=TAG).warning(f"Unknown control message: {msg!r}")

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                msg = self._bus.control_q.get(timeout=self._cfg.poll_timeout_s)
            except Empty:
                continue

            try:
                self.handle(msg)
            except Exception as e:
                logger.bind(tag=TAG).error(f"handling {type(msg).__name__} failed: {e!r}")

    def _on_reset(self) -> None:
        self._cancel_ticker()
        try:
            tz = self._store.get_timezone()
            alarm = self._store.get_alarm()
        except ConfigLoadError as e:
            logger.bind(tag=TAG).error(f"Can't generate new alarm loop: {e}")
            return

        if tz != self._timezone:
            logger.bind(tag=TAG).info(f"Timezone changed {self._timezone.zone_name} -> {tz.zone_name}")
            self._timezone = tz
        self._alarm = alarm

        if alarm is None:
            logger.bind(tag=TAG).info("No alarm configured")
            return
        self._start_ticker(alarm)

    def _on_fire(self, message: Optional[str]) -> None:
        self._cancel_dispatch()
        resolved = self._resolve_message(message)
        seq = DispatchSequenceThread(
            dispatcher=self._dispatcher,
            message=resolved,
            repeat=self._cfg.fire_repeat,
            interval_s=self._cfg.fire_interval_s,
        )
        self._dispatch = seq
        seq.start()
        logger.bind(tag=TAG).info(f"Alarm fired: {resolved!r}")

    def _on_dismiss(self) -> None:
        seq = self._dispatch
        if seq is None or seq.cancelled or not seq.is_alive():
            logger.bind(tag=TAG).debug("Dismiss with no running sequence")
            return
        seq.cancel()
        logger.bind(tag=TAG).info("Alarm dismissed")

    def _resolve_message(self, message: Optional[str]) -> str:
        if message:
            return message
        try:
            phrase = self._store.get_random_phrase()
        except Exception as e:
            logger.bind(tag=TAG).warning(f"phrase lookup failed: {e!r}")
            phrase = None
        return phrase or self._cfg.fallback_message

    # --- task ownership ---
    def _start_ticker(self, alarm: Alarm) -> None:
        self._cancel_ticker()
        tz = self._timezone
        clock = (lambda: self._clock(tz)) if self._clock else None
        self._ticker = AlarmTickerThread(
            alarm=alarm,
            tz=tz,
            bus=self._bus,
            interval_s=self._cfg.tick_interval_s,
            clock=clock,
            last_fired=self._last_fired,
        )
        self._ticker.start()

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._last_fired = self._ticker.last_fired
            self._ticker = None

    def _cancel_dispatch(self) -> None:
        if self._dispatch is not None:
            self._dispatch.cancel()


@dataclass(frozen=True)
class ControlHandle:
    """
    What the rest of the process holds on to once the actor is running.

    Parameters
    ----------
    schedule
        The running actor.
    """

    schedule: AlarmSchedule

    def send(self, msg: ControlMessage) -> bool:
        """Publish a control message; False when it was dropped."""
        return self.schedule.bus.publish(msg)

    def progress(self) -> DispatchProgress:
        return self.schedule.progress()

    def stop(self) -> None:
        self.schedule.stop()
        self.schedule.join()
