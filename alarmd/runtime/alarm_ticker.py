from __future__ import annotations

import threading
import time
from datetime import date, datetime
from typing import Callable, Optional, Tuple

from alarmd.config.settings import DEFAULTS
from alarmd.domain.messages import AlarmFire
from alarmd.domain.models import Alarm, Timezone
from alarmd.log import setup_logging
from alarmd.runtime.control_bus import ControlBus

TAG = __name__
logger = setup_logging()

FiredKey = Tuple[date, int, int]


class AlarmTickerThread:
    """
    Per-generation thread that turns wall-clock time into fire events.

    Responsibilities
    ----------------
    - Once per ``interval_s``, read the current local time in the bound
      timezone.
    - When hour and minute equal the alarm's and the second is 0, publish
      :class:`AlarmFire` to the actor (non-blocking, dropped when full).
    - Sleep ``interval_s - elapsed`` (floored at 0) so compute time does not
      accumulate as drift.

    A stall across the exact second boundary skips that day's alarm; it is
    not retried. The same minute never fires twice, including across ticker
    generations when the previous generation's key is passed as
    ``last_fired``.

    Parameters
    ----------
    alarm
        Alarm snapshot this generation is bound to.
    tz
        Timezone snapshot this generation is bound to.
    bus
        Actor inbox.
    interval_s
        Poll period.
    clock
        Returns the current aware local time; defaults to ``tz.now``.
    last_fired
        ``(date, hour, minute)`` already fired by an earlier generation.
    """

    def __init__(
        self,
        alarm: Alarm,
        tz: Timezone,
        bus: ControlBus,
        interval_s: float = DEFAULTS.tick_interval_s,
        clock: Optional[Callable[[], datetime]] = None,
        last_fired: Optional[FiredKey] = None,
    ):
        self.alarm = alarm
        self.tz = tz
        self._bus = bus
        self._interval_s = interval_s
        self._clock = clock or tz.now
        self._stop = threading.Event()
        self._last_fired = last_fired
        self._thread = threading.Thread(target=self._run, name="alarm-ticker", daemon=True)

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def cancel(self) -> None:
        """Stop the loop; a sleep in progress returns immediately."""
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    @property
    def last_fired(self) -> Optional[FiredKey]:
        return self._last_fired

    @staticmethod
    def matches(alarm: Alarm, now: datetime) -> bool:
        return now.hour == alarm.hour and now.minute == alarm.minute and now.second == 0

    def tick(self, now: datetime) -> bool:
        """
        Run one check at ``now``.

        Returns
        -------
        bool
            True if a fire event was emitted.
        """
        if not self.matches(self.alarm, now):
            return False

        key = (now.date(), now.hour, now.minute)
        if key == self._last_fired or self._stop.is_set():
            return False
        self._last_fired = key

        logger.bind(tag=TAG).info(f"Alarm {now:%H:%M} matched in {self.tz.zone_name}")
        self._bus.publish(AlarmFire(message=self.alarm.message))
        return True

    def _run(self) -> None:
        logger.bind(tag=TAG).info(
            f"Ticker started for {self.alarm.hour:02d}:{self.alarm.minute:02d} ({self.tz.zone_name})"
        )
        while not self._stop.is_set():
            start = time.monotonic()
            try:
                self.tick(self._clock())
            except Exception as e:
                logger.bind(tag=TAG).error(f"tick failed: {e!r}")

            remaining = max(0.0, self._interval_s - (time.monotonic() - start))
            self._stop.wait(remaining)
        logger.bind(tag=TAG).debug("Ticker stopped")
