from __future__ import annotations

import threading
from datetime import datetime, timezone

from alarmd.config.settings import DEFAULTS
from alarmd.domain.errors import AlarmdError, TooManyRequests
from alarmd.domain.models import DispatchProgress, RequestClass
from alarmd.log import setup_logging
from alarmd.notification.dispatcher import NotificationDispatcher

TAG = __name__
logger = setup_logging()


class DispatchSequenceThread:
    """
    Bounded run of repeated alarm pushes started by one fire.

    Attempts are numbered ``1..repeat`` with ``interval_s`` between them.
    Every attempt is best-effort: a rejected or failed attempt is logged and
    the sequence carries on.

    Stop Behavior
    -------------
    :meth:`cancel` ends the sequence at once: the inter-attempt sleep returns
    immediately and no further attempt is started. A push already in flight
    finishes, but nothing follows it.

    Parameters
    ----------
    dispatcher
        Dispatcher invoked with class ALARM for every attempt.
    message
        Resolved message announced by every attempt.
    repeat
        Number of attempts.
    interval_s
        Delay between consecutive attempts.
    """

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        message: str,
        repeat: int = DEFAULTS.fire_repeat,
        interval_s: float = DEFAULTS.fire_interval_s,
    ):
        self._dispatcher = dispatcher
        self._message = message
        self._repeat = repeat
        self._interval_s = interval_s
        self._stop = threading.Event()
        self._progress = DispatchProgress(total=repeat, message=message)
        self._thread = threading.Thread(target=self._run, name="dispatch-sequence", daemon=True)

    @property
    def progress(self) -> DispatchProgress:
        return self._progress

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if not self._thread.is_alive():
            self._progress = DispatchProgress(
                running=True,
                total=self._repeat,
                started_at=datetime.now(timezone.utc),
                message=self._message,
            )
            self._thread.start()

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = 2.0) -> None:
        self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _set_progress(self, attempt: int, running: bool = True) -> None:
        p = self._progress
        self._progress = DispatchProgress(
            running=running,
            attempt=attempt,
            total=p.total,
            started_at=p.started_at,
            message=p.message,
        )

    def _run(self) -> None:
        try:
            for attempt in range(1, self._repeat + 1):
                if self._stop.is_set():
                    break
                self._set_progress(attempt)
                self._attempt(attempt)
                if attempt < self._repeat and self._stop.wait(self._interval_s):
                    break
        finally:
            self._set_progress(self._progress.attempt, running=False)
            logger.bind(tag=TAG).info(
                f"Dispatch sequence ended after attempt {self._progress.attempt}/{self._repeat}"
                f"{' (dismissed)' if self._stop.is_set() else ''}"
            )

    def _attempt(self, index: int) -> bool:
        try:
            self._dispatcher.dispatch(RequestClass.ALARM, self._message, index=index)
            return True
        except TooManyRequests as e:
            logger.bind(tag=TAG).warning(f"attempt {index} rejected: {e}")
        except AlarmdError as e:
            logger.bind(tag=TAG).error(f"attempt {index} failed: {e}")
        except Exception as e:
            logger.bind(tag=TAG).error(f"attempt {index} failed unexpectedly: {e!r}")
        return False
