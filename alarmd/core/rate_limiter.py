from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Protocol

from alarmd.config.settings import DEFAULTS
from alarmd.domain.errors import TooManyRequests
from alarmd.domain.models import RequestClass


class RequestLog(Protocol):
    """Storage operations the limiter needs."""

    def count_in_window(self, request_class: RequestClass, start_ts: int, end_ts: int) -> int:
        ...


@dataclass(frozen=True)
class RateLimiter:
    """
    Count prior attempts of a class in a trailing window against a ceiling.

    There is no caching: every call reads the current log, so the count
    always reflects entries appended by concurrent dispatches.

    Parameters
    ----------
    log
        Request-log collaborator (usually the SQLite store).
    hour_limits
        Ceiling per request class. Frozen for the life of the limiter.
    window_s
        Length of the trailing window in seconds.
    """

    log: RequestLog
    hour_limits: Mapping[RequestClass, int] = field(default_factory=lambda: DEFAULTS.hour_limits)
    window_s: int = DEFAULTS.rate_window_s

    def ceiling(self, request_class: RequestClass) -> int:
        return self.hour_limits[request_class]

    def count_in_window(self, request_class: RequestClass, now: int) -> int:
        """Exact count of ``request_class`` entries in ``[now - window, now]``."""
        return self.log.count_in_window(request_class, now - self.window_s, now)

    def check(self, request_class: RequestClass, now: int) -> int:
        """
        Raise :class:`TooManyRequests` when the ceiling is reached.

        Returns the current count otherwise.
        """
        count = self.count_in_window(request_class, now)
        if count >= self.ceiling(request_class):
            raise TooManyRequests(count)
        return count
