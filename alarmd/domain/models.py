"""
Domain models and enums.

This module defines the core domain-level types used across the system:
- Request classes and push priorities
- The single configured Alarm and the configured Timezone
- Request-log entries used for windowed rate limiting
- Dispatch requests and dispatch-sequence progress snapshots

Value types are frozen dataclasses so they can be shared between the actor,
its background threads and the remote-control layer without copying.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone, tzinfo
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

UTC_ZONE = "UTC"


class RequestClass(str, Enum):
    """
    Class of an outbound push attempt.

    Members
    -------
    ALARM : str
        Attempt belonging to a dispatch sequence started by an alarm fire.
    TEST : str
        One-off test push requested over the remote-control channel.
    """

    ALARM = "ALARM"
    TEST = "TEST"

    @property
    def is_alarm(self) -> bool:
        return self is RequestClass.ALARM


class Priority(str, Enum):
    """
    Push priority, valued as the Pushover API expects it.
    """

    HIGH = "1"
    NORMAL = "0"

    @classmethod
    def for_class(cls, request_class: RequestClass) -> "Priority":
        return cls.HIGH if request_class is RequestClass.ALARM else cls.NORMAL


def is_valid_zone(zone_name: str) -> bool:
    """
    Return True when ``zone_name`` is a known IANA timezone identifier.
    """
    if not zone_name or not isinstance(zone_name, str):
        return False
    try:
        ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


@dataclass(frozen=True)
class Alarm:
    """
    The single configured wake-up alarm.

    Parameters
    ----------
    hour
        Hour of day, 0..23.
    minute
        Minute of hour, 0..59.
    message
        Optional custom text announced when the alarm fires. When empty or
        None a random phrase is used instead.
    """

    hour: int
    minute: int
    message: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0 <= int(self.hour) <= 23:
            raise ValueError(f"hour {self.hour} not in range 0..=23")
        if not 0 <= int(self.minute) <= 59:
            raise ValueError(f"minute {self.minute} not in range 0..=59")

    def to_dict(self) -> dict:
        return {"hour": self.hour, "minute": self.minute, "message": self.message}


@dataclass(frozen=True)
class Timezone:
    """
    Configured IANA timezone.

    An unknown or empty zone name never raises: it resolves to UTC, so a
    corrupt row in storage degrades to UTC wall-clock time.

    Parameters
    ----------
    zone_name
        IANA identifier, e.g. "Europe/London".
    """

    zone_name: str = UTC_ZONE

    def tzinfo(self) -> tzinfo:
        if is_valid_zone(self.zone_name):
            return ZoneInfo(self.zone_name)
        return dt_timezone.utc

    def now(self) -> datetime:
        """Current wall-clock time in this zone (timezone-aware)."""
        return datetime.now(self.tzinfo())


@dataclass(frozen=True)
class RequestLogEntry:
    """
    One recorded push attempt.

    Parameters
    ----------
    timestamp
        Unix seconds at which the attempt was recorded.
    request_class
        Class of the attempt.
    """

    timestamp: int
    request_class: RequestClass


@dataclass(frozen=True)
class DispatchRequest:
    """
    A single push attempt about to be handed to the dispatcher.

    Parameters
    ----------
    request_class
        ALARM or TEST.
    message
        Resolved message text.
    index
        1-based position within a dispatch sequence; None for test pushes.
        Carried for logging only, it never changes limiter behavior.
    """

    request_class: RequestClass
    message: str
    index: Optional[int] = None


@dataclass(frozen=True)
class DispatchProgress:
    """
    Read-only snapshot of the most recent dispatch sequence.

    Parameters
    ----------
    running
        True while the sequence thread is still scheduling attempts.
    attempt
        Index of the last attempt started (0 before the first one).
    total
        Number of attempts the sequence was started with.
    started_at
        When the sequence started, or None if no alarm has fired yet.
    message
        Resolved message announced by the sequence.
    """

    running: bool = False
    attempt: int = 0
    total: int = 0
    started_at: Optional[datetime] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "running": self.running,
            "attempt": self.attempt,
            "total": self.total,
            "started_at": self.started_at.isoformat(timespec="seconds") if self.started_at else None,
            "message": self.message,
        }
