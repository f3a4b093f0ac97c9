"""
Control messages consumed by the alarm actor.

A control message represents *what should happen next* to the alarm state
machine. Messages are processed strictly in arrival order by a single
thread, so configuration changes can never interleave with a fire or a
dismiss.

Members of the tagged union
---------------------------
Reset
    Alarm or timezone configuration changed; reload both and restart the ticker.
AlarmFire
    Emitted by the ticker when the alarm time matches.
AlarmDismiss
    Cancel the currently running dispatch sequence, if any.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass(frozen=True)
class Reset:
    """Reload alarm and timezone from storage and restart the ticker."""


@dataclass(frozen=True)
class AlarmFire:
    """
    Start a dispatch sequence.

    Parameters
    ----------
    message
        Text to announce. Empty or None means "pick a random phrase".
    """

    message: Optional[str] = None


@dataclass(frozen=True)
class AlarmDismiss:
    """Stop the running dispatch sequence."""


ControlMessage = Union[Reset, AlarmFire, AlarmDismiss]
