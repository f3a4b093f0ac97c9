from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from alarmd.config.settings import VERSION
from alarmd.domain.models import Alarm, DispatchProgress, Timezone

PROC_UPTIME = Path("/proc/uptime")


def system_uptime_s(path: Path = PROC_UPTIME) -> int:
    """
    Whole seconds since boot, read from ``/proc/uptime``.

    Returns 0 on platforms without the file or when it cannot be parsed.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return 0
    head = raw.split(".", 1)[0].strip()
    return int(head) if head.isdigit() else 0


@dataclass(frozen=True)
class StatusSnapshot:
    """
    Read-only view relayed to the remote-control peer.

    Parameters
    ----------
    alarm
        Configured alarm, or None.
    time_zone
        Configured IANA zone name.
    uptime_app
        Seconds since the process started.
    uptime_ws
        Seconds since the current control connection was established
        (0 when not connected).
    uptime
        System uptime in seconds.
    version
        Service version string.
    dispatch
        Progress of the most recent dispatch sequence.
    """

    alarm: Optional[Alarm]
    time_zone: str
    uptime_app: int
    uptime_ws: int
    uptime: int
    version: str
    dispatch: DispatchProgress

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alarm": self.alarm.to_dict() if self.alarm else None,
            "time_zone": self.time_zone,
            "uptime_app": self.uptime_app,
            "uptime_ws": self.uptime_ws,
            "uptime": self.uptime,
            "version": self.version,
            "dispatch": self.dispatch.to_dict(),
        }


def build_status(
    alarm: Optional[Alarm],
    tz: Timezone,
    started_at: float,
    connected_at: Optional[float],
    progress: DispatchProgress,
    now_monotonic: Optional[float] = None,
    proc_uptime: Path = PROC_UPTIME,
) -> StatusSnapshot:
    """
    Assemble a status snapshot. Pure apart from reading ``/proc/uptime``.

    ``started_at`` and ``connected_at`` are ``time.monotonic()`` readings.
    """
    now = time.monotonic() if now_monotonic is None else now_monotonic
    return StatusSnapshot(
        alarm=alarm,
        time_zone=tz.zone_name,
        uptime_app=max(0, int(now - started_at)),
        uptime_ws=max(0, int(now - connected_at)) if connected_at is not None else 0,
        uptime=system_uptime_s(proc_uptime),
        version=VERSION,
        dispatch=progress,
    )
