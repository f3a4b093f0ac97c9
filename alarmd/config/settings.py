from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from alarmd.domain.models import RequestClass

VERSION: str = "0.1.0"

ONE_HOUR_S: int = 60 * 60
ONE_DAY_S: int = 24 * ONE_HOUR_S


@dataclass(frozen=True)
class Settings:
    """
    Central place for compile-time defaults.

    Every value here can be overridden once at startup through config.yaml;
    nothing is mutable while the service is running.
    """

    # Dispatch sequence started by one alarm fire
    fire_repeat: int = 40
    fire_interval_s: float = 25.0

    # Ticker poll period
    tick_interval_s: float = 1.0

    # Control queue capacity (actor inbox)
    control_queue_size: int = 128

    # Trailing rate-limit window and per-class ceilings
    rate_window_s: int = ONE_HOUR_S
    hour_limits: Mapping[RequestClass, int] = field(
        default_factory=lambda: MappingProxyType({RequestClass.ALARM: 60, RequestClass.TEST: 10})
    )

    # Edits are refused this long before the alarm fires
    edit_blackout_s: int = 5 * ONE_HOUR_S

    # Used when no custom message is set and the phrase pool is unavailable
    fallback_message: str = "Wake up"

    # Longest message accepted from the remote-control channel
    max_message_chars: int = 100

    default_timezone: str = "UTC"


DEFAULTS = Settings()
