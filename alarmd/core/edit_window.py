"""
Edit-window validation.

Editing or deleting the alarm is forbidden during a blackout that ends at
the alarm's own fire time, so a user edit can never race an imminent fire.
Times are compared as seconds since midnight on a 24-hour ring.
"""

from __future__ import annotations

from datetime import time

from alarmd.config.settings import DEFAULTS, ONE_DAY_S, ONE_HOUR_S


def seconds_of_day(t: time) -> int:
    """Seconds since midnight (0..86399), microseconds ignored."""
    return t.hour * ONE_HOUR_S + t.minute * 60 + t.second


def can_edit(
    current: time,
    alarm_hour: int,
    alarm_minute: int,
    blackout_s: int = DEFAULTS.edit_blackout_s,
) -> bool:
    """
    Decide whether the alarm may be edited at ``current`` time of day.

    The forbidden interval is ``[alarm - blackout, alarm]``, wrapped past
    midnight when the alarm is early in the day. For alarms after 23:00 the
    hour following midnight is forbidden as well.

    Parameters
    ----------
    current
        Current local time of day in the configured timezone.
    alarm_hour, alarm_minute
        Time of day of the existing alarm.
    blackout_s
        Length of the blackout preceding the fire time.

    Returns
    -------
    bool
        True when editing is allowed.
    """
    cur_s = seconds_of_day(current)
    alarm_s = alarm_hour * ONE_HOUR_S + alarm_minute * 60

    # blackout starts the previous evening
    if alarm_s < blackout_s:
        if cur_s >= ONE_DAY_S + alarm_s - blackout_s:
            return False

    # late alarm: blackout spills into the first hour after midnight
    if alarm_s > 23 * ONE_HOUR_S:
        if cur_s <= alarm_s + ONE_HOUR_S - ONE_DAY_S:
            return False

    if alarm_s - blackout_s <= cur_s <= alarm_s:
        return False

    return True
