"""
Error taxonomy.

Errors are raised where the failing operation happens and caught at thread
boundaries (actor, ticker, dispatch sequence, control receiver), where they
are logged. User-visible failures reach the remote-control peer as an
``error`` response, never as an exception crossing a thread.
"""

from __future__ import annotations


class AlarmdError(Exception):
    """Base class for all service errors."""


class ConfigLoadError(AlarmdError):
    """Storage unavailable or corrupt while loading alarm/timezone."""


class TooManyRequests(AlarmdError):
    """
    Rate ceiling for a request class has been reached.

    Parameters
    ----------
    count
        Number of attempts of that class already made in the trailing window.
    """

    def __init__(self, count: int):
        self.count = count
        super().__init__(f"Too many requests made in the past hour: {count}")


class StorageError(AlarmdError):
    """A storage write or request-log query failed, e.g. on a read-only database."""


class TransportError(AlarmdError):
    """Push delivery failed (network error or non-2xx response)."""


class ValidationError(AlarmdError):
    """
    A request was rejected before any state mutation.

    The message is user-facing and is relayed verbatim to the remote peer.
    """

    @property
    def reason(self) -> str:
        return str(self)
