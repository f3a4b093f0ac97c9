"""
Remote-control commands and responses.

Inbound lines are decoded into one of the command dataclasses below, wrapped
in an :class:`Envelope` that carries the peer's correlation id. Replies go
back as a :class:`Response` echoing that id.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class AlarmAdd:
    hour: int
    minute: int
    message: Optional[str] = None


@dataclass(frozen=True)
class AlarmUpdate:
    hour: int
    minute: int
    message: Optional[str] = None


@dataclass(frozen=True)
class AlarmDelete:
    pass


@dataclass(frozen=True)
class AlarmDismissCommand:
    pass


@dataclass(frozen=True)
class TimeZoneCommand:
    zone: str


@dataclass(frozen=True)
class TestRequest:
    message: str

    # keep pytest from collecting this as a test class
    __test__ = False


@dataclass(frozen=True)
class StatusCommand:
    pass


@dataclass(frozen=True)
class RestartCommand:
    pass


Command = Union[
    AlarmAdd,
    AlarmUpdate,
    AlarmDelete,
    AlarmDismissCommand,
    TimeZoneCommand,
    TestRequest,
    StatusCommand,
    RestartCommand,
]


@dataclass(frozen=True)
class Envelope:
    """
    One decoded inbound line.

    Parameters
    ----------
    command
        Decoded command, or None when the body failed validation.
    unique
        Correlation id echoed in the reply.
    error
        Validation failure reason when ``command`` is None.
    """

    command: Optional[Command]
    unique: str
    error: Optional[str] = None


@dataclass(frozen=True)
class Response:
    """
    Outbound reply.

    Parameters
    ----------
    name
        ``"status"`` or ``"error"``.
    data
        Status snapshot mapping or error text.
    unique
        Correlation id of the command being answered.
    """

    name: str
    data: Any
    unique: str = ""

    @classmethod
    def error(cls, reason: str, unique: str = "") -> "Response":
        return cls(name="error", data=reason, unique=unique)

    @classmethod
    def status(cls, snapshot: Dict[str, Any], unique: str = "") -> "Response":
        return cls(name="status", data=snapshot, unique=unique)

    def to_dict(self) -> Dict[str, Any]:
        return {"data": {"name": self.name, "data": self.data}, "unique": self.unique}

