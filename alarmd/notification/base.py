from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Protocol

from alarmd.domain.models import Priority


@dataclass(frozen=True)
class PushAck:
    """
    Acknowledgement returned by a push transport.

    Parameters
    ----------
    status
        Provider status code (Pushover returns 1 on success).
    request
        Provider request id, useful when correlating with provider logs.
    """

    status: int
    request: str = ""


class PushTransport(Protocol):
    """
    Protocol interface for outbound push delivery.

    Any transport can be used if it provides ``send(...)`` with this
    signature. This keeps the dispatcher testable with fakes.

    Methods
    -------
    send(token_app, token_user, message, priority)
        Deliver one push. Raises :class:`~alarmd.domain.errors.TransportError`
        on failure.
    """

    def send(self, token_app: str, token_user: str, message: str, priority: Priority) -> PushAck:
        ...


def render_params(token_app: str, token_user: str, message: str, priority: Priority) -> Dict[str, Any]:
    """
    Render the fixed push fields.

    Returns
    -------
    dict
        ``token``, ``user``, ``message`` and ``priority`` form fields.
    """
    return {
        "token": token_app,
        "user": token_user,
        "message": message,
        "priority": priority.value,
    }
