from __future__ import annotations

from dataclasses import dataclass

import requests

from alarmd.config.settings import VERSION
from alarmd.domain.errors import TransportError
from alarmd.domain.models import Priority
from alarmd.notification.base import PushAck, render_params

PUSHOVER_URL = "https://api.pushover.net/1/messages.json"


@dataclass(frozen=True)
class PushoverConfig:
    """
    Configuration for Pushover-based notifications.

    Parameters
    ----------
    url
        Pushover messages endpoint.
    timeout_s
        HTTP timeout in seconds (connect and read).
    verify_tls
        Whether to verify TLS certificates.
    """

    url: str = PUSHOVER_URL
    timeout_s: float = 5.0
    verify_tls: bool = True


class PushoverTransport:
    """
    Push transport that delivers messages through the Pushover HTTP API.

    Notes
    -----
    - This class performs side effects (network I/O).
    - Every ``requests`` failure, including non-2xx responses, surfaces as
      :class:`TransportError`.
    """

    def __init__(self, cfg: PushoverConfig | None = None):
        self._cfg = cfg or PushoverConfig()

    def send(self, token_app: str, token_user: str, message: str, priority: Priority) -> PushAck:
        """
        POST one message to Pushover.

        Raises
        ------
        TransportError
            If the request fails or the response status indicates an error.
        """
        try:
            r = requests.post(
                self._cfg.url,
                data=render_params(token_app, token_user, message, priority),
                headers={"User-Agent": f"alarmd/{VERSION}"},
                timeout=self._cfg.timeout_s,
                verify=self._cfg.verify_tls,
            )
            r.raise_for_status()
            body = r.json()
        except (requests.RequestException, ValueError) as exc:
            raise TransportError(f"push failed: {exc}") from exc

        return PushAck(status=int(body.get("status", 0)), request=str(body.get("request", "")))
