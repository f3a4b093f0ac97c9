from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from alarmd.core.rate_limiter import RateLimiter
from alarmd.domain.models import DispatchRequest, Priority, RequestClass, RequestLogEntry
from alarmd.log import setup_logging
from alarmd.notification.base import PushAck, PushTransport

TAG = __name__
logger = setup_logging()


class RequestLogWriter(Protocol):
    def append_request_log(self, request_class: RequestClass, timestamp: int) -> RequestLogEntry:
        ...


def unix_now() -> int:
    return int(time.time())


@dataclass
class NotificationDispatcher:
    """
    Mediate every outbound push through the rate limiter and the request log.

    Order per attempt
    -----------------
    1. Count prior attempts of the class in the trailing window.
    2. Reject with ``TooManyRequests(count)`` at or above the ceiling; nothing
       is recorded and the transport is not called.
    3. Append a request-log entry at the same ``now`` used for counting.
    4. Call the push transport. A ``TransportError`` propagates to the
       caller and the log entry stays: an attempt was made and it counts.

    Parameters
    ----------
    limiter
        Rate limiter reading the request log.
    log
        Request log writer (usually the same store the limiter reads).
    transport
        Push transport.
    token_app, token_user
        Pushover application and user tokens.
    clock
        Returns the current unix time in seconds.
    """

    limiter: RateLimiter
    log: RequestLogWriter
    transport: PushTransport
    token_app: str
    token_user: str
    clock: Callable[[], int] = unix_now

    def dispatch(
        self,
        request_class: RequestClass,
        message: str,
        index: Optional[int] = None,
    ) -> PushAck:
        """
        Send one push attempt.

        Raises
        ------
        TooManyRequests
            If the class ceiling is reached.
        TransportError
            If delivery failed.
        """
        return self.send(DispatchRequest(request_class=request_class, message=message, index=index))

    def send(self, req: DispatchRequest) -> PushAck:
        now = self.clock()
        count = self.limiter.check(req.request_class, now)

        self.log.append_request_log(req.request_class, now)
        logger.bind(tag=TAG).debug(
            f"Sending {req.request_class.value} push "
            f"(attempt={req.index}, prior_in_window={count})"
        )
        ack = self.transport.send(
            self.token_app,
            self.token_user,
            req.message,
            Priority.for_class(req.request_class),
        )
        logger.bind(tag=TAG).debug(f"Push sent (request={ack.request or '-'})")
        return ack
