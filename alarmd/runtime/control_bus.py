from __future__ import annotations

from dataclasses import dataclass, field
from queue import Full, Queue

from alarmd.config.settings import DEFAULTS
from alarmd.domain.messages import ControlMessage
from alarmd.log import setup_logging

TAG = __name__
logger = setup_logging()


@dataclass
class ControlBus:
    """
    Inbox of the alarm actor, backed by a bounded thread-safe queue.

    Producers (ticker thread, remote-control thread) publish
    :data:`~alarmd.domain.messages.ControlMessage` values; the actor thread is
    the only consumer and drains :attr:`control_q` in arrival order.

    Backpressure Policy
    -------------------
    Publishing never blocks. If the queue is full the message is dropped and
    a warning is logged; there is no retry.

    Attributes
    ----------
    control_q
        Bounded FIFO of control messages.
    """

    control_q: "Queue[ControlMessage]" = field(
        default_factory=lambda: Queue(maxsize=DEFAULTS.control_queue_size)
    )

    @classmethod
    def with_capacity(cls, maxsize: int) -> "ControlBus":
        return cls(control_q=Queue(maxsize=maxsize))

    def publish(self, msg: ControlMessage) -> bool:
        """
        Enqueue a control message without blocking.

        Returns
        -------
        bool
            False when the message was dropped.
        """
        try:
            self.control_q.put_nowait(msg)
        except Full:
            logger.bind(tag=TAG).warning(f"Control queue full; dropped {type(msg).__name__}")
            return False
        return True
