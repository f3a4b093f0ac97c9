from __future__ import annotations

import threading
from dataclasses import dataclass

from alarmd.log import setup_logging
from alarmd.runtime.alarm_actor import ControlHandle
from alarmd.runtime.control_receiver_thread import ControlReceiverConfig, ControlReceiverThread
from alarmd.services.controller import RemoteController

TAG = __name__
logger = setup_logging()


@dataclass(frozen=True)
class AppRuntimeConfig:
    """
    Runtime configuration for the remote-control connection.

    Parameters
    ----------
    control_host
        TCP host of the control server.
    control_port
        TCP port of the control server.
    reconnect_delay_s
        Delay (seconds) between reconnect attempts after network errors.
    connect_timeout_s
        TCP connect timeout (seconds).
    """

    control_host: str
    control_port: int
    reconnect_delay_s: float = 5.0
    connect_timeout_s: float = 5.0


class AppRuntime:
    """
    Thread supervisor for the running service.

    Thread Topology
    ---------------
    1) Alarm actor (started by :meth:`AlarmSchedule.init`)
       - owns the alarm/timezone snapshot
       - supervises the ticker and dispatch-sequence threads

    2) ControlReceiverThread (I/O)
       - owns the control TCP connection
       - passes each command to RemoteController and writes the reply

    Notes
    -----
    All threads are daemon threads; :meth:`stop` + join are still used for a
    clean shutdown.
    """

    def __init__(
        self,
        cfg: AppRuntimeConfig,
        controller: RemoteController,
        schedule: ControlHandle,
    ):
        self._cfg = cfg
        self._controller = controller
        self._schedule = schedule
        self._stop = threading.Event()

        self._receiver = ControlReceiverThread(
            ControlReceiverConfig(
                host=cfg.control_host,
                port=cfg.control_port,
                reconnect_delay_s=cfg.reconnect_delay_s,
                connect_timeout_s=cfg.connect_timeout_s,
            ),
            controller=controller,
            stop_event=self._stop,
        )

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        """Start the control receiver. The actor is already running."""
        self._receiver.start()
        logger.bind(tag=TAG).info(
            f"Runtime started (control server {self._cfg.control_host}:{self._cfg.control_port})"
        )

    def stop(self) -> None:
        """Stop the receiver and the actor, waiting briefly for both."""
        self._receiver.stop()
        self._schedule.stop()
        self._receiver.join(timeout=2.0)
        logger.bind(tag=TAG).info("Runtime stopped")
