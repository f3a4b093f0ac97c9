from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Optional

from alarmd.log import setup_logging
from alarmd.services.controller import RemoteController
from alarmd.transport.client_config import HOST, PORT, RECONNECT_DELAY_S, TIMEOUT_S
from alarmd.transport.tcp_client import TCPNDJSONClient

TAG = __name__
logger = setup_logging()


@dataclass(frozen=True)
class ControlReceiverConfig:
    """
    Configuration for the control receiver thread.

    Parameters
    ----------
    host
        Control server host.
    port
        Control server port.
    reconnect_delay_s
        Fixed delay in seconds between reconnect attempts after a failure.
    connect_timeout_s
        TCP connect timeout (seconds) used during the connect phase.
    """

    host: str = HOST
    port: int = PORT
    reconnect_delay_s: float = RECONNECT_DELAY_S
    connect_timeout_s: float = TIMEOUT_S


class ControlReceiverThread:
    """
    Dedicated I/O thread that owns the remote-control connection.

    Responsibilities
    ----------------
    - Own and manage the TCP connection lifecycle.
    - Reconnect after a fixed delay on failures until stopped.
    - Hand each decoded envelope to :class:`RemoteController` and write the
      reply back on the same connection.
    - Keep ``controller.connected_at`` current for the status snapshot.

    Commands are handled inline, one at a time, in arrival order. The only
    potentially slow command is ``test_request`` (one HTTP call).

    Stop Behavior
    -------------
    :meth:`stop` sets the shared stop event and closes the socket to break a
    blocking receive.
    """

    def __init__(
        self,
        cfg: ControlReceiverConfig,
        controller: RemoteController,
        stop_event: threading.Event,
    ):
        self._cfg = cfg
        self._controller = controller
        self._stop = stop_event
        self._thread = threading.Thread(target=self._run, name="control-receiver", daemon=True)
        self._client: Optional[TCPNDJSONClient] = None

    def start(self) -> None:
        if not self._thread.is_alive():
            self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        client = self._client
        if client:
            client.close()

    def join(self, timeout: float | None = 2.0) -> None:
        if self._thread.is_alive():
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _serve(self, client: TCPNDJSONClient) -> None:
        for env in client.envelopes():
            if self._stop.is_set():
                break
            resp = self._controller.handle_envelope(env)
            if resp is not None:
                client.send(resp)

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._client = TCPNDJSONClient(
                    host=self._cfg.host,
                    port=self._cfg.port,
                    timeout_s=self._cfg.connect_timeout_s,
                )
                self._client.connect()
                self._controller.connected_at = time.monotonic()
                self._client.send(self._controller.status_response())
                self._serve(self._client)

            except Exception as e:
                if self._stop.is_set():
                    break
                logger.bind(tag=TAG).error(
                    f"connection/recv error: {e!r}; reconnecting in {self._cfg.reconnect_delay_s}s"
                )
                self._stop.wait(self._cfg.reconnect_delay_s)

            finally:
                self._controller.connected_at = None
                if self._client:
                    self._client.close()
                self._client = None
