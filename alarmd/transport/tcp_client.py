from __future__ import annotations

import socket
import threading
from dataclasses import dataclass, field
from typing import Iterator, Optional

from alarmd.domain.commands import Envelope, Response
from alarmd.log import setup_logging
from alarmd.transport.client_config import HOST, PORT, TIMEOUT_S
from alarmd.transport.ndjson import decode_envelope, encode_response

TAG = __name__
logger = setup_logging()


@dataclass
class TCPNDJSONClient:
    """
    TCP client for the remote-control channel.

    The service dials out to a control server and then exchanges NDJSON
    lines in both directions:
    - raw inbound lines via :meth:`lines`
    - decoded command envelopes via :meth:`envelopes`
    - outbound replies via :meth:`send`

    Notes
    -----
    - This class is an infrastructure component. It does not interpret
      commands.
    - :meth:`envelopes` is tolerant: malformed lines are logged and skipped.
    - :meth:`send` may be called from a different thread than the reader;
      writes are serialized by a lock.

    Parameters
    ----------
    host
        Remote host address of the control server.
    port
        Remote TCP port.
    timeout_s
        Connection timeout (seconds) used for initial connect only.
    """

    host: str = HOST
    port: int = PORT
    timeout_s: float = TIMEOUT_S

    _sock: Optional[socket.socket] = None
    _send_lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def connect(self) -> None:
        """
        Open a TCP connection to the configured host/port.

        After connecting the timeout is cleared (blocking mode) so the reader
        can wait indefinitely for the next command.
        """
        sock = socket.create_connection((self.host, self.port), timeout=self.timeout_s)
        sock.settimeout(None)
        self._sock = sock
        logger.bind(tag=TAG).info(f"Connected to control server at {self.host}:{self.port}")

    @property
    def connected(self) -> bool:
        return self._sock is not None

    def lines(self) -> Iterator[str]:
        """
        Yield complete NDJSON lines from the socket stream.

        Raises
        ------
        RuntimeError
            If called before :meth:`connect`.
        ConnectionError
            If the remote side closes the connection.
        """
        if not self._sock:
            raise RuntimeError("Not connected")

        buf = b""
        while True:
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionError("Server closed connection")
            buf += chunk

            while b"\n" in buf:
                line, buf = buf.split(b"\n", 1)
                s = line.decode("utf-8", errors="replace").strip()
                if s:
                    yield s

    def envelopes(self) -> Iterator[Envelope]:
        """
        Yield decoded command envelopes from the NDJSON stream.

        Lines that are not a valid envelope are logged and skipped.
        """
        for line in self.lines():
            try:
                yield decode_envelope(line)
            except ValueError as e:
                logger.bind(tag=TAG).warning(f"Bad line ({e}): {line[:200]!r}")
                continue

    def send(self, resp: Response) -> None:
        """
        Write one reply line.

        Raises
        ------
        RuntimeError
            If not connected.
        OSError
            If the write fails.
        """
        sock = self._sock
        if sock is None:
            raise RuntimeError("Not connected")
        payload = encode_response(resp)
        with self._send_lock:
            sock.sendall(payload)

    def close(self) -> None:
        """Close the underlying socket if open. Close errors are only logged."""
        if self._sock:
            try:
                self._sock.close()
            except OSError as e:
                logger.bind(tag=TAG).debug(f"close failed: {e!r}")
            self._sock = None
