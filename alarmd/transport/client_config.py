from __future__ import annotations

"""
Default remote-control connection settings.

These values are used by the TCP client and the control receiver thread
unless config.yaml overrides them.

Attributes
----------
HOST
    Default host of the remote-control server.
PORT
    Default TCP port of the remote-control server.
TIMEOUT_S
    Default connect timeout (seconds).
RECONNECT_DELAY_S
    Fixed delay (seconds) before reconnecting after the connection drops.
"""

HOST: str = "127.0.0.1"
PORT: int = 9009
TIMEOUT_S: float = 5.0
RECONNECT_DELAY_S: float = 5.0
