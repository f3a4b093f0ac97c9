from __future__ import annotations

import signal
import sys
import threading

from alarmd.bootstrap import build_app_system
from alarmd.config.settings import VERSION
from alarmd.log import setup_logging

TAG = __name__
logger = setup_logging()


def main() -> None:
    """
    Start the alarm service and block until shutdown.

    Notes
    -----
    - Loads configuration from `config.yaml` by default.
    - Optional CLI usage:
        python -m alarmd.dev.run_app --config path/to/config.yaml
    - SIGINT/SIGTERM and the remote ``restart`` command all stop the runtime
      and exit 0; a supervisor (systemd, container restart policy) is
      expected to start the process again.
    """
    config_path = None
    if "--config" in sys.argv:
        i = sys.argv.index("--config")
        if i + 1 < len(sys.argv):
            config_path = sys.argv[i + 1]

    shutdown = threading.Event()

    def _request_shutdown(*_args) -> None:
        shutdown.set()

    signal.signal(signal.SIGINT, _request_shutdown)
    signal.signal(signal.SIGTERM, _request_shutdown)

    wiring = build_app_system(config_path=config_path, restart_hook=_request_shutdown)
    logger.bind(tag=TAG).info(f"alarmd {VERSION} starting")
    wiring.runtime.start()

    while not shutdown.wait(1.0):
        pass

    logger.bind(tag=TAG).info("Shutting down")
    wiring.runtime.stop()
    wiring.store.close()
    sys.exit(0)


if __name__ == "__main__":
    main()
