"""Headless coordinator: bring the radio up and run until interrupted."""

from __future__ import annotations

import logging
import sys

from .config import CoordinatorSettings
from .coordinator.engine import Coordinator
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


def main() -> int:
    """Run until SIGINT; exit non-zero if the transport fails."""
    settings = CoordinatorSettings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    connection = SerialConnection(
        settings.port, settings.baudrate, timeout=settings.read_timeout
    )
    try:
        connection.open()
    except ConnectionError as e:
        logger.error("%s", e)
        return 1

    coordinator = Coordinator(connection, settings)
    try:
        coordinator.start()
        while not coordinator.wait_for_failure(timeout=1.0):
            pass
        logger.error("Transport failed: %s", coordinator.failure)
        return 1
    except KeyboardInterrupt:
        return 0
    finally:
        coordinator.stop()
        connection.close()


if __name__ == "__main__":
    sys.exit(main())
