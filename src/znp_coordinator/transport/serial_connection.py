"""Serial connection to the ZNP radio.

The radio enumerates as a USB CDC-ACM serial port (e.g. ``/dev/ttyACM0``).
Reads block until at least one byte arrives or the read timeout expires;
writes are serialized so handlers and operator calls can share the port.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

import serial

from ..protocol.framing import MAX_READ_SIZE

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyACM0"
DEFAULT_BAUDRATE = 115200
READ_TIMEOUT_S = 1.0


@dataclass
class PortInfo:
    """Parameters of the open port."""

    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float | None = READ_TIMEOUT_S


class SerialConnection:
    """Manages the serial link to the radio.

    Usage::

        conn = SerialConnection("/dev/ttyACM0")
        conn.open()
        conn.write(frame_bytes)
        chunk = conn.read()
        conn.close()
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float | None = READ_TIMEOUT_S,
    ) -> None:
        self._info = PortInfo(port=port, baudrate=baudrate, timeout=timeout)
        self._serial: serial.Serial | None = None
        self._write_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port_info(self) -> PortInfo:
        return self._info

    def open(self) -> PortInfo:
        """Open the serial port.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        if self.connected:
            return self._info

        try:
            self._serial = serial.Serial(
                port=self._info.port,
                baudrate=self._info.baudrate,
                timeout=self._info.timeout,
                write_timeout=self._info.timeout,
            )
        except serial.SerialException as e:
            raise ConnectionError(
                f"Could not open {self._info.port} at {self._info.baudrate} baud. "
                f"Ensure the radio is connected and you have permissions. "
                f"Last error: {e}"
            ) from e

        logger.info("Serial connected: %s @ %d", self._info.port, self._info.baudrate)
        return self._info

    def close(self) -> None:
        """Close the serial port."""
        if self._serial is None:
            return

        try:
            self._serial.close()
        except serial.SerialException as e:
            logger.warning("Error closing port: %s", e)
        finally:
            self._serial = None
            logger.info("Disconnected")

    def write(self, data: bytes) -> int:
        """Write one encoded frame.

        Raises:
            ConnectionError: If not connected.
        """
        if not self.connected:
            raise ConnectionError("Not connected to radio")

        with self._write_lock:
            written = self._serial.write(data)
            self._serial.flush()
        logger.debug("TX %s", data.hex(" "))
        return written

    def read(self, max_size: int = MAX_READ_SIZE) -> bytes | None:
        """Read whatever the radio has sent, up to ``max_size`` bytes.

        Returns:
            The bytes read, or None if the read timed out.

        Raises:
            ConnectionError: If not connected.
            serial.SerialException: If the port fails.
        """
        if not self.connected:
            raise ConnectionError("Not connected to radio")

        data = self._serial.read(1)
        if not data:
            return None

        waiting = self._serial.in_waiting
        if waiting:
            data += self._serial.read(min(waiting, max_size - 1))
        logger.debug("RX %s", data.hex(" "))
        return data
