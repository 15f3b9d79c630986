"""Interface the reader and the coordinator expect from a transport."""

from __future__ import annotations

from typing import Optional, Protocol


class Transport(Protocol):
    """A byte pipe to the radio, such as an open :class:`SerialConnection`."""

    def read(self) -> Optional[bytes]:
        """Return the bytes available, or ``None`` when the read timed out."""
        ...

    def write(self, data: bytes) -> int: ...
