"""Exception hierarchy for the coordinator.

Per-frame problems derive from :class:`ProtocolError` and are recovered by
dropping the frame. :class:`TransportReadFailure` is fatal for the process.
"""

from __future__ import annotations


class ZnpError(Exception):
    """Base class for all coordinator errors."""


class ProtocolError(ZnpError):
    """A single frame could not be decoded or interpreted."""


class FramingError(ProtocolError):
    """Missing start-of-frame marker, truncated frame or bad length."""


class IntegrityError(ProtocolError):
    """The frame check sequence does not match the frame contents."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"FCS mismatch: frame carries 0x{actual:02X}, "
            f"calculated 0x{expected:02X}"
        )
        self.expected = expected
        self.actual = actual


class PayloadError(ProtocolError):
    """A known command arrived with a payload that cannot be parsed."""


class TransportReadFailure(ZnpError):
    """The blocking read on the serial transport failed."""
