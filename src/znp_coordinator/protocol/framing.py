"""Frame builder and parser for the ZNP UART transport.

Frame layout::

    +------+--------+---------+---------+------------------+-----+
    | SOF  | Length |  Class  | Command |     Payload      | FCS |
    | 0xFE | 1 byte | 1 byte  | 1 byte  |  0-250 bytes     | 1 B |
    +------+--------+---------+---------+------------------+-----+

- SOF: start-of-frame marker, excluded from the FCS
- Length: number of payload bytes
- Class: command type (SREQ/AREQ/SRSP) OR-ed with the subsystem id
- FCS: XOR of Length, Class, Command and every payload byte
"""

from __future__ import annotations

from dataclasses import dataclass

from ..exceptions import FramingError, IntegrityError
from ..utils.fcs import calculate_fcs

SOF = 0xFE
HEADER_SIZE = 4  # SOF + length + class + command
MAX_PAYLOAD_SIZE = 250
MAX_READ_SIZE = 256


@dataclass(frozen=True)
class Frame:
    """A decoded protocol frame."""

    frame_class: int
    command: int
    payload: bytes = b""

    def __repr__(self) -> str:
        return (
            f"Frame(class=0x{self.frame_class:02X}, "
            f"command=0x{self.command:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )

    @property
    def key(self) -> tuple[int, int]:
        """The ``(class, command)`` pair used for routing."""
        return self.frame_class, self.command


def build_frame(frame_class: int, command: int, payload: bytes = b"") -> bytes:
    """Build a complete wire frame.

    Args:
        frame_class: Command type OR-ed with the subsystem id.
        command: Command id within the subsystem.
        payload: Command-specific payload bytes.

    Returns:
        ``bytes`` ready to be written to the serial port.
    """
    if not 0 <= frame_class <= 0xFF or not 0 <= command <= 0xFF:
        raise ValueError(
            f"Class and command must be single bytes, got "
            f"{frame_class!r}, {command!r}"
        )
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload must be at most {MAX_PAYLOAD_SIZE} bytes, got {len(payload)}"
        )
    body = bytes([len(payload), frame_class, command]) + bytes(payload)
    return bytes([SOF]) + body + bytes([calculate_fcs(body)])


def parse_frame(data: bytes) -> Frame:
    """Decode a raw buffer that starts with one frame.

    Bytes after the FCS are ignored.

    Raises:
        FramingError: The start marker is missing, the buffer is too short
            or the length byte exceeds the payload ceiling.
        IntegrityError: The FCS does not match.
    """
    if not data:
        raise FramingError("Empty buffer")
    if data[0] != SOF:
        raise FramingError(f"Invalid start of frame 0x{data[0]:02X}")
    if len(data) < HEADER_SIZE + 1:
        raise FramingError(f"Truncated frame: {len(data)} bytes")

    length = data[1]
    if length > MAX_PAYLOAD_SIZE:
        raise FramingError(
            f"Payload length {length} exceeds {MAX_PAYLOAD_SIZE} bytes"
        )

    frame_end = HEADER_SIZE + length
    if len(data) < frame_end + 1:
        raise FramingError(
            f"Truncated frame: need {frame_end + 1} bytes, got {len(data)}"
        )

    expected = calculate_fcs(data[1:frame_end])
    actual = data[frame_end]
    if expected != actual:
        raise IntegrityError(expected=expected, actual=actual)

    return Frame(
        frame_class=data[2],
        command=data[3],
        payload=bytes(data[HEADER_SIZE:frame_end]),
    )


class FrameBuffer:
    """Slices raw frames out of a byte stream.

    A serial read may return part of a frame, exactly one frame or several
    frames at once. Bytes that precede a start marker are returned as a
    slice of their own so that :func:`parse_frame` reports them as a
    :class:`FramingError`.

    Usage::

        buffer = FrameBuffer()
        for raw in buffer.feed(chunk):
            frame = parse_frame(raw)
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def clear(self) -> None:
        self._buffer.clear()

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append ``chunk`` and return every complete raw slice."""
        self._buffer.extend(chunk)
        slices: list[bytes] = []

        while self._buffer:
            if self._buffer[0] != SOF:
                start = self._buffer.find(SOF)
                end = len(self._buffer) if start == -1 else start
                slices.append(bytes(self._buffer[:end]))
                del self._buffer[:end]
                continue

            if len(self._buffer) < 2:
                break

            length = self._buffer[1]
            if length > MAX_PAYLOAD_SIZE:
                # Not a real header; hand it to the parser and resync.
                slices.append(bytes(self._buffer[:2]))
                del self._buffer[:2]
                continue

            frame_size = HEADER_SIZE + length + 1
            if len(self._buffer) < frame_size:
                break

            slices.append(bytes(self._buffer[:frame_size]))
            del self._buffer[:frame_size]

        return slices
