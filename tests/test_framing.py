"""Tests for frame building, parsing and stream slicing."""

import pytest

from znp_coordinator.exceptions import FramingError, IntegrityError
from znp_coordinator.protocol.framing import (
    MAX_PAYLOAD_SIZE,
    SOF,
    Frame,
    FrameBuffer,
    build_frame,
    parse_frame,
)


def test_build_frame_layout():
    """[SOF, length, class, command, payload..., fcs]."""
    frame = build_frame(0x26, 0x05, b"\x03\x01\x00")
    assert frame == bytes([0xFE, 0x03, 0x26, 0x05, 0x03, 0x01, 0x00, 0x22])


def test_build_frame_empty_payload():
    frame = build_frame(0x26, 0x00)
    assert frame == bytes([SOF, 0x00, 0x26, 0x00, 0x26])


def test_build_frame_rejects_oversize_payload():
    with pytest.raises(ValueError):
        build_frame(0x26, 0x05, bytes(MAX_PAYLOAD_SIZE + 1))


def test_build_frame_rejects_wide_command():
    with pytest.raises(ValueError):
        build_frame(0x126, 0x05)


def test_roundtrip_every_payload_length():
    """Decoding an encoded frame yields the same class, command and payload."""
    for length in range(MAX_PAYLOAD_SIZE + 1):
        payload = bytes((i * 7 + length) & 0xFF for i in range(length))
        parsed = parse_frame(build_frame(0x67, 0x49, payload))
        assert parsed == Frame(0x67, 0x49, payload)


def test_parse_ignores_trailing_bytes():
    data = build_frame(0x41, 0x80, b"\x00\x02\x01\x02\x06\x03") + b"\x00" * 10
    assert parse_frame(data).payload == b"\x00\x02\x01\x02\x06\x03"


def test_parse_bad_start_marker():
    frame = bytearray(build_frame(0x66, 0x05, b"\x00"))
    frame[0] = 0xFD
    with pytest.raises(FramingError):
        parse_frame(bytes(frame))


def test_any_flipped_fcs_bit_is_detected():
    frame = build_frame(0x67, 0x48, b"\x02\x00")
    for bit in range(8):
        corrupt = bytearray(frame)
        corrupt[-1] ^= 1 << bit
        with pytest.raises(IntegrityError):
            parse_frame(bytes(corrupt))


def test_integrity_error_reports_values():
    corrupt = bytearray(build_frame(0x66, 0x00))
    corrupt[-1] = 0x00
    with pytest.raises(IntegrityError) as info:
        parse_frame(bytes(corrupt))
    assert info.value.expected == 0x66
    assert info.value.actual == 0x00


def test_parse_truncated_frame():
    frame = build_frame(0x67, 0x48, b"\x02\x00")
    with pytest.raises(FramingError):
        parse_frame(frame[:-1])


def test_parse_empty_buffer():
    with pytest.raises(FramingError):
        parse_frame(b"")


def test_parse_oversize_length_byte():
    with pytest.raises(FramingError):
        parse_frame(bytes([SOF, 251, 0x66, 0x05]) + bytes(252))


def test_frame_repr():
    r = repr(Frame(0x45, 0xC0, b"\x09"))
    assert "0x45" in r
    assert "0xC0" in r


def test_buffer_single_frame():
    frame = build_frame(0x66, 0x05, b"\x00")
    assert FrameBuffer().feed(frame) == [frame]


def test_buffer_several_frames_in_one_read():
    first = build_frame(0x66, 0x05, b"\x00")
    second = build_frame(0x45, 0xC0, b"\x09")
    assert FrameBuffer().feed(first + second) == [first, second]


def test_buffer_frame_split_across_reads():
    frame = build_frame(0x67, 0x49, b"\x34\x12\x00\x00")
    buffer = FrameBuffer()
    assert buffer.feed(frame[:3]) == []
    assert len(buffer) == 3
    assert buffer.feed(frame[3:]) == [frame]
    assert len(buffer) == 0


def test_buffer_returns_leading_garbage_separately():
    frame = build_frame(0x66, 0x00)
    slices = FrameBuffer().feed(b"\x00\x11" + frame)
    assert slices == [b"\x00\x11", frame]
    with pytest.raises(FramingError):
        parse_frame(slices[0])


def test_buffer_resyncs_after_bogus_length():
    frame = build_frame(0x66, 0x00)
    slices = FrameBuffer().feed(bytes([SOF, 0xFF]) + frame)
    assert slices[-1] == frame
