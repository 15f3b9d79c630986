"""Tests for the XOR frame check sequence."""

from znp_coordinator.utils.fcs import calculate_fcs, verify_fcs


def test_fcs_empty():
    """The FCS of no bytes is zero."""
    assert calculate_fcs(b"") == 0


def test_fcs_known_value():
    """ZB_WRITE_CONFIGURATION for STARTUP_OPTION = 0x00."""
    assert calculate_fcs(bytes([0x03, 0x26, 0x05, 0x03, 0x01, 0x00])) == 0x22


def test_fcs_reset_request():
    assert calculate_fcs(bytes([0x01, 0x41, 0x00, 0x00])) == 0x40


def test_fcs_self_cancelling():
    """XOR of a byte with itself cancels out."""
    assert calculate_fcs(b"\x5A\x5A") == 0


def test_verify_fcs():
    data = bytes([0x02, 0x67, 0x48, 0x02, 0x00])
    assert verify_fcs(data, calculate_fcs(data))
    assert not verify_fcs(data, calculate_fcs(data) ^ 0x01)
