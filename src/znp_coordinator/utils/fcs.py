"""Frame check sequence used by the ZNP serial transport.

The FCS is a single-byte running XOR over every byte of the general format
frame (length, class, command and payload). It only detects corruption; it
cannot correct it.
"""

from __future__ import annotations


def calculate_fcs(data: bytes) -> int:
    """Return the XOR fold of ``data`` as an int in 0-255."""
    fcs = 0
    for byte in data:
        fcs ^= byte
    return fcs


def verify_fcs(data: bytes, fcs: int) -> bool:
    """Check ``fcs`` against the value calculated over ``data``."""
    return calculate_fcs(data) == fcs
