"""15-bit additive checksum used by the SiRF binary protocol.

The running sum is masked to 15 bits after every byte, not once at the end.
Receivers compare the result as a 2-byte field, so the top bit is always 0.
"""

from __future__ import annotations

CHECKSUM_MASK = 0x7FFF  # 2**15 - 1
CHECKSUM_SIZE = 2


def checksum(data: bytes) -> int:
    """Compute the checksum of a frame payload.

    Args:
        data: Payload bytes (excluding markers, length and checksum fields).

    Returns:
        An integer in the range 0x0000-0x7FFF.
    """
    total = 0
    for byte in data:
        total = (total + byte) & CHECKSUM_MASK
    return total


def checksum_hex(data: bytes) -> str:
    """Render the checksum as a zero-padded 4-hex-digit string."""
    return f"{checksum(data):04x}"
