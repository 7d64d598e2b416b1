"""Tests for the 15-bit additive checksum."""

from sirf_binary_mcp.utils.checksum import CHECKSUM_MASK, checksum, checksum_hex


def test_checksum_empty():
    """Checksum of an empty payload is zero."""
    assert checksum(b"") == 0
    assert checksum_hex(b"") == "0000"


def test_checksum_poll_software_version():
    """Payload 84 00 sums to 0x84 and renders zero-padded."""
    assert checksum(bytes.fromhex("8400")) == 0x0084
    assert checksum_hex(bytes.fromhex("8400")) == "0084"


def test_checksum_wraps_at_15_bits():
    """Long payloads wrap modulo 0x8000."""
    data = b"\xFF" * 300
    # 300 * 0xFF = 76500, 76500 - 2 * 0x8000 = 10964
    assert checksum(data) == 10964


def test_checksum_top_bit_always_clear():
    """The result never uses bit 15."""
    for data in (b"\xFF" * 129, b"\x80" * 256, bytes(range(256)) * 4):
        assert checksum(data) <= CHECKSUM_MASK


def test_checksum_deterministic():
    """Same input should always produce same output."""
    data = b"\x02\x01\x02\x03"
    assert checksum(data) == checksum(data)


def test_checksum_single_byte_mutation():
    """Changing one byte changes the checksum."""
    data = bytearray(b"\x06GSW3.5.0")
    original = checksum(bytes(data))
    data[3] ^= 0x01
    assert checksum(bytes(data)) != original
