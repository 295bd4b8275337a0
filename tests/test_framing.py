"""Tests for command header building and status trailer detection."""

import pytest

from cv60_mcp.protocol.framing import (
    CSW_SIZE,
    DIRECTION_READ,
    DIRECTION_WRITE,
    HEADER_SIZE,
    RX_MAGIC,
    TX_MAGIC,
    build_header,
    is_status_trailer,
    new_check_value,
    opcode_bytes,
    parse_header,
)

OPCODE = bytes([122, 3, 48]) + b"\x00" * 13


def test_build_header_size():
    """Every header must be exactly 31 bytes."""
    assert len(build_header(OPCODE, 65536, True, 1)) == HEADER_SIZE
    assert len(build_header(b"\x7a\x03\xff", 64, True, 1)) == HEADER_SIZE
    assert len(build_header(b"", 0, False, 0)) == HEADER_SIZE


def test_build_header_layout():
    """Magic, check value (BE), size (LE), direction, length, opcode."""
    header = build_header(OPCODE, 65536, True, 0x01020304)
    assert header[0:4] == TX_MAGIC
    assert header[4:8] == bytes([0x01, 0x02, 0x03, 0x04])
    assert header[8:12] == bytes([0x00, 0x00, 0x01, 0x00])
    assert header[12] == DIRECTION_READ
    assert header[13] == 0x00
    assert header[14] == 16
    assert header[15:31] == OPCODE


def test_build_header_write_direction():
    header = build_header(OPCODE, 48, False, 7)
    assert header[12] == DIRECTION_WRITE
    assert header[8:12] == bytes([48, 0, 0, 0])


def test_build_header_negative_check_value():
    """Negative check values are sent as two's complement big-endian."""
    header = build_header(OPCODE, 16, True, -2)
    assert header[4:8] == b"\xff\xff\xff\xfe"


def test_build_header_short_opcode_zero_padded():
    """Short opcodes keep length byte 16 and are padded with zeros."""
    header = build_header([122, 3, -1], 64, True, 5)
    assert header[14] == 16
    assert header[15:18] == b"\x7a\x03\xff"
    assert header[18:] == b"\x00" * 13


def test_build_header_opcode_too_long():
    with pytest.raises(ValueError):
        build_header(b"\x00" * 17, 0, True, 0)


def test_opcode_bytes_signed_and_unsigned():
    """Signed and unsigned byte notations produce the same opcode."""
    assert opcode_bytes([122, 1, -123]) == opcode_bytes([0x7A, 0x01, 0x85])
    with pytest.raises(ValueError):
        opcode_bytes([256])


def test_parse_header_roundtrip():
    header = build_header(OPCODE, 1234, False, -99)
    parsed = parse_header(header)
    assert parsed is not None
    assert parsed.check_value == -99
    assert parsed.max_recv_size == 1234
    assert parsed.is_read is False
    assert parsed.opcode == OPCODE


def test_parse_header_rejects_non_headers():
    assert parse_header(b"USBC") is None
    assert parse_header(b"\x00" * HEADER_SIZE) is None


def _trailer(check: bytes) -> bytes:
    return RX_MAGIC + check + b"\x00" * 5


def test_trailer_too_short():
    """Buffers under 13 bytes are never trailers."""
    assert not is_status_trailer(b"", 0)
    assert not is_status_trailer(_trailer(b"\x00\x00\x00\x01")[:12], 0)


def test_trailer_matches_check_value():
    trailer = _trailer((0x0A0B0C0D).to_bytes(4, "big"))
    assert len(trailer) == CSW_SIZE
    assert is_status_trailer(trailer, 0x0A0B0C0D)
    assert not is_status_trailer(trailer, 0x0A0B0C0E)


def test_trailer_check_value_zero_only_checks_magic():
    trailer = _trailer(b"\xde\xad\xbe\xef")
    assert is_status_trailer(trailer, 0)


def test_trailer_wrong_magic():
    trailer = b"USBC" + (5).to_bytes(4, "big") + b"\x00" * 5
    assert not is_status_trailer(trailer, 5)
    assert not is_status_trailer(trailer, 0)


def test_trailer_at_end_of_data_chunk():
    """Only the last 13 bytes are considered."""
    trailer = _trailer((42).to_bytes(4, "big"))
    assert is_status_trailer(b"payload" + trailer, 42)
    assert not is_status_trailer(trailer + b"x", 42)


def test_trailer_negative_check_value():
    trailer = _trailer(b"\xff\xff\xff\xff")
    assert is_status_trailer(trailer, -1)


def test_new_check_value_fits_signed_32_bits():
    for _ in range(100):
        value = new_check_value()
        assert -(2**31) <= value < 2**31
