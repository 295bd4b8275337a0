"""Command header builder and status trailer detection for bulk transfers.

Every exchange starts with a 31-byte command header written to the bulk
OUT endpoint::

    +-------+-------------+------------------+-----------+----------+--------+-------------+---------+
    | Magic | Check value | Max receive size | Direction | Reserved | Length |   Opcode    | Padding |
    | 4 B   | 4 B (BE)    | 4 B (LE)         | 1 byte    | 1 byte   | 1 byte | up to 16 B  | to 31 B |
    +-------+-------------+------------------+-----------+----------+--------+-------------+---------+

- Magic: ``USBC``
- Check value: signed 32-bit correlation value echoed back by the camera
- Direction: 0x80 for reads, 0x00 for writes
- Length: always 16, even for shorter opcodes

The camera terminates each transfer with a 13-byte status trailer (CSW)
at the end of the last chunk::

    +-------+-------------+----------+
    | Magic | Check value | Unknown  |
    | 4 B   | 4 B (BE)    | 5 bytes  |
    +-------+-------------+----------+

- Magic: ``USBS``
"""

from __future__ import annotations

import random
import struct
from dataclasses import dataclass
from typing import Iterable

TX_MAGIC = b"USBC"
RX_MAGIC = b"USBS"
HEADER_SIZE = 31
CSW_SIZE = 13
OPCODE_LENGTH = 16

DIRECTION_READ = 0x80
DIRECTION_WRITE = 0x00

_HEADER_PREFIX = struct.Struct(">4si")  # magic, check value
_MAX_RECV = struct.Struct("<i")


@dataclass
class Header:
    """A decoded 31-byte command header."""

    check_value: int
    max_recv_size: int
    is_read: bool
    opcode: bytes

    def __repr__(self) -> str:
        return (
            f"Header(check_value={self.check_value:#010x}, "
            f"max_recv_size={self.max_recv_size}, "
            f"is_read={self.is_read}, opcode={self.opcode.hex(' ')})"
        )


def opcode_bytes(opcode: Iterable[int]) -> bytes:
    """Normalise an opcode given as signed or unsigned byte values.

    ``[122, 1, -123]`` and ``[0x7A, 0x01, 0x85]`` produce the same bytes.
    """
    out = bytearray()
    for value in opcode:
        if not -128 <= value <= 255:
            raise ValueError(f"Opcode byte out of range: {value}")
        out.append(value & 0xFF)
    return bytes(out)


def build_header(
    opcode: Iterable[int],
    max_recv_size: int,
    is_read: bool,
    check_value: int,
) -> bytes:
    """Build the 31-byte command header for one exchange.

    Args:
        opcode: Command buffer (usually 16 bytes) identifying the operation.
        max_recv_size: Expected response size for reads, or the payload
            length for writes.
        is_read: ``True`` for commands that read data from the camera.
        check_value: Signed 32-bit correlation value.

    Returns:
        Exactly 31 bytes ready for a bulk OUT transfer.
    """
    op = opcode_bytes(opcode)
    if len(op) > OPCODE_LENGTH:
        raise ValueError(
            f"Opcode must be at most {OPCODE_LENGTH} bytes, got {len(op)}"
        )
    direction = DIRECTION_READ if is_read else DIRECTION_WRITE
    header = (
        TX_MAGIC
        + _to_u32(check_value).to_bytes(4, "big")
        + _to_u32(max_recv_size).to_bytes(4, "little")
        + bytes([direction, 0x00, OPCODE_LENGTH])
        + op
    )
    return header + b"\x00" * (HEADER_SIZE - len(header))


def parse_header(data: bytes) -> Header | None:
    """Decode a command header, or return ``None`` if it is not one."""
    if len(data) != HEADER_SIZE or data[:4] != TX_MAGIC:
        return None

    _, check_value = _HEADER_PREFIX.unpack_from(data, 0)
    (max_recv_size,) = _MAX_RECV.unpack_from(data, 8)
    direction = data[12]
    if direction not in (DIRECTION_READ, DIRECTION_WRITE):
        return None

    return Header(
        check_value=check_value,
        max_recv_size=max_recv_size,
        is_read=direction == DIRECTION_READ,
        opcode=bytes(data[15 : 15 + OPCODE_LENGTH]),
    )


def is_status_trailer(data: bytes, check_value: int) -> bool:
    """Return whether ``data`` ends with a status trailer.

    A check value of 0 only compares the magic.
    """
    if len(data) < CSW_SIZE:
        return False

    window = data[len(data) - CSW_SIZE :]
    if window[:4] != RX_MAGIC:
        return False
    if check_value == 0:
        return True
    return window[4:8] == _to_u32(check_value).to_bytes(4, "big")


def _to_u32(value: int) -> int:
    if not -(2**31) <= value < 2**32:
        raise ValueError(f"Value does not fit in 32 bits: {value}")
    return value & 0xFFFFFFFF


def new_check_value() -> int:
    """Pick a random signed 32-bit check value for an exchange."""
    return random.randint(-(2**31), 2**31 - 1)
