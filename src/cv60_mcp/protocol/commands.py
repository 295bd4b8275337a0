"""Opcode table and parameterised command builders.

Opcodes are the command buffers embedded in the 31-byte header. Most are
16 bytes; the first byte is 0x7A (122) for reads and 0x7B (123) for writes.
The byte values are part of the wire contract and must not change.
"""

from __future__ import annotations

from .framing import opcode_bytes
from ..models.settings import LiveViewResolution, PictureOrientation, SettingType


def _op(*values: int) -> bytes:
    """Pad a signed/unsigned byte sequence to a 16-byte opcode."""
    return opcode_bytes(values).ljust(16, b"\x00")


# Connection management ("SCSI" commands)
OPEN_CONNECTION = _op(122, 0, 1)
KEEPALIVE = opcode_bytes([122, 3, -1])
APP_CONNECTION = _op(122, 0, 2, 0, 0, 0, 0, 0, 1, 1, 0, 0, 44, 1)
CLOSE_CONNECTION = _op(122, 0, 2, 1, 0, 0, 0, 0, 1, 0, 0, 0, 44, 1)

# Status and identification
GET_CAMERA_STATUS = _op(122, 3, 48)
GET_THERMAL_STATUS = _op(122, 3, 52)
GET_SCSI_VERSION = _op(122, 3, 2, 0, 0, 0, 0, 0, 118, 50, 46, 48, 48, 48, 48)
GET_CAMERA_INFO = _op(122, 3, 1, 0, 0, 0, 0, 0, 55, 46, 55, 50, 46, 48, 48)

# Live view
START_LIVE_VIEW = _op(122, 1, 1, 0, 0, 0, 0, 0, 0, 10)
GET_LIVE_VIEW_FRAME = _op(122, 5, 1)
CHECK_LIVE_VIEW_STATUS = _op(122, 2, 1)
STOP_LIVE_VIEW = _op(122, 1, 2)
CHECK_LIVE_VIEW_STOP_STATUS = _op(122, 2, 2)

# Pictures
READ_PIC_BUF = _op(122, 5, 2)
TAKE_PICTURE = _op(122, 1, 5, 0, 0, 0, 0, 0, 2)
GET_PIC_THUMBNAIL = _op(122, 5, 3)
CLEAR_PIC_BUF = _op(122, 1, -123)
CHECK_CAPTURE_STATUS = _op(122, 2, 5)
PIC_TRANSFER_STATUS_IS_OK = _op(122, 5, -126)
GET_REMAINING_PIC_NUM = _op(122, 3, 53)

# Settings
READ_ALL_SETTINGS = _op(122, 4, 96)
WRITE_ALL_SETTINGS = _op(123, 4, 96, 0, 48)
READ_GENERAL_SETTING = _op(122, 4, 0)
WRITE_GENERAL_SETTING = _op(123, 4, 0, 0, 1)

# Power
POWER_OFF_CAMERA = _op(122, 1, -16)
RESET_CAMERA = _op(122, 1, -126)
CHECK_CAMERA_RESET_STATUS = _op(122, 2, -126)

# Recording
START_RECORDING = _op(122, 1, 3)
CHECK_START_RECORDING = _op(122, 2, 3)
STOP_RECORDING = _op(122, 1, 4)
CHECK_STOP_RECORDING = _op(122, 2, 4)

# Throughput diagnostics
THROUGHPUT_READ_TEST = _op(122, -16, 16)
THROUGHPUT_WRITE_TEST = _op(123, -16, 16, 0, 0, 0, 1)


def _patch(opcode: bytes, offset: int, data: bytes) -> bytes:
    buf = bytearray(opcode)
    buf[offset : offset + len(data)] = data
    return bytes(buf)


def build_start_live_view(resolution: LiveViewResolution) -> bytes:
    """Build a START_LIVE_VIEW opcode for the given stream resolution."""
    return _patch(START_LIVE_VIEW, 9, bytes([LiveViewResolution(resolution).value]))


def build_take_picture(orientation: PictureOrientation) -> bytes:
    """Build a TAKE_PICTURE opcode with the picture orientation at byte 8."""
    return _patch(TAKE_PICTURE, 8, bytes([PictureOrientation(orientation).value]))


def build_read_picture_buffer(offset: int) -> bytes:
    """Build a READ_PIC_BUF opcode.

    Args:
        offset: Number of picture bytes already received (little-endian
            u32 at bytes 8-11).
    """
    if not 0 <= offset <= 0xFFFFFFFF:
        raise ValueError(f"Picture offset must fit in 32 bits, got {offset}")
    return _patch(READ_PIC_BUF, 8, offset.to_bytes(4, "little"))


def build_read_setting(setting: SettingType) -> bytes:
    """Build a READ_GENERAL_SETTING opcode for one setting."""
    return _patch(READ_GENERAL_SETTING, 2, bytes([SettingType(setting).value]))


def build_write_setting(setting: SettingType) -> bytes:
    """Build a WRITE_GENERAL_SETTING opcode for one setting.

    The value itself travels as the one-byte write payload.
    """
    return _patch(WRITE_GENERAL_SETTING, 2, bytes([SettingType(setting).value]))
