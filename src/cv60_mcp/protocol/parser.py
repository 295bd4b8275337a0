"""Response parsing for camera replies.

Parsers never trust length fields supplied by the camera: each declared
length is checked against the bytes actually received before slicing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum

from ..errors import InvalidFormatError, InvalidLengthError
from ..models.settings import signed_byte

logger = logging.getLogger(__name__)

LIVE_VIEW_HEADER_SIZE = 32
LIVE_VIEW_LENGTH_OFFSET = 28
LIVE_VIEW_THERMAL_OFFSET = 20
PICTURE_HEADER_SIZE = 20
PICTURE_LENGTH_OFFSET = 16
CAPTURE_STATUS_MIN_SIZE = 9
CAPTURE_NAME_OFFSET = 8
CAPTURE_NAME_END = 72
CAMERA_STATUS_MIN_SIZE = 5
CAMERA_INFO_OFFSET = 97
CAMERA_INFO_END = 129
SCSI_VERSION_OFFSET = 1
SCSI_VERSION_END = 33
VERSION_PREFIX = ord("v")


class ThermalStatus(IntEnum):
    """Thermal state reported by the camera."""

    OK = 0
    OVERHEAT_LOW = 1
    OVERHEAT_HIGH = 2
    COLD = 3


class CaptureState(IntEnum):
    """Leading byte of a capture status reply."""

    THUMBNAIL_AVAILABLE = 0
    TRY_AGAIN = 1
    CAPTURED = 3


@dataclass
class CaptureStatus:
    """Parsed capture status.

    ``picture_status`` is passed through as received; its meaning is
    unknown.
    """

    state: CaptureState
    stored_pic_num: int = 0
    is_exposure_ready: bool = False
    picture_status: int = 0
    picture_string: str | None = None

    @property
    def thumbnail_available(self) -> bool:
        return self.state is CaptureState.THUMBNAIL_AVAILABLE

    @property
    def captured(self) -> bool:
        return self.state is CaptureState.CAPTURED


@dataclass
class LiveViewChunk:
    """One reply to GET_LIVE_VIEW_FRAME."""

    payload: bytes
    is_last: bool
    thermal_byte: int

    def __repr__(self) -> str:
        return (
            f"LiveViewChunk(payload_len={len(self.payload)}, "
            f"is_last={self.is_last}, thermal_byte={self.thermal_byte})"
        )


@dataclass
class CameraStatus:
    """Parsed GET_CAMERA_STATUS reply.

    ``execution_status`` is opaque.
    """

    execution_status: int
    thermal_status: ThermalStatus


def require_length(data: bytes, expected: int) -> None:
    """Raise ``InvalidLengthError`` if ``data`` is shorter than ``expected``."""
    if len(data) < expected:
        raise InvalidLengthError(expected, len(data))


def decode_thermal_status(value: int) -> ThermalStatus:
    """Decode a thermal status byte.

    Raises:
        InvalidFormatError: If the byte is not a known thermal state.
    """
    try:
        return ThermalStatus(signed_byte(value))
    except ValueError:
        logger.warning("Received invalid thermal status value (%d)", value)
        raise InvalidFormatError(f"Invalid thermal status value: {value}") from None


def parse_status_byte(data: bytes) -> int:
    """Return the leading status byte of a reply."""
    require_length(data, 1)
    return data[0]


def is_request_ok(status: int) -> bool:
    """Evaluate the status byte of a live view or recording check command."""
    return status not in (1, 3)


def _length_prefixed(data: bytes, header_size: int, length_offset: int) -> bytes:
    require_length(data, header_size)
    length = int.from_bytes(data[length_offset : length_offset + 4], "little")
    require_length(data, header_size + length)
    return bytes(data[header_size : header_size + length])


def parse_live_view_chunk(data: bytes) -> LiveViewChunk:
    """Parse one part of a live view frame.

    Layout: byte 1 is 1 on the last part, byte 20 is the thermal status,
    bytes 28-31 hold the payload length (LE), the payload starts at 32.
    """
    payload = _length_prefixed(data, LIVE_VIEW_HEADER_SIZE, LIVE_VIEW_LENGTH_OFFSET)
    return LiveViewChunk(
        payload=payload,
        is_last=data[1] == 1,
        thermal_byte=data[LIVE_VIEW_THERMAL_OFFSET],
    )


def parse_thumbnail(data: bytes) -> bytes:
    """Extract the thumbnail payload (length at 16-19, data from 20)."""
    return _length_prefixed(data, PICTURE_HEADER_SIZE, PICTURE_LENGTH_OFFSET)


def parse_partial_picture(data: bytes) -> tuple[bytes, bool]:
    """Extract one partial picture buffer.

    Returns:
        The picture bytes and whether this is the final part.
    """
    payload = _length_prefixed(data, PICTURE_HEADER_SIZE, PICTURE_LENGTH_OFFSET)
    return payload, data[1] == 1


def _c_string(data: bytes, start: int, end: int) -> str:
    raw = bytes(data[start : min(len(data), end)]).split(b"\x00", 1)[0]
    return raw.decode("utf-8", errors="replace")


def parse_capture_status(data: bytes) -> CaptureStatus:
    """Parse a CHECK_CAPTURE_STATUS reply.

    The leading byte is tri-state: 0 thumbnail available, 1 try again,
    3 captured.
    """
    status = parse_status_byte(data)
    if status == CaptureState.TRY_AGAIN:
        return CaptureStatus(state=CaptureState.TRY_AGAIN)
    if status == CaptureState.CAPTURED:
        return CaptureStatus(state=CaptureState.CAPTURED)
    if status != CaptureState.THUMBNAIL_AVAILABLE:
        logger.warning(
            "Received unknown status code (%d) while checking capture status", status
        )
        raise InvalidFormatError(f"Unknown capture status code: {status}")

    require_length(data, CAPTURE_STATUS_MIN_SIZE)

    picture_string = None
    if data[CAPTURE_NAME_OFFSET] != 0:
        picture_string = _c_string(data, CAPTURE_NAME_OFFSET, CAPTURE_NAME_END)

    return CaptureStatus(
        state=CaptureState.THUMBNAIL_AVAILABLE,
        stored_pic_num=data[3],
        is_exposure_ready=data[2] == 0,
        picture_status=data[1],
        picture_string=picture_string,
    )


def parse_camera_status(data: bytes) -> CameraStatus:
    """Parse a GET_CAMERA_STATUS reply (opaque byte 1, thermal byte 4)."""
    require_length(data, CAMERA_STATUS_MIN_SIZE)
    return CameraStatus(
        execution_status=data[1],
        thermal_status=decode_thermal_status(data[4]),
    )


def parse_camera_info(data: bytes) -> str | None:
    """Extract the firmware version from a GET_CAMERA_INFO reply.

    Returns ``None`` when the version field does not start with ``v``.
    """
    require_length(data, CAMERA_INFO_OFFSET + 1)
    if data[CAMERA_INFO_OFFSET] != VERSION_PREFIX:
        return None
    return _c_string(data, CAMERA_INFO_OFFSET, CAMERA_INFO_END)


def parse_scsi_version(data: bytes) -> str | None:
    """Extract the "SCSI" protocol version from a GET_SCSI_VERSION reply."""
    require_length(data, SCSI_VERSION_OFFSET + 1)
    if data[SCSI_VERSION_OFFSET] != VERSION_PREFIX:
        return None
    return _c_string(data, SCSI_VERSION_OFFSET, SCSI_VERSION_END)
