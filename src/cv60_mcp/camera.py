"""Camera session: connection handshake, retry policy and device operations.

The command channel is half-duplex: only one exchange may be in flight.
:class:`Camera` serialises exchanges with a re-entrant lock so a session
can be shared between threads, e.g. a
:class:`~cv60_mcp.keepalive.KeepaliveScheduler` and a capture loop. The
lock is re-entrant because power save recovery re-runs the handshake
inside a read.

Usage::

    with Camera() as cam:
        cam.initialize_comm()
        print(cam.get_camera_info())
        settings = cam.read_all_settings()
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from .errors import (
    ConnectionInitError,
    KeepaliveError,
    SendCommandError,
    TransferTimeoutError,
    TransportError,
)
from .models.settings import (
    CamSettings,
    LiveViewResolution,
    PictureOrientation,
    SettingType,
)
from .protocol import commands
from .protocol.parser import (
    CameraStatus,
    CaptureStatus,
    ThermalStatus,
    decode_thermal_status,
    is_request_ok,
    parse_camera_info,
    parse_camera_status,
    parse_capture_status,
    parse_live_view_chunk,
    parse_partial_picture,
    parse_scsi_version,
    parse_status_byte,
    parse_thumbnail,
)
from .protocol.retry import RetryState, StatusByteAction, Verdict, evaluate_status
from .transfer import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RECV_SIZE,
    DEFAULT_TRANSFER_TIMEOUT,
    TransferEngine,
)
from .transport.usb_connection import (
    EP_IN,
    EP_OUT,
    PRODUCT_ID,
    RESET_REQUEST,
    RESET_REQUEST_TYPE,
    VENDOR_ID,
    USBConnection,
)

logger = logging.getLogger(__name__)

DEFAULT_TRIES = 3
KEEPALIVE_TIMEOUT = 5.0
KEEPALIVE_INTERVAL = 0.5
KEEPALIVE_RX_BUF_SIZE = 64
INIT_ATTEMPT_INTERVAL = 0.1


@dataclass
class LiveViewFrame:
    """An assembled live view frame (H.264 data) and how long it took."""

    data: bytes
    duration: float

    def __repr__(self) -> str:
        return f"LiveViewFrame(data_len={len(self.data)}, duration={self.duration:.3f}s)"


class Camera:
    """A session with one camera.

    Args:
        transport: Object providing ``bulk_out``/``bulk_in``/``control_out``.
            Defaults to a :class:`USBConnection` for ``vendor_id``/``product_id``.
        default_tries: Retry budget for the handshake and for read commands
            (which get ``1 + default_tries`` attempts).
    """

    def __init__(
        self,
        transport=None,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        default_tries: int = DEFAULT_TRIES,
        in_addr: int = EP_IN,
        out_addr: int = EP_OUT,
        max_recv_size: int = DEFAULT_MAX_RECV_SIZE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if transport is None:
            transport = USBConnection(vendor_id, product_id)
        self.transport = transport
        self.default_tries = default_tries
        self._engine = TransferEngine(
            transport,
            in_addr=in_addr,
            out_addr=out_addr,
            max_recv_size=max_recv_size,
            chunk_size=chunk_size,
        )
        self._lock = threading.RLock()

    # ─── SESSION ─────────────────────────────────────────────────────

    def open(self) -> None:
        """Open the underlying transport (find and claim the device)."""
        self.transport.open()

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> Camera:
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def initialize_comm(self) -> None:
        """Run the open-connection handshake.

        Raises:
            ConnectionInitError: If the camera rejects the handshake or keeps
                asking to retry for ``default_tries`` attempts.
        """
        with self._lock:
            for attempt in range(1, self.default_tries + 1):
                reply = self._engine.read_unchecked(commands.OPEN_CONNECTION)
                status = parse_status_byte(reply)

                if status == 0:
                    logger.info("Connection initialized successfully")
                    return
                if status != 1:
                    logger.error("Unable to initialize connection. Status code: %d", status)
                    raise ConnectionInitError(attempt, status)

                logger.warning(
                    "Connection initialized unsuccessfully, trying again... (attempt %d/%d)",
                    attempt,
                    self.default_tries,
                )
                time.sleep(INIT_ATTEMPT_INTERVAL)

            logger.error(
                "Unable to initialize connection, reached max attempts (%d)",
                self.default_tries,
            )
            raise ConnectionInitError(self.default_tries, 1)

    def send_keepalive(self) -> None:
        """Send one keepalive.

        The camera enters power save mode unless this is sent roughly every
        ``KEEPALIVE_INTERVAL`` seconds while no other exchange is running.
        Scheduling is up to the caller.
        """
        with self._lock:
            reply = self._engine.read_unchecked(
                commands.KEEPALIVE, KEEPALIVE_TIMEOUT, recv_size=KEEPALIVE_RX_BUF_SIZE
            )
        status = parse_status_byte(reply)
        if status != 0:
            logger.error("Error in keepalive! Received status code %d", status)
            raise KeepaliveError(status)

    def reset_usb(self, timeout: float = DEFAULT_TRANSFER_TIMEOUT) -> None:
        """Reset the camera's USB function with a class control request."""
        with self._lock:
            try:
                self.transport.control_out(
                    RESET_REQUEST_TYPE,
                    RESET_REQUEST,
                    0,
                    self.transport.interface_number,
                    timeout,
                )
            except (TransportError, TransferTimeoutError) as e:
                logger.warning("Error while resetting USB via control transfer: %s", e)
                raise

    # ─── RETRY / RECOVERY ────────────────────────────────────────────

    def send_custom_read_command(
        self,
        opcode: bytes,
        action: StatusByteAction = StatusByteAction.EVALUATE,
        timeout: float = DEFAULT_TRANSFER_TIMEOUT,
    ) -> bytes:
        """Send a read command, applying the status byte policy.

        Transport and timeout errors propagate immediately. Failure
        signals in the status byte are retried up to ``1 + default_tries``
        attempts in total; the power save sentinel re-runs the handshake
        before the next attempt.

        Raises:
            SendCommandError: When every attempt was used up.
        """
        with self._lock:
            state = RetryState(max_attempts=1 + self.default_tries)

            while not state.exhausted:
                attempt = state.next_attempt()
                reply = self._engine.read_data(opcode, timeout)

                if action is StatusByteAction.IGNORE:
                    return reply

                status = parse_status_byte(reply)
                state.record(status)
                verdict = evaluate_status(status, action)

                if verdict is Verdict.ACCEPT:
                    return reply

                if verdict is Verdict.REINITIALIZE:
                    logger.warning("Camera is in power save mode")
                    logger.info("Attempting to reinitialize the USB connection...")
                    self.initialize_comm()
                elif status == 2:
                    logger.warning("Encountered unrecognized fail signal (2)")
                elif status == 3:
                    logger.warning(
                        "Received retry signal while sending command (attempt %d/%d)",
                        attempt,
                        state.max_attempts,
                    )
                else:
                    logger.warning("Other/unknown status code received: %d", status)

            logger.error(
                "Exhausted retry attempts (%d) while sending command", state.attempt
            )
            raise SendCommandError(state.attempt, state.last_status or 0)

    def _send(self, opcode: bytes, action: StatusByteAction = StatusByteAction.EVALUATE) -> bytes:
        return self.send_custom_read_command(opcode, action, DEFAULT_TRANSFER_TIMEOUT)

    def _check_request(self, opcode: bytes) -> bool:
        reply = self._send(opcode, StatusByteAction.IGNORE)
        return is_request_ok(parse_status_byte(reply))

    # ─── INFO / STATUS ───────────────────────────────────────────────

    def get_camera_status(self) -> CameraStatus:
        """Return the opaque execution status byte and the thermal status."""
        return parse_camera_status(self._send(commands.GET_CAMERA_STATUS))

    def get_camera_info(self) -> str | None:
        """Return the firmware version string, if the camera reports one."""
        return parse_camera_info(self._send(commands.GET_CAMERA_INFO))

    def get_scsi_version(self) -> str | None:
        return parse_scsi_version(self._send(commands.GET_SCSI_VERSION))

    def query_remaining_pic_num(self) -> int:
        """Return how many pictures are still waiting to be read."""
        reply = self._send(
            commands.GET_REMAINING_PIC_NUM,
            StatusByteAction.IGNORE_BUT_RETRY_IF_POWER_SAVING,
        )
        return parse_status_byte(reply)

    def power_off(self) -> None:
        self._send(commands.POWER_OFF_CAMERA)

    def reset_camera(self) -> None:
        """Ask the camera firmware to reset; poll with ``check_camera_reset_status``."""
        self._send(commands.RESET_CAMERA)

    def check_camera_reset_status(self) -> bool:
        return self._check_request(commands.CHECK_CAMERA_RESET_STATUS)

    # ─── LIVE VIEW ───────────────────────────────────────────────────

    def start_live_view(self, resolution: LiveViewResolution = LiveViewResolution.LOW) -> None:
        self._send(commands.build_start_live_view(resolution))

    def stop_live_view(self) -> None:
        self._send(commands.STOP_LIVE_VIEW)

    def check_live_view_status(self) -> bool:
        return self._check_request(commands.CHECK_LIVE_VIEW_STATUS)

    def check_live_view_stop_request_status(self) -> bool:
        return self._check_request(commands.CHECK_LIVE_VIEW_STOP_STATUS)

    def get_live_view_frame(self) -> tuple[ThermalStatus, LiveViewFrame]:
        """Poll frame parts until the camera marks one as the last.

        Returns:
            The thermal status carried by the last part and the frame.
        """
        buf = bytearray()
        start = time.monotonic()

        while True:
            chunk = parse_live_view_chunk(self._send(commands.GET_LIVE_VIEW_FRAME))
            buf += chunk.payload
            if chunk.is_last:
                break

        frame = LiveViewFrame(data=bytes(buf), duration=time.monotonic() - start)
        return decode_thermal_status(chunk.thermal_byte), frame

    # ─── RECORDING ───────────────────────────────────────────────────

    def start_recording(self) -> None:
        self._send(commands.START_RECORDING)

    def stop_recording(self) -> None:
        self._send(commands.STOP_RECORDING)

    def check_start_recording_request(self) -> bool:
        return self._check_request(commands.CHECK_START_RECORDING)

    def check_stop_recording_request(self) -> bool:
        return self._check_request(commands.CHECK_STOP_RECORDING)

    # ─── PICTURES ────────────────────────────────────────────────────

    def clear_camera_pic_buf(self) -> None:
        self._send(commands.CLEAR_PIC_BUF)

    def take_picture(self, orientation: PictureOrientation = PictureOrientation.DEG_0) -> None:
        """Trigger a capture.

        The picture is not returned; poll ``check_capture_status`` and then
        read it with ``get_partial_picture_buffer``.
        """
        self._send(commands.build_take_picture(orientation))

    def check_capture_status(self) -> CaptureStatus:
        return parse_capture_status(
            self._send(commands.CHECK_CAPTURE_STATUS, StatusByteAction.IGNORE)
        )

    def get_thumbnail(self) -> bytes:
        """Read the thumbnail of the picture being captured."""
        return parse_thumbnail(self._send(commands.GET_PIC_THUMBNAIL))

    def get_partial_picture_buffer(self, received: int) -> tuple[bytes, bool]:
        """Read the next part of the captured picture.

        Args:
            received: Number of picture bytes already received.

        Returns:
            The picture bytes and whether this was the last part.
        """
        reply = self._send(
            commands.build_read_picture_buffer(received),
            StatusByteAction.IGNORE_BUT_RETRY_IF_POWER_SAVING,
        )
        return parse_partial_picture(reply)

    # ─── SETTINGS ────────────────────────────────────────────────────

    def read_setting(self, setting: SettingType) -> int:
        """Read one setting; the reply's leading byte is the value."""
        reply = self._send(
            commands.build_read_setting(setting),
            StatusByteAction.IGNORE_BUT_RETRY_IF_POWER_SAVING,
        )
        return parse_status_byte(reply)

    def write_setting(self, setting: SettingType, value: int) -> None:
        """Write one setting.

        Args:
            value: Setting code as a signed or unsigned byte.
        """
        if not -128 <= value <= 255:
            raise ValueError(f"Setting value must fit in one byte, got {value}")
        with self._lock:
            self._engine.write_data(
                commands.build_write_setting(setting),
                bytes([value & 0xFF]),
                DEFAULT_TRANSFER_TIMEOUT,
            )

    def read_all_settings(self) -> CamSettings:
        return CamSettings.from_bytes(self._send(commands.READ_ALL_SETTINGS))

    def write_all_settings(self, settings: CamSettings) -> None:
        with self._lock:
            self._engine.write_data(
                commands.WRITE_ALL_SETTINGS,
                settings.to_bytes(),
                DEFAULT_TRANSFER_TIMEOUT,
            )
