"""Multi-step camera workflows built on :class:`~cv60_mcp.camera.Camera`."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterator

from .camera import Camera, LiveViewFrame
from .models.settings import LiveViewResolution, PictureOrientation
from .protocol.parser import CaptureState, ThermalStatus

logger = logging.getLogger(__name__)

CAPTURE_POLL_INTERVAL = 0.5
LIVE_VIEW_SETTLE_DELAY = 0.5


def warm_up_live_view(camera: Camera, settle: float = LIVE_VIEW_SETTLE_DELAY) -> None:
    """Start and stop a low resolution live view.

    Without this the camera returns an all-black picture.
    """
    camera.start_live_view(LiveViewResolution.LOW)
    time.sleep(settle)
    if not camera.check_live_view_status():
        time.sleep(settle)

    camera.get_live_view_frame()

    camera.stop_live_view()
    if not camera.check_live_view_stop_request_status():
        time.sleep(settle)


def read_picture(camera: Camera) -> bytes:
    """Read a captured picture in parts until the camera marks the last one."""
    buf = bytearray()
    while True:
        part, is_last = camera.get_partial_picture_buffer(len(buf))
        buf += part
        if is_last:
            return bytes(buf)


def take_picture_and_get(
    camera: Camera,
    orientation: PictureOrientation = PictureOrientation.DEG_0,
    on_thumbnail: Callable[[bytes], None] | None = None,
    live_view_initialized: bool = False,
    poll_interval: float = CAPTURE_POLL_INTERVAL,
) -> bytes:
    """Take a picture and transfer it.

    Args:
        camera: An initialized camera session.
        orientation: Picture orientation.
        on_thumbnail: Called with the thumbnail bytes each time the camera
            reports one as available. When ``None`` thumbnails are skipped.
        live_view_initialized: Skip the live view warm-up.
        poll_interval: Delay before each capture status poll, in seconds.

    Returns:
        The JPEG picture.
    """
    if not live_view_initialized:
        warm_up_live_view(camera)

    camera.clear_camera_pic_buf()
    camera.take_picture(orientation)

    while True:
        time.sleep(poll_interval)
        status = camera.check_capture_status()

        if status.state is CaptureState.CAPTURED:
            logger.info("Picture captured, transferring")
            return read_picture(camera)

        if status.state is CaptureState.THUMBNAIL_AVAILABLE and on_thumbnail is not None:
            on_thumbnail(camera.get_thumbnail())


def iter_live_view_frames(
    camera: Camera, limit: int | None = None
) -> Iterator[tuple[ThermalStatus, LiveViewFrame]]:
    """Yield live view frames from a running stream.

    Stops after ``limit`` frames if given; errors propagate to the caller.
    """
    count = 0
    while limit is None or count < limit:
        yield camera.get_live_view_frame()
        count += 1
