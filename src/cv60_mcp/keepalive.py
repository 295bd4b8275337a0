"""Background keepalive for an idle camera session.

The camera drops into power save mode unless it hears a keepalive about
every half second. :class:`KeepaliveScheduler` sends them from a daemon
thread; the camera's lock keeps them from interleaving with other
exchanges.
"""

from __future__ import annotations

import logging
import threading

from .camera import KEEPALIVE_INTERVAL, Camera
from .errors import CameraError

logger = logging.getLogger(__name__)


class KeepaliveScheduler:
    """Sends ``camera.send_keepalive()`` every ``interval`` seconds until stopped.

    The thread exits on the first failed keepalive; ``running`` turns
    False and the next exchange recovers through the power save path.
    """

    def __init__(self, camera: Camera, interval: float = KEEPALIVE_INTERVAL) -> None:
        self.camera = camera
        self.interval = interval
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop, name="cv60-keepalive", daemon=True
        )
        self._thread.start()
        logger.info("Started keepalive thread (every %.2fs)", self.interval)

    def stop(self, timeout: float | None = None) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval):
            try:
                self.camera.send_keepalive()
            except CameraError as e:
                logger.error("Keepalive failed, stopping keepalive thread: %s", e)
                break
