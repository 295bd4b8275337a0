"""Shared fixtures: a scripted stand-in for the USB transport."""

from __future__ import annotations

from collections import deque
from unittest.mock import patch

import pytest

from cv60_mcp.camera import Camera
from cv60_mcp.protocol.framing import RX_MAGIC, parse_header
from cv60_mcp.transport.usb_connection import DeviceInfo


def make_trailer(check_value: int) -> bytes:
    """Build a 13-byte status trailer echoing ``check_value``."""
    return RX_MAGIC + (check_value & 0xFFFFFFFF).to_bytes(4, "big") + b"\x00" * 5


class FakeTransport:
    """Replays scripted IN transfers and records OUT transfers.

    Queued items:
      - ``reply(data)``: one chunk of ``data`` followed by a status trailer
        echoing the check value of the last header written.
      - ``raw(data)``: ``data`` returned verbatim.
      - ``trailer()``: a bare status trailer for the last header.
      - ``fail(exc)``: raise ``exc`` from ``bulk_in``.
    """

    interface_number = 0

    def __init__(self) -> None:
        self.device_info = DeviceInfo(manufacturer="HUAWEI", product="CV60")
        self.opened = False
        self.closed = False
        self.writes: list[tuple[int, bytes]] = []
        self.reads: list[tuple[int, int]] = []
        self.controls: list[tuple] = []
        self.headers = []
        self._queue: deque = deque()

    # scripting

    def reply(self, data: bytes) -> FakeTransport:
        self._queue.append(("reply", bytes(data)))
        return self

    def raw(self, data: bytes) -> FakeTransport:
        self._queue.append(("raw", bytes(data)))
        return self

    def trailer(self) -> FakeTransport:
        self._queue.append(("trailer", b""))
        return self

    def fail(self, exc: Exception) -> FakeTransport:
        self._queue.append(("fail", exc))
        return self

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def opcodes(self) -> list[bytes]:
        return [h.opcode for h in self.headers]

    # transport interface

    def open(self) -> DeviceInfo:
        self.opened = True
        return self.device_info

    def close(self) -> None:
        self.closed = True

    def bulk_out(self, endpoint: int, data: bytes, timeout: float) -> int:
        self.writes.append((endpoint, bytes(data)))
        header = parse_header(bytes(data))
        if header is not None:
            self.headers.append(header)
        return len(data)

    def bulk_in(self, endpoint: int, size: int, timeout: float) -> bytes:
        self.reads.append((endpoint, size))
        kind, item = self._queue.popleft()
        check_value = self.headers[-1].check_value if self.headers else 0
        if kind == "fail":
            raise item
        if kind == "reply":
            return item + make_trailer(check_value)
        if kind == "trailer":
            return make_trailer(check_value)
        return item

    def control_out(self, request_type, request, value, index, timeout) -> None:
        self.controls.append((request_type, request, value, index, timeout))


@pytest.fixture(autouse=True)
def no_sleep():
    """Skip the polling and backoff delays."""
    with patch("time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def camera(transport: FakeTransport) -> Camera:
    return Camera(transport=transport, default_tries=3)
