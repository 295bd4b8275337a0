"""Single command/response exchanges over the bulk endpoints.

A read writes the 31-byte header, then drains 16 KiB chunks from the IN
endpoint until one ends with a status trailer carrying the same check
value. A write sends the header, the payload in 16 KiB chunks, and then
expects a status trailer in reply.

The transport must provide ``bulk_out(endpoint, data, timeout)`` and
``bulk_in(endpoint, size, timeout)`` and raise ``TransportError`` /
``TransferTimeoutError`` on failure.
"""

from __future__ import annotations

import logging

from .errors import OversizedResponseError, TransferTimeoutError, WriteError
from .protocol.framing import CSW_SIZE, build_header, is_status_trailer, new_check_value
from .transport.usb_connection import EP_IN, EP_OUT

logger = logging.getLogger(__name__)

DEFAULT_MAX_RECV_SIZE = 65536
DEFAULT_CHUNK_SIZE = 16384
DEFAULT_TRANSFER_TIMEOUT = 2.0


class TransferEngine:
    """Runs one read or write exchange at a time over a transport."""

    def __init__(
        self,
        transport,
        in_addr: int = EP_IN,
        out_addr: int = EP_OUT,
        max_recv_size: int = DEFAULT_MAX_RECV_SIZE,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self.transport = transport
        self.in_addr = in_addr
        self.out_addr = out_addr
        self.max_recv_size = max_recv_size
        self.chunk_size = chunk_size

    def read_unchecked(
        self,
        opcode: bytes,
        timeout: float = DEFAULT_TRANSFER_TIMEOUT,
        recv_size: int | None = None,
    ) -> bytes:
        """Send a read command and return the first IN transfer as-is.

        Used for the connection handshake and keepalive, whose replies do
        not follow the chunk/trailer scheme.
        """
        recv_size = self.max_recv_size if recv_size is None else recv_size
        header = build_header(opcode, recv_size, True, new_check_value())
        self.transport.bulk_out(self.out_addr, header, timeout)
        return self.transport.bulk_in(self.in_addr, recv_size, timeout)

    def read_data(
        self,
        opcode: bytes,
        timeout: float = DEFAULT_TRANSFER_TIMEOUT,
        check_value: int | None = None,
    ) -> bytes:
        """Send a read command and reassemble the chunked reply.

        Raises:
            OversizedResponseError: If the reply would exceed
                ``max_recv_size``; the error carries the data received so far.
        """
        if check_value is None:
            check_value = new_check_value()

        header = build_header(opcode, self.max_recv_size, True, check_value)
        self.transport.bulk_out(self.out_addr, header, timeout)

        buf = bytearray()
        while True:
            chunk = self.transport.bulk_in(self.in_addr, self.chunk_size, timeout)
            is_last = is_status_trailer(chunk, check_value)
            data = chunk[: len(chunk) - CSW_SIZE] if is_last else chunk

            if len(buf) + len(data) > self.max_recv_size:
                logger.error(
                    "Received too much data! chunk: %d, buffered: %d, max_recv_size: %d",
                    len(data),
                    len(buf),
                    self.max_recv_size,
                )
                if not is_last:
                    self._drain(check_value, timeout)
                raise OversizedResponseError(
                    len(buf) + len(data), self.max_recv_size, bytes(buf)
                )

            buf += data
            if is_last:
                break

        logger.debug("Read %d bytes for opcode %s", len(buf), opcode[:3].hex(" "))
        return bytes(buf)

    def _drain(self, check_value: int, timeout: float) -> None:
        """Discard the rest of an abandoned reply, up to its status trailer.

        A timeout means the endpoint is already empty.
        """
        discarded = 0
        while True:
            try:
                chunk = self.transport.bulk_in(self.in_addr, self.chunk_size, timeout)
            except TransferTimeoutError:
                break
            discarded += len(chunk)
            if is_status_trailer(chunk, check_value):
                break
        logger.debug("Discarded %d bytes of an oversized reply", discarded)

    def write_data(
        self,
        opcode: bytes,
        payload: bytes,
        timeout: float = DEFAULT_TRANSFER_TIMEOUT,
        check_value: int | None = None,
    ) -> None:
        """Send a write command followed by its payload.

        Raises:
            WriteError: If the camera does not answer with a matching
                status trailer.
        """
        if check_value is None:
            check_value = new_check_value()

        header = build_header(opcode, len(payload), False, check_value)
        self.transport.bulk_out(self.out_addr, header, timeout)

        for offset in range(0, len(payload), self.chunk_size):
            self.transport.bulk_out(
                self.out_addr, payload[offset : offset + self.chunk_size], timeout
            )

        reply = self.transport.bulk_in(self.in_addr, self.chunk_size, timeout)
        if not is_status_trailer(reply, check_value):
            logger.error("Couldn't write data: unknown received data (non-CSW)")
            raise WriteError("Camera did not acknowledge the write")

        logger.debug("Wrote %d bytes for opcode %s", len(payload), opcode[:3].hex(" "))
