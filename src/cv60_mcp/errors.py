"""Exception hierarchy for camera communication.

Every operation that talks to the camera raises a subclass of
:class:`CameraError`. Transport and timeout errors abort the current
exchange; protocol-level failures are raised once the retry budget is
exhausted.
"""

from __future__ import annotations


class CameraError(Exception):
    """Base class for all camera errors."""


class TransportError(CameraError):
    """A bulk or control transfer failed at the USB layer."""


class TransferTimeoutError(CameraError, TimeoutError):
    """A transfer did not complete within its timeout."""


class InvalidFormatError(CameraError):
    """A response did not match the expected format."""


class InvalidLengthError(InvalidFormatError):
    """A response was shorter than a decode step requires."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(
            f"Invalid response length (expected: {expected}, received: {received})"
        )


class ConnectionInitError(CameraError):
    """The open-connection handshake failed."""

    def __init__(self, tries: int, status_code: int) -> None:
        self.tries = tries
        self.status_code = status_code
        super().__init__(
            f"Unable to initialize connection, attempts: {tries}, "
            f"status code: {status_code}"
        )


class SendCommandError(CameraError):
    """A read command kept failing until the retry budget ran out."""

    def __init__(self, tries: int, status_code: int = 0) -> None:
        self.tries = tries
        self.status_code = status_code
        super().__init__(
            f"Unable to send command, attempts: {tries}, status code: {status_code}"
        )


class KeepaliveError(CameraError):
    """The keepalive exchange returned a non-zero status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = status_code
        super().__init__(
            f"Error while sending the keepalive command, status code: {status_code}"
        )


class WriteError(CameraError):
    """The camera did not acknowledge a write with a matching status trailer."""

    def __init__(self, message: str = "Error while writing data") -> None:
        super().__init__(message)


class OversizedResponseError(CameraError):
    """The camera sent more data than the configured receive limit.

    ``data`` holds everything accumulated before the limit was hit.
    """

    def __init__(self, received: int, limit: int, data: bytes = b"") -> None:
        self.received = received
        self.limit = limit
        self.data = data
        super().__init__(
            f"Received too much data ({received} bytes, limit {limit})"
        )


class DeviceNotFoundError(CameraError, ConnectionError):
    """No USB device matched the vendor/product ID."""

    def __init__(self, vendor_id: int, product_id: int) -> None:
        self.vendor_id = vendor_id
        self.product_id = product_id
        super().__init__(
            f"Couldn't find a device with given VID/PID: "
            f"{vendor_id:#06x}:{product_id:#06x}"
        )
