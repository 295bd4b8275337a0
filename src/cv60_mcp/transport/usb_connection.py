"""Raw USB transport to the EnVizion 360 camera.

The camera uses a plain libusb/WinUSB driver rather than a standard class
driver. All traffic goes over interface 0 with bulk endpoints 0x82 (IN)
and 0x03 (OUT); the only control transfer is a class-specific reset.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import usb.core
import usb.util

from ..errors import DeviceNotFoundError, TransferTimeoutError, TransportError

logger = logging.getLogger(__name__)

VENDOR_ID = 0x12D1
PRODUCT_ID = 0x109B
INTERFACE = 0
EP_IN = 0x82
EP_OUT = 0x03

# bmRequestType: host-to-device, class, interface recipient
RESET_REQUEST_TYPE = usb.util.build_request_type(
    usb.util.CTRL_OUT, usb.util.CTRL_TYPE_CLASS, usb.util.CTRL_RECIPIENT_INTERFACE
)
RESET_REQUEST = 255


@dataclass
class DeviceInfo:
    """Basic device identification from USB descriptors."""

    vendor_id: int = VENDOR_ID
    product_id: int = PRODUCT_ID
    manufacturer: str = ""
    product: str = ""
    serial_number: str = ""


def _ms(timeout: float) -> int:
    return max(1, int(timeout * 1000))


class USBConnection:
    """Manages the USB connection to the camera.

    Usage::

        conn = USBConnection()
        conn.open()
        conn.bulk_out(EP_OUT, header, timeout=2.0)
        data = conn.bulk_in(EP_IN, 16384, timeout=2.0)
        conn.close()

    Timeouts are in seconds.
    """

    def __init__(
        self,
        vendor_id: int = VENDOR_ID,
        product_id: int = PRODUCT_ID,
        interface: int = INTERFACE,
    ) -> None:
        self._vendor_id = vendor_id
        self._product_id = product_id
        self._interface = interface
        self._device = None
        self._connected = False
        self._device_info = DeviceInfo(vendor_id=vendor_id, product_id=product_id)

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def device_info(self) -> DeviceInfo:
        return self._device_info

    @property
    def interface_number(self) -> int:
        return self._interface

    def open(self) -> DeviceInfo:
        """Find the camera by VID/PID and claim its interface.

        Raises:
            DeviceNotFoundError: If no matching device is attached.
            TransportError: If the device cannot be claimed.
        """
        dev = usb.core.find(idVendor=self._vendor_id, idProduct=self._product_id)
        if dev is None:
            raise DeviceNotFoundError(self._vendor_id, self._product_id)

        try:
            try:
                if dev.is_kernel_driver_active(self._interface):
                    dev.detach_kernel_driver(self._interface)
            except NotImplementedError:
                # Windows/macOS backends have no kernel driver concept
                pass
            usb.util.claim_interface(dev, self._interface)
        except usb.core.USBError as e:
            raise TransportError(
                f"Could not claim interface {self._interface} on "
                f"{self._vendor_id:#06x}:{self._product_id:#06x}: {e}"
            ) from e

        self._device = dev
        self._connected = True
        self._device_info = DeviceInfo(
            vendor_id=self._vendor_id,
            product_id=self._product_id,
            manufacturer=self._get_string(dev, dev.iManufacturer),
            product=self._get_string(dev, dev.iProduct),
            serial_number=self._get_string(dev, dev.iSerialNumber),
        )

        logger.info(
            "Connected: %s %s",
            self._device_info.manufacturer,
            self._device_info.product,
        )
        return self._device_info

    @staticmethod
    def _get_string(dev, index: int) -> str:
        if not index:
            return ""
        try:
            return usb.util.get_string(dev, index) or ""
        except (usb.core.USBError, ValueError) as e:
            logger.debug("Could not read string descriptor %d: %s", index, e)
            return ""

    def close(self) -> None:
        """Release the interface and free the device."""
        if not self._connected:
            return

        try:
            usb.util.release_interface(self._device, self._interface)
            usb.util.dispose_resources(self._device)
        except usb.core.USBError as e:
            logger.warning("Error closing device: %s", e)
        finally:
            self._device = None
            self._connected = False
            logger.info("Disconnected")

    def _require_device(self):
        if not self._connected:
            raise TransportError("Not connected to device")
        return self._device

    def bulk_out(self, endpoint: int, data: bytes, timeout: float) -> int:
        """Write ``data`` to a bulk OUT endpoint.

        Returns:
            Number of bytes written.
        """
        dev = self._require_device()
        try:
            return dev.write(endpoint, data, timeout=_ms(timeout))
        except usb.core.USBTimeoutError as e:
            raise TransferTimeoutError(
                f"Bulk OUT to {endpoint:#04x} timed out after {timeout}s"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"Bulk OUT to {endpoint:#04x} failed: {e}") from e

    def bulk_in(self, endpoint: int, size: int, timeout: float) -> bytes:
        """Read up to ``size`` bytes from a bulk IN endpoint."""
        dev = self._require_device()
        try:
            return bytes(dev.read(endpoint, size, timeout=_ms(timeout)))
        except usb.core.USBTimeoutError as e:
            raise TransferTimeoutError(
                f"Bulk IN from {endpoint:#04x} timed out after {timeout}s"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"Bulk IN from {endpoint:#04x} failed: {e}") from e

    def control_out(
        self,
        request_type: int,
        request: int,
        value: int,
        index: int,
        timeout: float,
    ) -> None:
        """Issue a zero-length host-to-device control transfer."""
        dev = self._require_device()
        try:
            dev.ctrl_transfer(request_type, request, value, index, None, timeout=_ms(timeout))
        except usb.core.USBTimeoutError as e:
            raise TransferTimeoutError(
                f"Control request {request} timed out after {timeout}s"
            ) from e
        except usb.core.USBError as e:
            raise TransportError(f"Control request {request} failed: {e}") from e
