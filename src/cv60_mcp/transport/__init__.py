"""USB transport: device discovery and raw bulk/control transfers."""

from .usb_connection import USBConnection, DeviceInfo
