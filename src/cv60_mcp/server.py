"""MCP server entry point for the Huawei EnVizion 360 camera.

Exposes camera tools via the Model Context Protocol using the official
Python MCP SDK with stdio transport.

Environment variables:
    CV60_VENDOR_ID: USB vendor ID override (hex ``0x12d1`` or decimal).
    CV60_PRODUCT_ID: USB product ID override.
    CV60_TRIES: Retry budget for handshakes and read commands.
    CV60_KEEPALIVE_INTERVAL: Seconds between background keepalives
        (default 0.5, 0 disables them).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from .camera import DEFAULT_TRIES, KEEPALIVE_INTERVAL, Camera
from .errors import CameraError
from .keepalive import KeepaliveScheduler
from .models.settings import CamSettings, PictureOrientation, SettingType
from .transport.usb_connection import PRODUCT_ID, VENDOR_ID
from .workflows import take_picture_and_get

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "cv60",
    instructions="MCP server for the Huawei EnVizion 360 (CV60) camera",
)

# Global connection state
_camera: Camera | None = None
_keepalive: KeepaliveScheduler | None = None


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw, 0)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'") from None


def _get_camera() -> Camera:
    """Get the active camera session, raising if not connected."""
    if _camera is None:
        raise RuntimeError("Not connected to camera. Use the 'connect' tool first.")
    return _camera


def _error(e: Exception) -> dict[str, str]:
    logger.warning("Camera command failed: %s", e)
    return {"error": str(e)}


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect() -> dict[str, Any]:
    """Open the USB connection to the camera and run the handshake.

    Finds the device by vendor/product ID (default 0x12D1:0x109B, override
    with CV60_VENDOR_ID / CV60_PRODUCT_ID).
    """
    global _camera, _keepalive
    if _camera is not None:
        return {"connected": True, "message": "Already connected"}

    try:
        vendor_id = _env_int("CV60_VENDOR_ID", VENDOR_ID)
        product_id = _env_int("CV60_PRODUCT_ID", PRODUCT_ID)
        default_tries = _env_int("CV60_TRIES", DEFAULT_TRIES)
        keepalive_interval = _env_float("CV60_KEEPALIVE_INTERVAL", KEEPALIVE_INTERVAL)
    except ValueError as e:
        return {"error": str(e)}

    camera = Camera(
        vendor_id=vendor_id,
        product_id=product_id,
        default_tries=default_tries,
    )
    try:
        camera.open()
    except CameraError as e:
        return _error(e)

    try:
        camera.initialize_comm()
        firmware = camera.get_camera_info()
    except CameraError as e:
        camera.close()
        return _error(e)

    _camera = camera
    if keepalive_interval > 0:
        _keepalive = KeepaliveScheduler(camera, keepalive_interval)
        _keepalive.start()
    info = camera.transport.device_info
    return {
        "connected": True,
        "model": info.product,
        "manufacturer": info.manufacturer,
        "firmware": firmware,
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the USB connection to the camera."""
    _drop_session()
    return {"disconnected": True}


def _drop_session() -> None:
    global _camera, _keepalive
    if _keepalive is not None:
        _keepalive.stop()
        _keepalive = None
    if _camera is not None:
        _camera.close()
        _camera = None


@mcp.tool()
def keepalive() -> dict[str, Any]:
    """Send one keepalive so the camera does not enter power save mode."""
    try:
        _get_camera().send_keepalive()
    except CameraError as e:
        return _error(e)
    return {"ok": True}


# ─── STATUS TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Read the firmware and protocol versions."""
    camera = _get_camera()
    try:
        return {
            "firmware": camera.get_camera_info(),
            "scsi_version": camera.get_scsi_version(),
        }
    except CameraError as e:
        return _error(e)


@mcp.tool()
def get_camera_status() -> dict[str, Any]:
    """Read the thermal status and the (opaque) execution status byte."""
    try:
        status = _get_camera().get_camera_status()
    except CameraError as e:
        return _error(e)
    return {
        "thermal_status": status.thermal_status.name.lower(),
        "execution_status": status.execution_status,
    }


@mcp.tool()
def remaining_pictures() -> dict[str, Any]:
    """Number of pictures still waiting to be transferred."""
    try:
        return {"remaining": _get_camera().query_remaining_pic_num()}
    except CameraError as e:
        return _error(e)


# ─── SETTINGS TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def get_settings() -> dict[str, Any]:
    """Read the full settings record."""
    try:
        return _get_camera().read_all_settings().to_dict()
    except CameraError as e:
        return _error(e)


@mcp.tool()
def set_settings(settings: dict[str, Any]) -> dict[str, Any]:
    """Write settings. Fields not given are read from the camera first.

    Args:
        settings: Partial settings, e.g. {"photo_resolution": "high",
                  "white_balance": "cloudy", "date_time": "2024-05-01T12:00:00"}.
    """
    camera = _get_camera()
    try:
        merged = camera.read_all_settings().to_dict()
        merged.update(settings)
        new_settings = CamSettings.from_dict(merged)
    except ValueError as e:
        return {"error": str(e)}
    except CameraError as e:
        return _error(e)

    try:
        camera.write_all_settings(new_settings)
    except CameraError as e:
        return _error(e)
    return {"stored": True, "settings": new_settings.to_dict()}


@mcp.tool()
def read_setting(setting: str) -> dict[str, Any]:
    """Read a single setting code.

    Args:
        setting: Setting name, e.g. "photo_resolution", "bitrate".
    """
    try:
        setting_type = SettingType[setting.upper()]
    except KeyError:
        return {"error": f"Unknown setting '{setting}'. Valid: {_setting_names()}"}
    try:
        return {"setting": setting, "value": _get_camera().read_setting(setting_type)}
    except CameraError as e:
        return _error(e)


@mcp.tool()
def write_setting(setting: str, value: int) -> dict[str, Any]:
    """Write a single setting code.

    Args:
        setting: Setting name, e.g. "video_resolution".
        value: Raw setting code (0-255).
    """
    try:
        setting_type = SettingType[setting.upper()]
    except KeyError:
        return {"error": f"Unknown setting '{setting}'. Valid: {_setting_names()}"}
    if not 0 <= value <= 255:
        return {"error": "Value must be 0-255"}
    try:
        _get_camera().write_setting(setting_type, value)
    except CameraError as e:
        return _error(e)
    return {"stored": True, "setting": setting, "value": value}


def _setting_names() -> list[str]:
    return [name.lower() for name in SettingType.__members__]


# ─── CAPTURE TOOLS ────────────────────────────────────────────────────

@mcp.tool()
def take_photo(
    path: str = "image.jpg",
    orientation: int = 0,
    thumbnail_path: str | None = None,
) -> dict[str, Any]:
    """Take a 360° picture and save it as JPEG.

    Args:
        path: Output file for the picture.
        orientation: 0, 90, 180 or 270 degrees.
        thumbnail_path: Optional output file for the thumbnail.
    """
    try:
        picture_orientation = PictureOrientation[f"DEG_{orientation}"]
    except KeyError:
        return {"error": "Orientation must be 0, 90, 180 or 270"}

    thumbnails: list[bytes] = []
    on_thumbnail = thumbnails.append if thumbnail_path else None

    try:
        image = take_picture_and_get(_get_camera(), picture_orientation, on_thumbnail)
    except CameraError as e:
        return _error(e)

    out = Path(path)
    out.write_bytes(image)
    result: dict[str, Any] = {"path": str(out), "size": len(image)}

    if thumbnail_path and thumbnails:
        thumb = Path(thumbnail_path)
        thumb.write_bytes(thumbnails[-1])
        result["thumbnail_path"] = str(thumb)

    return result


@mcp.tool()
def power_off() -> dict[str, Any]:
    """Power off the camera and drop the session."""
    camera = _get_camera()
    if _keepalive is not None:
        _keepalive.stop()
    try:
        camera.power_off()
    except CameraError as e:
        if _keepalive is not None:
            _keepalive.start()
        return _error(e)
    _drop_session()
    return {"powered_off": True}


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
