"""Data models for camera settings."""

from .settings import (
    CamSettings,
    LiveViewResolution,
    PictureOrientation,
    PhotoResolution,
    VideoResolution,
    EvValue,
    WhiteBalance,
    FilterValue,
    LogoType,
    Bitrate,
    SettingType,
)
