"""Userspace driver for the Huawei EnVizion 360 (CV60) USB camera."""

from .camera import Camera
from .errors import CameraError

__version__ = "0.1.0"
