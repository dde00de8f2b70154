"""Capture driver module.

Provides webcam access through OpenCV (real hardware) and a digital twin
simulation for development without a camera.

Protocols:
    CaptureDriver: Acquire a device with a capture profile
    CaptureDevice: Stream control and frame reads on an acquired device

Implementations:
    OpenCVCaptureDriver/OpenCVCaptureDevice: UVC/V4L2 webcams via cv2
    DigitalTwinCaptureDriver/DigitalTwinCaptureDevice: Simulated webcam
"""

from __future__ import annotations

from honeybee_device.drivers.cameras.opencv import (
    OpenCVCaptureDevice,
    OpenCVCaptureDriver,
)
from honeybee_device.drivers.cameras.twin import (
    DigitalTwinCaptureDevice,
    DigitalTwinCaptureDriver,
    DigitalTwinConfig,
    ImageSource,
)
from honeybee_device.drivers.cameras.types import (
    DEFAULT_PROFILE,
    CaptureDevice,
    CaptureDriver,
    CaptureProfile,
    FrameFormat,
    RawFrame,
)

__all__ = [
    # Protocols and shared types
    "CaptureDriver",
    "CaptureDevice",
    "CaptureProfile",
    "DEFAULT_PROFILE",
    "FrameFormat",
    "RawFrame",
    # OpenCV implementation
    "OpenCVCaptureDriver",
    "OpenCVCaptureDevice",
    # Digital twin implementation
    "DigitalTwinCaptureDriver",
    "DigitalTwinCaptureDevice",
    "DigitalTwinConfig",
    "ImageSource",
]
