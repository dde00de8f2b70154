"""Device layer: the live camera stream and still photos.

Exports:
    SharedFrameSlot, EncodedFrame: Latest-frame cache
    StreamState, StreamController, CaptureLoop: Stream lifecycle
    PhotoCapture, PhotoSaveResult: Still photo capture
    Clock, SystemClock: Injectable time source
"""

from honeybee_device.devices.clock import Clock, SystemClock
from honeybee_device.devices.frame_slot import EncodedFrame, SharedFrameSlot
from honeybee_device.devices.photo import PhotoCapture, PhotoSaveResult
from honeybee_device.devices.stream import (
    CaptureLoop,
    CycleCounts,
    StreamController,
    StreamState,
)

__all__ = [
    "Clock",
    "SystemClock",
    "EncodedFrame",
    "SharedFrameSlot",
    "PhotoCapture",
    "PhotoSaveResult",
    "CaptureLoop",
    "CycleCounts",
    "StreamController",
    "StreamState",
]
