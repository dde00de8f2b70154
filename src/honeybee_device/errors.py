"""Exception hierarchy for honeybee-device.

Camera errors: only ``CameraOpenError`` and ``StreamStartError`` end a
capture worker; the per-frame errors are caught inside the loop and the
cycle is skipped. ``StopTimeout`` is the one camera error surfaced to a
caller of the stream commands.

System control errors: every failed ``busctl``/``wpctl``/``pactl``/
``amixer`` call raises ``SystemControlError`` with a message suitable for
showing in the GUI.
"""

from __future__ import annotations


class CameraError(Exception):
    """Base exception for camera operations."""

    pass


class CameraOpenError(CameraError):
    """Raised when the capture device cannot be acquired."""

    pass


class StreamStartError(CameraError):
    """Raised when an acquired device refuses to start streaming."""

    pass


class FrameReadError(CameraError):
    """Raised when the device returns no frame for a cycle."""

    pass


class FrameDecodeError(CameraError):
    """Raised when a raw frame cannot be turned into a pixel buffer."""

    pass


class StopTimeout(CameraError):
    """Raised when the capture worker does not exit within the stop window."""

    def __init__(self, waited_s: float) -> None:
        super().__init__("Camera failed to stop in time")
        self.waited_s = waited_s


class SystemControlError(Exception):
    """Raised when a brightness or volume command fails or cannot be parsed."""

    pass
