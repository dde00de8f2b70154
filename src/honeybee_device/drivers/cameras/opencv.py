"""OpenCV capture driver for UVC/V4L2 webcams.

Wraps ``cv2.VideoCapture`` behind the CaptureDriver/CaptureDevice
protocols. OpenCV decodes MJPEG internally, so frames come out of this
driver already as BGR pixel arrays (``RawFrame.fmt == "bgr"``).

Example:
    from honeybee_device.drivers.cameras.opencv import OpenCVCaptureDriver
    from honeybee_device.drivers.cameras.types import DEFAULT_PROFILE

    driver = OpenCVCaptureDriver(device_index=0)
    with driver.open(DEFAULT_PROFILE) as device:
        device.open_stream()
        raw = device.frame()
"""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any

import cv2

from honeybee_device.drivers.cameras.types import CaptureProfile, RawFrame
from honeybee_device.errors import (
    CameraOpenError,
    FrameReadError,
    StreamStartError,
)
from honeybee_device.observability import get_logger

logger = get_logger(__name__)

__all__ = ["OpenCVCaptureDriver", "OpenCVCaptureDevice"]

VideoCaptureFactory = Callable[[int], Any]


class OpenCVCaptureDriver:
    """Opens the webcam at ``device_index`` through OpenCV.

    Attributes:
        device_index: V4L2 index (``/dev/video<N>``).
    """

    __slots__ = ("device_index", "_capture_factory")

    def __init__(
        self,
        device_index: int = 0,
        capture_factory: VideoCaptureFactory | None = None,
    ) -> None:
        """Create the driver without touching hardware.

        Args:
            device_index: Camera index passed to ``cv2.VideoCapture``.
            capture_factory: Replacement for ``cv2.VideoCapture``, used by
                tests to supply a fake capture object.
        """
        if device_index < 0:
            raise ValueError(f"device_index must be >= 0, got {device_index}")
        self.device_index = device_index
        self._capture_factory = capture_factory or cv2.VideoCapture

    def __repr__(self) -> str:
        return f"OpenCVCaptureDriver(device_index={self.device_index})"

    def open(self, profile: CaptureProfile) -> OpenCVCaptureDevice:
        """Acquire the webcam and request ``profile``.

        The MJPEG fourcc is set before the resolution: many UVC cameras
        only offer 640x480 at 25+ fps in MJPEG mode and silently fall
        back to a slow YUYV mode otherwise.

        Args:
            profile: Requested width, height, fps and fourcc.

        Returns:
            OpenCVCaptureDevice holding the open capture.

        Raises:
            CameraOpenError: If OpenCV cannot open the device.
        """
        try:
            capture = self._capture_factory(self.device_index)
        except Exception as e:
            raise CameraOpenError(str(e)) from e

        if not capture.isOpened():
            capture.release()
            raise CameraOpenError(f"Camera {self.device_index} could not be opened")

        capture.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*profile.fourcc))
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, profile.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, profile.height)
        capture.set(cv2.CAP_PROP_FPS, profile.fps)

        logger.info(
            "Camera opened",
            device_index=self.device_index,
            requested=f"{profile.width}x{profile.height}@{profile.fps}",
            actual_width=int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
            actual_height=int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )
        return OpenCVCaptureDevice(self.device_index, capture)


class OpenCVCaptureDevice:
    """An open ``cv2.VideoCapture`` owned by one capture worker."""

    __slots__ = ("_device_index", "_capture", "_streaming", "_closed")

    def __init__(self, device_index: int, capture: Any) -> None:
        self._device_index = device_index
        self._capture = capture
        self._streaming = False
        self._closed = False

    def __enter__(self) -> OpenCVCaptureDevice:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        if self._closed:
            state = "closed"
        else:
            state = "streaming" if self._streaming else "idle"
        return f"OpenCVCaptureDevice(device_index={self._device_index}, {state})"

    def open_stream(self) -> None:
        """Start the stream by grabbing a first frame.

        ``VideoCapture`` has no explicit stream-on call; a successful
        ``grab()`` proves the device is actually delivering.

        Raises:
            StreamStartError: If the device is closed or the first grab fails.
        """
        if self._closed:
            raise StreamStartError("Camera device is closed")
        if not self._capture.grab():
            raise StreamStartError(f"Camera {self._device_index} delivered no frames")
        self._streaming = True

    def frame(self) -> RawFrame:
        """Read the next decoded frame.

        Raises:
            FrameReadError: If the stream is not running or the read fails.
        """
        if not self._streaming:
            raise FrameReadError("Camera stream is not running")

        ok, img = self._capture.read()
        if not ok or img is None:
            raise FrameReadError(f"Camera {self._device_index} returned no frame")

        height, width = img.shape[:2]
        return RawFrame(data=img, fmt="bgr", width=width, height=height)

    def stop_stream(self) -> None:
        self._streaming = False

    def close(self) -> None:
        """Release the capture. Idempotent."""
        if self._closed:
            return
        self._streaming = False
        self._closed = True
        self._capture.release()
        logger.debug("Camera released", device_index=self._device_index)
