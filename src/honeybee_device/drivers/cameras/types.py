"""Capture device type definitions and protocols.

Kept apart from the implementations so that the device layer and both
drivers can import the shared types without import cycles.

Types defined here:
- CaptureProfile: the fixed resolution/rate/format requested from a device
- RawFrame: one frame exactly as the device handed it over
- CaptureDevice: Protocol for an acquired, exclusively owned device
- CaptureDriver: Protocol for acquiring a device with a profile

Example:
    from honeybee_device.drivers.cameras.types import (
        DEFAULT_PROFILE,
        CaptureDriver,
    )

    with driver.open(DEFAULT_PROFILE) as device:
        device.open_stream()
        raw = device.frame()
"""

from __future__ import annotations

from dataclasses import dataclass
from types import TracebackType
from typing import TYPE_CHECKING, Any, Literal, Protocol, runtime_checkable

if TYPE_CHECKING:
    from numpy.typing import NDArray

FrameFormat = Literal["mjpeg", "bgr"]


@dataclass(frozen=True, slots=True)
class CaptureProfile:
    """The capture profile requested from the device.

    Attributes:
        width: Requested frame width in pixels.
        height: Requested frame height in pixels.
        fps: Target frames per second; also caps the worker's cycle rate.
        fourcc: Compressed capture format hint handed to the device.
        jpeg_quality: Re-encode quality on the 1-100 JPEG scale.
    """

    width: int = 640
    height: int = 480
    fps: int = 25
    fourcc: str = "MJPG"
    jpeg_quality: int = 85

    @property
    def frame_interval(self) -> float:
        """Minimum seconds per cycle (1/fps)."""
        return 1.0 / self.fps


DEFAULT_PROFILE = CaptureProfile()
"""640x480 @ 25 fps, MJPEG hint, JPEG quality 85."""


@dataclass(frozen=True, slots=True)
class RawFrame:
    """A frame as delivered by the device, before decoding.

    Attributes:
        data: Compressed bytes for ``mjpeg``, or a pixel array (H, W, 3)
            for ``bgr`` when the backend already decoded the frame.
        fmt: Frame format tag.
        width: Frame width reported by the device.
        height: Frame height reported by the device.
    """

    data: bytes | NDArray[Any]
    fmt: FrameFormat
    width: int
    height: int


@runtime_checkable
class CaptureDevice(Protocol):  # pragma: no cover
    """An acquired capture device.

    Owned by exactly one capture worker for its whole lifetime. Mirrors
    the lifecycle of a UVC webcam: acquire (driver.open), start the
    stream, pull frames, stop the stream, release.
    """

    def open_stream(self) -> None:
        """Start delivering frames.

        Raises:
            StreamStartError: If the device refuses to stream.
        """
        ...

    def frame(self) -> RawFrame:
        """Block until the next frame is available and return it.

        Raises:
            FrameReadError: If no frame could be read this time. The
                device remains usable; the caller may try again.
        """
        ...

    def stop_stream(self) -> None:
        """Stop delivering frames. Safe to call when not streaming."""
        ...

    def close(self) -> None:
        """Release the device. Idempotent."""
        ...

    def __enter__(self) -> CaptureDevice: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...


@runtime_checkable
class CaptureDriver(Protocol):  # pragma: no cover
    """Factory for capture devices.

    Business context: Production runs against the kiosk's built-in webcam
    through OpenCV, while tests, CI and development laptops use the
    digital twin. The capture worker only ever sees this protocol.
    """

    def open(self, profile: CaptureProfile) -> CaptureDevice:
        """Acquire the device and apply ``profile``.

        Args:
            profile: Requested resolution, rate and format hint. Drivers
                apply the closest mode the hardware supports.

        Returns:
            Acquired device, not yet streaming.

        Raises:
            CameraOpenError: If the device is missing or busy.
        """
        ...
