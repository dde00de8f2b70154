"""Digital Twin Capture Driver - Simulated Webcam for Testing.

Produces MJPEG frames without hardware so the full capture pipeline
(decode, re-encode, publish, emit) runs on CI machines and development
laptops. Follows the CaptureDriver protocol for drop-in replacement of
the OpenCV driver.

Image Sources:
    Synthetic: Moving test pattern with frame counter
    Directory: Cycle through images in a folder
    File: Return same image repeatedly

Failure simulation:
    ``fail_open`` and ``fail_stream`` make the driver raise the two
    worker-fatal errors; ``fail_every_n_frames`` makes every Nth read
    raise ``FrameReadError`` to exercise the skip-and-continue path.

Example:
    from honeybee_device.drivers.cameras.twin import DigitalTwinCaptureDriver

    driver = DigitalTwinCaptureDriver()
    with driver.open(DEFAULT_PROFILE) as device:
        device.open_stream()
        raw = device.frame()  # RawFrame(fmt="mjpeg")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Any, final

import cv2
import numpy as np

from honeybee_device.drivers.cameras.types import CaptureProfile, RawFrame
from honeybee_device.errors import (
    CameraOpenError,
    FrameReadError,
    StreamStartError,
)
from honeybee_device.observability import get_logger

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = get_logger(__name__)

__all__ = [
    "DigitalTwinCaptureDriver",
    "DigitalTwinCaptureDevice",
    "DigitalTwinConfig",
    "ImageSource",
]


class ImageSource(Enum):
    """Image source for the digital twin webcam."""

    SYNTHETIC = "synthetic"  # Generated test pattern
    DIRECTORY = "directory"  # Cycle through images in a folder
    FILE = "file"  # Return same image repeatedly


_IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png", ".bmp"})

# JPEG quality of the simulated MJPEG stream (0-100)
_TWIN_MJPEG_QUALITY = 90

_SYNTHETIC_GRID_SPACING = 40
_SYNTHETIC_BAR_WIDTH = 24


@dataclass
class DigitalTwinConfig:
    """Configuration for digital twin webcam behavior."""

    image_source: ImageSource = ImageSource.SYNTHETIC
    image_path: Path | None = None  # Directory or file path
    cycle_images: bool = True  # Loop through directory images
    fail_open: bool = False
    fail_stream: bool = False
    fail_every_n_frames: int = 0  # 0 disables simulated read failures
    frame_delay_s: float = 0.0  # Simulated sensor readout time


@final
class DigitalTwinCaptureDriver:
    """Digital twin capture driver for development without a webcam.

    Example:
        # Frames from a folder of sample photos
        config = DigitalTwinConfig(
            image_source=ImageSource.DIRECTORY,
            image_path=Path("~/sample_frames").expanduser(),
        )
        driver = DigitalTwinCaptureDriver(config)
    """

    __slots__ = ("config", "open_count")

    def __init__(self, config: DigitalTwinConfig | None = None) -> None:
        """Create the simulated driver.

        Business context: The kiosk's camera mini-app is developed on
        machines that often have no webcam, or one already held by a video
        call. The twin lets the whole stream/photo flow run anywhere.

        Args:
            config: Image source and failure simulation settings. Defaults
                to a synthetic pattern with no failures.
        """
        self.config = config or DigitalTwinConfig()
        self.open_count = 0

    def __repr__(self) -> str:
        return (
            f"DigitalTwinCaptureDriver(source={self.config.image_source.value})"
        )

    def open(self, profile: CaptureProfile) -> DigitalTwinCaptureDevice:
        """Acquire a simulated device producing frames at ``profile`` size.

        Raises:
            CameraOpenError: If ``config.fail_open`` is set.
        """
        if self.config.fail_open:
            logger.warning("Simulated camera open failure")
            raise CameraOpenError("Simulated device unavailable")
        self.open_count += 1
        logger.info(
            "Opening simulated camera",
            source=self.config.image_source.value,
            resolution=f"{profile.width}x{profile.height}",
        )
        return DigitalTwinCaptureDevice(profile, self.config)


@final
class DigitalTwinCaptureDevice:
    """Simulated webcam handing out MJPEG-encoded frames."""

    __slots__ = (
        "_profile",
        "_config",
        "_image_files",
        "_image_index",
        "_frame_number",
        "_streaming",
        "_closed",
    )

    def __init__(self, profile: CaptureProfile, config: DigitalTwinConfig) -> None:
        self._profile = profile
        self._config = config
        self._image_files: list[Path] = []
        self._image_index = 0
        self._frame_number = 0
        self._streaming = False
        self._closed = False
        self._load_image_files()

    def __enter__(self) -> DigitalTwinCaptureDevice:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"DigitalTwinCaptureDevice(frames={self._frame_number}, "
            f"streaming={self._streaming}, closed={self._closed})"
        )

    @property
    def is_streaming(self) -> bool:
        return self._streaming

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _load_image_files(self) -> None:
        """Collect image files for DIRECTORY mode, sorted by name."""
        if self._config.image_source != ImageSource.DIRECTORY:
            return
        path = self._config.image_path
        if path is None or not Path(path).is_dir():
            logger.warning("Image directory missing, using synthetic frames")
            return
        self._image_files = sorted(
            p for p in Path(path).iterdir() if p.suffix.lower() in _IMAGE_SUFFIXES
        )

    def open_stream(self) -> None:
        """Start the simulated stream.

        Raises:
            StreamStartError: If closed or ``config.fail_stream`` is set.
        """
        if self._closed:
            raise StreamStartError("Camera device is closed")
        if self._config.fail_stream:
            raise StreamStartError("Simulated stream start failure")
        self._streaming = True

    def frame(self) -> RawFrame:
        """Produce the next MJPEG frame.

        Raises:
            FrameReadError: If not streaming, or on a simulated failure.
        """
        if not self._streaming:
            raise FrameReadError("Camera stream is not running")

        self._frame_number += 1
        n = self._config.fail_every_n_frames
        if n > 0 and self._frame_number % n == 0:
            raise FrameReadError(
                f"Simulated read failure on frame {self._frame_number}"
            )

        if self._config.frame_delay_s > 0:
            time.sleep(self._config.frame_delay_s)

        source = self._config.image_source
        img: NDArray[Any] | None = None
        if source == ImageSource.FILE:
            img = self._image_from_file()
        elif source == ImageSource.DIRECTORY:
            img = self._image_from_directory()
        if img is None:
            img = self._synthetic_image()

        ok, jpeg = cv2.imencode(
            ".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, _TWIN_MJPEG_QUALITY]
        )
        if not ok:
            raise FrameReadError("Simulated MJPEG encoding failed")

        return RawFrame(
            data=jpeg.tobytes(),
            fmt="mjpeg",
            width=self._profile.width,
            height=self._profile.height,
        )

    def _image_from_file(self) -> NDArray[Any] | None:
        path = self._config.image_path
        if path is None or not Path(path).is_file():
            return None
        img = cv2.imread(str(path))
        return None if img is None else self._resize_to_profile(img)

    def _image_from_directory(self) -> NDArray[Any] | None:
        if not self._image_files:
            return None

        image_path = self._image_files[self._image_index]
        self._image_index += 1
        if self._config.cycle_images:
            self._image_index %= len(self._image_files)
        else:
            self._image_index = min(self._image_index, len(self._image_files) - 1)

        img = cv2.imread(str(image_path))
        return None if img is None else self._resize_to_profile(img)

    def _resize_to_profile(self, img: NDArray[Any]) -> NDArray[Any]:
        h, w = img.shape[:2]
        if w != self._profile.width or h != self._profile.height:
            img = cv2.resize(img, (self._profile.width, self._profile.height))
        return img

    def _synthetic_image(self) -> NDArray[Any]:
        """Draw a grid with a bar sweeping left to right and a frame counter.

        The bar position advances every frame, so consecutive frames are
        visibly different in the live viewer.
        """
        width, height = self._profile.width, self._profile.height
        img: NDArray[Any] = np.zeros((height, width, 3), dtype=np.uint8)

        img[::_SYNTHETIC_GRID_SPACING, :] = (60, 60, 60)
        img[:, ::_SYNTHETIC_GRID_SPACING] = (60, 60, 60)

        x = (self._frame_number * 8) % max(width - _SYNTHETIC_BAR_WIDTH, 1)
        img[:, x : x + _SYNTHETIC_BAR_WIDTH] = (0, 170, 255)

        cv2.putText(
            img,
            "HONEYBEE DIGITAL TWIN",
            (20, 40),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.9,
            (255, 255, 255),
            2,
        )
        cv2.putText(
            img,
            f"Frame {self._frame_number}",
            (20, height - 24),
            cv2.FONT_HERSHEY_SIMPLEX,
            0.7,
            (200, 200, 200),
            1,
        )
        return img

    def stop_stream(self) -> None:
        self._streaming = False

    def close(self) -> None:
        """Release the simulated device. Idempotent."""
        if self._closed:
            return
        self._streaming = False
        self._closed = True
        logger.debug("Simulated camera released", frames=self._frame_number)
