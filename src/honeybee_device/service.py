"""Camera service: the command surface of the device layer.

``CameraService`` wires one stream state, one frame slot, a stream
controller and photo capture around a capture driver. The web app holds
a single instance; tests build as many independent ones as they like.

Example:
    from honeybee_device.drivers import DriverConfig, DriverFactory, DriverMode

    factory = DriverFactory(DriverConfig(mode=DriverMode.DIGITAL_TWIN))
    service = CameraService.from_factory(factory, sink=EventBroadcaster())
    service.start_camera_stream()   # "Camera stream started"
    service.capture_photo()         # PhotoSaveResult
    service.stop_camera_stream()    # "Camera stream stopped"
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from honeybee_device.devices.clock import Clock, SystemClock
from honeybee_device.devices.frame_slot import SharedFrameSlot
from honeybee_device.devices.photo import PhotoCapture, PhotoSaveResult
from honeybee_device.devices.stream import CaptureLoop, StreamController, StreamState
from honeybee_device.drivers.cameras.types import (
    DEFAULT_PROFILE,
    CaptureDriver,
    CaptureProfile,
)
from honeybee_device.drivers.config import DriverFactory, default_photo_dir
from honeybee_device.errors import StopTimeout
from honeybee_device.events import EventSink, NullEventSink
from honeybee_device.observability import get_logger
from honeybee_device.utils.image import CV2ImageCodec, ImageCodec

logger = get_logger(__name__)


class CameraService:
    """Start/stop the live stream and take photos.

    Business context: This is what the kiosk's camera mini-app talks to.
    Opening the app starts the stream, the shutter button captures a
    photo, and closing the app stops the stream so the webcam LED goes
    off. When the whole app shuts down, ``shutdown`` makes a best-effort
    stop so the device is released for the next session.

    Attributes:
        state: Flags shared with the capture worker.
        slot: Latest encoded frame, read by photo capture.
        controller: Stream lifecycle.
        photos: Still photo capture.
    """

    def __init__(
        self,
        driver: CaptureDriver,
        sink: EventSink | None = None,
        photo_dir: Path | None = None,
        codec: ImageCodec | None = None,
        clock: Clock | None = None,
        profile: CaptureProfile = DEFAULT_PROFILE,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize the service.

        Args:
            driver: Capture driver opened on each stream start.
            sink: Event destination (NullEventSink if omitted).
            photo_dir: Where photos are written; defaults to
                ``<pictures>/honeybee-camera``.
            codec: Frame codec; CV2ImageCodec if omitted.
            clock: Time source for pacing and stop polling.
            profile: Capture profile requested from the device.
            now: Local-time source for photo filenames.
        """
        if photo_dir is None:
            photo_dir = default_photo_dir()
        self._driver = driver
        self._sink = sink or NullEventSink()
        self._codec = codec or CV2ImageCodec()
        self._clock = clock or SystemClock()
        self._profile = profile

        self.state = StreamState()
        self.slot = SharedFrameSlot()
        self.controller = StreamController(
            self.state, self._build_loop, clock=self._clock
        )
        self.photos = PhotoCapture(self.slot, self._sink, photo_dir, now=now)

    @classmethod
    def from_factory(
        cls,
        factory: DriverFactory,
        sink: EventSink | None = None,
        codec: ImageCodec | None = None,
        clock: Clock | None = None,
    ) -> CameraService:
        """Build a service from a DriverFactory's driver and photo directory.

        Args:
            factory: Supplies the capture driver and ``config.photo_dir``.
            sink: Event destination.
            codec: Frame codec; CV2ImageCodec if omitted.
            clock: Time source for pacing and stop polling.
        """
        return cls(
            factory.create_capture_driver(),
            sink=sink,
            photo_dir=factory.config.photo_dir,
            codec=codec,
            clock=clock,
        )

    def __repr__(self) -> str:
        return f"CameraService(driver={self._driver!r}, {self.state!r})"

    def _build_loop(self, stream_id: int) -> CaptureLoop:
        return CaptureLoop(
            self._driver,
            self.state,
            self.slot,
            self._sink,
            self._codec,
            profile=self._profile,
            clock=self._clock,
            stream_id=stream_id,
        )

    @property
    def is_streaming(self) -> bool:
        return self.controller.is_running

    @property
    def photo_dir(self) -> Path:
        return self.photos.photo_dir

    def start_camera_stream(self) -> str:
        """Start streaming; see ``StreamController.request_start``."""
        return self.controller.request_start()

    def stop_camera_stream(self) -> str:
        """Stop streaming and wait for cleanup.

        Raises:
            StopTimeout: If the worker did not exit in time.
        """
        return self.controller.request_stop()

    def capture_photo(self) -> PhotoSaveResult:
        """Save the latest frame; see ``PhotoCapture.capture_photo``."""
        return self.photos.capture_photo()

    def shutdown(self) -> None:
        """Stop the stream if running, logging rather than raising on timeout.

        The worker is a daemon thread, so a stuck device read cannot keep
        the process alive after this returns.
        """
        try:
            status = self.controller.request_stop()
        except StopTimeout as e:
            logger.warning("Camera did not stop before shutdown", waited_s=e.waited_s)
            return
        logger.info("Camera service shut down", status=status)
