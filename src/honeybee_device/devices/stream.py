"""Camera stream lifecycle: the controller and the capture worker.

The stream has two flags shared between the request side and one
background worker thread:

    running         True from ``request_start`` until the worker has
                    released the device and cleared the slot.
    stop_requested  Set by ``request_stop``; the worker checks it at the
                    top of every cycle.

Worker phases:

    Opening   -> driver.open(profile), device.open_stream()
                 failure: emit camera-error, clean up, exit
    Streaming -> pull, decode, encode, publish, emit camera-frame,
                 sleep the rest of the frame interval
                 per-frame failure: log, skip the cycle
    Draining  -> stop_stream, close, clear slot, reset flags

Usage:
    state = StreamState()
    controller = StreamController(
        state, lambda stream_id: CaptureLoop(driver, state, ..., stream_id=stream_id)
    )
    controller.request_start()   # "Camera stream started"
    controller.request_stop()    # "Camera stream stopped" or StopTimeout
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from dataclasses import dataclass

from honeybee_device.devices.clock import Clock, SystemClock
from honeybee_device.devices.frame_slot import EncodedFrame, SharedFrameSlot
from honeybee_device.drivers.cameras.types import (
    DEFAULT_PROFILE,
    CaptureDevice,
    CaptureDriver,
    CaptureProfile,
)
from honeybee_device.errors import FrameDecodeError, FrameReadError, StopTimeout
from honeybee_device.events import CameraErrorEvent, CameraFrameEvent, EventSink
from honeybee_device.observability import LogContext, get_logger
from honeybee_device.utils.image import ImageCodec

logger = get_logger(__name__)

# =============================================================================
# Constants
# =============================================================================

STATUS_STARTED = "Camera stream started"
STATUS_ALREADY_RUNNING = "Camera already running"
STATUS_NOT_RUNNING = "Camera not running"
STATUS_STOPPED = "Camera stream stopped"
STATUS_START_FAILED = "Failed to start capture worker"

DEFAULT_STOP_POLL_INTERVAL_S = 0.05
DEFAULT_STOP_MAX_ATTEMPTS = 50

# Repeated failures (camera unplugged, a cycle that keeps raising) are
# logged on the first one and then once per this many cycles.
FAILURE_LOG_EVERY = 25


class StreamState:
    """The two flags shared by the controller and the worker.

    Thread Safety:
        Backed by threading.Event; every method may be called from any
        thread.
    """

    def __init__(self) -> None:
        self._running = threading.Event()
        self._stop_requested = threading.Event()

    @property
    def running(self) -> bool:
        return self._running.is_set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def mark_running(self) -> None:
        self._running.set()

    def request_stop(self) -> None:
        self._stop_requested.set()

    def clear_stop_request(self) -> None:
        self._stop_requested.clear()

    def mark_stopped(self) -> None:
        """Reset both flags. Only the worker calls this, as its last act.

        The stop request is cleared before ``running`` so that a new
        start, which is only possible once ``running`` is false, can never
        have its own stop request erased by the exiting worker.
        """
        self._stop_requested.clear()
        self._running.clear()

    def __repr__(self) -> str:
        return (
            f"StreamState(running={self.running}, "
            f"stop_requested={self.stop_requested})"
        )


@dataclass
class CycleCounts:
    """Per-stream tallies, logged when the worker drains."""

    published: int = 0
    read_failures: int = 0
    decode_failures: int = 0
    encode_failures: int = 0
    emit_failures: int = 0
    cycle_errors: int = 0

    @property
    def skipped(self) -> int:
        return (
            self.read_failures
            + self.decode_failures
            + self.encode_failures
            + self.cycle_errors
        )


class CaptureLoop:
    """Body of one capture worker thread, from device open to cleanup.

    One instance serves exactly one stream session. ``run`` always ends
    with the device released, the slot empty and both flags reset,
    whichever way the session ends.

    Business context: The camera mini-app shows a live preview and lets
    the user snap a photo of the current view. Transient glitches (a
    dropped USB frame, one corrupt MJPEG buffer) should cost one frame,
    not the session; only a device that cannot be opened at all is
    reported to the user.
    """

    def __init__(
        self,
        driver: CaptureDriver,
        state: StreamState,
        slot: SharedFrameSlot,
        sink: EventSink,
        codec: ImageCodec,
        profile: CaptureProfile = DEFAULT_PROFILE,
        clock: Clock | None = None,
        stream_id: int = 0,
    ) -> None:
        self._driver = driver
        self._state = state
        self._slot = slot
        self._sink = sink
        self._codec = codec
        self._profile = profile
        self._clock = clock or SystemClock()
        self.stream_id = stream_id
        self.counts = CycleCounts()
        self._consecutive_read_failures = 0
        self._consecutive_cycle_errors = 0

    def __repr__(self) -> str:
        return f"CaptureLoop(stream_id={self.stream_id}, counts={self.counts})"

    def run(self) -> None:
        """Open the device, stream until asked to stop, then drain."""
        with LogContext(stream_id=self.stream_id):
            try:
                device = self._open()
                if device is None:
                    return
                try:
                    self._stream(device)
                finally:
                    self._drain(device)
            finally:
                self._slot.clear()
                self._state.mark_stopped()
                logger.info("Capture worker exited")

    # --- Opening ---

    def _open(self) -> CaptureDevice | None:
        logger.info(
            "Opening camera",
            width=self._profile.width,
            height=self._profile.height,
            fps=self._profile.fps,
        )
        try:
            device = self._driver.open(self._profile)
        except Exception as e:
            self._report_fatal(f"Failed to open camera: {e}")
            return None

        try:
            device.open_stream()
        except Exception as e:
            self._release(device)
            self._report_fatal(f"Failed to start camera stream: {e}")
            return None

        logger.info("Camera stream opened")
        return device

    def _report_fatal(self, message: str) -> None:
        logger.error(message)
        self._emit(CameraErrorEvent(message=message))

    # --- Streaming ---

    def _stream(self, device: CaptureDevice) -> None:
        interval = self._profile.frame_interval
        while not self._state.stop_requested:
            started = self._clock.monotonic()
            try:
                self.run_cycle(device)
            except Exception as e:
                self._on_cycle_error(e)
            else:
                self._consecutive_cycle_errors = 0
            elapsed = self._clock.monotonic() - started
            if elapsed < interval:
                self._clock.sleep(interval - elapsed)

    def run_cycle(self, device: CaptureDevice) -> bool:
        """Pull one frame through decode and encode, then publish and emit it.

        Args:
            device: Streaming capture device.

        Returns:
            True if a frame was published, False if the cycle was skipped.
        """
        try:
            raw = device.frame()
        except FrameReadError as e:
            self._on_read_failure(e)
            return False
        if self._consecutive_read_failures:
            logger.info(
                "Frame reads recovered", failed_cycles=self._consecutive_read_failures
            )
            self._consecutive_read_failures = 0

        try:
            pixels = self._codec.decode(raw)
        except FrameDecodeError as e:
            self.counts.decode_failures += 1
            logger.debug("Skipping frame: decode failed", error=str(e))
            return False

        try:
            jpeg = self._codec.encode_jpeg(pixels, quality=self._profile.jpeg_quality)
        except ValueError as e:
            self.counts.encode_failures += 1
            logger.warning("Skipping frame: encode failed", error=str(e))
            return False

        frame = EncodedFrame(data=jpeg, width=raw.width, height=raw.height)
        self._slot.publish(frame)
        self.counts.published += 1
        self._emit(
            CameraFrameEvent(
                data=frame.to_data_url(), width=frame.width, height=frame.height
            )
        )
        return True

    def _on_read_failure(self, error: FrameReadError) -> None:
        self.counts.read_failures += 1
        self._consecutive_read_failures += 1
        n = self._consecutive_read_failures
        if n == 1 or n % FAILURE_LOG_EVERY == 0:
            logger.warning(
                "Skipping frame: read failed", error=str(error), consecutive=n
            )

    def _on_cycle_error(self, error: Exception) -> None:
        self.counts.cycle_errors += 1
        self._consecutive_cycle_errors += 1
        n = self._consecutive_cycle_errors
        if n == 1 or n % FAILURE_LOG_EVERY == 0:
            logger.warning(
                "Capture cycle failed", error=str(error), consecutive=n, exc_info=True
            )

    def _emit(self, event: CameraFrameEvent | CameraErrorEvent) -> None:
        try:
            self._sink.emit(event)
        except Exception as e:
            self.counts.emit_failures += 1
            logger.warning("Event delivery failed", event_name=event.name, error=str(e))

    # --- Draining ---

    def _drain(self, device: CaptureDevice) -> None:
        logger.info(
            "Stopping camera stream",
            published=self.counts.published,
            skipped=self.counts.skipped,
        )
        try:
            device.stop_stream()
        except Exception as e:
            logger.warning("Error stopping camera stream", error=str(e))
        self._release(device)

    def _release(self, device: CaptureDevice) -> None:
        try:
            device.close()
        except Exception as e:
            logger.warning("Error closing camera", error=str(e))


class StreamController:
    """Starts and stops the capture worker on behalf of user commands.

    Start is idempotent and returns immediately; the outcome of opening
    the device arrives later as frames or a ``camera-error`` event. Stop
    blocks until the worker has fully cleaned up, polling ``running``
    every ``poll_interval`` seconds up to ``max_attempts`` times.

    Business context: The GUI disables its "Stop" button until this call
    returns, so once it does the camera LED is off and a new start will
    open the device afresh.

    Thread Safety:
        Start/stop calls may arrive concurrently from request handlers.
        A lock serializes the check-and-spawn in ``request_start`` so two
        starts can never both spawn a worker.
    """

    def __init__(
        self,
        state: StreamState,
        loop_factory: Callable[[int], CaptureLoop],
        clock: Clock | None = None,
        poll_interval: float = DEFAULT_STOP_POLL_INTERVAL_S,
        max_attempts: int = DEFAULT_STOP_MAX_ATTEMPTS,
    ) -> None:
        """Initialize the controller.

        Args:
            state: Flags shared with the workers this controller spawns.
            loop_factory: Builds a fresh CaptureLoop for a stream id.
            clock: Time source for stop polling.
            poll_interval: Seconds between ``running`` checks on stop.
            max_attempts: Checks before giving up with StopTimeout.

        Raises:
            ValueError: If poll_interval or max_attempts is not positive.
        """
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {poll_interval}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        self._state = state
        self._loop_factory = loop_factory
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._lock = threading.Lock()
        self._stream_ids = itertools.count(1)
        self._worker: threading.Thread | None = None

    def __repr__(self) -> str:
        return f"StreamController({self._state!r})"

    @property
    def is_running(self) -> bool:
        return self._state.running

    @property
    def worker(self) -> threading.Thread | None:
        """The most recently spawned worker thread, if any."""
        return self._worker

    def request_start(self) -> str:
        """Start a capture worker unless one is already running.

        Returns:
            "Camera stream started" or "Camera already running", or
            "Failed to start capture worker: ..." if the worker thread
            could not be created, in which case ``running`` is cleared
            again. Device failures are reported asynchronously via
            ``camera-error``.

        Example:
            >>> controller.request_start()
            'Camera stream started'
            >>> controller.request_start()
            'Camera already running'
        """
        with self._lock:
            if self._state.running:
                logger.debug("Start ignored, camera already running")
                return STATUS_ALREADY_RUNNING

            self._state.clear_stop_request()
            self._state.mark_running()
            stream_id = next(self._stream_ids)
            try:
                capture_loop = self._loop_factory(stream_id)
                worker = threading.Thread(
                    target=capture_loop.run,
                    name=f"honeybee-capture-{stream_id}",
                    daemon=True,
                )
                worker.start()
            except Exception as e:
                # No worker exists to reset the flags on its way out.
                self._state.mark_stopped()
                logger.error(
                    "Capture worker failed to start", stream_id=stream_id, error=str(e)
                )
                return f"{STATUS_START_FAILED}: {e}"
            self._worker = worker

        logger.info("Camera stream requested", stream_id=stream_id)
        return STATUS_STARTED

    def request_stop(self) -> str:
        """Ask the worker to stop and wait for it to clean up.

        Returns:
            "Camera not running" if nothing was streaming, otherwise
            "Camera stream stopped" once the device is released.

        Raises:
            StopTimeout: If the worker is still running after
                ``max_attempts`` polls. The stop request stays set, so a
                stuck worker still exits as soon as its blocking call
                returns.
        """
        if not self._state.running:
            return STATUS_NOT_RUNNING

        self._state.request_stop()
        attempts = 0
        while self._state.running and attempts < self._max_attempts:
            self._clock.sleep(self._poll_interval)
            attempts += 1

        if self._state.running:
            waited = attempts * self._poll_interval
            logger.error("Camera failed to stop in time", waited_s=waited)
            raise StopTimeout(waited_s=waited)

        logger.info("Camera stream stopped", polls=attempts)
        return STATUS_STOPPED
