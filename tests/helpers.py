"""Test doubles and helpers for honeybee-device.

Hardware-free stand-ins for every seam the device layer injects: a
capture driver/device, an image codec, a clock, an event sink and a
command runner.

Example:
    from tests.helpers import FakeClock, RecordingSink, ScriptedDriver

    service = CameraService(ScriptedDriver(), sink=RecordingSink(), ...)
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np

from honeybee_device.drivers.cameras.types import CaptureProfile, RawFrame
from honeybee_device.errors import FrameDecodeError, StreamStartError
from honeybee_device.system.commands import CommandResult


class FakeClock:
    """Virtual monotonic clock.

    ``sleep`` records the requested duration and advances virtual time.
    ``real_sleep`` adds a small wall-clock pause so a worker thread driven
    by this clock yields instead of spinning.
    """

    def __init__(self, start: float = 100.0, real_sleep: float = 0.0) -> None:
        self.now = start
        self.real_sleep = real_sleep
        self.sleeps: list[float] = []
        self._lock = threading.Lock()

    def monotonic(self) -> float:
        with self._lock:
            return self.now

    def advance(self, seconds: float) -> None:
        with self._lock:
            self.now += seconds

    def sleep(self, seconds: float) -> None:
        with self._lock:
            self.sleeps.append(seconds)
            self.now += max(seconds, 0.0)
        if self.real_sleep:
            time.sleep(self.real_sleep)


class RecordingSink:
    """EventSink that keeps every event, optionally failing on emit."""

    def __init__(self, fail: bool = False) -> None:
        self.events: list[Any] = []
        self.fail = fail
        self._lock = threading.Lock()

    def emit(self, event: Any) -> None:
        with self._lock:
            self.events.append(event)
        if self.fail:
            raise RuntimeError("sink unavailable")

    def named(self, name: str) -> list[Any]:
        with self._lock:
            return [e for e in self.events if e.name == name]


class FakeCodec:
    """ImageCodec returning fixed pixels and JPEG bytes.

    ``fail_decode``/``fail_encode`` hold 1-based call numbers that raise.
    """

    def __init__(
        self,
        jpeg: bytes = b"\xff\xd8fake-jpeg\xff\xd9",
        fail_decode: Sequence[int] = (),
        fail_encode: Sequence[int] = (),
    ) -> None:
        self.jpeg = jpeg
        self.fail_decode = set(fail_decode)
        self.fail_encode = set(fail_encode)
        self.decode_calls = 0
        self.encode_calls = 0
        self.qualities: list[int] = []

    def decode(self, raw: RawFrame) -> Any:
        self.decode_calls += 1
        if self.decode_calls in self.fail_decode:
            raise FrameDecodeError("corrupt frame")
        return np.zeros((raw.height, raw.width, 3), dtype=np.uint8)

    def encode_jpeg(self, img: Any, quality: int = 85) -> bytes:
        self.encode_calls += 1
        self.qualities.append(quality)
        if self.encode_calls in self.fail_encode:
            raise ValueError("encoder failure")
        return self.jpeg


class ScriptedDevice:
    """CaptureDevice whose frames and failures are scripted per call.

    Attributes:
        calls: Ordered method names, for asserting the cleanup sequence.
        on_frame: Called with the 1-based frame number before each read.
        errors: Map of frame number to exception raised by that read.
    """

    def __init__(
        self,
        profile: CaptureProfile,
        fail_stream: bool = False,
        errors: dict[int, Exception] | None = None,
        on_frame: Callable[[int], None] | None = None,
        fail_stop: bool = False,
    ) -> None:
        self.profile = profile
        self.fail_stream = fail_stream
        self.errors = errors or {}
        self.on_frame = on_frame
        self.fail_stop = fail_stop
        self.calls: list[str] = []
        self.frames_read = 0
        self.closed = False

    def open_stream(self) -> None:
        self.calls.append("open_stream")
        if self.fail_stream:
            raise StreamStartError("no signal")

    def frame(self) -> RawFrame:
        self.frames_read += 1
        self.calls.append("frame")
        if self.on_frame is not None:
            self.on_frame(self.frames_read)
        error = self.errors.get(self.frames_read)
        if error is not None:
            raise error
        return RawFrame(
            data=b"\xff\xd8raw",
            fmt="mjpeg",
            width=self.profile.width,
            height=self.profile.height,
        )

    def stop_stream(self) -> None:
        self.calls.append("stop_stream")
        if self.fail_stop:
            raise RuntimeError("ioctl failed")

    def close(self) -> None:
        self.calls.append("close")
        self.closed = True

    def __enter__(self) -> ScriptedDevice:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class ScriptedDriver:
    """CaptureDriver handing out ScriptedDevices built by ``device_factory``."""

    def __init__(
        self,
        open_error: Exception | None = None,
        device_factory: Callable[[CaptureProfile], ScriptedDevice] | None = None,
    ) -> None:
        self.open_error = open_error
        self.device_factory = device_factory or ScriptedDevice
        self.devices: list[ScriptedDevice] = []
        self.profiles: list[CaptureProfile] = []
        self._lock = threading.Lock()

    @property
    def open_count(self) -> int:
        with self._lock:
            return len(self.profiles)

    def open(self, profile: CaptureProfile) -> ScriptedDevice:
        with self._lock:
            self.profiles.append(profile)
        if self.open_error is not None:
            raise self.open_error
        device = self.device_factory(profile)
        with self._lock:
            self.devices.append(device)
        return device


class FakeCommandRunner:
    """CommandRunner answering from a table keyed by the argv tuple.

    Unknown commands raise FileNotFoundError, like a missing binary.
    """

    def __init__(self, responses: dict[tuple[str, ...], CommandResult | Exception]):
        self.responses = dict(responses)
        self.calls: list[tuple[str, ...]] = []

    def run(self, args: Sequence[str]) -> CommandResult:
        key = tuple(args)
        self.calls.append(key)
        response = self.responses.get(key)
        if response is None:
            raise FileNotFoundError(f"No such file or directory: {args[0]!r}")
        if isinstance(response, Exception):
            raise response
        return response


def wait_until(
    predicate: Callable[[], bool], timeout: float = 3.0, interval: float = 0.005
) -> bool:
    """Poll ``predicate`` until true or ``timeout`` seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()

