"""Injectable time source shared by the capture worker and controller.

Example:
    class FakeClock:
        def __init__(self):
            self.now = 0.0

        def monotonic(self) -> float:
            return self.now

        def sleep(self, seconds: float) -> None:
            self.now += seconds

    loop = CaptureLoop(..., clock=FakeClock())
"""

from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):  # pragma: no cover
    """Protocol for time functions (injectable for testing)."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Business context: Frame pacing measures how long each capture
        cycle took; wall-clock time would jump when NTP corrects the
        kiosk's clock after Wi-Fi comes up.
        """
        ...

    def sleep(self, seconds: float) -> None:
        """Suspend the calling thread for ``seconds``.

        Used for the remainder of a frame interval and between stop
        polls. Zero or negative durations return immediately.
        """
        ...


class SystemClock:
    """Default clock backed by the time module."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)
