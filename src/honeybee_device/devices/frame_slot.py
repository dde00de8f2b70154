"""Single-slot cache of the most recently encoded camera frame.

The capture worker is the only writer; the live viewer and photo capture
read from it. There is no queue behind the slot: each publish replaces
the previous frame and the old one is dropped.

Example:
    slot = SharedFrameSlot()
    slot.publish(EncodedFrame(data=jpeg_bytes, width=640, height=480))
    frame = slot.latest()  # EncodedFrame or None
"""

from __future__ import annotations

import base64
import threading
from dataclasses import dataclass

JPEG_DATA_URL_PREFIX = "data:image/jpeg;base64,"


@dataclass(frozen=True, slots=True)
class EncodedFrame:
    """A fully encoded JPEG still and its pixel dimensions.

    Attributes:
        data: Complete JPEG byte stream (starts with ``FF D8``).
        width: Image width in pixels.
        height: Image height in pixels.
    """

    data: bytes
    width: int
    height: int

    def to_data_url(self) -> str:
        """Encode the JPEG bytes as a ``data:image/jpeg;base64,...`` URL.

        Business context: The GUI renders frames straight into an
        ``<img src>`` without a second round-trip, so the event payload
        carries the image inline as a data URL.

        Returns:
            Data URL string with the base64-encoded JPEG.

        Example:
            >>> EncodedFrame(b"\\xff\\xd8", 1, 1).to_data_url()
            'data:image/jpeg;base64,/9g='
        """
        return JPEG_DATA_URL_PREFIX + base64.b64encode(self.data).decode("ascii")


class SharedFrameSlot:
    """Holds ``EncodedFrame | None`` for one writer and many readers.

    Each publish installs a complete, immutable ``EncodedFrame`` by
    swapping a single reference under a lock, so a reader can never see
    half of one frame and half of another. Readers get the frame object
    itself; since it is frozen, no copy is needed.

    Thread Safety:
        All methods are safe to call concurrently from any thread.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: EncodedFrame | None = None

    def publish(self, frame: EncodedFrame) -> None:
        """Replace the held frame with ``frame``."""
        with self._lock:
            self._frame = frame

    def latest(self) -> EncodedFrame | None:
        """Return the most recently published frame, or None if empty.

        Business context: Photo capture wants the freshest frame that is
        available right now, not the one that may be mid-encode in the
        worker. A frame published a moment after this call is simply not
        seen.
        """
        with self._lock:
            return self._frame

    def clear(self) -> None:
        """Empty the slot. Called once by the worker during cleanup."""
        with self._lock:
            self._frame = None

    @property
    def is_empty(self) -> bool:
        """True when no frame is held."""
        return self.latest() is None

    def __repr__(self) -> str:
        frame = self.latest()
        if frame is None:
            return "SharedFrameSlot(empty)"
        return (
            f"SharedFrameSlot({frame.width}x{frame.height}, "
            f"{len(frame.data)} bytes)"
        )
