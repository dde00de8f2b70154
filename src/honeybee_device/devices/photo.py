"""Still photo capture from the live stream.

A photo is the most recently published frame written to disk as-is. No
new exposure is taken and nothing is re-encoded: the bytes on disk are
exactly the bytes the viewer last displayed.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from honeybee_device.devices.frame_slot import SharedFrameSlot
from honeybee_device.events import EventSink, PhotoSavedEvent
from honeybee_device.observability import get_logger

logger = get_logger(__name__)

NO_FRAME_MESSAGE = "No frame available. Is the camera streaming?"
FILENAME_FORMAT = "IMG_%Y%m%d_%H%M%S.jpg"


@dataclass(frozen=True, slots=True)
class PhotoSaveResult:
    """Outcome of one capture request.

    Attributes:
        path: Absolute path of the written file; empty on failure.
        success: True when the file was written.
        error: Human-readable reason on failure, else None.
    """

    path: str
    success: bool
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"path": self.path, "success": self.success, "error": self.error}

    def to_event(self) -> PhotoSavedEvent:
        return PhotoSavedEvent(path=self.path, success=self.success, error=self.error)


def photo_filename(when: datetime) -> str:
    """Return ``IMG_YYYYMMDD_HHMMSS.jpg`` for ``when``.

    Example:
        >>> photo_filename(datetime(2024, 3, 9, 14, 5, 7))
        'IMG_20240309_140507.jpg'
    """
    return when.strftime(FILENAME_FORMAT)


class PhotoCapture:
    """Saves the latest frame from a SharedFrameSlot to the photo directory.

    Every request produces exactly one ``PhotoSaveResult`` which is both
    returned and emitted as ``photo-saved``. Failures are reported in the
    result, never raised.

    Business context: The kiosk's shutter button gives instant feedback
    from the returned result, while other open views (a gallery, a second
    window) learn about the new picture from the event.

    Note:
        Two captures within the same second share a filename; the second
        overwrites the first.
    """

    def __init__(
        self,
        slot: SharedFrameSlot,
        sink: EventSink,
        photo_dir: Path,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """Initialize photo capture.

        Args:
            slot: Frame slot written by the capture worker.
            sink: Receives one ``photo-saved`` event per request.
            photo_dir: Target directory, created on demand.
            now: Local-time source for filenames (injectable for tests).
        """
        self._slot = slot
        self._sink = sink
        self.photo_dir = Path(photo_dir)
        self._now = now

    def __repr__(self) -> str:
        return f"PhotoCapture(photo_dir={str(self.photo_dir)!r})"

    def capture_photo(self) -> PhotoSaveResult:
        """Write the latest frame to ``<photo_dir>/IMG_<timestamp>.jpg``.

        Returns:
            PhotoSaveResult with the absolute path on success, or
            ``success=False`` and an error message when no frame is
            available, the directory cannot be created, or the write
            fails.

        Example:
            >>> result = photos.capture_photo()
            >>> result.success, Path(result.path).name
            (True, 'IMG_20240309_140507.jpg')
        """
        frame = self._slot.latest()
        if frame is None:
            logger.info("Photo requested with no frame available")
            return self._finish(
                PhotoSaveResult(path="", success=False, error=NO_FRAME_MESSAGE)
            )

        try:
            self.photo_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(
                "Failed to create camera directory",
                path=str(self.photo_dir),
                error=str(e),
            )
            return self._finish(
                PhotoSaveResult(
                    path="",
                    success=False,
                    error=f"Failed to create camera directory: {e}",
                )
            )

        target = self.photo_dir / photo_filename(self._now())
        try:
            target.write_bytes(frame.data)
        except OSError as e:
            logger.error("Failed to save photo", path=str(target), error=str(e))
            return self._finish(
                PhotoSaveResult(
                    path="", success=False, error=f"Failed to save photo: {e}"
                )
            )

        path = str(target.resolve())
        logger.info("Photo saved", path=path, size=len(frame.data))
        return self._finish(PhotoSaveResult(path=path, success=True))

    def _finish(self, result: PhotoSaveResult) -> PhotoSaveResult:
        try:
            self._sink.emit(result.to_event())
        except Exception as e:
            logger.warning(
                "Event delivery failed", event_name=PhotoSavedEvent.name, error=str(e)
            )
        return result
