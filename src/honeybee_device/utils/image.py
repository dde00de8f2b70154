"""Image codec abstractions for dependency injection.

The capture worker turns each device frame into a pixel buffer and then
into the JPEG that is published and emitted. Both steps go through the
``ImageCodec`` protocol so tests can swap OpenCV for a fake.

Usage:
    # Production (default)
    codec = CV2ImageCodec()
    pixels = codec.decode(raw_frame)
    jpeg = codec.encode_jpeg(pixels, quality=85)

    # Testing
    class FakeCodec:
        def decode(self, raw):
            return np.zeros((480, 640, 3), dtype=np.uint8)

        def encode_jpeg(self, img, quality=85):
            return b"\\xff\\xd8fake"

Architecture:
    ImageCodec (Protocol) <- CV2ImageCodec (real)
                          <- FakeCodec (tests)

CV2ImageCodec imports cv2 in ``__init__`` rather than at module import,
so code that only needs the protocol never loads OpenCV.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from honeybee_device.errors import FrameDecodeError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from honeybee_device.drivers.cameras.types import RawFrame

__all__ = ["ImageCodec", "CV2ImageCodec"]


@runtime_checkable
class ImageCodec(Protocol):
    """Protocol for the decode and encode steps of a capture cycle.

    Example:
        >>> codec: ImageCodec = CV2ImageCodec()
        >>> pixels = codec.decode(raw)
        >>> codec.encode_jpeg(pixels, quality=85)[:2]
        b'\\xff\\xd8'
    """

    def decode(self, raw: RawFrame) -> NDArray[Any]:
        """Turn a device frame into an uncompressed (H, W, 3) BGR array.

        Args:
            raw: Frame from ``CaptureDevice.frame()``. ``mjpeg`` frames are
                decompressed; ``bgr`` frames are validated and passed through.

        Returns:
            uint8 pixel array.

        Raises:
            FrameDecodeError: If the data is corrupt or the format unknown.
        """
        ...  # pragma: no cover

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        """Encode a pixel array as JPEG.

        Args:
            img: uint8 array, grayscale (H, W) or BGR (H, W, 3).
            quality: JPEG quality 1-100.

        Returns:
            JPEG bytes starting with ``FF D8``.

        Raises:
            ValueError: If quality is out of range or encoding fails.
        """
        ...  # pragma: no cover


class CV2ImageCodec(ImageCodec):
    """OpenCV implementation of ImageCodec.

    Thread Safety:
        cv2.imdecode/imencode hold no shared state; one instance may be
        used from several threads.
    """

    def __init__(self) -> None:
        """Import cv2 and numpy on first instantiation.

        Raises:
            ImportError: If opencv-python-headless is not installed.
        """
        import cv2
        import numpy as np

        self._cv2 = cv2
        self._np = np

    def decode(self, raw: RawFrame) -> NDArray[Any]:
        """Decode ``raw`` with cv2.imdecode, or validate an already-decoded frame.

        Business context: Webcams deliver MJPEG at 640x480/25 fps, but a
        camera's MJPEG stream often carries vendor quirks (missing Huffman
        tables, odd markers) that some viewers reject. Decoding and
        re-encoding yields one clean baseline JPEG that both the live view
        and saved photos can rely on.

        Raises:
            FrameDecodeError: On empty/corrupt data, unknown format, or a
                pass-through array that is not an image.
        """
        if raw.fmt == "bgr":
            img = raw.data
            if not isinstance(img, self._np.ndarray) or img.ndim not in (2, 3):
                raise FrameDecodeError("BGR frame is not an image array")
            return img

        if raw.fmt != "mjpeg":
            raise FrameDecodeError(f"Unsupported frame format: {raw.fmt}")

        data = raw.data
        if not isinstance(data, bytes | bytearray | memoryview) or len(data) == 0:
            raise FrameDecodeError("MJPEG frame is empty")

        buffer = self._np.frombuffer(data, dtype=self._np.uint8)
        img = self._cv2.imdecode(buffer, self._cv2.IMREAD_COLOR)
        if img is None:
            raise FrameDecodeError(
                f"MJPEG frame could not be decoded ({len(data)} bytes)"
            )
        return img

    def encode_jpeg(self, img: NDArray[Any], quality: int = 85) -> bytes:
        """Encode with cv2.imencode and IMWRITE_JPEG_QUALITY.

        Raises:
            ValueError: If quality not in 1-100 or cv2 reports failure.
        """
        if not 1 <= quality <= 100:
            raise ValueError(f"quality must be 1-100, got {quality}")
        success, data = self._cv2.imencode(
            ".jpg", img, [self._cv2.IMWRITE_JPEG_QUALITY, quality]
        )
        if not success:
            raise ValueError(
                f"JPEG encoding failed for image shape={img.shape}, dtype={img.dtype}"
            )
        return data.tobytes()
