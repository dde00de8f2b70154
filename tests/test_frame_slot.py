"""Unit tests for SharedFrameSlot and EncodedFrame.

Test Categories:
1. EncodedFrame
   - Data URL encoding
   - Immutability
2. SharedFrameSlot
   - Empty / publish / replace / clear
   - Concurrent readers never observe a mixed frame
"""

from __future__ import annotations

import base64
import dataclasses
import threading

import pytest

from honeybee_device.devices.frame_slot import (
    JPEG_DATA_URL_PREFIX,
    EncodedFrame,
    SharedFrameSlot,
)


class TestEncodedFrame:
    """Tests for the immutable encoded frame value."""

    def test_to_data_url_round_trips_bytes(self, jpeg_bytes: bytes) -> None:
        """Verify the data URL carries the exact JPEG bytes.

        Business context:
        The GUI assigns the payload straight to an <img src>, so the
        prefix must be exactly the JPEG data URL scheme and the base64
        body must decode to the published bytes.

        Arrangement:
        Wrap real JPEG bytes in an EncodedFrame.

        Action:
        Build the data URL.

        Assertion:
        Prefix matches and the body decodes back to the original bytes.
        """
        frame = EncodedFrame(data=jpeg_bytes, width=64, height=48)

        url = frame.to_data_url()

        assert url.startswith("data:image/jpeg;base64,")
        assert url.startswith(JPEG_DATA_URL_PREFIX)
        assert base64.b64decode(url[len(JPEG_DATA_URL_PREFIX) :]) == jpeg_bytes

    def test_frame_is_frozen(self) -> None:
        """Verify fields cannot be reassigned after construction."""
        frame = EncodedFrame(data=b"\xff\xd8", width=1, height=1)

        with pytest.raises(dataclasses.FrozenInstanceError):
            frame.width = 2  # type: ignore[misc]


class TestSharedFrameSlot:
    """Tests for the latest-frame-wins slot."""

    def test_new_slot_is_empty(self) -> None:
        slot = SharedFrameSlot()

        assert slot.latest() is None
        assert slot.is_empty
        assert repr(slot) == "SharedFrameSlot(empty)"

    def test_publish_replaces_previous_frame(self) -> None:
        """Verify only the most recent publish is visible.

        Business context:
        There is no frame queue; a photo always uses the newest frame,
        and older frames are discarded.

        Arrangement:
        Publish two different frames.

        Action:
        Read the slot.

        Assertion:
        The second frame is returned, by identity.
        """
        slot = SharedFrameSlot()
        first = EncodedFrame(data=b"\xff\xd8one", width=640, height=480)
        second = EncodedFrame(data=b"\xff\xd8two", width=640, height=480)

        slot.publish(first)
        slot.publish(second)

        assert slot.latest() is second
        assert not slot.is_empty
        assert "640x480" in repr(slot)

    def test_clear_empties_slot(self) -> None:
        slot = SharedFrameSlot()
        slot.publish(EncodedFrame(data=b"\xff\xd8", width=1, height=1))

        slot.clear()

        assert slot.latest() is None

    def test_concurrent_readers_see_whole_frames(self) -> None:
        """Verify readers racing a writer only see complete frames.

        Business context:
        The capture worker publishes while request handlers read. A torn
        read would save a photo mixing two frames' bytes and sizes.

        Arrangement:
        Writer thread publishes frames whose data encodes their own
        width; reader threads sample the slot concurrently.

        Action:
        Run writer and readers for a few thousand iterations.

        Assertion:
        Every non-empty sample has data consistent with its width.
        """
        slot = SharedFrameSlot()
        mismatches: list[EncodedFrame] = []
        done = threading.Event()

        def writer() -> None:
            for i in range(1, 3000):
                slot.publish(EncodedFrame(data=str(i).encode(), width=i, height=i))
            done.set()

        def reader() -> None:
            while not done.is_set():
                frame = slot.latest()
                if frame is not None and frame.data != str(frame.width).encode():
                    mismatches.append(frame)

        readers = [threading.Thread(target=reader) for _ in range(3)]
        for t in readers:
            t.start()
        writer()
        for t in readers:
            t.join(timeout=5)

        assert mismatches == []
        latest = slot.latest()
        assert latest is not None
        assert latest.width == 2999
