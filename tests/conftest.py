"""Pytest configuration and fixtures for honeybee-device tests.

The test doubles themselves live in ``tests/helpers.py``; this module
only wires them into fixtures and resets process-wide state between
tests. Tests that need real JPEG data use cv2 directly.
"""

from __future__ import annotations

from collections.abc import Iterator

import cv2
import numpy as np
import pytest

from honeybee_device.drivers import config as driver_config
from honeybee_device.drivers.cameras.types import CaptureProfile
from honeybee_device.observability import reset_logging
from tests.helpers import FakeClock, FakeCodec, RecordingSink


@pytest.fixture(autouse=True)
def _isolate_driver_factory() -> Iterator[None]:
    """Reset the process-wide driver factory after every test.

    Business context: CLI tests call ``configure()``, which would
    otherwise leak a HARDWARE or DIGITAL_TWIN factory into later tests
    that rely on ``get_factory()`` defaults.
    """
    yield
    driver_config.reset_factory()


@pytest.fixture
def fresh_logging() -> Iterator[None]:
    """Drop installed log handlers before and after a logging test."""
    reset_logging()
    yield
    reset_logging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def profile() -> CaptureProfile:
    return CaptureProfile()


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A real 64x48 JPEG encoded with OpenCV.

    Returns:
        JPEG bytes starting with ``FF D8``.
    """
    img = np.full((48, 64, 3), (30, 120, 220), dtype=np.uint8)
    ok, data = cv2.imencode(".jpg", img)
    assert ok
    return data.tobytes()
