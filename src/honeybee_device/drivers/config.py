"""Driver configuration and factory.

Switches the camera between the real webcam (OpenCV) and the digital twin,
and holds the few host-specific settings the device layer needs (device
index, photo directory).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

from honeybee_device.drivers.cameras import (
    CaptureDriver,
    DigitalTwinCaptureDriver,
    DigitalTwinConfig,
    OpenCVCaptureDriver,
)

# =============================================================================
# Constants
# =============================================================================

PHOTO_SUBDIR = "honeybee-camera"
"""Folder under the user's pictures directory that receives photos."""

DEFAULT_DEVICE_INDEX = 0


class DriverMode(Enum):
    """Driver mode selection."""

    HARDWARE = "hardware"  # Real webcam via OpenCV
    DIGITAL_TWIN = "digital_twin"  # Simulated webcam for testing


def pictures_dir() -> Path:
    """Resolve the user's pictures directory.

    Honors ``XDG_PICTURES_DIR`` (as exported by xdg-user-dirs sessions),
    falling back to ``~/Pictures``.

    Returns:
        Path that may not exist yet.

    Example:
        >>> pictures_dir()
        PosixPath('/home/kiosk/Pictures')
    """
    xdg = os.environ.get("XDG_PICTURES_DIR")
    if xdg:
        return Path(xdg).expanduser()
    return Path.home() / "Pictures"


def default_photo_dir() -> Path:
    """Return ``<pictures>/honeybee-camera``.

    Business context: Photos taken from the kiosk's camera mini-app land
    where the desktop's file manager and photo viewers already look, so
    users find them without any configuration.

    Returns:
        Photo directory path; created on first photo, not here.
    """
    return pictures_dir() / PHOTO_SUBDIR


@dataclass
class DriverConfig:
    """Configuration for driver selection and host settings.

    Attributes:
        mode: HARDWARE for the real webcam, DIGITAL_TWIN for simulation.
        device_index: OpenCV/V4L2 camera index in HARDWARE mode.
        photo_dir: Where captured photos are written.
        twin: Digital twin image source and failure simulation settings.
    """

    mode: DriverMode = DriverMode.HARDWARE
    device_index: int = DEFAULT_DEVICE_INDEX
    photo_dir: Path = field(default_factory=default_photo_dir)
    twin: DigitalTwinConfig = field(default_factory=DigitalTwinConfig)


class DriverFactory:
    """Creates capture drivers according to a DriverConfig.

    Thread Safety:
        Not thread-safe. Configure once at startup before the web app
        starts serving requests.
    """

    def __init__(self, config: DriverConfig | None = None):
        self.config = config or DriverConfig()

    def __repr__(self) -> str:
        return f"DriverFactory(mode={self.config.mode.value})"

    def create_capture_driver(self) -> CaptureDriver:
        """Create the capture driver for the configured mode.

        Business context: The same CameraService runs on the kiosk with
        its built-in webcam and on a developer laptop or CI runner with
        the digital twin; only this factory decides which.

        Returns:
            OpenCVCaptureDriver in HARDWARE mode, DigitalTwinCaptureDriver
            in DIGITAL_TWIN mode.

        Example:
            >>> factory = DriverFactory(DriverConfig(mode=DriverMode.DIGITAL_TWIN))
            >>> factory.create_capture_driver()
            DigitalTwinCaptureDriver(source=synthetic)
        """
        if self.config.mode == DriverMode.HARDWARE:
            return OpenCVCaptureDriver(device_index=self.config.device_index)
        return DigitalTwinCaptureDriver(self.config.twin)


# =============================================================================
# Global factory
# =============================================================================
# Not thread-safe. Configure once at startup (the CLI does this) before
# create_app() builds the camera service.

_factory: DriverFactory | None = None


def get_factory() -> DriverFactory:
    """Return the process-wide factory, creating a default one on first use."""
    global _factory
    if _factory is None:
        _factory = DriverFactory()
    return _factory


def configure(config: DriverConfig) -> None:
    """Replace the process-wide factory with one built from ``config``."""
    global _factory
    _factory = DriverFactory(config)


def reset_factory() -> None:
    """Forget the process-wide factory (test teardown)."""
    global _factory
    _factory = None


def use_digital_twin() -> None:
    """Switch the process-wide factory to DIGITAL_TWIN, keeping other settings."""
    configure(replace(get_factory().config, mode=DriverMode.DIGITAL_TWIN))


def use_hardware() -> None:
    """Switch the process-wide factory to HARDWARE, keeping other settings."""
    configure(replace(get_factory().config, mode=DriverMode.HARDWARE))
