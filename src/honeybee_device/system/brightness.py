"""Display brightness through KDE's PowerManagement D-Bus interface.

busctl replies with a type tag and a value, e.g. ``i 19200``. Levels are
exchanged with callers as a percentage of ``brightnessMax``.
"""

from __future__ import annotations

import subprocess  # nosec B404 - TimeoutExpired only

from honeybee_device.errors import SystemControlError
from honeybee_device.observability import get_logger
from honeybee_device.system.commands import CommandRunner

logger = get_logger(__name__)

BUSCTL_TARGET = (
    "org.kde.Solid.PowerManagement",
    "/org/kde/Solid/PowerManagement/Actions/BrightnessControl",
    "org.kde.Solid.PowerManagement.Actions.BrightnessControl",
)

# set_brightness clamps into this range.
MIN_BRIGHTNESS_PERCENT = 5
MAX_BRIGHTNESS_PERCENT = 100


class BrightnessControl:
    """Reads and sets display brightness as a percentage.

    Business context: The kiosk's quick-settings panel has a brightness
    slider. Values below 5% are raised to 5% so a user cannot lock
    themselves out with a black screen.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def _call(self, method: str, *args: str) -> str:
        argv = ["busctl", "--user", "call", *BUSCTL_TARGET, method, *args]
        try:
            result = self._runner.run(argv)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SystemControlError(f"Failed to call {method}: {e}") from e
        if not result.ok:
            raise SystemControlError(f"{method} failed: {result.stderr.strip()}")
        return result.stdout

    def _read_int(self, method: str, label: str) -> int:
        parts = self._call(method).split()
        if len(parts) < 2:
            raise SystemControlError(f"Invalid {method} response")
        try:
            return int(parts[1])
        except ValueError as e:
            raise SystemControlError(f"Failed to parse {label} value") from e

    def max_value(self) -> int:
        """Raw ``brightnessMax`` value."""
        return self._read_int("brightnessMax", "brightness max")

    def current_value(self) -> int:
        """Raw ``brightness`` value."""
        return self._read_int("brightness", "brightness")

    def get_brightness(self) -> int:
        """Return the current brightness as 0-100.

        Raises:
            SystemControlError: If busctl fails, the reply cannot be parsed,
                or the reported maximum is not positive.

        Example:
            >>> # busctl replies "i 19200" and "i 9600"
            >>> control.get_brightness()
            50
        """
        maximum = self.max_value()
        current = self.current_value()
        if maximum <= 0:
            raise SystemControlError("Invalid max brightness value")
        percent = round(current / maximum * 100)
        return max(0, min(100, percent))

    def set_brightness(self, level: int) -> int:
        """Set brightness to ``level`` percent, clamped to 5-100.

        Returns:
            The percentage actually applied.

        Raises:
            SystemControlError: If busctl fails.
        """
        safe_level = max(MIN_BRIGHTNESS_PERCENT, min(MAX_BRIGHTNESS_PERCENT, level))
        maximum = self.max_value()
        target = round(safe_level / 100 * maximum)
        self._call("setBrightness", "i", str(target))
        logger.info("Brightness set", level=safe_level, raw=target)
        return safe_level
