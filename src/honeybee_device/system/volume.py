"""Speaker volume through PipeWire, PulseAudio or ALSA.

The backend is detected on every call: ``wpctl --version`` succeeding
means PipeWire, else ``pactl --version`` means PulseAudio, else ALSA's
``amixer``. Only output sinks are addressed; the microphone is never
touched.
"""

from __future__ import annotations

import subprocess  # nosec B404 - TimeoutExpired only
from collections.abc import Sequence
from enum import Enum

from honeybee_device.errors import SystemControlError
from honeybee_device.observability import get_logger
from honeybee_device.system.commands import CommandResult, CommandRunner

logger = get_logger(__name__)


class AudioBackend(Enum):
    """Sound server used for volume control."""

    PIPEWIRE = "pipewire"
    PULSEAUDIO = "pulseaudio"
    ALSA = "alsa"


def parse_wpctl_volume(output: str) -> int | None:
    """Parse ``Volume: 0.50`` (optionally followed by ``[MUTED]``) to 50."""
    for word in output.split():
        try:
            value = float(word)
        except ValueError:
            continue
        return max(0, min(100, round(value * 100)))
    return None


def parse_pactl_volume(output: str) -> int | None:
    """Return the first ``NN%`` token in pactl output, capped at 100."""
    for word in output.split():
        if word.endswith("%"):
            try:
                return min(100, int(word[:-1]))
            except ValueError:
                continue
    return None


def parse_amixer_volume(output: str) -> int | None:
    """Return the first bracketed ``[NN%]`` in amixer output, capped at 100."""
    for line in output.splitlines():
        start = line.find("[")
        if start == -1:
            continue
        end = line.find("%", start)
        if end == -1:
            continue
        try:
            return min(100, int(line[start + 1 : end]))
        except ValueError:
            continue
    return None


class VolumeControl:
    """Reads and sets speaker volume as a percentage.

    Business context: The same kiosk image runs on boards with PipeWire
    and on minimal images with only ALSA; the quick-settings volume
    slider must work on both without configuration.
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def _succeeds(self, args: Sequence[str]) -> bool:
        try:
            return self._runner.run(args).ok
        except (OSError, subprocess.TimeoutExpired):
            return False

    def detect_backend(self) -> AudioBackend:
        if self._succeeds(["wpctl", "--version"]):
            return AudioBackend.PIPEWIRE
        if self._succeeds(["pactl", "--version"]):
            return AudioBackend.PULSEAUDIO
        return AudioBackend.ALSA

    def _run(self, tool: str, args: Sequence[str]) -> CommandResult:
        try:
            return self._runner.run(args)
        except (OSError, subprocess.TimeoutExpired) as e:
            raise SystemControlError(f"{tool} error: {e}") from e

    def get_volume(self) -> int:
        """Return the default output's volume as 0-100.

        Raises:
            SystemControlError: If the tool fails or its output has no
                recognizable volume.
        """
        backend = self.detect_backend()
        if backend is AudioBackend.PIPEWIRE:
            result = self._run("wpctl", ["wpctl", "get-volume", "@DEFAULT_AUDIO_SINK@"])
            if not result.ok:
                raise SystemControlError("wpctl get-volume failed")
            volume = parse_wpctl_volume(result.stdout)
            if volume is None:
                raise SystemControlError("Failed to parse wpctl volume")
            return volume

        if backend is AudioBackend.PULSEAUDIO:
            result = self._run("pactl", ["pactl", "get-sink-volume", "@DEFAULT_SINK@"])
            if not result.ok:
                raise SystemControlError("pactl get-sink-volume failed")
            volume = parse_pactl_volume(result.stdout)
            if volume is None:
                raise SystemControlError("Failed to parse pactl volume")
            return volume

        result = self._run("amixer", ["amixer", "get", "Master"])
        if not result.ok:
            raise SystemControlError("amixer get Master failed")
        volume = parse_amixer_volume(result.stdout)
        if volume is None:
            raise SystemControlError("Failed to parse amixer volume")
        return volume

    def set_volume(self, level: int) -> int:
        """Set the default output's volume to ``level`` percent (0-100).

        Returns:
            The percentage actually applied after clamping.

        Raises:
            SystemControlError: If the tool fails.

        Example:
            >>> control.set_volume(50)  # PipeWire
            # runs: wpctl set-volume @DEFAULT_AUDIO_SINK@ 0.50
            50
        """
        safe_level = max(0, min(100, level))
        backend = self.detect_backend()
        if backend is AudioBackend.PIPEWIRE:
            tool, label = "wpctl", "wpctl set-volume"
            argv = [
                "wpctl",
                "set-volume",
                "@DEFAULT_AUDIO_SINK@",
                f"{safe_level / 100:.2f}",
            ]
        elif backend is AudioBackend.PULSEAUDIO:
            tool, label = "pactl", "pactl set-sink-volume"
            argv = ["pactl", "set-sink-volume", "@DEFAULT_SINK@", f"{safe_level}%"]
        else:
            tool, label = "amixer", "amixer set Master"
            argv = ["amixer", "set", "Master", f"{safe_level}%"]

        result = self._run(tool, argv)
        if not result.ok:
            raise SystemControlError(f"{label} failed: {result.stderr.strip()}")
        logger.info("Volume set", level=safe_level, backend=backend.value)
        return safe_level
