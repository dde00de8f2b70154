"""Tests for host system controls with scripted command output.

Test Categories:
1. Brightness: busctl reply parsing, percentage conversion, clamping
2. Volume: backend detection, per-backend get/set, parse helpers
3. Wi-Fi: nmcli terse output parsing, missing tool
4. Provisioning QR code: missing, present, unreadable
5. SubprocessCommandRunner against real binaries
"""

from __future__ import annotations

import base64
import io
import subprocess
import sys
from pathlib import Path

import pytest

from honeybee_device.errors import SystemControlError
from honeybee_device.observability import configure_logging
from honeybee_device.system import (
    AudioBackend,
    BrightnessControl,
    CommandResult,
    CommandRunner,
    QrCodeImage,
    SubprocessCommandRunner,
    VolumeControl,
    WifiStatus,
    check_wifi_status,
    read_qr_code_image,
)
from honeybee_device.system.brightness import BUSCTL_TARGET
from honeybee_device.system.qr import default_qr_code_path
from honeybee_device.system.volume import (
    parse_amixer_volume,
    parse_pactl_volume,
    parse_wpctl_volume,
)
from honeybee_device.system.wifi import NMCLI_STATUS_ARGS, parse_nmcli_status
from tests.helpers import FakeCommandRunner

# =============================================================================
# Helpers
# =============================================================================


def busctl(method: str, *args: str) -> tuple[str, ...]:
    return ("busctl", "--user", "call", *BUSCTL_TARGET, method, *args)


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(returncode=0, stdout=stdout)


def failed(stderr: str = "") -> CommandResult:
    return CommandResult(returncode=1, stderr=stderr)


WPCTL_VERSION = ("wpctl", "--version")
PACTL_VERSION = ("pactl", "--version")


# =============================================================================
# Brightness
# =============================================================================


class TestBrightness:
    def test_get_brightness_as_percent(self) -> None:
        """Verify raw busctl values convert to a rounded percentage.

        Business context:
        The quick-settings slider works in percent while KDE exposes raw
        backlight steps.

        Arrangement:
        busctl replies "i 19200" for max and "i 9601" for current.

        Action:
        get_brightness().

        Assertion:
        Returns 50.
        """
        runner = FakeCommandRunner(
            {
                busctl("brightnessMax"): ok("i 19200\n"),
                busctl("brightness"): ok("i 9601\n"),
            }
        )

        assert BrightnessControl(runner).get_brightness() == 50

    def test_zero_max_is_invalid(self) -> None:
        runner = FakeCommandRunner(
            {busctl("brightnessMax"): ok("i 0"), busctl("brightness"): ok("i 0")}
        )

        with pytest.raises(SystemControlError, match="Invalid max brightness"):
            BrightnessControl(runner).get_brightness()

    def test_malformed_reply(self) -> None:
        runner = FakeCommandRunner({busctl("brightnessMax"): ok("i")})

        with pytest.raises(SystemControlError, match="Invalid brightnessMax response"):
            BrightnessControl(runner).max_value()

    def test_non_integer_reply(self) -> None:
        runner = FakeCommandRunner({busctl("brightness"): ok("i lots")})

        with pytest.raises(SystemControlError, match="Failed to parse brightness"):
            BrightnessControl(runner).current_value()

    def test_busctl_missing(self) -> None:
        with pytest.raises(SystemControlError, match="Failed to call brightnessMax"):
            BrightnessControl(FakeCommandRunner({})).get_brightness()

    def test_busctl_error_status(self) -> None:
        runner = FakeCommandRunner(
            {busctl("brightnessMax"): failed("No such interface\n")}
        )

        with pytest.raises(
            SystemControlError, match="brightnessMax failed: No such interface"
        ):
            BrightnessControl(runner).get_brightness()

    @pytest.mark.parametrize(
        ("requested", "applied", "raw"),
        [(50, 50, "500"), (0, 5, "50"), (-10, 5, "50"), (150, 100, "1000")],
    )
    def test_set_brightness_clamps(
        self, requested: int, applied: int, raw: str
    ) -> None:
        """Verify the requested level is clamped to 5-100 before scaling.

        Business context:
        A 0% backlight makes the touch screen unusable, so the floor is 5%.
        """
        runner = FakeCommandRunner(
            {
                busctl("brightnessMax"): ok("i 1000"),
                busctl("setBrightness", "i", raw): ok(),
            }
        )

        assert BrightnessControl(runner).set_brightness(requested) == applied
        assert runner.calls[-1] == busctl("setBrightness", "i", raw)

    def test_set_brightness_logs_with_info_enabled(self, fresh_logging: None) -> None:
        """Verify a successful set is logged rather than raising TypeError.

        Business context:
        Deployments run at INFO. The success log carries the applied
        percentage as ``level``, which must not break the setter itself.

        Arrangement:
        Logging configured at INFO into a buffer; busctl answers.

        Action:
        set_brightness(40).

        Assertion:
        Returns 40 and the record shows level=40 and the raw value.
        """
        stream = io.StringIO()
        configure_logging(level="INFO", stream=stream, force=True)
        runner = FakeCommandRunner(
            {
                busctl("brightnessMax"): ok("i 1000"),
                busctl("setBrightness", "i", "400"): ok(),
            }
        )

        assert BrightnessControl(runner).set_brightness(40) == 40
        assert "Brightness set | level=40 raw=400" in stream.getvalue()


# =============================================================================
# Volume
# =============================================================================


class TestVolumeBackendDetection:
    def test_pipewire_preferred(self) -> None:
        runner = FakeCommandRunner({WPCTL_VERSION: ok(), PACTL_VERSION: ok()})

        assert VolumeControl(runner).detect_backend() is AudioBackend.PIPEWIRE

    def test_pulseaudio_when_no_wpctl(self) -> None:
        runner = FakeCommandRunner({PACTL_VERSION: ok()})

        assert VolumeControl(runner).detect_backend() is AudioBackend.PULSEAUDIO

    def test_failing_wpctl_falls_through(self) -> None:
        runner = FakeCommandRunner(
            {
                WPCTL_VERSION: failed(),
                PACTL_VERSION: subprocess.TimeoutExpired("pactl", 5),
            }
        )

        assert VolumeControl(runner).detect_backend() is AudioBackend.ALSA


class TestVolumeGet:
    def test_pipewire(self) -> None:
        runner = FakeCommandRunner(
            {
                WPCTL_VERSION: ok(),
                ("wpctl", "get-volume", "@DEFAULT_AUDIO_SINK@"): ok("Volume: 0.45\n"),
            }
        )

        assert VolumeControl(runner).get_volume() == 45

    def test_pulseaudio(self) -> None:
        output = (
            "Volume: front-left: 32768 /  50% / -18.06 dB,"
            "   front-right: 32768 /  50% / -18.06 dB\n"
        )
        runner = FakeCommandRunner(
            {
                PACTL_VERSION: ok(),
                ("pactl", "get-sink-volume", "@DEFAULT_SINK@"): ok(output),
            }
        )

        assert VolumeControl(runner).get_volume() == 50

    def test_alsa(self) -> None:
        output = (
            "Simple mixer control 'Master',0\n"
            "  Mono: Playback 48 [73%] [-18.75dB] [on]\n"
        )
        runner = FakeCommandRunner({("amixer", "get", "Master"): ok(output)})

        assert VolumeControl(runner).get_volume() == 73

    def test_pipewire_command_failure(self) -> None:
        runner = FakeCommandRunner(
            {
                WPCTL_VERSION: ok(),
                ("wpctl", "get-volume", "@DEFAULT_AUDIO_SINK@"): failed(),
            }
        )

        with pytest.raises(SystemControlError, match="wpctl get-volume failed"):
            VolumeControl(runner).get_volume()

    def test_unparseable_output(self) -> None:
        runner = FakeCommandRunner(
            {PACTL_VERSION: ok(), ("pactl", "get-sink-volume", "@DEFAULT_SINK@"): ok()}
        )

        with pytest.raises(SystemControlError, match="Failed to parse pactl volume"):
            VolumeControl(runner).get_volume()

    def test_no_audio_tools(self) -> None:
        with pytest.raises(SystemControlError, match="amixer error"):
            VolumeControl(FakeCommandRunner({})).get_volume()


class TestVolumeSet:
    def test_pipewire_uses_fraction(self) -> None:
        """Verify PipeWire receives a 0.00-1.00 fraction with two decimals.

        Arrangement:
        wpctl present; set-volume answered for "0.50".

        Action:
        set_volume(50).

        Assertion:
        Returns 50 and the last command is the wpctl set-volume call.
        """
        argv = ("wpctl", "set-volume", "@DEFAULT_AUDIO_SINK@", "0.50")
        runner = FakeCommandRunner({WPCTL_VERSION: ok(), argv: ok()})

        assert VolumeControl(runner).set_volume(50) == 50
        assert runner.calls[-1] == argv

    def test_pulseaudio_clamps_to_100(self) -> None:
        argv = ("pactl", "set-sink-volume", "@DEFAULT_SINK@", "100%")
        runner = FakeCommandRunner({PACTL_VERSION: ok(), argv: ok()})

        assert VolumeControl(runner).set_volume(140) == 100
        assert runner.calls[-1] == argv

    def test_alsa_clamps_to_zero(self) -> None:
        argv = ("amixer", "set", "Master", "0%")
        runner = FakeCommandRunner({argv: ok()})

        assert VolumeControl(runner).set_volume(-3) == 0

    def test_set_volume_logs_with_info_enabled(self, fresh_logging: None) -> None:
        """Verify a successful set is logged with the applied level.

        Arrangement:
        Logging configured at INFO into a buffer; ALSA only.

        Action:
        set_volume(30).

        Assertion:
        Returns 30; record shows level=30 and backend=alsa.
        """
        stream = io.StringIO()
        configure_logging(level="INFO", stream=stream, force=True)
        argv = ("amixer", "set", "Master", "30%")
        runner = FakeCommandRunner({argv: ok()})

        assert VolumeControl(runner).set_volume(30) == 30
        assert "Volume set | level=30 backend=alsa" in stream.getvalue()

    def test_failure_includes_stderr(self) -> None:
        argv = ("amixer", "set", "Master", "30%")
        runner = FakeCommandRunner({argv: failed("Unable to find simple control\n")})

        with pytest.raises(
            SystemControlError,
            match="amixer set Master failed: Unable to find simple control",
        ):
            VolumeControl(runner).set_volume(30)


class TestVolumeParsers:
    @pytest.mark.parametrize(
        ("output", "expected"),
        [
            ("Volume: 0.50", 50),
            ("Volume: 0.30 [MUTED]", 30),
            ("Volume: 1.50", 100),
            ("Volume:", None),
        ],
    )
    def test_wpctl(self, output: str, expected: int | None) -> None:
        assert parse_wpctl_volume(output) == expected

    def test_pactl_caps_boosted_volume(self) -> None:
        assert parse_pactl_volume("front-left: 98304 / 150% / 10.57 dB") == 100

    def test_pactl_no_percent(self) -> None:
        assert parse_pactl_volume("Volume: n/a") is None

    def test_amixer_skips_lines_without_brackets(self) -> None:
        output = "Limits: Playback 0 - 87\n  Front Left: Playback 60 [69%] [on]\n"

        assert parse_amixer_volume(output) == 69

    def test_amixer_no_volume(self) -> None:
        assert parse_amixer_volume("Simple mixer control 'Master',0\n") is None


# =============================================================================
# Wi-Fi
# =============================================================================


class TestWifiStatus:
    def test_connected_wireless_device(self) -> None:
        """Verify the first connected wl* device supplies the SSID.

        Business context:
        The kiosk's Wi-Fi indicator shows the network name; wired links
        and the loopback device must not count as Wi-Fi.
        """
        output = (
            "eth0:connected:Wired connection 1\n"
            "wlp2s0:connected:HiveNet\n"
            "lo:connected (externally):lo\n"
        )
        runner = FakeCommandRunner({NMCLI_STATUS_ARGS: ok(output)})

        status = check_wifi_status(runner)

        assert status == WifiStatus(connected=True, ssid="HiveNet")
        assert status.to_payload() == {"connected": True, "ssid": "HiveNet"}

    def test_disconnected_wireless_device(self) -> None:
        status = parse_nmcli_status("wlan0:disconnected:\neth0:connected:Wired\n")

        assert status == WifiStatus(connected=False, ssid=None)

    def test_connected_without_connection_name(self) -> None:
        assert parse_nmcli_status("wlan0:connected:") == WifiStatus(True, None)

    def test_nmcli_missing_reads_as_offline(self) -> None:
        status = check_wifi_status(FakeCommandRunner({}))

        assert status.to_payload() == {"connected": False, "ssid": None}


# =============================================================================
# Provisioning QR code
# =============================================================================


class TestQrCodeImage:
    def test_default_path_under_user_config(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("HOME", str(tmp_path))

        assert default_qr_code_path() == (
            tmp_path / ".config" / "honeybee" / "qr" / "honeybee-qr.png"
        )

    def test_missing_file_is_not_an_error(self, tmp_path: Path) -> None:
        result = read_qr_code_image(tmp_path / "honeybee-qr.png")

        assert result == QrCodeImage(exists=False)
        assert result.to_payload() == {"exists": False, "data": None, "error": None}

    def test_existing_file_as_png_data_url(self, tmp_path: Path) -> None:
        """Verify the file is returned base64-encoded behind the PNG prefix.

        Arrangement:
        A file holding the 8-byte PNG signature.

        Action:
        read_qr_code_image(path).

        Assertion:
        exists True, no error, data decodes back to the file bytes.
        """
        path = tmp_path / "honeybee-qr.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\n")

        result = read_qr_code_image(path)

        assert result.exists
        assert result.error is None
        assert result.data == "data:image/png;base64,iVBORw0KGgo="
        assert base64.b64decode(result.data.split(",", 1)[1]) == path.read_bytes()

    def test_unreadable_file_reports_error(self, tmp_path: Path) -> None:
        """Verify a path that exists but cannot be read is reported, not raised.

        Business context:
        The GUI polls this while offline; an I/O error must show as a
        missing code with a reason, never a crashed request.

        Arrangement:
        A directory at the image path, so reading it fails.

        Action:
        read_qr_code_image(path).

        Assertion:
        exists False, data None, error carries the OS message.
        """
        path = tmp_path / "honeybee-qr.png"
        path.mkdir()

        result = read_qr_code_image(path)

        assert not result.exists
        assert result.data is None
        assert result.error is not None
        assert "honeybee-qr.png" in result.error


# =============================================================================
# SubprocessCommandRunner
# =============================================================================


class TestSubprocessCommandRunner:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(SubprocessCommandRunner(), CommandRunner)

    def test_captures_output_and_status(self) -> None:
        runner = SubprocessCommandRunner()

        result = runner.run(
            [sys.executable, "-c", "import sys; print('hi'); sys.exit(3)"]
        )

        assert result.returncode == 3
        assert not result.ok
        assert result.stdout.strip() == "hi"

    def test_missing_program_raises_oserror(self) -> None:
        with pytest.raises(OSError):
            SubprocessCommandRunner().run(["honeybee-no-such-tool"])

    def test_timeout_raises(self) -> None:
        runner = SubprocessCommandRunner(timeout=0.2)

        with pytest.raises(subprocess.TimeoutExpired):
            runner.run([sys.executable, "-c", "import time; time.sleep(5)"])
