"""Host system controls: brightness, volume, Wi-Fi status, setup QR code."""

from honeybee_device.system.brightness import BrightnessControl
from honeybee_device.system.commands import (
    CommandResult,
    CommandRunner,
    SubprocessCommandRunner,
)
from honeybee_device.system.qr import QrCodeImage, read_qr_code_image
from honeybee_device.system.volume import AudioBackend, VolumeControl
from honeybee_device.system.wifi import WifiStatus, check_wifi_status

__all__ = [
    "AudioBackend",
    "BrightnessControl",
    "CommandResult",
    "CommandRunner",
    "QrCodeImage",
    "SubprocessCommandRunner",
    "VolumeControl",
    "WifiStatus",
    "check_wifi_status",
    "read_qr_code_image",
]
