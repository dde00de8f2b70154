"""Wi-Fi connection status from NetworkManager."""

from __future__ import annotations

import subprocess  # nosec B404 - TimeoutExpired only
from dataclasses import dataclass
from typing import Any

from honeybee_device.observability import get_logger
from honeybee_device.system.commands import CommandRunner

logger = get_logger(__name__)

NMCLI_STATUS_ARGS = ("nmcli", "-t", "-f", "DEVICE,STATE,CONNECTION", "device", "status")


@dataclass(frozen=True, slots=True)
class WifiStatus:
    """Whether a wireless device is connected, and to which network."""

    connected: bool
    ssid: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"connected": self.connected, "ssid": self.ssid}


def parse_nmcli_status(output: str) -> WifiStatus:
    """Find the first connected ``wl*`` device in terse nmcli output.

    Example:
        >>> parse_nmcli_status("eth0:connected:Wired\\nwlan0:connected:Home\\n")
        WifiStatus(connected=True, ssid='Home')
    """
    for line in output.splitlines():
        parts = line.split(":")
        if len(parts) < 3:
            continue
        device, state, connection = parts[0], parts[1], parts[2]
        if device.startswith("wl") and state == "connected":
            return WifiStatus(connected=True, ssid=connection or None)
    return WifiStatus(connected=False)


def check_wifi_status(runner: CommandRunner) -> WifiStatus:
    """Report Wi-Fi status; any failure reads as not connected.

    Business context: The kiosk shows a Wi-Fi indicator and offers
    provisioning when offline. A host without NetworkManager is simply
    offline as far as the indicator is concerned.
    """
    try:
        result = runner.run(NMCLI_STATUS_ARGS)
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("nmcli unavailable", error=str(e))
        return WifiStatus(connected=False)
    return parse_nmcli_status(result.stdout)
