"""Provisioning QR code image written by the Wi-Fi setup service."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from honeybee_device.observability import get_logger

logger = get_logger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"
QR_CODE_FILENAME = "honeybee-qr.png"


def default_qr_code_path() -> Path:
    """Return ``~/.config/honeybee/qr/honeybee-qr.png``."""
    return Path.home() / ".config" / "honeybee" / "qr" / QR_CODE_FILENAME


@dataclass(frozen=True, slots=True)
class QrCodeImage:
    """QR code lookup result.

    A missing file is not an error: ``exists`` is False and both
    ``data`` and ``error`` are None. A file that exists but cannot be
    read also reports ``exists`` False, with ``error`` set.
    """

    exists: bool
    data: str | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {"exists": self.exists, "data": self.data, "error": self.error}


def read_qr_code_image(path: Path | None = None) -> QrCodeImage:
    """Load the provisioning QR code as a PNG data URL.

    Business context: While the kiosk is offline the setup service drops
    a QR code for phone-based Wi-Fi provisioning. The GUI polls for it
    and shows it in place of the Wi-Fi indicator.

    Args:
        path: Image location; ``default_qr_code_path()`` if omitted.

    Returns:
        QrCodeImage; read failures are reported in ``error``, never raised.
    """
    qr_path = path if path is not None else default_qr_code_path()
    if not qr_path.exists():
        return QrCodeImage(exists=False)
    try:
        raw = qr_path.read_bytes()
    except OSError as e:
        logger.warning("QR code unreadable", path=str(qr_path), error=str(e))
        return QrCodeImage(exists=False, error=str(e))
    encoded = base64.b64encode(raw).decode("ascii")
    return QrCodeImage(exists=True, data=PNG_DATA_URL_PREFIX + encoded)
