"""Web interface for honeybee-device."""

from honeybee_device.web.app import create_app

__all__ = ["create_app"]
