"""Camera streaming, photo capture and system controls for the Honeybee kiosk."""

__version__ = "0.1.0"
