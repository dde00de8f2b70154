"""Hardware drivers for honeybee-device.

Supports two modes:
- HARDWARE: The kiosk's real webcam through OpenCV
- DIGITAL_TWIN: Simulated webcam for testing without hardware

Use drivers.config to switch modes:
    from honeybee_device.drivers import config
    config.use_digital_twin()  # or config.use_hardware()
"""

from honeybee_device.drivers import config
from honeybee_device.drivers.config import (
    DriverConfig,
    DriverFactory,
    DriverMode,
    configure,
    default_photo_dir,
    get_factory,
    use_digital_twin,
    use_hardware,
)

__all__ = [
    "config",
    "DriverMode",
    "DriverConfig",
    "DriverFactory",
    "default_photo_dir",
    "get_factory",
    "configure",
    "use_digital_twin",
    "use_hardware",
]
