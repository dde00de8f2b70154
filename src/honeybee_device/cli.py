"""CLI entry point for honeybee-device.

Provides the ``honeybee-device`` console script, which configures
logging and the driver factory and then serves the web app with uvicorn.

Usage::

    # Real webcam on the default device, photos under ~/Pictures
    honeybee-device

    # Simulated camera, JSON logs, custom port
    honeybee-device --mode digital_twin --port 9000 --json-logs

    # Simulated camera replaying a folder of sample frames
    honeybee-device --mode digital_twin --twin-images ~/sample_frames
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from pathlib import Path

import uvicorn

from honeybee_device.drivers.cameras.twin import DigitalTwinConfig, ImageSource
from honeybee_device.drivers.config import (
    DriverConfig,
    DriverMode,
    configure,
    default_photo_dir,
)
from honeybee_device.observability import configure_logging, get_logger

logger = get_logger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments for the device service.

    Business context: The kiosk's session launcher starts this service
    with defaults (hardware camera, localhost only). Developers run the
    same entry point with ``--mode digital_twin`` on machines without a
    webcam, and CI uses it to smoke-test the HTTP surface.

    Args:
        argv: Arguments to parse; ``sys.argv[1:]`` when None.

    Returns:
        argparse.Namespace with host, port, mode, device_index,
        photo_dir, twin_images, log_level and json_logs.

    Raises:
        SystemExit: On --help or invalid arguments.
    """
    parser = argparse.ArgumentParser(
        prog="honeybee-device",
        description="Honeybee device service - camera stream, photos, system controls",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=DEFAULT_HOST,
        help=f"Host to bind the HTTP/WebSocket server to (default: {DEFAULT_HOST})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "--mode",
        type=str,
        choices=[m.value for m in DriverMode],
        default=DriverMode.HARDWARE.value,
        help=(
            "Driver mode: 'hardware' for the real webcam (default), "
            "'digital_twin' for simulation"
        ),
    )
    parser.add_argument(
        "--device-index",
        type=int,
        default=0,
        help="OpenCV camera index in hardware mode (default: 0)",
    )
    parser.add_argument(
        "--photo-dir",
        type=Path,
        default=None,
        help="Directory for captured photos (default: <Pictures>/honeybee-camera)",
    )
    parser.add_argument(
        "--twin-images",
        type=Path,
        default=None,
        help="Image file or directory replayed by the digital twin",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON lines",
    )
    return parser.parse_args(argv)


def build_driver_config(args: argparse.Namespace) -> DriverConfig:
    """Translate parsed arguments into a DriverConfig.

    Raises:
        ValueError: If the device index is negative.
    """
    if args.device_index < 0:
        raise ValueError(f"Device index must be >= 0, got {args.device_index}")

    twin = DigitalTwinConfig()
    if args.twin_images is not None:
        path = args.twin_images.expanduser()
        source = ImageSource.DIRECTORY if path.is_dir() else ImageSource.FILE
        twin = DigitalTwinConfig(image_source=source, image_path=path)

    return DriverConfig(
        mode=DriverMode(args.mode),
        device_index=args.device_index,
        photo_dir=(
            args.photo_dir.expanduser()
            if args.photo_dir is not None
            else default_photo_dir()
        ),
        twin=twin,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point.

    Parses arguments, configures structured logging and the driver
    factory, then blocks in uvicorn until interrupted.

    Returns:
        Exit code 0 on clean shutdown, 2 on invalid configuration.
    """
    args = parse_args(argv)
    configure_logging(level=args.log_level, json_format=args.json_logs, force=True)

    try:
        config = build_driver_config(args)
    except ValueError as e:
        logger.error("Invalid configuration", error=str(e))
        return 2
    configure(config)
    logger.info(
        "Driver configured",
        mode=config.mode.value,
        device_index=config.device_index,
        photo_dir=str(config.photo_dir),
    )

    from honeybee_device.web.app import create_app

    app = create_app()
    logger.info("Starting server", host=args.host, port=args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level)
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
