"""Observability for honeybee-device: structured logging.

Example:
    from honeybee_device.observability import get_logger, LogContext

    logger = get_logger(__name__)

    with LogContext(stream_id=1):
        logger.info("Frame published", width=640, height=480)
"""

from honeybee_device.observability.logging import (
    JSONFormatter,
    LogContext,
    StructuredFormatter,
    StructuredLogger,
    configure_logging,
    get_logger,
    reset_logging,
)

__all__ = [
    "JSONFormatter",
    "LogContext",
    "StructuredFormatter",
    "StructuredLogger",
    "configure_logging",
    "get_logger",
    "reset_logging",
]
