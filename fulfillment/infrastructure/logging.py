"""
Logging infrastructure.

Provides logging utilities for the infrastructure layer.
"""
import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def get_logger(name: str) -> logging.Logger:
    """
    Get logger instance.

    Args:
        name: Logger name (usually module name)

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def configure_logging(level: str = "INFO") -> None:
    """Attach the service format to the `fulfillment` and `apps` logger trees."""
    for name in ("fulfillment", "apps", "orchestration"):
        get_logger(name).setLevel(level.upper())
