"""Logging setup for the marketplace service."""

from __future__ import annotations

import logging

from victor_commons.logging import configure_logging, get_named_logger

LOGGER_NAMESPACE = "victor_service"


def setup_logging(level: str, service_name: str, directory: str) -> logging.Logger:
    """Configure JSON logging for every logger under the service namespace."""
    logger = configure_logging(level, LOGGER_NAMESPACE, directory, service=service_name)
    logger.debug("Logging configured", extra={"service": service_name, "level": level})
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the service namespace."""
    return get_named_logger(LOGGER_NAMESPACE, name)
