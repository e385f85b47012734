#!/usr/bin/env python3
"""
Service logger setup

Configures a named logger with console and optional file handlers based on
LoggingConfig. Safe to call more than once per service.
"""

import logging
from pathlib import Path
from typing import Optional

from .config.logging_config import LoggingConfig


def setup_service_logger(
    service_name: str,
    level: Optional[str] = None,
    config: Optional[LoggingConfig] = None,
) -> logging.Logger:
    """
    Configure and return the logger for a service

    Args:
        service_name: Logger name, usually the service package name
        level: Overrides config.log_level when given
        config: Logging config (loaded from environment if not provided)

    Returns:
        Configured logger
    """
    config = config or LoggingConfig.from_env()

    logger = logging.getLogger(service_name)
    logger.setLevel((level or config.log_level).upper())

    # Avoid duplicate handlers on repeated setup
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=config.log_format)

    if config.enable_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logger initialized for {service_name} ({config.environment})")
    return logger


__all__ = ["setup_service_logger"]
