"""
Service logger setup

Every service module logs through ``logging.getLogger(__name__)``; entry points
call ``setup_service_logger`` once to attach handlers and the level from
LoggingConfig.
"""

import logging
import sys
from typing import Optional

from core.config import get_settings

_configured = set()


def setup_service_logger(service_name: str, level: Optional[str] = None) -> logging.Logger:
    """Configure and return the named service logger.

    Repeated calls for the same service return the already configured logger.
    """
    config = get_settings().logging
    logger = logging.getLogger(service_name)

    if service_name in _configured:
        return logger

    logger.setLevel((level or config.log_level).upper())
    formatter = logging.Formatter(config.log_format)

    if config.enable_console:
        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if config.log_file:
        file_handler = logging.FileHandler(config.log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    _configured.add(service_name)
    logger.info(f"Logger ready for {service_name} ({config.environment})")
    return logger
