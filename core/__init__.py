#!/usr/bin/env python3
"""
Core Module for the Car Traders Commerce Services

Shared infrastructure components used by every service in the system.

COMPONENTS:
    - config/: Environment-driven configuration (infra, logging, commerce rules)
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg pool wrapper with transaction support
    - nats_client.py: NATS event bus for event-driven notifications

USAGE:
    from core.config import get_settings
    from core.postgres_client import PostgresClient

    settings = get_settings()
    db = PostgresClient.from_config(settings.infra)
"""

from .config import AppConfig, get_settings, reload_settings

__all__ = [
    "AppConfig",
    "get_settings",
    "reload_settings",
]

__version__ = "1.0.0"
