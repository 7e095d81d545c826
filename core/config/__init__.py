#!/usr/bin/env python3
"""Modular configuration system for the commerce services

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- logging_config: Logging configuration
- commerce_config: Checkout, pricing and notification rules
"""
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from .commerce_config import CommerceConfig
from .infra_config import InfraConfig
from .logging_config import LoggingConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)


@dataclass
class AppConfig:
    """Top-level settings container"""
    infra: InfraConfig = field(default_factory=InfraConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    commerce: CommerceConfig = field(default_factory=CommerceConfig)

    @classmethod
    def from_env(cls) -> 'AppConfig':
        return cls(
            infra=InfraConfig.from_env(),
            logging=LoggingConfig.from_env(),
            commerce=CommerceConfig.from_env(),
        )


# Create global settings instance
settings = AppConfig.from_env()

def get_settings() -> AppConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> AppConfig:
    """Reload settings from environment"""
    global settings
    settings = AppConfig.from_env()
    return settings

__all__ = [
    # Main config
    'AppConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'InfraConfig',
    'CommerceConfig',
]
