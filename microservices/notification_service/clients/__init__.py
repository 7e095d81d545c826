"""
Clients module for notification_service

Centralized HTTP clients for synchronous service-to-service communication
"""

from .account_client import AccountServiceClient

__all__ = [
    "AccountServiceClient",
]
