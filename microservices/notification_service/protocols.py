"""
Notification Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class EventBusProtocol(Protocol):
    """Interface for Event Bus - no I/O imports"""

    async def publish_event(self, event: Any) -> Any:
        """Publish an event"""
        ...


@runtime_checkable
class AccountClientProtocol(Protocol):
    """Interface for Account Service Client"""

    async def get_account_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get user account profile; None when unknown"""
        ...
