"""
NATS JetStream Client for the Commerce Services
Provides event-driven notification delivery

This module wraps nats-py and publishes JSON encoded events to JetStream,
one stream per subject prefix.
"""

import json
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

import nats
from nats.aio.client import Client as NATS
from nats.errors import Error as NATSError
from nats.js import JetStreamContext
from nats.js.errors import BadRequestError

from core.config import get_settings

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that keeps Decimal amounts exact as strings"""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return str(obj)
        return super().default(obj)


class EventType(Enum):
    """Event types published by the commerce services"""

    # Notification Events
    NOTIFICATION_ORDER_CREATED = "notification.order.created"
    NOTIFICATION_ORDER_STATUS_CHANGED = "notification.order.status_changed"


class ServiceSource(Enum):
    """Service sources"""

    ORDER_SERVICE = "order_service"


class Event:
    """Event model"""

    def __init__(
        self,
        event_type: EventType,
        source: ServiceSource,
        data: Dict[str, Any],
        subject: Optional[str] = None,
        metadata: Optional[Dict[str, str]] = None,
    ):
        self.id = str(uuid.uuid4())
        self.type = event_type.value
        self.source = source.value
        self.data = data
        self.subject = subject
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.metadata = metadata or {}
        self.version = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "source": self.source,
            "subject": self.subject,
            "timestamp": self.timestamp,
            "data": self.data,
            "metadata": self.metadata,
            "version": self.version,
        }


class NATSEventBus:
    """
    NATS JetStream event bus on nats-py.

    Streams are created on first publish per subject prefix,
    e.g. notification.* -> notification-stream.
    """

    def __init__(self, service_name: str, servers: Optional[str] = None):
        self.service_name = service_name
        self.servers = servers or get_settings().infra.nats_servers
        self._nc: Optional[NATS] = None
        self._js: Optional[JetStreamContext] = None
        self._streams: set = set()
        self._is_connected = False

        logger.info(f"NATS EventBus initialized: {self.servers}")

    async def connect(self):
        """Connect to NATS and open a JetStream context"""
        try:
            self._nc = await nats.connect(self.servers, name=self.service_name)
            self._js = self._nc.jetstream()
            self._is_connected = True
            logger.info(f"Connected to NATS as {self.service_name}")
        except (NATSError, OSError) as e:
            logger.error(f"Failed to connect to NATS: {e}")
            raise

    async def publish_event(self, event: Event) -> bool:
        """
        Publish an event to JetStream.

        Returns False instead of raising so callers on the notification path
        never fail because the broker is down.
        """
        if not self._is_connected or not self._js:
            logger.error("Not connected to NATS")
            return False

        try:
            stream_name = self._get_stream_name_for_event(event.type)
            await self._ensure_stream(stream_name, event.type.split('.')[0])

            ack = await self._js.publish(
                event.type,
                json.dumps(event.to_dict(), cls=DecimalEncoder).encode(),
                headers={
                    "event_type": event.type,
                    "source": event.source,
                },
            )
            logger.info(f"Published event {event.type} [{event.id}] to stream {stream_name}, seq={ack.seq}")
            return True

        except (NATSError, OSError) as e:
            logger.error(f"Error publishing event {event.id}: {e}")
            return False

    async def _ensure_stream(self, stream_name: str, subject_prefix: str) -> None:
        if stream_name in self._streams:
            return
        try:
            await self._js.add_stream(name=stream_name, subjects=[f"{subject_prefix}.>"])
        except BadRequestError as e:
            # stream already exists with a different config
            logger.debug(f"Stream creation note: {e}")
        self._streams.add(stream_name)

    def _get_stream_name_for_event(self, event_type: str) -> str:
        return f"{event_type.split('.')[0]}-stream"

    async def close(self):
        """Drain and close the NATS connection"""
        if self._nc:
            await self._nc.drain()
            self._nc = None
            self._js = None

        self._is_connected = False
        logger.info("Disconnected from NATS")


# Singleton instance
_event_bus: Optional[NATSEventBus] = None


async def get_event_bus(service_name: str, servers: Optional[str] = None) -> NATSEventBus:
    """
    Get or create event bus instance.

    Args:
        service_name: Name of the service using the event bus
        servers: Optional NATS server URL override

    Returns:
        Connected NATSEventBus instance
    """
    global _event_bus

    if _event_bus is None:
        bus = NATSEventBus(service_name=service_name, servers=servers)
        await bus.connect()
        _event_bus = bus

    return _event_bus

