"""
Order Microservice

Composition root: connects PostgreSQL and NATS, creates the commerce schemas
and wires OrderProcessor and OrderLifecycle to a running notification gateway.

Usage:
    async with order_service_lifespan() as service:
        result = await service.processor.checkout(request)

    python -m microservices.order_service.main   # create schemas, check health
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from core.config import get_settings
from core.logger import setup_service_logger
from core.nats_client import get_event_bus
from core.postgres_client import PostgresClient, get_postgres_client
from microservices.notification_service.factory import create_notification_gateway

from .factory import create_order_lifecycle, create_order_processor, initialize_schemas

SERVICE_NAME = "order_service"

logger = setup_service_logger(SERVICE_NAME)
# module loggers are named after their packages
for _package in ("core", "microservices"):
    setup_service_logger(_package)


class OrderMicroservice:
    """Order microservice core class"""

    def __init__(self):
        self.db: Optional[PostgresClient] = None
        self.event_bus = None
        self.notification_gateway = None
        self.processor = None
        self.lifecycle = None

    async def initialize(self, db: Optional[PostgresClient] = None, event_bus=None):
        """Initialize the microservice"""
        try:
            self.db = db or await get_postgres_client(SERVICE_NAME)
            await initialize_schemas(self.db)
        except Exception as e:
            logger.error(f"Failed to initialize order microservice: {e}")
            raise

        self.event_bus = event_bus
        if self.event_bus is None:
            try:
                self.event_bus = await get_event_bus(SERVICE_NAME)
                logger.info("✅ Event bus initialized successfully")
            except Exception as e:
                logger.warning(f"⚠️  Failed to initialize event bus: {e}. Continuing without notifications.")

        if self.event_bus is not None:
            self.notification_gateway = await create_notification_gateway(event_bus=self.event_bus)

        commerce = get_settings().commerce
        self.processor = create_order_processor(self.db, self.notification_gateway, config=commerce)
        self.lifecycle = create_order_lifecycle(self.db, self.notification_gateway, config=commerce)
        logger.info("Order microservice initialized successfully")

    async def shutdown(self):
        """Shutdown the microservice"""
        try:
            if self.notification_gateway:
                await self.notification_gateway.stop()
                if self.notification_gateway.account_client is not None:
                    await self.notification_gateway.account_client.close()
            if self.event_bus:
                await self.event_bus.close()
                logger.info("Event bus closed")
            if self.db:
                await self.db.close()
            logger.info("Order microservice shutdown completed")
        except Exception as e:
            logger.error(f"Error during shutdown: {e}")


@asynccontextmanager
async def order_service_lifespan(db: Optional[PostgresClient] = None, event_bus=None):
    """Run an initialized OrderMicroservice for the duration of the block"""
    service = OrderMicroservice()
    await service.initialize(db=db, event_bus=event_bus)
    try:
        yield service
    finally:
        await service.shutdown()


async def main():
    async with order_service_lifespan() as service:
        health = await service.db.health_check()
        logger.info(f"Database health: {health}")


if __name__ == "__main__":
    asyncio.run(main())
