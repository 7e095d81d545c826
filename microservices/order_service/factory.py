"""
Order Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_order_processor
    processor = create_order_processor(db, notification_gateway=gateway)
"""
from typing import Optional

from core.config import CommerceConfig
from core.postgres_client import PostgresClient
from microservices.cart_service.factory import create_cart_repository
from microservices.inventory_service.factory import create_catalog_repository

from .order_lifecycle import OrderLifecycle
from .order_processor import OrderProcessor


def create_order_repository(db: PostgresClient):
    # Import real repository here (not at module level)
    from .order_repository import OrderRepository

    return OrderRepository(db)


def create_order_processor(
    db: PostgresClient,
    notification_gateway=None,
    config: Optional[CommerceConfig] = None,
) -> OrderProcessor:
    """
    Create OrderProcessor with real dependencies.

    Use this in production, NOT in tests.

    Args:
        db: Connected PostgreSQL client; also acts as the transaction manager
        notification_gateway: Started NotificationGateway (optional)
        config: Commerce rules override

    Returns:
        Configured OrderProcessor instance
    """
    return OrderProcessor(
        catalog=create_catalog_repository(db),
        cart_store=create_cart_repository(db),
        order_repository=create_order_repository(db),
        transaction_manager=db,
        notification_gateway=notification_gateway,
        config=config,
    )


def create_order_lifecycle(
    db: PostgresClient,
    notification_gateway=None,
    config: Optional[CommerceConfig] = None,
) -> OrderLifecycle:
    """Create OrderLifecycle with real dependencies"""
    return OrderLifecycle(
        catalog=create_catalog_repository(db),
        order_repository=create_order_repository(db),
        transaction_manager=db,
        notification_gateway=notification_gateway,
        config=config,
    )


async def initialize_schemas(db: PostgresClient) -> None:
    """Create every commerce schema (catalog, cart, orders) if missing"""
    await create_catalog_repository(db).initialize_schema()
    await create_cart_repository(db).initialize_schema()
    await create_order_repository(db).initialize_schema()
