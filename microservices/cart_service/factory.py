"""
Cart Service Factory

This is the ONLY place that imports I/O-dependent modules.
"""
from core.postgres_client import PostgresClient


def create_cart_repository(db: PostgresClient):
    """Create the PostgreSQL cart store. Use this in production, NOT in tests."""
    from .cart_repository import CartRepository

    return CartRepository(db)
