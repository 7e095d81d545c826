"""
Inventory Service Factory

Factory functions for creating service instances with real dependencies.
This is the ONLY place that imports I/O-dependent modules.

Usage:
    from .factory import create_inventory_ledger
    ledger = create_inventory_ledger(db)
"""
from core.postgres_client import PostgresClient

from .inventory_ledger import InventoryLedger


def create_catalog_repository(db: PostgresClient):
    """Create the PostgreSQL catalog repository"""
    # Import real repository here (not at module level)
    from .catalog_repository import CatalogRepository

    return CatalogRepository(db)


def create_inventory_ledger(db: PostgresClient) -> InventoryLedger:
    """
    Create InventoryLedger backed by the PostgreSQL catalog.

    Use this in production, NOT in tests.
    """
    return InventoryLedger(catalog=create_catalog_repository(db))
