"""
Catalog Repository

Data access layer for catalog stock using the asyncpg PostgresClient.
Matches schema: catalog.vehicles, catalog.parts
"""

import logging
from typing import Any, Dict, List, Optional

import asyncpg

from core.postgres_client import PostgresClient
from .models import ItemKind, ItemRef, StockableItem
from .protocols import CatalogPersistenceError

logger = logging.getLogger(__name__)


# kind -> (table, id column, display name column)
_KIND_TABLES: Dict[ItemKind, tuple] = {
    ItemKind.VEHICLE: ("vehicles", "vehicle_id", "model"),
    ItemKind.PART: ("parts", "part_id", "part_name"),
}

SCHEMA_DDL: List[str] = [
    "CREATE SCHEMA IF NOT EXISTS catalog",
    """
    CREATE TABLE IF NOT EXISTS catalog.vehicles (
        vehicle_id SERIAL PRIMARY KEY,
        model VARCHAR(100) NOT NULL,
        price NUMERIC(18, 2) NOT NULL CHECK (price > 0),
        stock_quantity INTEGER NOT NULL DEFAULT 1 CHECK (stock_quantity >= 0),
        is_available BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS catalog.parts (
        part_id SERIAL PRIMARY KEY,
        part_name VARCHAR(100) NOT NULL,
        price NUMERIC(18, 2) NOT NULL CHECK (price > 0),
        stock_quantity INTEGER NOT NULL DEFAULT 0 CHECK (stock_quantity >= 0),
        is_available BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
]


class CatalogRepository:
    """
    Repository for catalog stock operations.

    Tables:
        - catalog.vehicles: Vehicles for sale
        - catalog.parts: Spare parts
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.schema = "catalog"
        logger.info("CatalogRepository initialized with PostgresClient")

    async def initialize_schema(self) -> None:
        await self.db.execute_script(SCHEMA_DDL)

    def _table(self, kind: ItemKind):
        table, id_col, name_col = _KIND_TABLES[kind]
        return f"{self.schema}.{table}", id_col, name_col

    async def get_item(self, ref: ItemRef, conn: Any = None) -> Optional[StockableItem]:
        """Get a catalog item by reference"""
        table, id_col, name_col = self._table(ref.kind)
        query = f"""
            SELECT {id_col} AS item_id, {name_col} AS name, price, is_available, stock_quantity
            FROM {table}
            WHERE {id_col} = $1
        """
        try:
            async with self.db.connection(conn) as c:
                row = await c.fetchrow(query, ref.item_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to read catalog item {ref}: {e}")
            raise CatalogPersistenceError(f"Failed to read catalog item {ref}: {e}") from e

        if row is None:
            return None
        return self._row_to_item(ref.kind, row)

    async def decrease_stock(self, ref: ItemRef, quantity: int, conn: Any = None) -> Optional[int]:
        """Atomically take ``quantity`` units; None if the guard did not match"""
        table, id_col, _ = self._table(ref.kind)
        query = f"""
            UPDATE {table}
            SET stock_quantity = stock_quantity - $2, updated_at = NOW()
            WHERE {id_col} = $1 AND is_available AND stock_quantity >= $2
            RETURNING stock_quantity
        """
        try:
            async with self.db.connection(conn) as c:
                return await c.fetchval(query, ref.item_id, quantity)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to decrease stock for {ref}: {e}")
            raise CatalogPersistenceError(f"Failed to decrease stock for {ref}: {e}") from e

    async def increase_stock(self, ref: ItemRef, quantity: int, conn: Any = None) -> Optional[int]:
        """Return ``quantity`` units to stock; None if the item is gone"""
        table, id_col, _ = self._table(ref.kind)
        query = f"""
            UPDATE {table}
            SET stock_quantity = stock_quantity + $2, updated_at = NOW()
            WHERE {id_col} = $1
            RETURNING stock_quantity
        """
        try:
            async with self.db.connection(conn) as c:
                return await c.fetchval(query, ref.item_id, quantity)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to increase stock for {ref}: {e}")
            raise CatalogPersistenceError(f"Failed to increase stock for {ref}: {e}") from e

    async def add_item(
        self,
        kind: ItemKind,
        name: str,
        price,
        stock_quantity: int,
        is_available: bool = True,
        conn: Any = None,
    ) -> StockableItem:
        """Insert a catalog row (seeding and admin tooling)"""
        table, id_col, name_col = self._table(kind)
        query = f"""
            INSERT INTO {table} ({name_col}, price, stock_quantity, is_available)
            VALUES ($1, $2, $3, $4)
            RETURNING {id_col} AS item_id, {name_col} AS name, price, is_available, stock_quantity
        """
        try:
            async with self.db.connection(conn) as c:
                row = await c.fetchrow(query, name, price, stock_quantity, is_available)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to add {kind.value} {name}: {e}")
            raise CatalogPersistenceError(f"Failed to add {kind.value} {name}: {e}") from e
        return self._row_to_item(kind, row)

    def _row_to_item(self, kind: ItemKind, row) -> StockableItem:
        return StockableItem(
            kind=kind,
            item_id=row["item_id"],
            name=row["name"],
            price=row["price"],
            is_available=row["is_available"],
            stock_quantity=row["stock_quantity"],
        )
