"""
Cart Repository

Data access layer for cart lines using the asyncpg PostgresClient.
Matches schema: cart.cart_lines
"""

import logging
from typing import Any, Iterable, List, Optional

import asyncpg

from core.postgres_client import PostgresClient
from microservices.inventory_service.models import ItemKind, ItemRef
from .models import CartLine
from .protocols import CartPersistenceError

logger = logging.getLogger(__name__)


SCHEMA_DDL: List[str] = [
    "CREATE SCHEMA IF NOT EXISTS cart",
    """
    CREATE TABLE IF NOT EXISTS cart.cart_lines (
        cart_id SERIAL PRIMARY KEY,
        user_id VARCHAR(64) NOT NULL,
        kind VARCHAR(16) NOT NULL,
        item_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CONSTRAINT uq_cart_user_item UNIQUE (user_id, kind, item_id)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cart_lines_user ON cart.cart_lines (user_id)",
]


def _rowcount(status: str) -> int:
    # asyncpg returns the command tag, e.g. "DELETE 3"
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class CartRepository:
    """
    Repository for cart operations.

    Tables:
        - cart.cart_lines: one row per (user, item kind, item id)
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.table = "cart.cart_lines"
        logger.info("CartRepository initialized with PostgresClient")

    async def initialize_schema(self) -> None:
        await self.db.execute_script(SCHEMA_DDL)

    async def list_lines(self, user_id: str, conn: Any = None, for_update: bool = False) -> List[CartLine]:
        """Get a user's cart lines

        With ``for_update`` the rows stay locked until ``conn``'s transaction
        ends, so a second checkout of the same cart waits and then finds it empty.
        """
        query = f"""
            SELECT cart_id, user_id, kind, item_id, quantity, created_at
            FROM {self.table}
            WHERE user_id = $1
            ORDER BY created_at, cart_id
            {"FOR UPDATE" if for_update else ""}
        """
        try:
            async with self.db.connection(conn) as c:
                rows = await c.fetch(query, user_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to list cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to list cart for user {user_id}: {e}") from e

        return [self._row_to_line(row) for row in rows]

    async def clear(self, user_id: str, items: Optional[Iterable[ItemRef]] = None, conn: Any = None) -> int:
        """Remove the given items, or the whole cart when items is None"""
        try:
            async with self.db.connection(conn) as c:
                if items is None:
                    status = await c.execute(f"DELETE FROM {self.table} WHERE user_id = $1", user_id)
                else:
                    refs = list(items)
                    if not refs:
                        return 0
                    status = await c.execute(
                        f"""
                        DELETE FROM {self.table}
                        WHERE user_id = $1
                          AND (kind, item_id) IN (SELECT * FROM unnest($2::varchar[], $3::int[]))
                        """,
                        user_id,
                        [ref.kind.value for ref in refs],
                        [ref.item_id for ref in refs],
                    )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to clear cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to clear cart for user {user_id}: {e}") from e

        removed = _rowcount(status)
        logger.info(f"Cleared {removed} cart lines for user {user_id}")
        return removed

    async def add_line(self, user_id: str, item: ItemRef, quantity: int = 1, conn: Any = None) -> CartLine:
        """Insert a cart line, or add to the quantity of the existing one"""
        query = f"""
            INSERT INTO {self.table} (user_id, kind, item_id, quantity)
            VALUES ($1, $2, $3, $4)
            ON CONFLICT (user_id, kind, item_id)
            DO UPDATE SET quantity = cart_lines.quantity + EXCLUDED.quantity
            RETURNING cart_id, user_id, kind, item_id, quantity, created_at
        """
        try:
            async with self.db.connection(conn) as c:
                row = await c.fetchrow(query, user_id, item.kind.value, item.item_id, quantity)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to add {item} to cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to add {item} to cart: {e}") from e

        return self._row_to_line(row)

    async def update_quantity(self, user_id: str, item: ItemRef, quantity: int, conn: Any = None) -> Optional[CartLine]:
        """Set a line's quantity; zero or less removes the line"""
        if quantity <= 0:
            await self.remove_line(user_id, item, conn=conn)
            return None

        query = f"""
            UPDATE {self.table}
            SET quantity = $4
            WHERE user_id = $1 AND kind = $2 AND item_id = $3
            RETURNING cart_id, user_id, kind, item_id, quantity, created_at
        """
        try:
            async with self.db.connection(conn) as c:
                row = await c.fetchrow(query, user_id, item.kind.value, item.item_id, quantity)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to update {item} in cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to update {item} in cart: {e}") from e

        return self._row_to_line(row) if row else None

    async def remove_line(self, user_id: str, item: ItemRef, conn: Any = None) -> bool:
        query = f"DELETE FROM {self.table} WHERE user_id = $1 AND kind = $2 AND item_id = $3"
        try:
            async with self.db.connection(conn) as c:
                status = await c.execute(query, user_id, item.kind.value, item.item_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to remove {item} from cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to remove {item} from cart: {e}") from e

        return _rowcount(status) > 0

    async def get_item_count(self, user_id: str, conn: Any = None) -> int:
        query = f"SELECT COALESCE(SUM(quantity), 0) FROM {self.table} WHERE user_id = $1"
        try:
            async with self.db.connection(conn) as c:
                return int(await c.fetchval(query, user_id))
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to count cart for user {user_id}: {e}")
            raise CartPersistenceError(f"Failed to count cart for user {user_id}: {e}") from e

    def _row_to_line(self, row) -> CartLine:
        return CartLine(
            cart_id=row["cart_id"],
            user_id=row["user_id"],
            kind=ItemKind(row["kind"]),
            item_id=row["item_id"],
            quantity=row["quantity"],
            created_at=row["created_at"],
        )
