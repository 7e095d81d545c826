"""
Order Repository

Data access layer for order management operations using the asyncpg PostgresClient.
Matches schema: orders.orders, orders.order_lines, orders.order_sequences
"""

import logging
from typing import Any, Dict, Iterable, List, Optional

import asyncpg

from core.postgres_client import PostgresClient
from microservices.inventory_service.models import ItemKind
from .models import (
    Order, OrderLine, OrderStatus, PaymentMethod, PaymentStatus,
    format_order_number, order_period,
)
from .protocols import DuplicateOrderNumberError, PersistenceError

logger = logging.getLogger(__name__)


ORDER_NUMBER_CONSTRAINT = "uq_orders_order_number"

SCHEMA_DDL: List[str] = [
    "CREATE SCHEMA IF NOT EXISTS orders",
    f"""
    CREATE TABLE IF NOT EXISTS orders.orders (
        order_id VARCHAR(64) PRIMARY KEY,
        order_number VARCHAR(32) NOT NULL,
        user_id VARCHAR(64) NOT NULL,
        total_amount NUMERIC(18, 2) NOT NULL,
        order_status VARCHAR(16) NOT NULL DEFAULT 'pending',
        payment_status VARCHAR(16) NOT NULL DEFAULT 'pending',
        payment_method VARCHAR(32) NOT NULL,
        shipping_address VARCHAR(500) NOT NULL,
        notes VARCHAR(500),
        cancellation_reason VARCHAR(500),
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
        CONSTRAINT {ORDER_NUMBER_CONSTRAINT} UNIQUE (order_number)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_orders_user ON orders.orders (user_id, created_at DESC)",
    """
    CREATE TABLE IF NOT EXISTS orders.order_lines (
        line_id SERIAL PRIMARY KEY,
        order_id VARCHAR(64) NOT NULL REFERENCES orders.orders (order_id) ON DELETE CASCADE,
        kind VARCHAR(16) NOT NULL,
        item_id INTEGER NOT NULL,
        quantity INTEGER NOT NULL CHECK (quantity > 0),
        unit_price NUMERIC(18, 2) NOT NULL,
        total_price NUMERIC(18, 2) NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS orders.order_sequences (
        period VARCHAR(6) PRIMARY KEY,
        last_value INTEGER NOT NULL
    )
    """,
]

_ORDER_COLUMNS = """
    order_id, order_number, user_id, total_amount, order_status, payment_status,
    payment_method, shipping_address, notes, cancellation_reason, created_at, updated_at
"""


class OrderRepository:
    """
    Repository for order data operations

    Handles all database operations for orders using PostgresClient.
    """

    def __init__(self, db: PostgresClient):
        self.db = db
        self.schema = "orders"  # Using "orders" instead of "order" (reserved keyword)
        self.orders_table = f"{self.schema}.orders"
        self.lines_table = f"{self.schema}.order_lines"
        self.sequences_table = f"{self.schema}.order_sequences"
        logger.info("OrderRepository initialized with PostgresClient")

    async def initialize_schema(self) -> None:
        await self.db.execute_script(SCHEMA_DDL)

    async def create_order(self, order: Order, conn: Any = None) -> Order:
        """Insert the order header and its lines as one unit"""
        try:
            async with self.db.connection(conn) as c:
                async with c.transaction():
                    await c.execute(
                        f"""
                        INSERT INTO {self.orders_table} (
                            order_id, order_number, user_id, total_amount, order_status,
                            payment_status, payment_method, shipping_address, notes,
                            created_at, updated_at
                        ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                        """,
                        order.order_id, order.order_number, order.user_id, order.total_amount,
                        order.order_status.value, order.payment_status.value,
                        order.payment_method.value, order.shipping_address, order.notes,
                        order.created_at, order.updated_at,
                    )
                    for line in order.lines:
                        await c.execute(
                            f"""
                            INSERT INTO {self.lines_table} (
                                order_id, kind, item_id, quantity, unit_price, total_price, created_at
                            ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                            """,
                            order.order_id, line.kind.value, line.item_id, line.quantity,
                            line.unit_price, line.total_price, line.created_at,
                        )
                    created = await self._fetch_order(c, "order_id = $1", order.order_id)

        except asyncpg.UniqueViolationError as e:
            if e.constraint_name == ORDER_NUMBER_CONSTRAINT:
                logger.warning(f"Order number {order.order_number} already taken")
                raise DuplicateOrderNumberError(f"Order number {order.order_number} already exists") from e
            logger.error(f"Failed to create order {order.order_id}: {e}")
            raise PersistenceError(f"Failed to create order: {e}") from e
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to create order {order.order_id}: {e}")
            raise PersistenceError(f"Failed to create order: {e}") from e

        logger.info(f"Order persisted: {order.order_number} ({order.order_id})")
        return created

    async def get_order(self, order_id: str, conn: Any = None, for_update: bool = False) -> Optional[Order]:
        """Get order by ID; ``for_update`` row-locks it until ``conn``'s transaction ends"""
        try:
            async with self.db.connection(conn) as c:
                return await self._fetch_order(c, "order_id = $1", order_id, for_update=for_update)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to get order {order_id}: {e}")
            raise PersistenceError(f"Failed to get order {order_id}: {e}") from e

    async def get_order_by_number(self, order_number: str, conn: Any = None) -> Optional[Order]:
        """Get order by order number"""
        try:
            async with self.db.connection(conn) as c:
                return await self._fetch_order(c, "order_number = $1", order_number)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to get order {order_number}: {e}")
            raise PersistenceError(f"Failed to get order {order_number}: {e}") from e

    async def list_user_orders(self, user_id: str, limit: int = 50, offset: int = 0) -> List[Order]:
        """Get orders for a specific user, newest first"""
        query = f"""
            SELECT {_ORDER_COLUMNS}
            FROM {self.orders_table}
            WHERE user_id = $1
            ORDER BY created_at DESC, order_number DESC
            LIMIT $2 OFFSET $3
        """
        try:
            async with self.db.acquire() as c:
                rows = await c.fetch(query, user_id, limit, offset)
                lines = await self._fetch_lines(c, [row["order_id"] for row in rows])
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to list orders for user {user_id}: {e}")
            raise PersistenceError(f"Failed to list orders for user {user_id}: {e}") from e

        return [self._row_to_order(row, lines.get(row["order_id"], [])) for row in rows]

    async def count_user_orders(self, user_id: str) -> int:
        try:
            async with self.db.acquire() as c:
                return await c.fetchval(
                    f"SELECT COUNT(*) FROM {self.orders_table} WHERE user_id = $1", user_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to count orders for user {user_id}: {e}")
            raise PersistenceError(f"Failed to count orders for user {user_id}: {e}") from e

    async def next_order_number(self, year: int, month: int, conn: Any = None) -> str:
        """Allocate the next number for the month with an atomic upsert-increment"""
        period = order_period(year, month)
        query = f"""
            INSERT INTO {self.sequences_table} (period, last_value)
            VALUES ($1, 1)
            ON CONFLICT (period)
            DO UPDATE SET last_value = order_sequences.last_value + 1
            RETURNING last_value
        """
        try:
            async with self.db.connection(conn) as c:
                sequence = await c.fetchval(query, period)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to allocate order number for {period}: {e}")
            raise PersistenceError(f"Failed to allocate order number: {e}") from e

        return format_order_number(year, month, sequence)

    async def transition_status(
        self,
        order_id: str,
        from_statuses: Iterable[OrderStatus],
        to_status: OrderStatus,
        reason: Optional[str] = None,
        conn: Any = None,
    ) -> Optional[Order]:
        """Compare-and-set the order status"""
        query = f"""
            UPDATE {self.orders_table}
            SET order_status = $3,
                cancellation_reason = COALESCE($4, cancellation_reason),
                updated_at = NOW()
            WHERE order_id = $1 AND order_status = ANY($2::varchar[])
            RETURNING order_id
        """
        expected = [status.value for status in from_statuses]
        try:
            async with self.db.connection(conn) as c:
                updated = await c.fetchval(query, order_id, expected, to_status.value, reason)
                if updated is None:
                    return None
                return await self._fetch_order(c, "order_id = $1", order_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to move order {order_id} to {to_status.value}: {e}")
            raise PersistenceError(f"Failed to update order status: {e}") from e

    async def update_payment_status(self, order_id: str, status: PaymentStatus, conn: Any = None) -> Optional[Order]:
        query = f"""
            UPDATE {self.orders_table}
            SET payment_status = $2, updated_at = NOW()
            WHERE order_id = $1
            RETURNING order_id
        """
        try:
            async with self.db.connection(conn) as c:
                updated = await c.fetchval(query, order_id, status.value)
                if updated is None:
                    return None
                return await self._fetch_order(c, "order_id = $1", order_id)
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to set payment status of order {order_id}: {e}")
            raise PersistenceError(f"Failed to update payment status: {e}") from e

    async def delete_order(self, order_id: str, conn: Any = None) -> bool:
        """Delete order; lines go with it (ON DELETE CASCADE)"""
        try:
            async with self.db.connection(conn) as c:
                deleted = await c.fetchval(
                    f"DELETE FROM {self.orders_table} WHERE order_id = $1 RETURNING order_id", order_id
                )
        except (asyncpg.PostgresError, OSError) as e:
            logger.error(f"Failed to delete order {order_id}: {e}")
            raise PersistenceError(f"Failed to delete order {order_id}: {e}") from e

        return deleted is not None

    async def _fetch_order(self, conn, where: str, value: Any, for_update: bool = False) -> Optional[Order]:
        lock = " FOR UPDATE" if for_update else ""
        row = await conn.fetchrow(
            f"SELECT {_ORDER_COLUMNS} FROM {self.orders_table} WHERE {where}{lock}", value
        )
        if row is None:
            return None
        lines = await self._fetch_lines(conn, [row["order_id"]])
        return self._row_to_order(row, lines.get(row["order_id"], []))

    async def _fetch_lines(self, conn, order_ids: List[str]) -> Dict[str, List[OrderLine]]:
        if not order_ids:
            return {}
        rows = await conn.fetch(
            f"""
            SELECT line_id, order_id, kind, item_id, quantity, unit_price, total_price, created_at
            FROM {self.lines_table}
            WHERE order_id = ANY($1::varchar[])
            ORDER BY line_id
            """,
            order_ids,
        )
        grouped: Dict[str, List[OrderLine]] = {}
        for row in rows:
            grouped.setdefault(row["order_id"], []).append(
                OrderLine(
                    line_id=row["line_id"],
                    kind=ItemKind(row["kind"]),
                    item_id=row["item_id"],
                    quantity=row["quantity"],
                    unit_price=row["unit_price"],
                    total_price=row["total_price"],
                    created_at=row["created_at"],
                )
            )
        return grouped

    def _row_to_order(self, row, lines: List[OrderLine]) -> Order:
        """Convert a database row to Order model"""
        return Order(
            order_id=row["order_id"],
            order_number=row["order_number"],
            user_id=row["user_id"],
            lines=lines,
            total_amount=row["total_amount"],
            order_status=OrderStatus(row["order_status"]),
            payment_status=PaymentStatus(row["payment_status"]),
            payment_method=PaymentMethod(row["payment_method"]),
            shipping_address=row["shipping_address"],
            notes=row["notes"],
            cancellation_reason=row["cancellation_reason"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )
