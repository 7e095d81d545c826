"""
PostgreSQL Client Wrapper for the Commerce Services

Centralized asyncpg pool wrapper. Repositories receive this client and either
run single statements on a pooled connection or join a caller-owned
transaction through the ``conn`` handle yielded by ``transaction()``.

Usage:
    from core.postgres_client import get_postgres_client

    db = await get_postgres_client("order_service")

    async with db.transaction() as conn:
        row = await conn.fetchrow("SELECT * FROM orders.orders WHERE order_id = $1", order_id)
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

from core.config import get_settings
from core.config.infra_config import InfraConfig

logger = logging.getLogger(__name__)


class PostgresClient:
    """
    asyncpg pool wrapper.

    Provides:
    - Lazy pool creation from InfraConfig
    - ``transaction()`` yielding a connection inside BEGIN/COMMIT
    - ``acquire()`` for statements that need no surrounding transaction
    - ``connection(conn)`` to reuse a caller's connection when one is passed
    """

    def __init__(
        self,
        service_name: str,
        dsn: str,
        min_size: int = 1,
        max_size: int = 10,
        command_timeout: float = 30.0,
    ):
        self.service_name = service_name
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.command_timeout = command_timeout
        self._pool: Optional[asyncpg.Pool] = None

    @classmethod
    def from_config(cls, infra: InfraConfig, service_name: str = "commerce") -> "PostgresClient":
        return cls(
            service_name=service_name,
            dsn=infra.postgres_dsn,
            min_size=infra.postgres_pool_min,
            max_size=infra.postgres_pool_max,
            command_timeout=infra.postgres_command_timeout,
        )

    async def connect(self) -> None:
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=self.command_timeout,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name} (min={self.min_size}, max={self.max_size})")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("PostgreSQL pool is not connected")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block inside one transaction.

        Commits on normal exit, rolls back if the block raises.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    @asynccontextmanager
    async def connection(self, conn: Optional[asyncpg.Connection] = None) -> AsyncIterator[asyncpg.Connection]:
        """Yield ``conn`` when the caller already holds one, else a pooled connection."""
        if conn is not None:
            yield conn
            return
        async with self.pool.acquire() as pooled:
            yield pooled

    async def health_check(self) -> Dict[str, Any]:
        try:
            async with self.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return {"healthy": True}
        except (asyncpg.PostgresError, OSError, RuntimeError) as e:
            logger.warning(f"PostgreSQL health check failed: {e}")
            return {"healthy": False, "error": str(e)}

    async def execute_script(self, statements: List[str]) -> None:
        """Run DDL statements in order inside one transaction."""
        async with self.transaction() as conn:
            for statement in statements:
                await conn.execute(statement)


# Singleton instances per service
_postgres_clients: Dict[str, PostgresClient] = {}


async def get_postgres_client(service_name: str, infra: Optional[InfraConfig] = None) -> PostgresClient:
    """
    Get or create a connected PostgreSQL client for a service.

    Args:
        service_name: Service name
        infra: Optional infrastructure config override

    Returns:
        PostgresClient instance
    """
    global _postgres_clients

    if service_name not in _postgres_clients:
        client = PostgresClient.from_config(infra or get_settings().infra, service_name=service_name)
        await client.connect()
        _postgres_clients[service_name] = client

    return _postgres_clients[service_name]
