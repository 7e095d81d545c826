"""
Integration Test Configuration

Runs the repositories and services against a real PostgreSQL. Every test
starts from empty commerce tables; the whole layer is skipped when the
database cannot be reached.

Usage:
    POSTGRES_HOST=localhost POSTGRES_DB=commerce_test pytest tests/integration -v
"""
import asyncpg
import pytest
import pytest_asyncio

from core.config import CommerceConfig
from core.postgres_client import PostgresClient
from microservices.cart_service.factory import create_cart_repository
from microservices.inventory_service.factory import create_catalog_repository
from microservices.order_service.factory import (
    create_order_lifecycle, create_order_processor, create_order_repository, initialize_schemas,
)

from tests.component.mocks import MockNotificationGateway

COMMERCE_TABLES = [
    "orders.order_lines",
    "orders.orders",
    "orders.order_sequences",
    "cart.cart_lines",
    "catalog.vehicles",
    "catalog.parts",
]


@pytest_asyncio.fixture(scope="function")
async def db(config):
    """Connected PostgresClient with fresh commerce tables"""
    client = PostgresClient(
        service_name="integration_tests",
        dsn=(
            f"postgresql://{config.POSTGRES_USER}:{config.POSTGRES_PASSWORD}"
            f"@{config.POSTGRES_HOST}:{config.POSTGRES_PORT}/{config.POSTGRES_DB}"
        ),
        min_size=1,
        max_size=12,
    )
    try:
        await client.connect()
    except (OSError, asyncpg.PostgresError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    await initialize_schemas(client)
    async with client.acquire() as conn:
        await conn.execute(f"TRUNCATE {', '.join(COMMERCE_TABLES)} RESTART IDENTITY CASCADE")

    yield client

    await client.close()


@pytest.fixture
def catalog_repository(db):
    return create_catalog_repository(db)


@pytest.fixture
def cart_repository(db):
    return create_cart_repository(db)


@pytest.fixture
def order_repository(db):
    return create_order_repository(db)


@pytest.fixture
def notifications() -> MockNotificationGateway:
    return MockNotificationGateway()


@pytest.fixture
def processor(db, notifications, commerce_config: CommerceConfig):
    return create_order_processor(db, notification_gateway=notifications, config=commerce_config)


@pytest.fixture
def lifecycle(db, notifications, commerce_config: CommerceConfig):
    return create_order_lifecycle(db, notification_gateway=notifications, config=commerce_config)


def pytest_collection_modifyitems(items):
    for item in items:
        if "tests/integration" in str(item.fspath).replace("\\", "/"):
            item.add_marker(pytest.mark.integration)
