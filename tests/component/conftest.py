"""
Component Test Layer Configuration

Services run against in-memory stores that journal writes per mock
transaction, so rollback and interleaving are observable without PostgreSQL.

Usage:
    pytest tests/component -v
"""
import pytest

from core.config import CommerceConfig
from microservices.order_service.order_lifecycle import OrderLifecycle
from microservices.order_service.order_processor import OrderProcessor

from tests.component.mocks import (
    MockAccountClient,
    MockCartStore,
    MockCatalog,
    MockEventBus,
    MockNotificationGateway,
    MockOrderRepository,
    MockTransactionManager,
)


# =============================================================================
# Stores
# =============================================================================

@pytest.fixture
def catalog() -> MockCatalog:
    return MockCatalog()


@pytest.fixture
def cart_store() -> MockCartStore:
    return MockCartStore()


@pytest.fixture
def order_repository() -> MockOrderRepository:
    return MockOrderRepository()


@pytest.fixture
def transactions() -> MockTransactionManager:
    """Transactions whose writes the in-memory stores journal for rollback"""
    return MockTransactionManager()


# =============================================================================
# Notification Mocks
# =============================================================================

@pytest.fixture
def notifications() -> MockNotificationGateway:
    return MockNotificationGateway()


@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Mock NATS event bus"""
    return MockEventBus()


@pytest.fixture
def mock_account_client() -> MockAccountClient:
    return MockAccountClient()


# =============================================================================
# Services
# =============================================================================

@pytest.fixture
def processor(catalog, cart_store, order_repository, transactions, notifications,
              commerce_config: CommerceConfig) -> OrderProcessor:
    return OrderProcessor(
        catalog=catalog,
        cart_store=cart_store,
        order_repository=order_repository,
        transaction_manager=transactions,
        notification_gateway=notifications,
        config=commerce_config,
    )


@pytest.fixture
def lifecycle(catalog, order_repository, transactions, notifications,
              commerce_config: CommerceConfig) -> OrderLifecycle:
    return OrderLifecycle(
        catalog=catalog,
        order_repository=order_repository,
        transaction_manager=transactions,
        notification_gateway=notifications,
        config=commerce_config,
    )
