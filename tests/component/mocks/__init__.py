"""
Component Test Mocks

In-memory stand-ins for the I/O dependencies (PostgreSQL stores,
transactions, NATS, account service).
"""

from .catalog_mock import MockCatalog
from .cart_mock import MockCartStore
from .db_mock import MockConnection, MockTransactionManager, RowLocks
from .nats_mock import MockEventBus
from .notification_mock import FailingNotificationGateway, MockAccountClient, MockNotificationGateway
from .order_mock import MockOrderRepository

__all__ = [
    'MockCatalog',
    'MockCartStore',
    'MockConnection',
    'MockTransactionManager',
    'RowLocks',
    'MockEventBus',
    'MockNotificationGateway',
    'FailingNotificationGateway',
    'MockAccountClient',
    'MockOrderRepository',
]
