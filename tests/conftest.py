"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - integration/: Repository and checkout tests against a real PostgreSQL
    - component/  : Service tests with in-memory stores (mocked I/O)
    - unit/       : Unit tests (pure functions, no I/O)
"""
import os
import sys

import pytest

# Set testing environment BEFORE any project imports
os.environ.setdefault("ENV", "testing")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from core.config import CommerceConfig


# =============================================================================
# Test Configuration
# =============================================================================

class TestConfig:
    """Centralized test configuration"""

    # Database
    POSTGRES_HOST = os.getenv("POSTGRES_HOST", "localhost")
    POSTGRES_PORT = int(os.getenv("POSTGRES_PORT", "5432"))
    POSTGRES_DB = os.getenv("POSTGRES_DB", "commerce_test")
    POSTGRES_USER = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")

    # NATS
    NATS_URL = os.getenv("NATS_URL", "nats://localhost:4222")


@pytest.fixture(scope="session")
def config() -> TestConfig:
    return TestConfig()


@pytest.fixture
def commerce_config() -> CommerceConfig:
    """Commerce rules with the default prices and fast retries"""
    return CommerceConfig(checkout_max_attempts=3, release_max_attempts=3)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line("markers", "unit: unit tests (no I/O)")
    config.addinivalue_line("markers", "component: component tests (mocked dependencies)")
    config.addinivalue_line("markers", "integration: integration tests (requires PostgreSQL)")
    config.addinivalue_line("markers", "slow: slow running tests")
