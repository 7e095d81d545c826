"""
Shared Test Fixtures

Centralized factories used across all test layers.

Structure:
    - common.py: Base ID generators
    - commerce_fixtures.py: Catalog, cart and order factories
"""

from .common import (
    make_user_id,
    make_address,
)

from .commerce_fixtures import (
    make_item,
    make_cart_line,
    make_order_line,
    make_order,
    make_checkout_request,
)

__all__ = [
    'make_user_id',
    'make_address',
    'make_item',
    'make_cart_line',
    'make_order_line',
    'make_order',
    'make_checkout_request',
]
