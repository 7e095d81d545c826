#!/usr/bin/env python3
"""Commerce rules configuration

Pricing constants, checkout retry budgets and notification settings.
"""
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default

def _decimal(val: str, default: Decimal) -> Decimal:
    try:
        return Decimal(val) if val else default
    except InvalidOperation:
        return default


@dataclass
class CommerceConfig:
    """Checkout and pricing rules"""

    # ===========================================
    # Pricing
    # ===========================================
    shipping_flat_fee: Decimal = Decimal("50.00")
    free_shipping_threshold: Decimal = Decimal("1000.00")
    tax_rate: Decimal = Decimal("0.10")

    # ===========================================
    # Retry budgets
    # ===========================================
    checkout_max_attempts: int = 3
    release_max_attempts: int = 5

    # ===========================================
    # Notifications
    # ===========================================
    notification_queue_size: int = 1000
    account_service_url: str = "http://localhost:8202"

    @classmethod
    def from_env(cls) -> 'CommerceConfig':
        """Load commerce config from environment variables"""
        return cls(
            shipping_flat_fee=_decimal(os.getenv("SHIPPING_FLAT_FEE", ""), Decimal("50.00")),
            free_shipping_threshold=_decimal(os.getenv("FREE_SHIPPING_THRESHOLD", ""), Decimal("1000.00")),
            tax_rate=_decimal(os.getenv("TAX_RATE", ""), Decimal("0.10")),
            checkout_max_attempts=_int(os.getenv("CHECKOUT_MAX_ATTEMPTS", "3"), 3),
            release_max_attempts=_int(os.getenv("RELEASE_MAX_ATTEMPTS", "5"), 5),
            notification_queue_size=_int(os.getenv("NOTIFICATION_QUEUE_SIZE", "1000"), 1000),
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
        )
