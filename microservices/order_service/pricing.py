"""
Order pricing helpers

Pure functions over order lines. Shipping and tax are informational
(PricingSummary); an order's total_amount is always the plain line sum.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from core.config import CommerceConfig, get_settings

from .models import OrderLine, PricingSummary

CENTS = Decimal("0.01")


def _rules(config: Optional[CommerceConfig]) -> CommerceConfig:
    return config or get_settings().commerce


def line_total(unit_price: Decimal, quantity: int) -> Decimal:
    return unit_price * quantity


def order_total(lines: Iterable[OrderLine]) -> Decimal:
    return sum((line.total_price for line in lines), Decimal("0"))


def shipping_cost(lines: Iterable[OrderLine], config: Optional[CommerceConfig] = None) -> Decimal:
    """Flat fee, waived once the order total is above the free-shipping threshold"""
    rules = _rules(config)
    if order_total(lines) > rules.free_shipping_threshold:
        return Decimal("0.00")
    return rules.shipping_flat_fee


def tax(subtotal: Decimal, config: Optional[CommerceConfig] = None) -> Decimal:
    return (subtotal * _rules(config).tax_rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def summarize(lines: Iterable[OrderLine], config: Optional[CommerceConfig] = None) -> PricingSummary:
    lines = list(lines)
    subtotal = order_total(lines)
    shipping = shipping_cost(lines, config)
    tax_amount = tax(subtotal, config)
    return PricingSummary(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax=tax_amount,
        grand_total=subtotal + shipping + tax_amount,
    )
