"""
Order Service Data Models

Pydantic models for orders, checkout requests and operation results.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from microservices.inventory_service.models import ItemKind, ItemRef, StockReason


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Forward chain; a status may only move to a later entry.
STATUS_CHAIN: List[OrderStatus] = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]

TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})


class PaymentStatus(str, Enum):
    """Payment status enumeration"""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Payment method enumeration"""
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class ErrorCode(str, Enum):
    """Failure codes carried by OrderResult"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    ITEM_UNAVAILABLE = "ITEM_UNAVAILABLE"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"
    NOT_CANCELLABLE = "NOT_CANCELLABLE"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"


RETRYABLE_CODES = frozenset({ErrorCode.CONCURRENCY_CONFLICT, ErrorCode.PERSISTENCE_FAILURE})


def order_period(year: int, month: int) -> str:
    return f"{year}{month:02d}"


def format_order_number(year: int, month: int, sequence: int) -> str:
    """ORD-YYYYMM-NNNN; the sequence restarts every calendar month"""
    return f"ORD-{order_period(year, month)}-{sequence:04d}"


# Core Order Models

class OrderLine(BaseModel):
    """Priced, immutable record of one item within an order"""
    line_id: Optional[int] = None
    kind: ItemKind
    item_id: int
    quantity: int = Field(..., gt=0)
    unit_price: Decimal = Field(..., gt=0)
    total_price: Decimal
    created_at: datetime = Field(default_factory=_utcnow)

    @property
    def ref(self) -> ItemRef:
        return ItemRef(kind=self.kind, item_id=self.item_id)

    @model_validator(mode='after')
    def check_total(self) -> 'OrderLine':
        if self.total_price != self.unit_price * self.quantity:
            raise ValueError(
                f"total_price {self.total_price} != unit_price {self.unit_price} x {self.quantity}"
            )
        return self


class Order(BaseModel):
    """Core order model"""
    order_id: str
    order_number: str
    user_id: str
    lines: List[OrderLine] = Field(..., min_length=1)
    total_amount: Decimal
    order_status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod
    shipping_address: str
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode='after')
    def check_total_amount(self) -> 'Order':
        expected = sum((line.total_price for line in self.lines), Decimal("0"))
        if self.total_amount != expected:
            raise ValueError(f"total_amount {self.total_amount} != sum of line totals {expected}")
        return self


class PricingSummary(BaseModel):
    """Informational price breakdown; total_amount stays the line sum"""
    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    grand_total: Decimal


# Request Models

class CheckoutRequest(BaseModel):
    """Checkout request"""
    user_id: str = Field(..., min_length=1, description="User placing the order")
    shipping_address: str = Field(..., description="Delivery address")
    payment_method: PaymentMethod = Field(..., description="How the order will be paid")
    notes: Optional[str] = Field(None, max_length=500, description="Customer notes")

    @field_validator('shipping_address')
    @classmethod
    def validate_address(cls, v):
        if not v or not v.strip():
            raise ValueError('Shipping address is required')
        return v.strip()


# Response Models

class OrderError(BaseModel):
    """Typed failure carried by OrderResult"""
    code: ErrorCode
    message: str
    retryable: bool = False
    item: Optional[ItemRef] = None
    reason: Optional[StockReason] = None

    @classmethod
    def of(cls, code: ErrorCode, message: str, item: Optional[ItemRef] = None,
           reason: Optional[StockReason] = None) -> 'OrderError':
        return cls(code=code, message=message, retryable=code in RETRYABLE_CODES,
                   item=item, reason=reason)


class OrderResult(BaseModel):
    """Order operation response model"""
    success: bool
    order: Optional[Order] = None
    summary: Optional[PricingSummary] = None
    message: str
    error: Optional[OrderError] = None

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self.error.code if self.error else None

    @classmethod
    def ok(cls, order: Order, message: str, summary: Optional[PricingSummary] = None) -> 'OrderResult':
        return cls(success=True, order=order, summary=summary, message=message)

    @classmethod
    def fail(cls, error: OrderError, order: Optional[Order] = None) -> 'OrderResult':
        return cls(success=False, order=order, message=error.message, error=error)


class CartPreview(BaseModel):
    """Result of validating a cart without placing the order"""
    valid: bool
    summary: Optional[PricingSummary] = None
    error: Optional[OrderError] = None


class OrderListResponse(BaseModel):
    """Order list response"""
    orders: List[Order]
    total_count: int
    page: int
    page_size: int
    has_next: bool
