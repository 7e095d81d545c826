"""
Inventory Service Data Models

Catalog entities that carry stock: vehicles and parts share one capability
surface so checkout never branches on the item kind.
"""

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

LOW_STOCK_THRESHOLD = 3


class ItemKind(str, Enum):
    """Catalog entity kind"""
    VEHICLE = "vehicle"
    PART = "part"


class StockReason(str, Enum):
    """Why an item cannot be reserved"""
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_QUANTITY = "insufficient_quantity"


class ItemRef(BaseModel):
    """Reference to a catalog entity, usable as a dict key"""
    model_config = ConfigDict(frozen=True)

    kind: ItemKind
    item_id: int = Field(..., gt=0)

    @property
    def sort_key(self):
        return (self.kind.value, self.item_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.item_id}"


class StockableItem(BaseModel):
    """Stock record for a vehicle or a part"""
    kind: ItemKind
    item_id: int
    name: str
    price: Decimal = Field(..., gt=0)
    is_available: bool = True
    stock_quantity: int = Field(default=0, ge=0)

    @property
    def ref(self) -> ItemRef:
        return ItemRef(kind=self.kind, item_id=self.item_id)

    def unavailable_reason(self, quantity: int):
        """Return the StockReason blocking ``quantity`` units, or None"""
        if not self.is_available:
            return StockReason.UNAVAILABLE
        if self.stock_quantity < quantity:
            return StockReason.INSUFFICIENT_QUANTITY
        return None
