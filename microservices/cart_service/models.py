"""
Cart Service Data Models

Pending (item, quantity) selections per user, one line per distinct item.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from microservices.inventory_service.models import ItemKind, ItemRef


class CartLine(BaseModel):
    """A user's pending selection of one catalog item"""
    cart_id: Optional[int] = None
    user_id: str
    kind: ItemKind
    item_id: int
    quantity: int = Field(..., gt=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ref(self) -> ItemRef:
        return ItemRef(kind=self.kind, item_id=self.item_id)
