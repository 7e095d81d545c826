"""
Cart Service Protocols (Interfaces)

These interfaces define contracts for dependency injection.
NO import-time I/O dependencies - safe to import anywhere.
"""
from typing import Any, Iterable, List, Optional, Protocol, runtime_checkable

from microservices.inventory_service.models import ItemRef

from .models import CartLine


# ============================================================================
# Custom Exceptions - defined here to avoid importing repository
# ============================================================================

class CartServiceError(Exception):
    """Base exception for cart errors"""
    pass


class CartPersistenceError(CartServiceError):
    """Cart storage failed"""
    pass


# ============================================================================
# Repository Protocol
# ============================================================================

@runtime_checkable
class CartStoreProtocol(Protocol):
    """
    Interface for the cart store.

    Lines are unique per (user_id, kind, item_id); adding an item that is
    already in the cart increments the existing line.
    """

    async def list_lines(self, user_id: str, conn: Any = None, for_update: bool = False) -> List[CartLine]:
        """All lines for a user, oldest first; ``for_update`` locks them in ``conn``'s transaction"""
        ...

    async def clear(self, user_id: str, items: Optional[Iterable[ItemRef]] = None, conn: Any = None) -> int:
        """Delete the given items (or every line) from a user's cart"""
        ...

    async def add_line(self, user_id: str, item: ItemRef, quantity: int = 1, conn: Any = None) -> CartLine:
        """Insert a line or increment the existing one"""
        ...

    async def update_quantity(self, user_id: str, item: ItemRef, quantity: int, conn: Any = None) -> Optional[CartLine]:
        """Set a line's quantity; quantity <= 0 removes the line"""
        ...

    async def remove_line(self, user_id: str, item: ItemRef, conn: Any = None) -> bool:
        """Remove one line"""
        ...

    async def get_item_count(self, user_id: str, conn: Any = None) -> int:
        """Total units across a user's cart"""
        ...
