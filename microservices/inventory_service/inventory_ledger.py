"""
Inventory Ledger

The only component that changes stock quantities. Every reservation is a
single conditional decrement at the storage layer, so stock never goes
negative and concurrent reservations against K units admit exactly K.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .models import LOW_STOCK_THRESHOLD, ItemRef, StockReason
from .protocols import CatalogLookupProtocol, InsufficientStockError, InvalidQuantityError

logger = logging.getLogger(__name__)


def _check_quantity(quantity: Any) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(f"Quantity must be a positive integer, got {quantity!r}")


def _merge_lines(lines: Iterable[Any]) -> List[Tuple[ItemRef, int]]:
    """Sum quantities per item and order by (kind, item_id).

    A fixed lock order keeps concurrent multi-item reservations from
    deadlocking on row locks.
    """
    merged: Dict[ItemRef, int] = {}
    for line in lines:
        _check_quantity(line.quantity)
        merged[line.ref] = merged.get(line.ref, 0) + line.quantity
    return sorted(merged.items(), key=lambda pair: pair[0].sort_key)


class InventoryLedger:
    """Reserve and release catalog stock"""

    def __init__(self, catalog: CatalogLookupProtocol):
        self.catalog = catalog

    async def reserve(self, item: ItemRef, quantity: int, conn: Any = None) -> int:
        """
        Take ``quantity`` units of ``item``.

        Returns:
            Remaining stock level

        Raises:
            InvalidQuantityError: quantity is not a positive integer
            InsufficientStockError: item missing, disabled or short
        """
        _check_quantity(quantity)

        remaining = await self.catalog.decrease_stock(item, quantity, conn=conn)
        if remaining is not None:
            logger.info(f"Reserved {quantity} x {item}, {remaining} left")
            if 0 < remaining <= LOW_STOCK_THRESHOLD:
                logger.warning(f"Low stock for {item}: {remaining} left")
            return remaining

        # The guarded update matched nothing; re-read only to say why.
        current = await self.catalog.get_item(item, conn=conn)
        if current is None:
            reason = StockReason.NOT_FOUND
        else:
            reason = current.unavailable_reason(quantity) or StockReason.INSUFFICIENT_QUANTITY
        logger.info(f"Reservation of {quantity} x {item} refused: {reason.value}")
        raise InsufficientStockError(item, reason)

    async def release(self, item: ItemRef, quantity: int, conn: Any = None) -> Optional[int]:
        """
        Return ``quantity`` units of ``item`` to stock.

        A missing item is logged and skipped; the units have nowhere to go.
        """
        _check_quantity(quantity)

        restored = await self.catalog.increase_stock(item, quantity, conn=conn)
        if restored is None:
            logger.warning(f"Release of {quantity} x {item} skipped: item no longer in catalog")
            return None

        logger.info(f"Released {quantity} x {item}, stock now {restored}")
        return restored

    async def reserve_all(self, lines: Iterable[Any], conn: Any = None) -> Dict[ItemRef, int]:
        """Reserve every line in (kind, item_id) order.

        Stops at the first refusal; the caller's transaction undoes earlier
        reservations.
        """
        remaining = {}
        for ref, quantity in _merge_lines(lines):
            remaining[ref] = await self.reserve(ref, quantity, conn=conn)
        return remaining

    async def release_all(self, lines: Iterable[Any], conn: Any = None) -> Dict[ItemRef, Optional[int]]:
        """Release every line in (kind, item_id) order"""
        restored = {}
        for ref, quantity in _merge_lines(lines):
            restored[ref] = await self.release(ref, quantity, conn=conn)
        return restored
