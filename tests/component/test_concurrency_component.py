"""
Concurrency Component Tests

Many checkouts and lifecycle calls racing on the same stock and orders.
Stock never goes negative, K units admit exactly K orders, and a status
change is applied at most once.
"""
import asyncio

import pytest
import pytest_asyncio

from microservices.inventory_service.inventory_ledger import InventoryLedger
from microservices.inventory_service.models import ItemKind
from microservices.inventory_service.protocols import InsufficientStockError
from microservices.order_service.models import ErrorCode, OrderStatus

from tests.fixtures import make_cart_line, make_checkout_request, make_item, make_user_id

pytestmark = [pytest.mark.component, pytest.mark.asyncio]


@pytest.fixture
def last_coupes(catalog):
    return catalog.add(make_item(ItemKind.VEHICLE, price="42000.00", stock=3))


async def _checkout_one(processor, cart_store, item, quantity=1):
    user_id = make_user_id()
    cart_store.seed(make_cart_line(item, quantity=quantity, user_id=user_id))
    return await processor.checkout(make_checkout_request(user_id=user_id))


class TestConcurrentCheckout:

    async def test_k_units_admit_exactly_k_orders(self, processor, catalog, cart_store, order_repository, last_coupes):
        results = await asyncio.gather(*[
            _checkout_one(processor, cart_store, last_coupes) for _ in range(10)
        ])

        succeeded = [r for r in results if r.success]
        failed = [r for r in results if not r.success]
        assert len(succeeded) == 3
        assert len(failed) == 7
        assert all(r.error_code in (ErrorCode.ITEM_UNAVAILABLE, ErrorCode.CONCURRENCY_CONFLICT) for r in failed)
        assert catalog.stock_of(last_coupes) == 0
        assert len(order_repository.orders) == 3

    async def test_order_numbers_are_unique(self, processor, catalog, cart_store):
        parts = catalog.add(make_item(ItemKind.PART, price="15.00", stock=100))

        results = await asyncio.gather(*[_checkout_one(processor, cart_store, parts) for _ in range(20)])

        numbers = [r.order.order_number for r in results]
        assert all(r.success for r in results)
        assert len(set(numbers)) == 20
        assert catalog.stock_of(parts) == 80

    async def test_double_submitted_checkout_bills_cart_once(self, processor, catalog, cart_store,
                                                             order_repository, last_coupes):
        user_id = make_user_id()
        cart_store.seed(make_cart_line(last_coupes, quantity=1, user_id=user_id))
        request = make_checkout_request(user_id=user_id)

        results = await asyncio.gather(processor.checkout(request), processor.checkout(request))

        assert sorted(r.success for r in results) == [False, True]
        loser = next(r for r in results if not r.success)
        assert loser.error_code in (ErrorCode.VALIDATION_ERROR, ErrorCode.CONCURRENCY_CONFLICT)
        assert len(order_repository.orders) == 1
        assert catalog.stock_of(last_coupes) == 2
        assert cart_store.lines[user_id] == []

    async def test_cart_emptied_mid_checkout_rolls_back(self, processor, catalog, cart_store, order_repository,
                                                        transactions, last_coupes, monkeypatch):
        user_id = make_user_id()
        cart_store.seed(make_cart_line(last_coupes, quantity=1, user_id=user_id))

        async def already_cleared(user_id, items=None, conn=None):
            return 0

        monkeypatch.setattr(cart_store, "clear", already_cleared)

        result = await processor.checkout(make_checkout_request(user_id=user_id))

        assert result.error_code == ErrorCode.CONCURRENCY_CONFLICT
        assert result.error.retryable is True
        assert transactions.rollbacks == 1
        assert order_repository.orders == {}
        assert order_repository.sequences == {}
        assert catalog.stock_of(last_coupes) == 3


class TestConcurrentReservation:
    """The ledger alone, without a surrounding transaction"""

    async def test_reservations_never_oversell(self, catalog):
        item = catalog.add(make_item(ItemKind.PART, stock=5))
        ledger = InventoryLedger(catalog)

        async def reserve():
            try:
                return await ledger.reserve(item.ref, 1)
            except InsufficientStockError:
                return None

        outcomes = await asyncio.gather(*[reserve() for _ in range(12)])

        assert sum(1 for o in outcomes if o is not None) == 5
        assert catalog.stock_of(item) == 0


class TestConcurrentLifecycle:

    @pytest_asyncio.fixture
    async def order(self, processor, cart_store, last_coupes):
        result = await _checkout_one(processor, cart_store, last_coupes)
        assert result.success, result.message
        return result.order

    async def test_double_cancel_releases_once(self, lifecycle, catalog, order, last_coupes):
        results = await asyncio.gather(
            lifecycle.cancel(order.order_id),
            lifecycle.cancel(order.order_id),
        )

        assert sorted(r.success for r in results) == [False, True]
        loser = next(r for r in results if not r.success)
        assert loser.error_code == ErrorCode.NOT_CANCELLABLE
        assert catalog.stock_of(last_coupes) == 3

    async def test_racing_transitions_apply_once(self, lifecycle, order_repository, order):
        results = await asyncio.gather(
            lifecycle.confirm(order.order_id),
            lifecycle.confirm(order.order_id),
        )

        assert sorted(r.success for r in results) == [False, True]
        loser = next(r for r in results if not r.success)
        assert loser.error_code == ErrorCode.CONCURRENCY_CONFLICT
        assert order_repository.orders[order.order_id].order_status == OrderStatus.CONFIRMED

    async def test_cancel_racing_shipment(self, lifecycle, catalog, order_repository, order, last_coupes):
        cancel, ship = await asyncio.gather(
            lifecycle.cancel(order.order_id),
            lifecycle.ship(order.order_id),
        )

        final = order_repository.orders[order.order_id].order_status
        assert cancel.success != ship.success
        if cancel.success:
            assert final == OrderStatus.CANCELLED
            assert catalog.stock_of(last_coupes) == 3
        else:
            assert final == OrderStatus.SHIPPED
            assert catalog.stock_of(last_coupes) == 2

    async def test_delete_racing_cancel_releases_once(self, lifecycle, catalog, order_repository, order,
                                                      last_coupes):
        cancel, delete = await asyncio.gather(
            lifecycle.cancel(order.order_id),
            lifecycle.delete_order(order.order_id),
        )

        assert delete.success is True
        assert order.order_id not in order_repository.orders
        assert catalog.stock_of(last_coupes) == 3
        if not cancel.success:
            assert cancel.error_code == ErrorCode.ORDER_NOT_FOUND
        order_repository.assert_called_with("get_order", order_id=order.order_id, for_update=True)


class TestInterleavedTransactions:
    """Mock transactions interleave; a rollback undoes only its own writes"""

    async def test_rollback_keeps_concurrent_commit(self, transactions, catalog):
        item = catalog.add(make_item(ItemKind.PART, stock=10))
        committed = asyncio.Event()

        async def failing():
            async with transactions.transaction() as conn:
                await catalog.decrease_stock(item.ref, 4, conn=conn)
                await committed.wait()
                raise RuntimeError("boom")

        async def succeeding():
            async with transactions.transaction() as conn:
                await catalog.decrease_stock(item.ref, 1, conn=conn)
            committed.set()

        outcomes = await asyncio.gather(failing(), succeeding(), return_exceptions=True)

        assert isinstance(outcomes[0], RuntimeError)
        assert transactions.commits == 1
        assert transactions.rollbacks == 1
        assert catalog.stock_of(item) == 9
