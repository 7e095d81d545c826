"""
Transaction Manager Mock for Component Testing

Stands in for PostgresClient.transaction(). Transactions interleave the way
they do on PostgreSQL:

- each MockConnection keeps an undo journal; stores record the inverse of
  every write made through it and a failed transaction replays the journal
  backwards, leaving other transactions' writes alone
- RowLocks models row locks (SELECT ... FOR UPDATE, UPDATE, DELETE): a lock
  taken through a connection is held until its transaction ends
"""
import asyncio
import itertools
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Hashable, List, Optional

from .recorder import CallRecorder


class MockConnection:
    """Handle passed to repositories as ``conn``"""

    _ids = itertools.count(1)

    def __init__(self):
        self.connection_id = next(self._ids)
        self._undo: List[Callable[[], None]] = []
        self._held: Dict[Hashable, asyncio.Lock] = {}

    def on_rollback(self, undo: Callable[[], None]):
        self._undo.append(undo)

    def holds(self, key: Hashable) -> bool:
        return key in self._held

    def hold(self, key: Hashable, lock: asyncio.Lock):
        self._held[key] = lock

    def rollback(self):
        while self._undo:
            self._undo.pop()()

    def release_locks(self):
        for lock in self._held.values():
            lock.release()
        self._held.clear()

    def __repr__(self) -> str:
        return f"MockConnection({self.connection_id})"


class RowLocks:
    """Per-row locks shared by the stores of one test"""

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}

    async def acquire(self, key: Hashable, conn: Optional[MockConnection]):
        """Wait for ``key``; a connection keeps it until its transaction ends"""
        if conn is not None and conn.holds(key):
            return
        lock = self._locks.setdefault(key, asyncio.Lock())
        await lock.acquire()
        if conn is None:
            # autocommit statement: the caller's write runs before the next await
            lock.release()
        else:
            conn.hold(key, lock)


def journal(conn: Any, undo: Callable[[], None]):
    """Record ``undo`` on a transaction connection; autocommit writes have none"""
    if isinstance(conn, MockConnection):
        conn.on_rollback(undo)


class MockTransactionManager(CallRecorder):
    """Mock for PostgresClient as a transaction manager"""

    def __init__(self):
        super().__init__()
        self.commits = 0
        self.rollbacks = 0
        self.connections: List[MockConnection] = []

    @asynccontextmanager
    async def transaction(self):
        self._log_call("transaction")
        conn = MockConnection()
        self.connections.append(conn)
        try:
            yield conn
        except BaseException:
            conn.rollback()
            self.rollbacks += 1
            raise
        else:
            self.commits += 1
        finally:
            conn.release_locks()
