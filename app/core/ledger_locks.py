"""In-process serialization of ledger writers.

Every write to the stock ledger is scoped to one or more (item, warehouse)
pairs. Writers in this process take one ``asyncio.Lock`` per pair, always in
sorted key order, so two writers that need overlapping pairs (a transfer and
an OUT, two crossing transfers, a retirement) queue instead of deadlocking.

Cross-process exclusion is the database's job: the ledger transaction also
locks the matching ``stock_ledger_heads`` rows with ``SELECT ... FOR UPDATE``.
"""

import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Tuple

PairKey = Tuple[int, int]


class LedgerLockRegistry:
    def __init__(self):
        # entries vanish once no writer holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[PairKey, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, key: PairKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    @asynccontextmanager
    async def hold(self, keys: Iterable[PairKey]) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        locks = [self._lock_for(k) for k in ordered]
        acquired: list[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def is_locked(self, key: PairKey) -> bool:
        lock = self._locks.get(key)
        return bool(lock and lock.locked())


ledger_locks = LedgerLockRegistry()
