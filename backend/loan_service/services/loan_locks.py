"""Loan Locks — per-loan asyncio locks serializing load-check-mutate-save.

Invariants:
    - At most one mutating operation per loan id runs at a time in this process
    - Locks are keyed by loan id only; different loans never contend
    - A lock disappears once no coroutine holds or awaits it

Design Decisions:
    - WeakValueDictionary: holders and waiters keep the lock alive, nothing else does
    - Cross-process safety comes from the repository's version-checked save
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator
from weakref import WeakValueDictionary

from loan_service.core.domain_types import LoanId


class LoanLockRegistry:
    """Hands out one asyncio.Lock per loan id."""

    def __init__(self) -> None:
        self._locks: WeakValueDictionary[LoanId, asyncio.Lock] = WeakValueDictionary()

    def lock_for(self, loan_id: LoanId) -> asyncio.Lock:
        lock = self._locks.get(loan_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[loan_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, loan_id: LoanId) -> AsyncIterator[None]:
        lock = self.lock_for(loan_id)
        async with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
