import asyncio
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Dict, Optional

from pharos_bot.logger import logger

PendingNonceFetcher = Callable[[], Awaitable[int]]


class NonceLease:
    def __init__(self, address: str, nonce: int):
        self.address = address
        self.nonce = nonce
        self.committed = False

    def commit(self):
        self.committed = True


class NonceManager:
    """
    Hands out transaction nonces per address.

    Every address owns one lock; a lease holds it from allocation until the
    node has accepted (or rejected) the signed transaction, so two senders
    for the same address never receive the same nonce.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._next: Dict[str, int] = {}

    def _lock_for(self, address: str) -> asyncio.Lock:
        lock = self._locks.get(address)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[address] = lock
        return lock

    def peek(self, address: str) -> Optional[int]:
        return self._next.get(address)

    def set(self, address: str, nonce: int):
        self._next[address] = nonce

    @asynccontextmanager
    async def lease(self, address: str, fetch_pending: PendingNonceFetcher):
        async with self._lock_for(address):
            if address not in self._next:
                self._next[address] = await fetch_pending()
            lease = NonceLease(address, self._next[address])
            try:
                yield lease
            finally:
                if lease.committed:
                    self._next[address] = lease.nonce + 1

    async def resync(self, address: str, fetch_pending: PendingNonceFetcher) -> int:
        async with self._lock_for(address):
            pending = await fetch_pending()
            current = self._next.get(address)
            if current is not None and current != pending:
                logger.debug(f"Nonce resync {address[:6]}...{address[-4:]}: {current} -> {pending}")
            self._next[address] = pending
            return pending
