"""Keyed asyncio locks"""
import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
    """One asyncio.Lock per key, taken in a stable order.

    Keys are acquired sorted by their string form so two callers asking
    for overlapping key sets cannot deadlock each other. A key's lock is
    dropped once nobody holds or waits for it.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._users: Dict[Hashable, int] = {}

    def _checkout(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: Hashable) -> None:
        self._users[key] -= 1
        if not self._users[key]:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def acquire(self, *keys: Hashable) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys), key=str):
                lock = self._checkout(key)
                # Registered first so it runs after the lock is released
                stack.callback(self._checkin, key)
                await stack.enter_async_context(lock)
            yield

    def locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


def room_key(room_id) -> tuple:
    return ("room", str(room_id))


def identity_key(id_number: str) -> tuple:
    return ("guest", id_number)
