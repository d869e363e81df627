"""
Keyed Locks
===========
Per-key asyncio locks so that unrelated identities never serialize on
each other.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict


class _Entry:
    __slots__ = ("lock", "waiters")

    def __init__(self):
        self.lock = asyncio.Lock()
        self.waiters = 0


class KeyedLock:
    """
    A map of ``asyncio.Lock`` objects created on demand and dropped once no
    task holds or waits on them.

    Example:
        locks = KeyedLock()

        async with locks.hold("+15551234567"):
            ...
    """

    def __init__(self):
        self._entries: Dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        """Acquire the lock for ``key`` for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.waiters += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.waiters -= 1
            if entry.waiters == 0:
                del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)
