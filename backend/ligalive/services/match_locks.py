"""
backend/ligalive/services/match_locks.py

Purpose:
    Process-local keyed mutex so read-modify-write sequences against the same
    live match run one at a time. Locks are dropped once no task holds or
    waits on them.

Dependencies:
    - asyncio
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class MatchLockRegistry:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, match_id: object) -> AsyncIterator[None]:
        key = str(match_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                self._locks.pop(key, None)

    def active_keys(self) -> list[str]:
        return sorted(self._locks)


match_locks = MatchLockRegistry()
