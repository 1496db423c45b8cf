# llave_system/utils/week_locks.py
"""
Single-writer locks for the weekly recompute, keyed on (scope id, week id).
"""
import asyncio
from typing import Dict, Hashable, Tuple
import logging

logger = logging.getLogger(__name__)

LockKey = Tuple[Hashable, str]


class WeekLockRegistry:
    """
    Hands out one asyncio.Lock per (ownerId-or-campaignId, weekId).

    Two recompute passes for the same owner and week never interleave; passes
    for different weeks or owners run independently.
    """

    def __init__(self):
        self._locks: Dict[LockKey, asyncio.Lock] = {}

    def lockFor(self, scopeId: Hashable, weekId: str) -> asyncio.Lock:
        key = (scopeId, weekId)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
            logger.debug(f"Created week lock {key}")
        return self._locks[key]

    def isLocked(self, scopeId: Hashable, weekId: str) -> bool:
        lock = self._locks.get((scopeId, weekId))
        return lock is not None and lock.locked()

    def releaseWeek(self, weekId: str) -> int:
        """Forget idle locks of a finished week. Returns number dropped."""
        stale = [
            key for key, lock in self._locks.items()
            if key[1] == weekId and not lock.locked()
        ]
        for key in stale:
            del self._locks[key]
        return len(stale)


# Global registry shared by the scheduler and manual runs
weekLocks = WeekLockRegistry()
