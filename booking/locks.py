"""
Per-slot booking lease.

Capacity check and appointment write are separate store round trips; two
handlers interleaving between them can both see room in a full slot. The
registry hands out one ``asyncio.Lock`` per slot id so that, inside one
process, check-then-write on a slot runs one at a time. It does nothing for
other processes sharing the datastore (see ``db.supabase_client``).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional


logger = logging.getLogger(__name__)


class SlotLockRegistry:
    """Reference-counted ``asyncio.Lock`` per slot id."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._locks: Dict[str, asyncio.Lock] = {}
        self._refs: Dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _checkout(self, slot_id: str) -> asyncio.Lock:
        lock = self._locks.get(slot_id)
        if lock is None:
            lock = self._locks[slot_id] = asyncio.Lock()
        self._refs[slot_id] = self._refs.get(slot_id, 0) + 1
        return lock

    def _checkin(self, slot_id: str) -> None:
        remaining = self._refs.get(slot_id, 1) - 1
        if remaining <= 0:
            self._refs.pop(slot_id, None)
            self._locks.pop(slot_id, None)
        else:
            self._refs[slot_id] = remaining

    @asynccontextmanager
    async def hold(self, *slot_ids: Optional[str]) -> AsyncIterator[None]:
        """
        Hold the lease for every given slot id.

        Ids are deduplicated and acquired in sorted order, so a reschedule
        holding (old, new) cannot deadlock against one holding (new, old).
        None ids are ignored. A disabled registry yields immediately.
        """
        keys = sorted({slot_id for slot_id in slot_ids if slot_id})
        if not self.enabled or not keys:
            yield
            return

        locks = [(key, self._checkout(key)) for key in keys]
        acquired: List[asyncio.Lock] = []
        try:
            for key, lock in locks:
                if lock.locked():
                    logger.debug(f"Waiting for slot lease: slot_id={key}")
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key, _ in locks:
                self._checkin(key)
