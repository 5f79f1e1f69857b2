"""
Counter reconciliation.

A slot's ``booked`` column caches how many active appointments reference it.
The reconciler is the only writer of that column: it recounts from the
appointments table and writes ``min(capacity, active)``. Running it twice
without intervening writes yields the same value.
"""

import logging
from typing import Dict, Iterable, Optional

from utils.exceptions import ReconciliationError
from utils.logging_config import fields

logger = logging.getLogger(__name__)


class CounterReconciler:
    """Recompute cached slot counters from the authoritative appointment set."""

    def __init__(self, db):
        self.db = db

    async def reconcile(self, slot_id: Optional[str]) -> Optional[int]:
        """
        Rewrite ``booked`` for one slot.

        Best effort: failures are logged with RECONCILIATION_FAILURE and
        swallowed, because the appointment write that triggered this has
        already committed.

        Returns:
            The booked value now stored, or None if it could not be written
        """
        if not slot_id:
            return None

        try:
            slot = await self.db.get_slot(slot_id)
            if slot is None:
                logger.warning("Cannot reconcile missing slot " + fields(slot_id=slot_id))
                return None

            active = await self.db.count_active_for_slot(slot_id)
            booked = min(slot.capacity, active)

            if active > slot.capacity:
                logger.warning(
                    "Slot overbooked "
                    + fields(slot_id=slot_id, active=active, capacity=slot.capacity)
                )

            if booked != slot.booked:
                await self.db.set_slot_booked(slot_id, booked)
                logger.info(
                    "Slot counter reconciled "
                    + fields(slot_id=slot_id, previous=slot.booked, booked=booked)
                )

            return booked
        except Exception as e:
            error = ReconciliationError(f"Failed to reconcile slot {slot_id}: {e}")
            logger.error(f"{error.code}: {error}", exc_info=True)
            return None

    async def reconcile_many(self, slot_ids: Iterable[Optional[str]]) -> Dict[str, Optional[int]]:
        """Reconcile each distinct slot id once, in the order given."""
        results: Dict[str, Optional[int]] = {}
        for slot_id in slot_ids:
            if not slot_id or slot_id in results:
                continue
            results[slot_id] = await self.reconcile(slot_id)
        return results
