"""Map a requested (agent, date, time) to exactly one enabled slot."""

import logging
from datetime import date
from typing import Union

from models.slot import Slot
from utils.datetime_utils import clean_date, time_hhmm
from utils.exceptions import SlotNotFoundError
from utils.logging_config import fields

logger = logging.getLogger(__name__)


class SlotResolver:
    """
    Resolve booking requests to slots.

    Stored start times may or may not carry seconds and requested times arrive
    as ``9:00``, ``09:00``, ``09:00:00`` or a full ISO datetime, so both sides
    are compared on their ``HH:MM`` prefix.
    """

    def __init__(self, db):
        self.db = db

    async def resolve(
        self, agent_id: str, day: Union[str, date], time: str
    ) -> Slot:
        """
        Find the single enabled slot for an agent at a date and time.

        Raises:
            SlotNotFoundError: No enabled slot matches, or more than one does
        """
        try:
            day = clean_date(day)
        except ValueError as e:
            raise SlotNotFoundError("Slot not found", detail=str(e)) from e

        wanted = time_hhmm(time)
        slots = await self.db.list_slots_for_date(agent_id, day)
        matches = [slot for slot in slots if slot.hhmm == wanted]

        if not matches:
            stored = ", ".join(slot.hhmm for slot in slots) or "none"
            logger.info(
                "No slot matched " + fields(agent_id=agent_id, date=day, time=wanted)
            )
            raise SlotNotFoundError(
                "Slot not found",
                detail=(
                    f"No available slot on {day.isoformat()} at {wanted or time}. "
                    f"Slots on that date: {stored}"
                ),
            )

        if len(matches) > 1:
            logger.warning(
                "Ambiguous slot match "
                + fields(
                    agent_id=agent_id,
                    date=day,
                    time=wanted,
                    slot_ids=",".join(str(slot.id) for slot in matches),
                )
            )
            raise SlotNotFoundError(
                "Slot not found",
                detail=(
                    f"{len(matches)} slots exist on {day.isoformat()} at {wanted}; "
                    f"the booking cannot be placed until the duplicates are removed"
                ),
            )

        return matches[0]
