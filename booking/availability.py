"""Availability calculation for the public time picker."""

import logging
from datetime import date
from itertools import groupby
from typing import Iterable, List, Optional

from models.availability import DayAvailability, SlotSummary
from models.slot import Slot
from utils.datetime_utils import day_of_week, normalize_time
from utils.logging_config import fields

logger = logging.getLogger(__name__)


def build_availability(slots: Iterable[Slot]) -> List[DayAvailability]:
    """
    Group slots into one entry per date.

    Disabled slots are dropped, so a date whose slots are all disabled does
    not appear. ``available`` comes from the cached counter; booking
    decisions recount instead of trusting it.
    """
    enabled = sorted(
        (slot for slot in slots if slot.enabled), key=lambda slot: (slot.date, slot.hhmm)
    )

    days: List[DayAvailability] = []
    for day, day_slots in groupby(enabled, key=lambda slot: slot.date):
        days.append(
            DayAvailability(
                date=day,
                day_of_week=day_of_week(day),
                slots=[
                    SlotSummary(
                        time=normalize_time(slot.start_time),
                        available=slot.available,
                        capacity=slot.capacity,
                        booked=slot.booked,
                        enabled=slot.enabled,
                    )
                    for slot in day_slots
                ],
            )
        )
    return days


class AvailabilityCalculator:
    def __init__(self, db):
        self.db = db

    async def get_availability(
        self, agent_id: str, start: date, end: Optional[date] = None
    ) -> List[DayAvailability]:
        """Availability for an agent from ``start`` to ``end``, both inclusive."""
        slots = await self.db.list_slots(agent_id, start, end)
        days = build_availability(slots)
        logger.debug(
            "Availability computed "
            + fields(agent_id=agent_id, start=start, end=end, days=len(days), slots=len(slots))
        )
        return days
