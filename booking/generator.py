"""
Bulk slot generation (administrative).

Creates one slot per hour for each of the next ``days`` days, leaving out
the lunch hour, and skips any (date, start time) the agent already has.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional

from pydantic import BaseModel, Field

from models.slot import Slot, SlotCreate
from utils.constants import (
    APPOINTMENT_DURATION_MINUTES,
    GENERATION_DAYS,
    GENERATION_END_HOUR,
    GENERATION_LUNCH_HOUR,
    GENERATION_START_HOUR,
)
from utils.datetime_utils import add_minutes
from utils.exceptions import ValidationError
from utils.logging_config import fields

logger = logging.getLogger(__name__)


class GenerationResult(BaseModel):
    """Outcome of one generation run."""

    requested: int = 0
    generated: int = 0
    skipped: int = 0
    existing: int = 0
    slots: List[Slot] = Field(default_factory=list)


def plan_slots(
    agent_id: str,
    today: date,
    days: int = GENERATION_DAYS,
    capacity: int = 1,
    start_hour: int = GENERATION_START_HOUR,
    end_hour: int = GENERATION_END_HOUR,
    slot_duration: int = APPOINTMENT_DURATION_MINUTES,
    skip_lunch: bool = True,
) -> List[SlotCreate]:
    """Candidate slots for day offsets 1..days and hours start_hour..end_hour."""
    if days < 1:
        raise ValidationError("days must be at least 1")
    if capacity < 1:
        raise ValidationError("capacity must be at least 1")
    if not 0 <= start_hour <= end_hour <= 23:
        raise ValidationError("Hours must satisfy 0 <= startHour <= endHour <= 23")
    if slot_duration < 1:
        raise ValidationError("slotDuration must be positive")
    # Stored end times are TIME values; the last slot has to end before midnight
    if end_hour * 60 + slot_duration >= 24 * 60:
        raise ValidationError(
            "Slots must end before midnight",
            detail=f"A {slot_duration} minute slot starting at {end_hour:02d}:00 ends after 23:59",
        )

    planned: List[SlotCreate] = []
    for offset in range(1, days + 1):
        day = today + timedelta(days=offset)
        for hour in range(start_hour, end_hour + 1):
            if skip_lunch and hour == GENERATION_LUNCH_HOUR:
                continue
            start_time = f"{hour:02d}:00:00"
            planned.append(
                SlotCreate(
                    agent_id=agent_id,
                    date=day,
                    start_time=start_time,
                    end_time=add_minutes(start_time, slot_duration),
                    capacity=capacity,
                )
            )
    return planned


async def generate_slots(
    db,
    agent_id: str,
    days: int = GENERATION_DAYS,
    capacity: int = 1,
    start_hour: int = GENERATION_START_HOUR,
    end_hour: int = GENERATION_END_HOUR,
    slot_duration: int = APPOINTMENT_DURATION_MINUTES,
    skip_lunch: bool = True,
    today: Optional[date] = None,
) -> GenerationResult:
    """
    Insert the planned slots that do not exist yet.

    Args:
        db: Store client providing ``list_slot_keys`` and ``create_slots``
        today: Reference day; generation starts the day after

    Returns:
        GenerationResult with counts and the inserted slots
    """
    today = today or date.today()
    planned = plan_slots(
        agent_id,
        today,
        days=days,
        capacity=capacity,
        start_hour=start_hour,
        end_hour=end_hour,
        slot_duration=slot_duration,
        skip_lunch=skip_lunch,
    )

    existing = await db.list_slot_keys(
        agent_id, today + timedelta(days=1), today + timedelta(days=days)
    )
    new_slots = [slot for slot in planned if (slot.date, slot.start_time) not in existing]

    created = await db.create_slots(new_slots) if new_slots else []

    logger.info(
        "Slot generation finished "
        + fields(
            agent_id=agent_id,
            requested=len(planned),
            generated=len(created),
            existing=len(existing),
        )
    )

    return GenerationResult(
        requested=len(planned),
        generated=len(created),
        skipped=len(planned) - len(new_slots),
        existing=len(existing),
        slots=created,
    )
