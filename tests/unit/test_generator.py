"""
Unit tests for bulk slot generation.
"""

from datetime import date

import pytest

from booking.generator import generate_slots, plan_slots
from utils.constants import DEFAULT_AGENT_ID as AGENT_ID
from utils.exceptions import ValidationError

TODAY = date(2025, 11, 30)


def test_plan_default_week():
    """Test seven days of hourly slots without the lunch hour."""
    planned = plan_slots(AGENT_ID, TODAY, days=7)

    assert len(planned) == 49
    assert planned[0].date == date(2025, 12, 1)
    assert planned[-1].date == date(2025, 12, 7)
    assert {slot.start_time for slot in planned if slot.date == date(2025, 12, 1)} == {
        "09:00:00",
        "10:00:00",
        "11:00:00",
        "13:00:00",
        "14:00:00",
        "15:00:00",
        "16:00:00",
    }


def test_plan_end_time_uses_duration():
    planned = plan_slots(AGENT_ID, TODAY, days=1, start_hour=9, end_hour=9, slot_duration=45)

    assert len(planned) == 1
    assert planned[0].start_time == "09:00:00"
    assert planned[0].end_time == "09:45:00"
    assert planned[0].booked == 0


def test_plan_keeps_lunch_when_asked():
    planned = plan_slots(AGENT_ID, TODAY, days=1, start_hour=11, end_hour=13, skip_lunch=False)

    assert [slot.start_time for slot in planned] == ["11:00:00", "12:00:00", "13:00:00"]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"days": 0},
        {"capacity": 0},
        {"start_hour": 17, "end_hour": 9},
        {"end_hour": 24},
        {"slot_duration": 0},
        {"start_hour": 22, "end_hour": 23, "slot_duration": 120},
        {"start_hour": 23, "end_hour": 23, "slot_duration": 60},
    ],
)
def test_plan_rejects_bad_parameters(kwargs):
    with pytest.raises(ValidationError):
        plan_slots(AGENT_ID, TODAY, **kwargs)


@pytest.mark.asyncio
async def test_generate_inserts_all_when_empty(store):
    result = await generate_slots(store, AGENT_ID, days=2, capacity=3, today=TODAY)

    assert result.requested == 14
    assert result.generated == 14
    assert result.skipped == 0
    assert len(store.slots) == 14
    assert all(slot.capacity == 3 for slot in store.slots.values())


@pytest.mark.asyncio
async def test_generate_skips_existing(store):
    """Test slots the agent already has are not duplicated."""
    store.add_slot(date(2025, 12, 1), "09:00:00")
    store.add_slot(date(2025, 12, 1), "10:00", capacity=2)
    store.add_slot(date(2025, 12, 1), "09:00:00", agent_id="other-agent")

    result = await generate_slots(store, AGENT_ID, days=1, today=TODAY)

    assert result.requested == 7
    assert result.generated == 5
    assert result.skipped == 2
    assert result.existing == 2
    times = sorted(
        slot.start_time
        for slot in store.slots.values()
        if slot.agent_id == AGENT_ID and slot.date == date(2025, 12, 1)
    )
    assert times == ["09:00:00", "10:00", "11:00:00", "13:00:00", "14:00:00", "15:00:00", "16:00:00"]


@pytest.mark.asyncio
async def test_generate_twice_is_idempotent(store):
    await generate_slots(store, AGENT_ID, days=3, today=TODAY)
    second = await generate_slots(store, AGENT_ID, days=3, today=TODAY)

    assert second.generated == 0
    assert second.skipped == 21
    assert len(store.slots) == 21
    assert "create_slots" in store.calls


def test_plan_last_slot_may_end_at_2359():
    planned = plan_slots(AGENT_ID, TODAY, days=1, start_hour=23, end_hour=23, slot_duration=59)

    assert planned[0].end_time == "23:59:00"
