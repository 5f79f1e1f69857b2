"""Availability and slot diagnostic models returned over HTTP."""

import datetime as dt
from typing import List, Optional

from pydantic import BaseModel, Field

from utils.constants import AVAILABILITY_NOTES


class _CamelModel(BaseModel):
    class Config:
        populate_by_name = True


class SlotSummary(_CamelModel):
    """One time slot as shown in the public time picker."""

    time: str
    available: bool
    capacity: int
    booked: int
    enabled: bool = True


class AvailabilityMetadata(_CamelModel):
    """Passthrough placeholder, not computed by the allocator."""

    notes: str = AVAILABILITY_NOTES
    special_hours: bool = Field(default=False, alias="specialHours")


class DayAvailability(_CamelModel):
    """All enabled slots for one calendar date."""

    date: dt.date
    day_of_week: str = Field(alias="dayOfWeek")
    slots: List[SlotSummary] = Field(default_factory=list)
    metadata: AvailabilityMetadata = Field(default_factory=AvailabilityMetadata)


class SlotAppointmentSummary(_CamelModel):
    id: Optional[str] = None
    status: str
    client_email: str
    client_name: str
    client_phone: Optional[str] = None
    created_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None


class SlotInfo(_CamelModel):
    id: Optional[str] = None
    date: dt.date
    time: str
    capacity: int
    booked: int
    enabled: bool = True


class SlotAppointments(_CamelModel):
    active: List[SlotAppointmentSummary] = Field(default_factory=list)
    cancelled: List[SlotAppointmentSummary] = Field(default_factory=list)
    total: int = 0
    active_count: int = Field(default=0, alias="activeCount")


class SlotAvailability(_CamelModel):
    available: bool
    remaining: int
    booked_count: int = Field(alias="bookedCount")
    capacity: int


class SlotCheck(_CamelModel):
    """Support/debugging view of one slot and the appointments referencing it."""

    slot: SlotInfo
    appointments: SlotAppointments
    availability: SlotAvailability
