"""Appointment models and status sets."""

import datetime as dt
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from utils.constants import APPOINTMENT_DURATION_MINUTES


class AppointmentStatus(str, Enum):
    """Appointment status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"


# Statuses that occupy one unit of slot capacity
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})

TERMINAL_STATUSES = frozenset(
    {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW}
)


class Appointment(BaseModel):
    """Appointment model."""

    id: Optional[str] = None
    slot_id: Optional[str] = Field(None, description="availability_slots.id")
    agent_id: Optional[str] = None
    property_id: Optional[str] = Field(None, description="Listing id in the external listing service")
    client_id: Optional[str] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    operation_type: Optional[str] = None
    budget_range: Optional[str] = None
    company: Optional[str] = None
    resource_type: Optional[str] = None
    resource_details: Optional[Dict[str, Any]] = None
    appointment_date: dt.date
    appointment_time: str
    duration_minutes: int = APPOINTMENT_DURATION_MINUTES
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None
    confirmed_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "slot_id": "uuid-here",
                "client_name": "Ana López",
                "client_email": "ana@example.com",
                "appointment_date": "2025-12-01",
                "appointment_time": "10:00:00",
                "status": "pending",
            }
        }

    @property
    def is_active(self) -> bool:
        """True while the appointment occupies slot capacity."""
        return AppointmentStatus(self.status) in ACTIVE_STATUSES


class AppointmentCreate(BaseModel):
    """Appointment creation model (always inserted as pending)."""

    slot_id: str
    agent_id: str
    property_id: Optional[str] = None
    client_id: Optional[str] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    operation_type: str
    budget_range: Optional[str] = None
    company: Optional[str] = None
    resource_type: Optional[str] = None
    resource_details: Optional[Dict[str, Any]] = None
    appointment_date: dt.date
    appointment_time: str
    duration_minutes: int = APPOINTMENT_DURATION_MINUTES
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.PENDING
    confirmed_at: Optional[dt.datetime] = None
    cancelled_at: Optional[dt.datetime] = None

    class Config:
        use_enum_values = True
