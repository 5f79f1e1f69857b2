"""Slot models for agent availability."""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, Field

from utils.datetime_utils import time_hhmm


class Slot(BaseModel):
    """
    One bookable time unit for one agent on one calendar date.

    ``booked`` is a cache of the number of active appointments referencing the
    slot. It is written only by the counter reconciler and may drift; booking
    decisions never rely on it alone.
    """

    id: Optional[str] = None
    agent_id: str
    date: dt.date
    start_time: str = Field(..., description="Stored TIME value, with or without seconds")
    end_time: Optional[str] = None
    capacity: int = Field(default=1, ge=1)
    booked: int = Field(default=0, ge=0)
    enabled: bool = True
    created_at: Optional[dt.datetime] = None
    updated_at: Optional[dt.datetime] = None

    class Config:
        json_schema_extra = {
            "example": {
                "agent_id": "00000000-0000-0000-0000-000000000001",
                "date": "2025-12-01",
                "start_time": "10:00:00",
                "end_time": "10:45:00",
                "capacity": 1,
                "booked": 0,
                "enabled": True,
            }
        }

    @property
    def hhmm(self) -> str:
        """Start time reduced to ``HH:MM``."""
        return time_hhmm(self.start_time)

    @property
    def available(self) -> bool:
        """Availability as shown to clients, derived from the cached counter."""
        return self.enabled and self.booked < self.capacity


class SlotCreate(BaseModel):
    """Slot creation model used by bulk generation."""

    agent_id: str
    date: dt.date
    start_time: str
    end_time: str
    capacity: int = Field(default=1, ge=1)
    booked: int = 0
    enabled: bool = True
