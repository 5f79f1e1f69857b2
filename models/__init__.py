"""Pydantic models for data validation and serialization."""

from .appointment import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentCreate,
    AppointmentStatus,
)
from .availability import DayAvailability, SlotCheck, SlotSummary
from .booking_request import (
    BookingRequest,
    PurchaseRequest,
    RentRequest,
    parse_booking_request,
)
from .client import Client, ClientUpsert
from .listing import AppointmentView, Listing
from .slot import Slot, SlotCreate

__all__ = [
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentCreate",
    "AppointmentStatus",
    "AppointmentView",
    "BookingRequest",
    "Client",
    "ClientUpsert",
    "DayAvailability",
    "Listing",
    "PurchaseRequest",
    "RentRequest",
    "Slot",
    "SlotCheck",
    "SlotCreate",
    "SlotSummary",
    "parse_booking_request",
]
