"""
Pytest configuration and shared fixtures.
"""

import asyncio
import uuid
from datetime import date, datetime, timezone
from typing import Dict, List, Optional
from unittest.mock import MagicMock, patch

import pytest

from booking import BookingOrchestrator, CounterReconciler, SlotLockRegistry
from models.appointment import ACTIVE_STATUSES, Appointment, AppointmentCreate, AppointmentStatus
from models.client import Client, ClientUpsert
from models.slot import Slot, SlotCreate
from utils.constants import DEFAULT_AGENT_ID
from utils.datetime_utils import normalize_time
from utils.exceptions import StoreError

AGENT_ID = DEFAULT_AGENT_ID


@pytest.fixture(autouse=True)
def mock_settings():
    """Mock settings for all tests."""
    with patch("config.settings") as mock_settings:
        mock_settings.supabase_url = "https://test.supabase.co"
        mock_settings.supabase_key = "test_key"
        mock_settings.easybroker_api_key = None
        mock_settings.easybroker_base_url = "https://api.easybroker.com/v1"
        mock_settings.easybroker_timeout_seconds = 10.0
        mock_settings.default_agent_id = AGENT_ID
        mock_settings.appointment_duration_minutes = 45
        mock_settings.serialize_slot_bookings = True
        mock_settings.drift_repair_enabled = False
        mock_settings.drift_repair_interval_minutes = 15
        mock_settings.drift_repair_days_ahead = 14
        mock_settings.timezone = "America/Mexico_City"
        mock_settings.environment = "test"
        mock_settings.is_production = False
        mock_settings.host = "0.0.0.0"
        mock_settings.port = 8000
        mock_settings.log_level = "INFO"
        yield mock_settings


@pytest.fixture
def mock_supabase_client():
    """
    Create a mock Supabase client.

    Every query builder method returns the same mock, so a test sets
    ``mock_table.execute.return_value`` once regardless of the chain.
    """
    mock_client = MagicMock()
    mock_table = MagicMock()
    for method in ("select", "eq", "gte", "lte", "in_", "order", "range", "insert", "update", "upsert", "delete"):
        getattr(mock_table, method).return_value = mock_table
    mock_client.table.return_value = mock_table
    return mock_client, mock_table


class InMemoryStore:
    """
    Store fake with the SupabaseClient interface.

    Each call yields to the event loop once before touching data, the way a
    real round trip suspends the caller, so concurrent handlers interleave.
    """

    def __init__(self):
        self.slots: Dict[str, Slot] = {}
        self.appointments: Dict[str, Appointment] = {}
        self.clients: Dict[str, Client] = {}
        self.fail_on: set = set()
        self.calls: List[str] = []

    async def _round_trip(self, name: str) -> None:
        self.calls.append(name)
        await asyncio.sleep(0)
        if name in self.fail_on:
            raise StoreError(f"Failed to {name}: connection reset")

    # ----- seeding helpers -----

    def add_slot(
        self,
        day: date,
        start_time: str,
        capacity: int = 1,
        booked: int = 0,
        enabled: bool = True,
        agent_id: str = AGENT_ID,
        slot_id: Optional[str] = None,
    ) -> Slot:
        slot = Slot(
            id=slot_id or str(uuid.uuid4()),
            agent_id=agent_id,
            date=day,
            start_time=start_time,
            end_time=None,
            capacity=capacity,
            booked=booked,
            enabled=enabled,
        )
        self.slots[slot.id] = slot
        return slot

    def add_appointment(self, slot: Slot, status: str = "pending", **overrides) -> Appointment:
        data = {
            "id": str(uuid.uuid4()),
            "slot_id": slot.id,
            "agent_id": slot.agent_id,
            "client_name": "Ana López",
            "client_email": "ana@example.com",
            "appointment_date": slot.date,
            "appointment_time": normalize_time(slot.start_time),
            "status": status,
            "created_at": datetime.now(timezone.utc),
        }
        data.update(overrides)
        appointment = Appointment(**data)
        self.appointments[appointment.id] = appointment
        return appointment

    def active_count(self, slot_id: str) -> int:
        return sum(
            1
            for a in self.appointments.values()
            if a.slot_id == slot_id and AppointmentStatus(a.status) in ACTIVE_STATUSES
        )

    # ----- slot operations -----

    async def list_slots(self, agent_id, date_from, date_to=None):
        await self._round_trip("list_slots")
        slots = [
            s
            for s in self.slots.values()
            if s.enabled
            and s.agent_id == agent_id
            and s.date >= date_from
            and (date_to is None or s.date <= date_to)
        ]
        return sorted(slots, key=lambda s: (s.date, s.start_time))

    async def list_slots_for_date(self, agent_id, day):
        await self._round_trip("list_slots_for_date")
        slots = [s for s in self.slots.values() if s.enabled and s.agent_id == agent_id and s.date == day]
        return sorted(slots, key=lambda s: s.start_time)

    async def list_slots_between(self, date_from, date_to, agent_id=None):
        await self._round_trip("list_slots_between")
        slots = [
            s
            for s in self.slots.values()
            if date_from <= s.date <= date_to and (agent_id is None or s.agent_id == agent_id)
        ]
        return sorted(slots, key=lambda s: (s.date, s.start_time))

    async def list_slot_keys(self, agent_id, date_from, date_to):
        slots = await self.list_slots_between(date_from, date_to, agent_id=agent_id)
        return {(s.date, normalize_time(s.start_time)) for s in slots}

    async def get_slot(self, slot_id):
        await self._round_trip("get_slot")
        slot = self.slots.get(slot_id)
        return slot.model_copy() if slot else None

    async def set_slot_booked(self, slot_id, booked):
        await self._round_trip("set_slot_booked")
        slot = self.slots.get(slot_id)
        if slot is None:
            return None
        self.slots[slot_id] = slot.model_copy(update={"booked": booked})
        return self.slots[slot_id]

    async def create_slots(self, slots: List[SlotCreate]):
        await self._round_trip("create_slots")
        created = []
        for data in slots:
            slot = Slot(id=str(uuid.uuid4()), **data.model_dump())
            self.slots[slot.id] = slot
            created.append(slot)
        return created

    # ----- appointment operations -----

    async def insert_appointment(self, data: AppointmentCreate):
        await self._round_trip("insert_appointment")
        now = datetime.now(timezone.utc)
        appointment = Appointment(
            id=str(uuid.uuid4()), created_at=now, updated_at=now, **data.model_dump()
        )
        self.appointments[appointment.id] = appointment
        return appointment

    async def get_appointment(self, appointment_id):
        await self._round_trip("get_appointment")
        appointment = self.appointments.get(appointment_id)
        return appointment.model_copy() if appointment else None

    async def update_appointment(self, appointment_id, fields):
        await self._round_trip("update_appointment")
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            return None
        data = appointment.model_dump()
        data.update(fields)
        data["updated_at"] = datetime.now(timezone.utc)
        self.appointments[appointment_id] = Appointment(**data)
        return self.appointments[appointment_id]

    async def update_appointment_status(
        self, appointment_id, status, timestamps=None, expected_status=None
    ):
        await self._round_trip("update_appointment_status")
        appointment = self.appointments.get(appointment_id)
        if appointment is None:
            return None
        if expected_status is not None and appointment.status != AppointmentStatus(expected_status).value:
            return None
        data = appointment.model_dump()
        data["status"] = AppointmentStatus(status).value
        data.update(timestamps or {})
        self.appointments[appointment_id] = Appointment(**data)
        return self.appointments[appointment_id]

    async def count_active_for_slot(self, slot_id):
        await self._round_trip("count_active_for_slot")
        return self.active_count(slot_id)

    async def list_appointments_by_slot(self, slot_id):
        await self._round_trip("list_appointments_by_slot")
        return [a for a in self.appointments.values() if a.slot_id == slot_id]

    async def list_appointments(self, status=None, limit=100, offset=0):
        await self._round_trip("list_appointments")
        rows = [
            a
            for a in self.appointments.values()
            if status is None or a.status == AppointmentStatus(status).value
        ]
        rows.sort(key=lambda a: (a.appointment_date, a.appointment_time), reverse=True)
        return rows[offset:offset + limit]

    async def delete_appointment(self, appointment_id):
        await self._round_trip("delete_appointment")
        return self.appointments.pop(appointment_id, None) is not None

    async def upsert_client(self, data: ClientUpsert):
        await self._round_trip("upsert_client")
        email = data.email.lower()
        existing = self.clients.get(email)
        client = Client(
            id=existing.id if existing else str(uuid.uuid4()),
            email=email,
            name=data.name,
            phone=data.phone,
        )
        self.clients[email] = client
        return client


@pytest.fixture
def store():
    """In-memory store."""
    return InMemoryStore()


@pytest.fixture
def orchestrator(store):
    """Orchestrator over the in-memory store with the slot lease enabled."""
    return BookingOrchestrator(
        db=store,
        reconciler=CounterReconciler(store),
        locks=SlotLockRegistry(enabled=True),
        default_agent_id=AGENT_ID,
        duration_minutes=45,
    )


@pytest.fixture
def rent_payload():
    """Valid rent booking form payload."""
    return {
        "date": "2025-12-01",
        "time": "10:00",
        "name": "Ana López",
        "email": "Ana@Example.com",
        "phone": "+52 55 1234 5678",
        "operationType": "rentar",
        "budgetRentar": "30000-40000",
        "company": "Grupo Norte S.A.",
    }


@pytest.fixture
def purchase_payload():
    """Valid purchase booking form payload with bank credit."""
    return {
        "date": "2025-12-01",
        "time": "10:00",
        "name": "Carlos Pérez",
        "email": "carlos@example.com",
        "operationType": "comprar",
        "budgetComprar": "3000000-3500000",
        "resourceType": "credito-bancario",
        "banco": "bbva",
        "creditoPreaprobado": "si",
    }
