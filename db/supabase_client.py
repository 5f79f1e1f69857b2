"""
Supabase database client with row-level operations.
Handles all datastore access for availability slots, appointments and clients.

Concurrency Notes:
==================
Every call here is a single round trip. Nothing in this module protects a
read-modify-write sequence: ``set_slot_booked`` blindly writes the value it is
given, and ``count_active_for_slot`` followed by ``insert_appointment`` is
two requests with nothing shared between them. The booking orchestrator holds
a per-slot lease inside one process; across processes the capacity invariant
needs the database to enforce it.

Capacity constraint (SQL):
--------------------------
CREATE OR REPLACE FUNCTION enforce_slot_capacity() RETURNS trigger AS $$
DECLARE
    slot_capacity int;
    active_count int;
BEGIN
    IF NEW.status NOT IN ('pending', 'confirmed') THEN
        RETURN NEW;
    END IF;
    SELECT capacity INTO slot_capacity
    FROM availability_slots WHERE id = NEW.slot_id FOR UPDATE;
    SELECT count(*) INTO active_count
    FROM appointments
    WHERE slot_id = NEW.slot_id
      AND status IN ('pending', 'confirmed')
      AND id IS DISTINCT FROM NEW.id;
    IF active_count >= slot_capacity THEN
        RAISE EXCEPTION 'SLOT_FULL';
    END IF;
    RETURN NEW;
END $$ LANGUAGE plpgsql;

CREATE TRIGGER appointments_slot_capacity
BEFORE INSERT OR UPDATE OF slot_id, status ON appointments
FOR EACH ROW EXECUTE FUNCTION enforce_slot_capacity();

When the trigger is installed, writes it rejects surface here as
``SlotFullError`` instead of ``StoreError``.

This client uses the service role key, which bypasses RLS.
"""

import asyncio
from datetime import date
from typing import Any, Dict, List, Optional, Set, Tuple

from supabase import Client as SupabaseClientType
from supabase import create_client

from config import settings
from models.appointment import ACTIVE_STATUSES, Appointment, AppointmentCreate, AppointmentStatus
from models.client import Client, ClientUpsert
from models.slot import Slot, SlotCreate
from utils.datetime_utils import normalize_time, parse_iso_datetime, to_iso_string, utc_now
from utils.exceptions import SlotFullError, StoreError

SLOTS_TABLE = "availability_slots"
APPOINTMENTS_TABLE = "appointments"
CLIENTS_TABLE = "clients"

_ACTIVE_STATUS_VALUES = sorted(status.value for status in ACTIVE_STATUSES)


class SupabaseClient:
    """
    Supabase database client wrapper.

    The supabase-py client is synchronous; each request runs in a worker
    thread so a handler suspends at every store call instead of blocking
    the event loop.
    """

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        self.client: SupabaseClientType = create_client(
            url or settings.supabase_url, key or settings.supabase_key
        )

    async def _execute(self, query: Any) -> Any:
        """Run a built PostgREST query off the event loop."""
        return await asyncio.to_thread(query.execute)

    # ========== Slot Operations ==========

    async def list_slots(
        self, agent_id: str, date_from: date, date_to: Optional[date] = None
    ) -> List[Slot]:
        """
        Enabled slots for an agent from ``date_from`` (inclusive) to
        ``date_to`` (inclusive, open-ended when None), ordered by date then
        start time.
        """
        try:
            query = (
                self.client.table(SLOTS_TABLE)
                .select("*")
                .eq("enabled", True)
                .eq("agent_id", agent_id)
                .gte("date", date_from.isoformat())
            )

            if date_to:
                query = query.lte("date", date_to.isoformat())

            query = query.order("date", desc=False).order("start_time", desc=False)
            response = await self._execute(query)

            return [self._parse_slot(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to list slots: {e}") from e

    async def list_slots_for_date(self, agent_id: str, day: date) -> List[Slot]:
        """Enabled slots for one agent on one date, in start time order."""
        try:
            query = (
                self.client.table(SLOTS_TABLE)
                .select("*")
                .eq("date", day.isoformat())
                .eq("enabled", True)
                .eq("agent_id", agent_id)
                .order("start_time", desc=False)
            )
            response = await self._execute(query)

            return [self._parse_slot(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to list slots for {day.isoformat()}: {e}") from e

    async def list_slots_between(
        self, date_from: date, date_to: date, agent_id: Optional[str] = None
    ) -> List[Slot]:
        """
        All slots in a date range, enabled or not (admin operation).

        Used by slot generation to skip existing slots and by drift repair.
        """
        try:
            query = (
                self.client.table(SLOTS_TABLE)
                .select("*")
                .gte("date", date_from.isoformat())
                .lte("date", date_to.isoformat())
            )
            if agent_id:
                query = query.eq("agent_id", agent_id)

            query = query.order("date", desc=False).order("start_time", desc=False)
            response = await self._execute(query)

            return [self._parse_slot(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to list slots between dates: {e}") from e

    async def list_slot_keys(
        self, agent_id: str, date_from: date, date_to: date
    ) -> Set[Tuple[date, str]]:
        """Existing ``(date, HH:MM:SS)`` pairs for an agent, enabled or not."""
        slots = await self.list_slots_between(date_from, date_to, agent_id=agent_id)
        return {(slot.date, normalize_time(slot.start_time)) for slot in slots}

    async def get_slot(self, slot_id: str) -> Optional[Slot]:
        """Get slot by ID."""
        try:
            query = self.client.table(SLOTS_TABLE).select("*").eq("id", slot_id)
            response = await self._execute(query)

            if response.data:
                return self._parse_slot(response.data[0])
            return None
        except Exception as e:
            raise StoreError(f"Failed to get slot: {e}") from e

    async def set_slot_booked(self, slot_id: str, booked: int) -> Optional[Slot]:
        """
        Overwrite a slot's cached booked counter.

        Single-row update, no read-modify-write protection; the counter
        reconciler derives ``booked`` immediately before calling this.
        """
        try:
            query = (
                self.client.table(SLOTS_TABLE)
                .update({"booked": booked})
                .eq("id", slot_id)
            )
            response = await self._execute(query)

            if not response.data:
                return None

            return self._parse_slot(response.data[0])
        except Exception as e:
            raise StoreError(f"Failed to update slot booked counter: {e}") from e

    async def create_slots(self, slots: List[SlotCreate]) -> List[Slot]:
        """Bulk insert slots (admin generation)."""
        if not slots:
            return []

        try:
            rows = [slot.model_dump(mode="json") for slot in slots]
            response = await self._execute(self.client.table(SLOTS_TABLE).insert(rows))

            return [self._parse_slot(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to create slots: {e}") from e

    # ========== Appointment Operations ==========

    async def insert_appointment(self, appointment_data: AppointmentCreate) -> Appointment:
        """Insert a new appointment row."""
        try:
            data = appointment_data.model_dump(mode="json")

            response = await self._execute(
                self.client.table(APPOINTMENTS_TABLE).insert(data)
            )

            if not response.data:
                raise ValueError("Failed to create appointment: no data returned")

            return self._parse_appointment(response.data[0])
        except Exception as e:
            self._raise_capacity_violation(e, appointment_data.slot_id)
            raise StoreError(f"Failed to create appointment: {e}") from e

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Get appointment by ID."""
        try:
            query = self.client.table(APPOINTMENTS_TABLE).select("*").eq("id", appointment_id)
            response = await self._execute(query)

            if response.data:
                return self._parse_appointment(response.data[0])
            return None
        except Exception as e:
            raise StoreError(f"Failed to get appointment: {e}") from e

    async def update_appointment(
        self, appointment_id: str, fields: Dict[str, Any]
    ) -> Optional[Appointment]:
        """
        Update appointment columns (edit or reschedule).

        ``fields`` must already be JSON-ready column values.
        """
        try:
            update_data = dict(fields)
            update_data["updated_at"] = to_iso_string(utc_now())

            query = (
                self.client.table(APPOINTMENTS_TABLE)
                .update(update_data)
                .eq("id", appointment_id)
            )
            response = await self._execute(query)

            if not response.data:
                return None

            return self._parse_appointment(response.data[0])
        except Exception as e:
            self._raise_capacity_violation(e, fields.get("slot_id"))
            raise StoreError(f"Failed to update appointment: {e}") from e

    async def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus,
        timestamps: Optional[Dict[str, Any]] = None,
        expected_status: Optional[AppointmentStatus] = None,
    ) -> Optional[Appointment]:
        """
        Update appointment status together with its lifecycle timestamps.

        ``timestamps`` maps ``confirmed_at``/``cancelled_at`` to a datetime
        (set) or None (clear); keys that are absent are left untouched.
        With ``expected_status`` the row is only written while it still has
        that status, so a concurrent change makes this return None.
        """
        try:
            update_data: Dict[str, Any] = {
                "status": AppointmentStatus(status).value,
                "updated_at": to_iso_string(utc_now()),
            }
            for column, value in (timestamps or {}).items():
                update_data[column] = to_iso_string(value) if value else None

            query = (
                self.client.table(APPOINTMENTS_TABLE)
                .update(update_data)
                .eq("id", appointment_id)
            )
            if expected_status is not None:
                query = query.eq("status", AppointmentStatus(expected_status).value)
            response = await self._execute(query)

            if not response.data:
                return None

            return self._parse_appointment(response.data[0])
        except Exception as e:
            raise StoreError(f"Failed to update appointment status: {e}") from e

    async def count_active_for_slot(self, slot_id: str) -> int:
        """Authoritative count of pending/confirmed appointments on a slot."""
        try:
            query = (
                self.client.table(APPOINTMENTS_TABLE)
                .select("id", count="exact")
                .eq("slot_id", slot_id)
                .in_("status", _ACTIVE_STATUS_VALUES)
            )
            response = await self._execute(query)

            count = getattr(response, "count", None)
            if isinstance(count, int):
                return count
            return len(response.data or [])
        except Exception as e:
            raise StoreError(f"Failed to count active appointments: {e}") from e

    async def list_appointments_by_slot(self, slot_id: str) -> List[Appointment]:
        """All appointments on a slot, any status, newest first."""
        try:
            query = (
                self.client.table(APPOINTMENTS_TABLE)
                .select("*")
                .eq("slot_id", slot_id)
                .order("created_at", desc=True)
            )
            response = await self._execute(query)

            return [self._parse_appointment(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to list appointments for slot: {e}") from e

    async def list_appointments(
        self,
        status: Optional[AppointmentStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Appointment]:
        """
        Appointments for the CRM list (admin operation).

        Ordered by appointment date then time, most recent first.
        """
        try:
            query = self.client.table(APPOINTMENTS_TABLE).select("*")

            if status:
                query = query.eq("status", AppointmentStatus(status).value)

            query = (
                query.order("appointment_date", desc=True)
                .order("appointment_time", desc=True)
                .range(offset, offset + limit - 1)
            )
            response = await self._execute(query)

            return [self._parse_appointment(item) for item in response.data or []]
        except Exception as e:
            raise StoreError(f"Failed to list appointments: {e}") from e

    async def delete_appointment(self, appointment_id: str) -> bool:
        """
        Physically delete an appointment (administrative/test cleanup only).

        Returns:
            True if a row was deleted, False otherwise
        """
        try:
            query = self.client.table(APPOINTMENTS_TABLE).delete().eq("id", appointment_id)
            response = await self._execute(query)
            return len(response.data or []) > 0
        except Exception as e:
            raise StoreError(f"Failed to delete appointment: {e}") from e

    # ========== Client Operations ==========

    async def upsert_client(self, client_data: ClientUpsert) -> Optional[Client]:
        """Create or update a client keyed on email."""
        try:
            data = client_data.model_dump(mode="json")
            data["email"] = data["email"].strip().lower()
            data["updated_at"] = to_iso_string(utc_now())

            response = await self._execute(
                self.client.table(CLIENTS_TABLE).upsert(data, on_conflict="email")
            )

            if not response.data:
                return None

            return Client(**response.data[0])
        except Exception as e:
            raise StoreError(f"Failed to upsert client: {e}") from e

    # ========== Helper Methods ==========

    @staticmethod
    def _raise_capacity_violation(error: Exception, slot_id: Optional[str]) -> None:
        """Translate the capacity trigger's exception into SlotFullError."""
        if "SLOT_FULL" in str(error):
            raise SlotFullError(
                "Slot is full",
                detail=f"Slot {slot_id} has no remaining capacity",
            ) from error

    def _parse_slot(self, item: dict) -> Slot:
        """
        Parse slot data from database response.

        Args:
            item: Raw slot data from database

        Returns:
            Parsed Slot object
        """
        item = item.copy()
        for field in ["created_at", "updated_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return Slot(**item)

    def _parse_appointment(self, item: dict) -> Appointment:
        """
        Parse appointment data from database response.

        Args:
            item: Raw appointment data from database

        Returns:
            Parsed Appointment object
        """
        item = item.copy()
        for field in ["created_at", "updated_at", "confirmed_at", "cancelled_at"]:
            if item.get(field):
                item[field] = parse_iso_datetime(item[field])
        return Appointment(**item)


# Global database client instance
_db_client: Optional[SupabaseClient] = None


def get_db_client() -> SupabaseClient:
    """Get or create database client instance."""
    global _db_client
    if _db_client is None:
        _db_client = SupabaseClient()
    return _db_client
