"""
Booking orchestrator.

Creates, edits, transitions and removes appointments without letting the
number of active appointments on a slot exceed its capacity. Every capacity
decision uses a live count from the appointments table; the slot's cached
``booked`` counter is refreshed afterwards by the counter reconciler.

Within one process the check and the write for a slot run under that slot's
lease (``SlotLockRegistry``). Separate processes can still interleave between
the count and the insert; the reconciler logs any overbooking it observes.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional, Union

from config import settings
from db import get_db_client
from models.appointment import Appointment, AppointmentCreate, AppointmentStatus
from models.availability import (
    SlotAppointments,
    SlotAppointmentSummary,
    SlotAvailability,
    SlotCheck,
    SlotInfo,
)
from models.booking_request import PurchaseRequest, RentRequest
from models.client import Client, ClientUpsert
from models.slot import Slot
from utils.datetime_utils import normalize_time, utc_now
from utils.exceptions import (
    AppointmentNotFoundError,
    InvalidTransitionError,
    ReconciliationError,
    SlotFullError,
    SlotNotFoundError,
    ValidationError,
)
from utils.logging_config import fields

from .locks import SlotLockRegistry
from .reconciler import CounterReconciler
from .resolver import SlotResolver
from .status import ensure_transition, transition_timestamps

logger = logging.getLogger(__name__)

BookingRequest = Union[RentRequest, PurchaseRequest]


class BookingOrchestrator:
    """Capacity-safe appointment lifecycle operations."""

    def __init__(
        self,
        db=None,
        resolver: Optional[SlotResolver] = None,
        reconciler: Optional[CounterReconciler] = None,
        locks: Optional[SlotLockRegistry] = None,
        listings=None,
        default_agent_id: Optional[str] = None,
        duration_minutes: Optional[int] = None,
    ):
        """
        Args:
            db: Store client (defaults to the shared Supabase client)
            resolver: Slot resolver over ``db``
            reconciler: Counter reconciler over ``db``
            locks: Per-slot lease registry
            listings: Optional ``ListingEnricher`` used for the budget check
            default_agent_id: Agent used when a request names none
            duration_minutes: Duration stored on new appointments
        """
        self.db = db if db is not None else get_db_client()
        self.resolver = resolver or SlotResolver(self.db)
        self.reconciler = reconciler or CounterReconciler(self.db)
        self.locks = (
            locks if locks is not None else SlotLockRegistry(enabled=settings.serialize_slot_bookings)
        )
        self.listings = listings
        self.default_agent_id = default_agent_id or settings.default_agent_id
        self.duration_minutes = duration_minutes or settings.appointment_duration_minutes

    # ========== Booking ==========

    async def create_appointment(self, request: BookingRequest) -> Appointment:
        """
        Book a new pending appointment.

        Raises:
            BudgetBelowPriceError: Budget range starts below the listing price
            SlotNotFoundError: No single enabled slot at the requested date/time
            SlotFullError: The slot's live active count has reached capacity
            StoreError: The datastore failed
        """
        agent_id = request.agent_id or self.default_agent_id
        await self._check_budget(request)

        slot = await self.resolver.resolve(agent_id, request.date, request.time)

        async with self.locks.hold(slot.id):
            await self._ensure_capacity(slot)

            client = await self._upsert_client(request)
            appointment = await self.db.insert_appointment(
                self._build_appointment(request, slot, agent_id, client)
            )
            logger.info(
                "Appointment created "
                + fields(
                    appointment_id=appointment.id,
                    slot_id=slot.id,
                    date=slot.date,
                    time=slot.hhmm,
                )
            )

            await self.reconciler.reconcile(slot.id)

        return appointment

    async def update_appointment(
        self, appointment_id: str, request: BookingRequest
    ) -> Appointment:
        """
        Edit an appointment's contact data, operation payload, date and time.

        Moving an active appointment to a different slot re-checks the new
        slot's capacity. Both the old and the new slot are reconciled.

        Raises:
            AppointmentNotFoundError: Unknown appointment id
            SlotNotFoundError: No single enabled slot at the new date/time
            SlotFullError: The appointment moves into a full slot
        """
        existing = await self._get_existing(appointment_id)
        agent_id = request.agent_id or existing.agent_id or self.default_agent_id
        await self._check_budget(request)

        slot = await self.resolver.resolve(agent_id, request.date, request.time)

        async with self._leased(appointment_id, slot.id) as current:
            previous_slot_id = current.slot_id
            moving = slot.id != previous_slot_id
            if moving and current.is_active:
                await self._ensure_capacity(slot)

            client = await self._upsert_client(request)
            update_fields = self._build_update(request, slot, agent_id, client)

            updated = await self.db.update_appointment(appointment_id, update_fields)
            if updated is None:
                raise AppointmentNotFoundError(
                    "Appointment not found",
                    detail=f"Appointment {appointment_id} was removed during the update",
                )

            logger.info(
                "Appointment updated "
                + fields(
                    appointment_id=appointment_id,
                    slot_id=slot.id,
                    previous_slot_id=previous_slot_id if moving else None,
                )
            )

            await self.reconciler.reconcile_many([previous_slot_id, slot.id])

        return updated

    # ========== Status ==========

    async def update_status(
        self, appointment_id: str, status: Union[AppointmentStatus, str]
    ) -> Appointment:
        """
        Move an appointment through its status state machine.

        The current status is read under the slot lease and the write only
        applies while the row still has it. Requesting the current status
        returns the appointment unchanged.

        Raises:
            ValidationError: Unknown status value
            AppointmentNotFoundError: Unknown appointment id
            InvalidTransitionError: The transition is not allowed, or the
                status changed concurrently
        """
        try:
            target = AppointmentStatus(status)
        except ValueError as e:
            allowed = ", ".join(s.value for s in AppointmentStatus)
            raise ValidationError(
                "Invalid status", detail=f"Status must be one of: {allowed}"
            ) from e

        async with self._leased(appointment_id) as existing:
            current = AppointmentStatus(existing.status)
            if current == target:
                return existing

            ensure_transition(current, target)

            updated = await self.db.update_appointment_status(
                appointment_id,
                target,
                transition_timestamps(current, target, utc_now()),
                expected_status=current,
            )
            if updated is None:
                # Gone, or another process changed the status first
                await self._get_existing(appointment_id)
                raise InvalidTransitionError(
                    "Appointment status changed concurrently",
                    detail=(
                        f"Appointment {appointment_id} is no longer {current.value}; "
                        "reload it and try again"
                    ),
                )

            logger.info(
                "Appointment status changed "
                + fields(
                    appointment_id=appointment_id,
                    previous=current.value,
                    status=target.value,
                )
            )

            await self.reconciler.reconcile(existing.slot_id)

        return updated

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Cancel an appointment, releasing its slot capacity."""
        return await self.update_status(appointment_id, AppointmentStatus.CANCELLED)

    async def delete_appointment(self, appointment_id: str) -> bool:
        """Physically remove an appointment (administrative)."""
        async with self._leased(appointment_id) as existing:
            deleted = await self.db.delete_appointment(appointment_id)
            if deleted:
                logger.info(
                    "Appointment deleted "
                    + fields(appointment_id=appointment_id, slot_id=existing.slot_id)
                )
            await self.reconciler.reconcile(existing.slot_id)

        return deleted

    # ========== Slots ==========

    async def reconcile_slot(self, slot_id: str) -> int:
        """
        Reconcile one slot on demand.

        Raises:
            SlotNotFoundError: Unknown slot id
            ReconciliationError: The counter could not be rewritten
        """
        if await self.db.get_slot(slot_id) is None:
            raise SlotNotFoundError("Slot not found", detail=f"No slot with id {slot_id}")

        booked = (await self.reconcile_slots([slot_id])).get(slot_id)
        if booked is None:
            raise ReconciliationError(
                "Reconciliation failed",
                detail=f"The booked counter of slot {slot_id} could not be rewritten",
            )
        return booked

    async def reconcile_slots(self, slot_ids: Iterable[Optional[str]]) -> Dict[str, Optional[int]]:
        """Reconcile slots under their leases (standalone drift repair)."""
        results: Dict[str, Optional[int]] = {}
        for slot_id in slot_ids:
            if not slot_id or slot_id in results:
                continue
            async with self.locks.hold(slot_id):
                results[slot_id] = await self.reconciler.reconcile(slot_id)
        return results

    async def check_slot(self, slot_id: str) -> SlotCheck:
        """
        Diagnostic view of a slot: the appointments referencing it and its
        live availability.

        Raises:
            SlotNotFoundError: Unknown slot id
        """
        slot = await self.db.get_slot(slot_id)
        if slot is None:
            raise SlotNotFoundError("Slot not found", detail=f"No slot with id {slot_id}")

        appointments = await self.db.list_appointments_by_slot(slot_id)
        active = [a for a in appointments if a.is_active]
        cancelled = [a for a in appointments if a.status == AppointmentStatus.CANCELLED.value]
        remaining = max(0, slot.capacity - len(active))

        return SlotCheck(
            slot=SlotInfo(
                id=slot.id,
                date=slot.date,
                time=slot.start_time,
                capacity=slot.capacity,
                booked=slot.booked,
                enabled=slot.enabled,
            ),
            appointments=SlotAppointments(
                active=[self._summarize(a) for a in active],
                cancelled=[self._summarize(a) for a in cancelled],
                total=len(appointments),
                active_count=len(active),
            ),
            availability=SlotAvailability(
                available=slot.enabled and remaining > 0,
                remaining=remaining,
                booked_count=len(active),
                capacity=slot.capacity,
            ),
        )

    async def list_appointments(
        self, status: Optional[AppointmentStatus] = None, limit: int = 100, offset: int = 0
    ) -> List[Appointment]:
        return await self.db.list_appointments(status=status, limit=limit, offset=offset)

    # ========== Helper Methods ==========

    async def _get_existing(self, appointment_id: str) -> Appointment:
        appointment = await self.db.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(
                "Appointment not found", detail=f"No appointment with id {appointment_id}"
            )
        return appointment

    @asynccontextmanager
    async def _leased(
        self, appointment_id: str, slot_id: Optional[str] = None
    ) -> AsyncIterator[Appointment]:
        """
        Hold the lease of the appointment's slot (and of ``slot_id``) and
        yield the appointment as read under it.

        A concurrent reschedule can move the appointment between the first
        read and the lease; the lease is then retaken for its new slot.
        """
        appointment = await self._get_existing(appointment_id)
        while True:
            async with self.locks.hold(appointment.slot_id, slot_id):
                current = await self._get_existing(appointment_id)
                if current.slot_id == appointment.slot_id:
                    yield current
                    return
            appointment = current

    async def _ensure_capacity(self, slot: Slot) -> None:
        active = await self.db.count_active_for_slot(slot.id)
        if active >= slot.capacity:
            logger.info(
                "Slot full "
                + fields(slot_id=slot.id, active=active, capacity=slot.capacity)
            )
            raise SlotFullError(
                "Slot is full",
                detail=(
                    f"The {slot.date.isoformat()} {slot.hhmm} slot has no remaining "
                    f"capacity ({active}/{slot.capacity}); choose another time"
                ),
            )

    async def _check_budget(self, request: BookingRequest) -> None:
        if self.listings is not None:
            await self.listings.check_budget(request)

    async def _upsert_client(self, request: BookingRequest) -> Optional[Client]:
        """Create or refresh the client record; failures never block the booking."""
        try:
            return await self.db.upsert_client(
                ClientUpsert(email=request.email, name=request.name, phone=request.phone)
            )
        except Exception as e:
            logger.warning(f"Client upsert failed: {e} " + fields(email=request.email))
            return None

    def _build_appointment(
        self,
        request: BookingRequest,
        slot: Slot,
        agent_id: str,
        client: Optional[Client],
    ) -> AppointmentCreate:
        return AppointmentCreate(
            slot_id=slot.id,
            agent_id=agent_id,
            property_id=request.property_id,
            client_id=client.id if client else None,
            client_name=request.name,
            client_email=request.email,
            client_phone=request.phone,
            appointment_date=slot.date,
            appointment_time=normalize_time(slot.start_time),
            duration_minutes=self.duration_minutes,
            notes=request.notes,
            status=AppointmentStatus.PENDING,
            **request.operation_fields(),
        )

    def _build_update(
        self,
        request: BookingRequest,
        slot: Slot,
        agent_id: str,
        client: Optional[Client],
    ) -> Dict:
        update_fields = {
            "slot_id": slot.id,
            "agent_id": agent_id,
            "property_id": request.property_id,
            "client_name": request.name,
            "client_email": request.email,
            "client_phone": request.phone,
            "appointment_date": slot.date.isoformat(),
            "appointment_time": normalize_time(slot.start_time),
            "notes": request.notes,
            **request.operation_fields(),
        }
        if client and client.id:
            update_fields["client_id"] = client.id
        return update_fields

    @staticmethod
    def _summarize(appointment: Appointment) -> SlotAppointmentSummary:
        return SlotAppointmentSummary(
            id=appointment.id,
            status=appointment.status,
            client_email=appointment.client_email,
            client_name=appointment.client_name,
            client_phone=appointment.client_phone,
            created_at=appointment.created_at,
            cancelled_at=appointment.cancelled_at,
        )
