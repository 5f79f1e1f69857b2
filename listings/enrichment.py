"""Attach listing data to appointments and check budgets against listing prices."""

import logging
from typing import Dict, Iterable, List, Optional

from models.appointment import Appointment
from models.listing import AppointmentView, Listing
from utils.exceptions import BudgetBelowPriceError, ListingNotFoundError, ListingServiceError
from utils.logging_config import fields
from utils.validation import parse_budget_minimum

logger = logging.getLogger(__name__)


class ListingEnricher:
    """
    Listing lookups for the CRM and the booking form.

    Lookups are secondary: a failing listing service never blocks a booking
    or hides an appointment, it only leaves the listing out.
    """

    def __init__(self, client):
        self.client = client

    async def _lookup(self, property_id: str, cache: Dict[str, Optional[Listing]]) -> Optional[Listing]:
        if property_id in cache:
            return cache[property_id]

        try:
            listing = await self.client.get_listing(property_id)
        except ListingNotFoundError:
            logger.info("Listing not found " + fields(property_id=property_id))
            listing = None
        except ListingServiceError as e:
            logger.warning(f"Listing lookup failed: {e} " + fields(property_id=property_id))
            listing = None

        cache[property_id] = listing
        return listing

    async def enrich(self, appointments: Iterable[Appointment]) -> List[AppointmentView]:
        """Appointment views with their listing attached, one lookup per listing id."""
        cache: Dict[str, Optional[Listing]] = {}
        views: List[AppointmentView] = []

        for appointment in appointments:
            listing = None
            if appointment.property_id and self.client is not None:
                listing = await self._lookup(appointment.property_id, cache)

            views.append(
                AppointmentView(
                    id=appointment.id,
                    client_name=appointment.client_name,
                    client_email=appointment.client_email,
                    client_phone=appointment.client_phone,
                    property_id=appointment.property_id,
                    listing=listing,
                    date=appointment.appointment_date,
                    time=appointment.appointment_time,
                    status=appointment.status,
                    notes=appointment.notes,
                    operation_type=appointment.operation_type,
                    budget_range=appointment.budget_range,
                    created_at=appointment.created_at,
                )
            )

        return views

    async def check_budget(self, request) -> None:
        """
        Reject a booking whose budget range starts below the listing price.

        Skipped when the request names no listing, the listing cannot be
        fetched, or the listing has no price.

        Raises:
            BudgetBelowPriceError: The minimum of the chosen range is below the price
        """
        if not request.property_id or self.client is None:
            return

        listing = await self._lookup(request.property_id, {})
        if listing is None or not listing.price or listing.price <= 0:
            return

        minimum = parse_budget_minimum(request.budget_range)
        if minimum < listing.price:
            logger.info(
                "Budget below listing price "
                + fields(property_id=request.property_id, price=listing.price, minimum=minimum)
            )
            raise BudgetBelowPriceError(
                f"The selected budget starts at {minimum:,} but the property is listed at "
                f"{listing.price:,.0f}",
                price=listing.price,
                minimum_budget=minimum,
            )
