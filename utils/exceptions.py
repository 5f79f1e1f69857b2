"""
Custom exception classes for better error handling.

Every booking failure carries a stable ``code`` so the HTTP layer can map it
to a status without string matching, and a ``detail`` that tells the caller
what to do next (usually which date/time was requested).
"""

from typing import Any, Dict, List, Optional


class BookingError(Exception):
    """Base exception for slot allocation failures."""

    code = "BOOKING_ERROR"

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.detail = detail or message


class SlotNotFoundError(BookingError):
    """Raised when no single enabled slot matches the requested agent/date/time."""

    code = "SLOT_NOT_FOUND"


class SlotFullError(BookingError):
    """Raised when the authoritative active count has reached capacity."""

    code = "SLOT_FULL"


class AppointmentNotFoundError(BookingError):
    """Raised when an appointment id does not exist."""

    code = "APPOINTMENT_NOT_FOUND"


class InvalidTransitionError(BookingError):
    """Raised when a status change is not allowed by the appointment state machine."""

    code = "INVALID_TRANSITION"


class ValidationError(BookingError):
    """Raised when input validation fails."""

    code = "VALIDATION_FAILED"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[str] = None,
        issues: Optional[List[Dict[str, Any]]] = None,
    ):
        super().__init__(message, detail=detail)
        self.issues = issues or []


class BudgetBelowPriceError(ValidationError):
    """Raised when the selected budget range starts below the listing price."""

    code = "BUDGET_BELOW_PRICE"

    def __init__(self, message: str, *, price: float, minimum_budget: int):
        super().__init__(message)
        self.price = price
        self.minimum_budget = minimum_budget


class DatabaseError(BookingError):
    """Base exception for datastore operations."""

    code = "STORE_ERROR"


class StoreError(DatabaseError):
    """Raised when the datastore is unreachable or returns an unexpected error."""


class ReconciliationError(DatabaseError):
    """Raised when a slot's cached booked counter could not be rewritten."""

    code = "RECONCILIATION_FAILURE"


class ListingServiceError(Exception):
    """Raised when the external listing service fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ListingNotFoundError(ListingServiceError):
    """Raised when the listing service has no record for the id."""
