"""
Appointment status state machine.

pending -> confirmed | cancelled | completed | no-show
confirmed -> cancelled | completed | no-show
cancelled, completed and no-show are terminal.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Optional, Union

from models.appointment import TERMINAL_STATUSES, AppointmentStatus
from utils.exceptions import InvalidTransitionError

ALLOWED_TRANSITIONS: Dict[AppointmentStatus, FrozenSet[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.CANCELLED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.NO_SHOW,
        }
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

StatusLike = Union[AppointmentStatus, str]


def can_transition(current: StatusLike, target: StatusLike) -> bool:
    """True when ``current -> target`` is an allowed status change."""
    return AppointmentStatus(target) in ALLOWED_TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(current: StatusLike, target: StatusLike) -> None:
    """
    Raise InvalidTransitionError unless ``current -> target`` is allowed.

    Same-status requests are not transitions; callers treat them as no-ops
    before calling this.
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if can_transition(current, target):
        return

    if current in TERMINAL_STATUSES:
        detail = f"Appointment is {current.value}; {current.value} appointments cannot change status"
    else:
        detail = f"Cannot change status from {current.value} to {target.value}"

    raise InvalidTransitionError("Invalid status transition", detail=detail)


def transition_timestamps(
    current: StatusLike, target: StatusLike, now: datetime
) -> Dict[str, Optional[datetime]]:
    """
    Lifecycle timestamp columns to write for ``current -> target``.

    None values clear the column. Columns not in the result are untouched.
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)
    changes: Dict[str, Optional[datetime]] = {}

    if target == AppointmentStatus.CONFIRMED and current != AppointmentStatus.CONFIRMED:
        changes["confirmed_at"] = now
        changes["cancelled_at"] = None
    elif target == AppointmentStatus.CANCELLED:
        changes["cancelled_at"] = now
        if current == AppointmentStatus.CONFIRMED:
            changes["confirmed_at"] = None

    return changes
