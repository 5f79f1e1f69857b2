"""Slot availability and capacity-safe appointment booking."""

from .availability import AvailabilityCalculator, build_availability
from .generator import GenerationResult, generate_slots
from .locks import SlotLockRegistry
from .orchestrator import BookingOrchestrator
from .reconciler import CounterReconciler
from .resolver import SlotResolver
from .status import can_transition, ensure_transition, transition_timestamps

__all__ = [
    "AvailabilityCalculator",
    "BookingOrchestrator",
    "CounterReconciler",
    "GenerationResult",
    "SlotLockRegistry",
    "SlotResolver",
    "build_availability",
    "can_transition",
    "ensure_transition",
    "generate_slots",
    "transition_timestamps",
]
