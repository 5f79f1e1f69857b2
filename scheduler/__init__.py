"""Background jobs."""

from .drift_repair import repair_slot_counters, setup_scheduler, shutdown_scheduler

__all__ = ["repair_slot_counters", "setup_scheduler", "shutdown_scheduler"]
