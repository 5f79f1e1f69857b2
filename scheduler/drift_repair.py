"""
Slot counter drift repair using APScheduler.

Cached ``booked`` counters drift when a reconciliation after a write fails,
or when another process writes appointments directly. This job periodically
reconciles every slot in the upcoming window.
"""

from datetime import date, datetime, timedelta
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from config import settings
from utils.exceptions import DatabaseError
from utils.logging_config import setup_logging

logger = setup_logging(
    name=__name__, log_level=settings.log_level, log_file="scheduler.log", log_dir="logs"
)

JOB_ID = "repair_slot_counters"

scheduler = AsyncIOScheduler(timezone=settings.timezone)


def _local_today() -> date:
    return datetime.now(ZoneInfo(settings.timezone)).date()


async def repair_slot_counters(
    orchestrator,
    days_ahead: Optional[int] = None,
    today: Optional[date] = None,
) -> Dict[str, Optional[int]]:
    """
    Reconcile every slot from today through ``days_ahead`` days out.

    Returns:
        Mapping of slot id to the booked value now stored (None on failure)
    """
    today = today or _local_today()
    days_ahead = settings.drift_repair_days_ahead if days_ahead is None else days_ahead

    try:
        slots = await orchestrator.db.list_slots_between(today, today + timedelta(days=days_ahead))
    except DatabaseError as e:
        logger.error(f"Database error listing slots for drift repair: {e}", exc_info=True)
        return {}

    results = await orchestrator.reconcile_slots(slot.id for slot in slots)

    failed = sum(1 for value in results.values() if value is None)
    changed = sum(
        1 for slot in slots if slot.id in results and results[slot.id] not in (None, slot.booked)
    )
    logger.info(
        f"Drift repair complete: {len(results)} slots checked, "
        f"{changed} corrected, {failed} failed"
    )
    return results


def setup_scheduler(orchestrator) -> AsyncIOScheduler:
    """
    Register the drift repair job and start the scheduler.

    Must be called with a running event loop (e.g. from an aiohttp
    ``on_startup`` hook).
    """
    scheduler.add_job(
        repair_slot_counters,
        trigger=IntervalTrigger(minutes=settings.drift_repair_interval_minutes),
        args=[orchestrator],
        id=JOB_ID,
        name="Reconcile cached slot counters",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    if not scheduler.running:
        scheduler.start()
    logger.info(
        f"Scheduler started: drift repair every {settings.drift_repair_interval_minutes} minutes"
    )
    return scheduler


def shutdown_scheduler():
    """Shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler stopped")
