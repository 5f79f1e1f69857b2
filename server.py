"""
HTTP API for the appointment booking flow and the CRM.

Routes:
- GET  /api/availability                    public time picker
- POST /api/appointments                    create (201) or update (200)
- GET  /api/appointments/check-slot         slot diagnostics
- GET  /api/crm/appointments                CRM list with listings
- POST /api/crm/appointments/update-status  status transition
- POST /api/crm/appointments/cancel         cancellation
- POST /api/crm/appointments/delete         administrative removal
- POST /api/slots/reconcile                 on-demand counter repair
- POST /api/appointments/generate-slots     slot generation (not in production)
- GET  /health

Failures are returned as ``{"error": <CODE>, "details": <text>}`` with the
HTTP status taken from ``_ERROR_STATUS``.
"""

import json
import time
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional
from zoneinfo import ZoneInfo

from aiohttp import web
from aiohttp.web import Request, Response

from booking import AvailabilityCalculator, BookingOrchestrator, generate_slots
from config import Settings, settings
from listings import EasyBrokerClient, ListingEnricher
from models.appointment import Appointment, AppointmentStatus
from models.booking_request import parse_booking_request
from scheduler import setup_scheduler, shutdown_scheduler
from utils.constants import (
    APPOINTMENTS_PAGE_LIMIT,
    GENERATION_DAYS,
    GENERATION_END_HOUR,
    GENERATION_START_HOUR,
    MAX_APPOINTMENTS_PAGE_LIMIT,
)
from utils.datetime_utils import clean_date
from utils.exceptions import BookingError, BudgetBelowPriceError, StoreError, ValidationError
from utils.logging_config import configure_package_loggers, setup_logging
from utils.validation import validate_uuid

logger = setup_logging(
    name=__name__, log_level=settings.log_level, log_file="server.log", log_dir="logs"
)

# Constants
MAX_REQUEST_BODY_SIZE = 1024 * 1024  # 1MB

_ERROR_STATUS = {
    "VALIDATION_FAILED": 400,
    "BUDGET_BELOW_PRICE": 400,
    "SLOT_NOT_FOUND": 404,
    "APPOINTMENT_NOT_FOUND": 404,
    "SLOT_FULL": 409,
    "INVALID_TRANSITION": 409,
    "STORE_ERROR": 500,
    "RECONCILIATION_FAILURE": 500,
}

ORCHESTRATOR = web.AppKey("orchestrator", BookingOrchestrator)
AVAILABILITY = web.AppKey("availability", AvailabilityCalculator)
ENRICHER = web.AppKey("enricher", ListingEnricher)
SETTINGS = web.AppKey("settings", Settings)
STARTED_AT = web.AppKey("started_at", float)


def _error_body(error: BookingError) -> Dict[str, Any]:
    body: Dict[str, Any] = {"error": error.code, "details": error.detail}

    if isinstance(error, StoreError):
        # Datastore messages stay in the log
        body["details"] = "The booking service is temporarily unavailable, please try again"
    if isinstance(error, ValidationError) and error.issues:
        body["issues"] = error.issues
    if isinstance(error, BudgetBelowPriceError):
        body["propertyPrice"] = error.price
        body["minimumBudget"] = error.minimum_budget

    return body


@web.middleware
async def error_middleware(request: Request, handler):
    """Translate booking errors into JSON error responses."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except BookingError as e:
        status = _ERROR_STATUS.get(e.code, 500)
        if status >= 500:
            logger.error(f"{e.code} on {request.method} {request.path}: {e}", exc_info=True)
        else:
            logger.info(f"{e.code} on {request.method} {request.path}: {e.detail}")
        return web.json_response(_error_body(e), status=status)
    except Exception as e:
        logger.error(f"Unexpected error on {request.method} {request.path}: {e}", exc_info=True)
        return web.json_response(
            {"error": "INTERNAL_ERROR", "details": "Internal server error"}, status=500
        )


@web.middleware
async def security_headers_middleware(request: Request, handler):
    """Add security headers to all responses."""
    response = await handler(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-XSS-Protection"] = "1; mode=block"
    response.headers["Strict-Transport-Security"] = (
        "max-age=31536000; includeSubDomains"
    )
    response.headers["Cache-Control"] = "no-store"

    return response


async def _read_json(request: Request, required: bool = True) -> Dict[str, Any]:
    """
    Parse a JSON object body.

    Raises:
        ValidationError: Wrong content type, invalid JSON or not an object
    """
    raw_body = await request.read()
    if not raw_body:
        if required:
            raise ValidationError("Empty request body", detail="A JSON body is required")
        return {}

    if request.content_type != "application/json":
        raise ValidationError(
            "Unsupported content type", detail="Content-Type must be application/json"
        )

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ValidationError("Invalid JSON", detail=f"Request body is not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON", detail="Request body must be a JSON object")

    return payload


def _require(payload: Dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required", detail=f"{key} is required")
    return value.strip()


def _agent_id(value: Optional[str], default: str) -> str:
    if not value:
        return default
    if not validate_uuid(value):
        raise ValidationError("Invalid agent id", detail="agentId must be a UUID")
    return value


def _query_date(request: Request, key: str) -> Optional[date]:
    value = request.query.get(key)
    if not value:
        return None
    try:
        return clean_date(value)
    except ValueError as e:
        raise ValidationError(f"Invalid {key}", detail=str(e)) from e


def _int_param(source: Mapping[str, Any], key: str, default: int) -> int:
    value = source.get(key)
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {key}", detail=f"{key} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid {key}", detail=f"{key} must be an integer") from e


def _appointment_summary(appointment: Appointment) -> Dict[str, Any]:
    return {
        "id": appointment.id,
        "date": appointment.appointment_date.isoformat(),
        "time": appointment.appointment_time,
        "status": appointment.status,
    }


def _today(request: Request) -> date:
    return datetime.now(ZoneInfo(request.app[SETTINGS].timezone)).date()


# ========== Booking ==========


async def availability_handler(request: Request) -> Response:
    """List available slots grouped by date."""
    app_settings = request.app[SETTINGS]
    start = _query_date(request, "start") or _today(request)
    end = _query_date(request, "end")
    if end and end < start:
        raise ValidationError("Invalid range", detail="end must not be before start")

    agent_id = _agent_id(
        request.query.get("agent_id") or request.query.get("agentId"),
        app_settings.default_agent_id,
    )

    days = await request.app[AVAILABILITY].get_availability(agent_id, start, end)
    return web.json_response([day.model_dump(mode="json", by_alias=True) for day in days])


async def appointments_handler(request: Request) -> Response:
    """Create an appointment, or update one when ``appointmentId`` is present."""
    payload = await _read_json(request)
    booking_request = parse_booking_request(payload)
    orchestrator = request.app[ORCHESTRATOR]

    if booking_request.is_update:
        appointment = await orchestrator.update_appointment(
            booking_request.appointment_id, booking_request
        )
        status = 200
    else:
        appointment = await orchestrator.create_appointment(booking_request)
        status = 201

    return web.json_response(
        {"success": True, "appointment": _appointment_summary(appointment)}, status=status
    )


async def check_slot_handler(request: Request) -> Response:
    """Show which appointments occupy a slot."""
    slot_id = request.query.get("slotId")
    if not slot_id:
        raise ValidationError("slotId is required", detail="slotId is required")

    check = await request.app[ORCHESTRATOR].check_slot(slot_id)
    return web.json_response(check.model_dump(mode="json", by_alias=True))


async def generate_slots_handler(request: Request) -> Response:
    """Generate slots for the coming days (development only)."""
    app_settings = request.app[SETTINGS]
    if app_settings.is_production:
        return web.json_response(
            {"error": "FORBIDDEN", "details": "Slot generation is only available in development"},
            status=403,
        )

    payload = await _read_json(request, required=False)
    result = await generate_slots(
        request.app[ORCHESTRATOR].db,
        agent_id=_agent_id(payload.get("agentId"), app_settings.default_agent_id),
        days=_int_param(payload, "days", GENERATION_DAYS),
        capacity=_int_param(payload, "capacity", 1),
        start_hour=_int_param(payload, "startHour", GENERATION_START_HOUR),
        end_hour=_int_param(payload, "endHour", GENERATION_END_HOUR),
        slot_duration=_int_param(payload, "slotDuration", app_settings.appointment_duration_minutes),
        skip_lunch=bool(payload.get("skipLunch", True)),
        today=_today(request),
    )
    return web.json_response(result.model_dump(mode="json"))


# ========== CRM ==========


async def crm_appointments_handler(request: Request) -> Response:
    """List appointments for the CRM, newest first, with their listings."""
    status_param = request.query.get("status")
    status = None
    if status_param and status_param != "all":
        try:
            status = AppointmentStatus(status_param)
        except ValueError as e:
            raise ValidationError("Invalid status", detail=f"Unknown status {status_param}") from e

    limit = _int_param(request.query, "limit", APPOINTMENTS_PAGE_LIMIT)
    offset = _int_param(request.query, "offset", 0)
    if not 1 <= limit <= MAX_APPOINTMENTS_PAGE_LIMIT or offset < 0:
        raise ValidationError(
            "Invalid pagination",
            detail=f"limit must be 1-{MAX_APPOINTMENTS_PAGE_LIMIT} and offset non-negative",
        )

    appointments = await request.app[ORCHESTRATOR].list_appointments(
        status=status, limit=limit, offset=offset
    )
    views = await request.app[ENRICHER].enrich(appointments)

    return web.json_response(
        {
            "appointments": [view.model_dump(mode="json", by_alias=True) for view in views],
            "count": len(views),
            "limit": limit,
            "offset": offset,
        }
    )


async def update_status_handler(request: Request) -> Response:
    payload = await _read_json(request)
    appointment = await request.app[ORCHESTRATOR].update_status(
        _require(payload, "appointmentId"), _require(payload, "status")
    )
    return web.json_response({"success": True, "appointment": _appointment_summary(appointment)})


async def cancel_handler(request: Request) -> Response:
    payload = await _read_json(request)
    appointment = await request.app[ORCHESTRATOR].cancel_appointment(
        _require(payload, "appointmentId")
    )
    return web.json_response({"success": True, "appointment": _appointment_summary(appointment)})


async def delete_handler(request: Request) -> Response:
    payload = await _read_json(request)
    deleted = await request.app[ORCHESTRATOR].delete_appointment(_require(payload, "appointmentId"))
    return web.json_response({"success": deleted})


async def reconcile_handler(request: Request) -> Response:
    """Recompute a slot's booked counter from its active appointments."""
    payload = await _read_json(request)
    slot_id = _require(payload, "slotId")
    booked = await request.app[ORCHESTRATOR].reconcile_slot(slot_id)
    return web.json_response({"success": True, "slotId": slot_id, "booked": booked})


async def health_check(request: Request) -> Response:
    """Health check endpoint."""
    app_settings = request.app[SETTINGS]
    uptime_seconds = time.time() - request.app[STARTED_AT]

    return web.json_response(
        {
            "status": "ok",
            "service": "brokerage-appointments",
            "timestamp": time.time(),
            "uptime_hours": round(uptime_seconds / 3600, 2),
            "configuration": {
                "environment": app_settings.environment,
                "listing_service_configured": bool(app_settings.easybroker_api_key),
                "serialize_slot_bookings": app_settings.serialize_slot_bookings,
                "drift_repair_enabled": app_settings.drift_repair_enabled,
            },
        }
    )


# ========== Application ==========


async def _start_background_jobs(app: web.Application) -> None:
    setup_scheduler(app[ORCHESTRATOR])


async def _stop_background_jobs(app: web.Application) -> None:
    shutdown_scheduler()


async def _close_listing_client(app: web.Application) -> None:
    client = app[ENRICHER].client
    if client is not None:
        await client.close()


def create_app(
    orchestrator: Optional[BookingOrchestrator] = None,
    availability: Optional[AvailabilityCalculator] = None,
    enricher: Optional[ListingEnricher] = None,
    app_settings: Optional[Settings] = None,
    run_background_jobs: bool = False,
) -> web.Application:
    """
    Create aiohttp application with middleware and routes.

    Collaborators default to ones built from ``settings``; tests inject
    their own.
    """
    app_settings = app_settings or settings

    if enricher is None:
        listing_client = None
        if app_settings.easybroker_api_key:
            listing_client = EasyBrokerClient(
                app_settings.easybroker_api_key,
                base_url=app_settings.easybroker_base_url,
                timeout=app_settings.easybroker_timeout_seconds,
            )
        else:
            logger.warning("EASYBROKER_API_KEY not set - listings will not be attached")
        enricher = ListingEnricher(listing_client)

    if orchestrator is None:
        orchestrator = BookingOrchestrator(
            listings=enricher,
            default_agent_id=app_settings.default_agent_id,
            duration_minutes=app_settings.appointment_duration_minutes,
        )
    if availability is None:
        availability = AvailabilityCalculator(orchestrator.db)

    app = web.Application(
        middlewares=[security_headers_middleware, error_middleware],
        client_max_size=MAX_REQUEST_BODY_SIZE,
    )
    app[ORCHESTRATOR] = orchestrator
    app[AVAILABILITY] = availability
    app[ENRICHER] = enricher
    app[SETTINGS] = app_settings
    app[STARTED_AT] = time.time()

    # Routes
    app.router.add_get("/api/availability", availability_handler)
    app.router.add_get("/api/appointments/available", availability_handler)
    app.router.add_post("/api/appointments", appointments_handler)
    app.router.add_get("/api/appointments/check-slot", check_slot_handler)
    app.router.add_post("/api/appointments/generate-slots", generate_slots_handler)
    app.router.add_get("/api/crm/appointments", crm_appointments_handler)
    app.router.add_post("/api/crm/appointments/update-status", update_status_handler)
    app.router.add_post("/api/crm/appointments/cancel", cancel_handler)
    app.router.add_post("/api/crm/appointments/delete", delete_handler)
    app.router.add_post("/api/slots/reconcile", reconcile_handler)
    app.router.add_get("/health", health_check)

    if run_background_jobs and app_settings.drift_repair_enabled:
        app.on_startup.append(_start_background_jobs)
        app.on_cleanup.append(_stop_background_jobs)
    app.on_cleanup.append(_close_listing_client)

    return app


if __name__ == "__main__":
    settings.validate_all_required()
    configure_package_loggers(log_level=settings.log_level, log_file="server.log")

    logger.info(f"Starting server on {settings.host}:{settings.port} ({settings.environment})")
    web.run_app(create_app(run_background_jobs=True), host=settings.host, port=settings.port)
