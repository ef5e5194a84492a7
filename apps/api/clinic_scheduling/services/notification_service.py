"""Best-effort appointment notifications.

Delivery (email, SMS, push) lives in handlers registered at startup. Dispatch
never raises: a failing handler is logged and the remaining handlers still
run, so a booking is never undone by a notification problem.
"""

from __future__ import annotations

import logging
from typing import Callable

from clinic_scheduling.core.structured_logging import build_log_context
from clinic_scheduling.db.enums import AppointmentEvent
from clinic_scheduling.db.models import Appointment

logger = logging.getLogger(__name__)

NotificationHandler = Callable[[AppointmentEvent, dict], None]

_handlers: list[NotificationHandler] = []


def register_handler(handler: NotificationHandler) -> None:
    if handler not in _handlers:
        _handlers.append(handler)


def unregister_handler(handler: NotificationHandler) -> None:
    if handler in _handlers:
        _handlers.remove(handler)


def clear_handlers() -> None:
    _handlers.clear()


def build_payload(appointment: Appointment) -> dict:
    """Identifiers and timing only; notes and value stay out of notifications."""
    return {
        "appointment_id": str(appointment.id),
        "tenant_id": appointment.tenant_id,
        "patient_id": str(appointment.patient_id),
        "psychologist_id": str(appointment.psychologist_id),
        "date_time": appointment.date_time.isoformat(),
        "end_time": appointment.end_time.isoformat(),
        "duration": appointment.duration,
        "status": appointment.status,
    }


def notify_appointment_event(appointment: Appointment, event: AppointmentEvent) -> int:
    """Dispatch event to every handler; returns how many handlers succeeded."""
    payload = build_payload(appointment)
    log_context = build_log_context(
        tenant_id=appointment.tenant_id,
        appointment_id=appointment.id,
        psychologist_id=appointment.psychologist_id,
    )
    delivered = 0
    for handler in list(_handlers):
        try:
            handler(event, payload)
            delivered += 1
        except Exception:
            logger.exception(
                "Appointment notification failed event=%s", event.value, extra=log_context
            )
    logger.debug(
        "Appointment notification dispatched event=%s delivered=%d",
        event.value,
        delivered,
        extra=log_context,
    )
    return delivered
