"""Payment creation hook invoked after a successful booking.

The gateway integration is registered at startup. It runs outside the booking
transaction: a failure is logged and the appointment stays SCHEDULED.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from clinic_scheduling.core.structured_logging import build_log_context
from clinic_scheduling.db.models import Appointment

logger = logging.getLogger(__name__)

PaymentCreator = Callable[[Appointment], Any]

_payment_creator: PaymentCreator | None = None


def set_payment_creator(creator: PaymentCreator | None) -> None:
    global _payment_creator
    _payment_creator = creator


def request_payment(appointment: Appointment) -> Any | None:
    """Ask the payment collaborator to charge for appointment; None on failure or when unset."""
    if _payment_creator is None:
        return None
    try:
        return _payment_creator(appointment)
    except Exception:
        logger.exception(
            "Payment creation failed",
            extra=build_log_context(
                tenant_id=appointment.tenant_id,
                appointment_id=appointment.id,
            ),
        )
        return None
