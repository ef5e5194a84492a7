"""Appointment status state machine.

SCHEDULED is the only non-terminal status:

    SCHEDULED ─ cancel(patient) ──────→ CANCELLED_BY_PATIENT
              ─ cancel(professional) ─→ CANCELLED_BY_PROFESSIONAL
              ─ complete ─────────────→ COMPLETED

Nothing leaves a terminal status, so a second cancel of the same appointment
fails with INVALID_TRANSITION instead of being a silent no-op.
"""

from clinic_scheduling.core.exceptions import ConflictError, ValidationError
from clinic_scheduling.db.enums import (
    TERMINAL_STATUSES,
    AppointmentStatus,
    CancellationActor,
    ConflictReason,
    LifecycleAction,
)

_CANCELLED_STATUS_BY_ACTOR = {
    CancellationActor.PATIENT: AppointmentStatus.CANCELLED_BY_PATIENT,
    CancellationActor.PROFESSIONAL: AppointmentStatus.CANCELLED_BY_PROFESSIONAL,
}


def _coerce_status(status: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown appointment status {status!r}")


def _coerce_actor(actor: CancellationActor | str | None) -> CancellationActor:
    if actor is None:
        raise ValidationError("Cancellation requires an actor")
    try:
        return CancellationActor(actor)
    except ValueError:
        raise ValidationError(f"Unknown cancellation actor {actor!r}")


def is_terminal(status: AppointmentStatus | str) -> bool:
    return _coerce_status(status) in TERMINAL_STATUSES


def cancelled_status_for(actor: CancellationActor | str) -> AppointmentStatus:
    """Map who cancelled to the matching cancelled status."""
    return _CANCELLED_STATUS_BY_ACTOR[_coerce_actor(actor)]


def transition(
    current: AppointmentStatus | str,
    action: LifecycleAction | str,
    actor: CancellationActor | str | None = None,
) -> AppointmentStatus:
    """Return the status reached by applying action to current."""
    current = _coerce_status(current)
    try:
        action = LifecycleAction(action)
    except ValueError:
        raise ValidationError(f"Unknown lifecycle action {action!r}")

    if current != AppointmentStatus.SCHEDULED:
        raise ConflictError(
            ConflictReason.INVALID_TRANSITION,
            f"Cannot {action.value} appointment with status {current.value}",
        )

    if action == LifecycleAction.CANCEL:
        return cancelled_status_for(actor)
    return AppointmentStatus.COMPLETED


def ensure_scheduled(current: AppointmentStatus | str, operation: str = "update") -> None:
    """Edits (reschedule, notes, value) are only allowed while SCHEDULED."""
    current = _coerce_status(current)
    if current != AppointmentStatus.SCHEDULED:
        raise ConflictError(
            ConflictReason.INVALID_TRANSITION,
            f"Cannot {operation} appointment with status {current.value}",
        )


def ensure_reschedulable(current: AppointmentStatus | str) -> None:
    ensure_scheduled(current, "reschedule")
