"""Scheduling service - business logic for booking and managing appointments.

Handles:
- Booking creation (existence → availability → persist → notify)
- Rescheduling with a full availability re-check that ignores the appointment itself
- Cancellation and completion through the lifecycle state machine
- Tenant-scoped reads and listings

Every public operation takes the tenant explicitly and also requires it to
match the ambient tenant. The availability check and the write that follows it
run under a per-(tenant, psychologist) lock, inside one transaction that also
holds a PostgreSQL advisory lock; the database exclusion constraint turns any
race that slips through into a TIME_CONFLICT.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Iterator
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.booking_locks import booking_locks
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.exceptions import ConflictError, NotFoundError, ValidationError
from clinic_scheduling.core.structured_logging import build_log_context
from clinic_scheduling.db.enums import (
    AppointmentEvent,
    AppointmentStatus,
    CancellationActor,
    ConflictReason,
    LifecycleAction,
)
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.models import Appointment
from clinic_scheduling.services import (
    appointment_lifecycle,
    availability_service,
    directory_service,
    notification_service,
    payment_service,
)
from clinic_scheduling.services.availability_service import TimeSlot, day_bounds, to_utc

logger = logging.getLogger(__name__)

OVERLAP_CONSTRAINT_NAME = "ex_appointments_no_overlap"

_UNSET = object()


# =============================================================================
# Validation
# =============================================================================

def _validate_duration(duration: int) -> None:
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise ValidationError("Duration must be a whole number of minutes")
    if duration <= 0:
        raise ValidationError("Duration must be positive")
    if duration < settings.MIN_DURATION_MINUTES or duration > settings.MAX_DURATION_MINUTES:
        raise ValidationError(
            f"Duration must be between {settings.MIN_DURATION_MINUTES} "
            f"and {settings.MAX_DURATION_MINUTES} minutes"
        )


def _normalize_value(value: Decimal | int | float | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Value must be a number")
    if not amount.is_finite() or amount < 0:
        raise ValidationError("Value must be zero or positive")
    return amount.quantize(Decimal("0.01"))


def _validate_start(start_time: datetime) -> datetime:
    if not isinstance(start_time, datetime):
        raise ValidationError("Start time must be a datetime")
    return to_utc(start_time)


# =============================================================================
# Transactions
# =============================================================================

def _is_overlap_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    diag = getattr(orig, "diag", None)
    constraint_name = getattr(diag, "constraint_name", None) or ""
    if constraint_name == OVERLAP_CONSTRAINT_NAME:
        return True
    return OVERLAP_CONSTRAINT_NAME in str(orig)


@contextmanager
def _psychologist_transaction(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
) -> Iterator[None]:
    """
    Serialize check-then-write for one psychologist and commit on success.

    Any error rolls the whole transaction back, so nothing is half-written.
    """
    with booking_locks.hold(tenant_id, psychologist_id):
        try:
            gateway.acquire_advisory_lock(f"psychologist:{psychologist_id}")
            yield
            gateway.commit()
        except IntegrityError as exc:
            gateway.rollback()
            if _is_overlap_violation(exc):
                logger.info(
                    "Overlap rejected by database constraint",
                    extra=build_log_context(tenant_id=tenant_id, psychologist_id=psychologist_id),
                )
                raise ConflictError(ConflictReason.TIME_CONFLICT) from exc
            raise
        except Exception:
            gateway.rollback()
            raise


def _raise_if_blocked(result: availability_service.AvailabilityResult, log_context: dict) -> None:
    if result.is_free:
        return
    logger.info("Booking blocked reason=%s", result.reason.value, extra=log_context)
    raise ConflictError(result.reason)


def _dispatch(appointment: Appointment, event: AppointmentEvent) -> None:
    """Post-commit side effects. Best-effort: never undo or fail the booking."""
    notification_service.notify_appointment_event(appointment, event)
    if event == AppointmentEvent.CREATED:
        payment_service.request_payment(appointment)


# =============================================================================
# Reads
# =============================================================================

def get_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
) -> Appointment:
    """Get appointment by ID; NotFoundError if missing or owned by another tenant."""
    tenant_context.require_matching_tenant(tenant_id, "get_appointment")
    appointment = gateway.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment", appointment_id)
    return appointment


def list_appointments(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID | None = None,
    patient_id: UUID | None = None,
    status: AppointmentStatus | str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Appointment], int]:
    """List appointments with optional filters, newest first."""
    tenant_context.require_matching_tenant(tenant_id, "list_appointments")
    if limit <= 0 or offset < 0:
        raise ValidationError("Invalid pagination parameters")

    criteria = []
    if psychologist_id:
        criteria.append(Appointment.psychologist_id == psychologist_id)
    if patient_id:
        criteria.append(Appointment.patient_id == patient_id)
    if status:
        try:
            status = AppointmentStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown appointment status {status!r}")
        criteria.append(Appointment.status == status.value)
    # Calendar days in the scheduling timezone, date_to inclusive
    if date_from:
        criteria.append(Appointment.date_time >= day_bounds(date_from)[0])
    if date_to:
        criteria.append(Appointment.date_time < day_bounds(date_to)[1])

    total = gateway.count(Appointment, *criteria)
    appointments = gateway.find_many(
        Appointment,
        *criteria,
        order_by=(Appointment.date_time.desc(),),
        limit=limit,
        offset=offset,
    )
    return appointments, total


def find_conflicts(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
    start_time: datetime,
    duration: int,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """Appointments a proposed interval would overlap. Read-only."""
    return availability_service.find_conflicts(
        gateway,
        tenant_id,
        psychologist_id,
        _validate_start(start_time),
        duration,
        exclude_appointment_id=exclude_appointment_id,
    )


def get_open_intervals(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
    day: date,
) -> list[TimeSlot]:
    """Bookable time for a psychologist on a calendar day. Read-only."""
    directory_service.get_psychologist(gateway, psychologist_id)
    return availability_service.get_open_intervals(gateway, tenant_id, psychologist_id, day)


# =============================================================================
# Booking
# =============================================================================

def create_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    patient_id: UUID,
    psychologist_id: UUID,
    start_time: datetime,
    duration: int,
    value: Decimal | int | float | str = Decimal("0"),
    notes: str | None = None,
) -> Appointment:
    """
    Book a new SCHEDULED appointment.

    Raises NotFoundError if the patient or psychologist is not in the tenant,
    ConflictError with the availability reason if the time is not free.
    """
    tenant_context.require_matching_tenant(tenant_id, "create_appointment")
    start = _validate_start(start_time)
    _validate_duration(duration)
    amount = _normalize_value(value)
    log_context = build_log_context(tenant_id=tenant_id, psychologist_id=psychologist_id)

    directory_service.ensure_booking_parties(gateway, patient_id, psychologist_id)

    with _psychologist_transaction(gateway, tenant_id, psychologist_id):
        result = availability_service.check_availability(
            gateway, tenant_id, psychologist_id, start, duration
        )
        _raise_if_blocked(result, log_context)

        appointment = gateway.create(
            Appointment,
            patient_id=patient_id,
            psychologist_id=psychologist_id,
            date_time=start,
            duration=duration,
            status=AppointmentStatus.SCHEDULED.value,
            value=amount,
            notes=notes,
        )

    logger.info(
        "Appointment created",
        extra=build_log_context(
            tenant_id=tenant_id,
            appointment_id=appointment.id,
            psychologist_id=psychologist_id,
        ),
    )
    _dispatch(appointment, AppointmentEvent.CREATED)
    return appointment


def reschedule_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
    new_start_time: datetime | None = None,
    new_duration: int | None = None,
) -> Appointment:
    """
    Move and/or resize a SCHEDULED appointment.

    Either field may be given alone; end_time is recomputed from whichever
    start and duration result. The availability check excludes the
    appointment itself.
    """
    tenant_context.require_matching_tenant(tenant_id, "reschedule_appointment")
    if new_start_time is None and new_duration is None:
        raise ValidationError("Provide a new start time and/or duration")
    new_start = _validate_start(new_start_time) if new_start_time is not None else None
    if new_duration is not None:
        _validate_duration(new_duration)

    appointment = get_appointment(gateway, tenant_id, appointment_id)
    appointment_lifecycle.ensure_reschedulable(appointment.status)
    log_context = build_log_context(
        tenant_id=tenant_id,
        appointment_id=appointment.id,
        psychologist_id=appointment.psychologist_id,
    )

    with _psychologist_transaction(gateway, tenant_id, appointment.psychologist_id):
        gateway.refresh(appointment)
        appointment_lifecycle.ensure_reschedulable(appointment.status)

        start = new_start if new_start is not None else appointment.date_time
        duration = new_duration if new_duration is not None else appointment.duration

        result = availability_service.check_availability(
            gateway,
            tenant_id,
            appointment.psychologist_id,
            start,
            duration,
            exclude_appointment_id=appointment.id,
        )
        _raise_if_blocked(result, log_context)

        gateway.update(Appointment, appointment.id, date_time=start, duration=duration)

    logger.info("Appointment rescheduled", extra=log_context)
    _dispatch(appointment, AppointmentEvent.RESCHEDULED)
    return appointment


def update_appointment_details(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
    notes: str | None | object = _UNSET,
    value: Decimal | int | float | str | object = _UNSET,
) -> Appointment:
    """
    Update notes and/or value of a SCHEDULED appointment (no time change).

    Omitted fields stay as they are; notes=None clears the notes.
    """
    tenant_context.require_matching_tenant(tenant_id, "update_appointment_details")
    updates: dict = {}
    if notes is not _UNSET:
        updates["notes"] = notes
    if value is not _UNSET:
        if value is None:
            raise ValidationError("Value cannot be null")
        updates["value"] = _normalize_value(value)

    appointment = get_appointment(gateway, tenant_id, appointment_id)
    appointment_lifecycle.ensure_scheduled(appointment.status)
    if not updates:
        return appointment

    try:
        gateway.update(Appointment, appointment.id, **updates)
        gateway.commit()
    except Exception:
        gateway.rollback()
        raise
    return appointment


def _apply_transition(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
    action: LifecycleAction,
    actor: CancellationActor | str | None = None,
) -> Appointment:
    appointment = get_appointment(gateway, tenant_id, appointment_id)
    # Fail fast before taking the lock; re-checked on fresh state below.
    appointment_lifecycle.transition(appointment.status, action, actor)

    with _psychologist_transaction(gateway, tenant_id, appointment.psychologist_id):
        gateway.refresh(appointment)
        new_status = appointment_lifecycle.transition(appointment.status, action, actor)
        gateway.update(Appointment, appointment.id, status=new_status.value)

    logger.info(
        "Appointment status changed status=%s",
        appointment.status,
        extra=build_log_context(
            tenant_id=tenant_id,
            appointment_id=appointment.id,
            psychologist_id=appointment.psychologist_id,
        ),
    )
    return appointment


def cancel_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
    actor: CancellationActor | str,
) -> Appointment:
    """
    Cancel a SCHEDULED appointment on behalf of the patient or the professional.

    Not idempotent: cancelling an already-cancelled appointment raises
    ConflictError(INVALID_TRANSITION) and leaves its status unchanged.
    """
    tenant_context.require_matching_tenant(tenant_id, "cancel_appointment")
    appointment = _apply_transition(
        gateway, tenant_id, appointment_id, LifecycleAction.CANCEL, actor
    )
    _dispatch(appointment, AppointmentEvent.CANCELLED)
    return appointment


def complete_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
) -> Appointment:
    """Mark a SCHEDULED appointment as COMPLETED."""
    tenant_context.require_matching_tenant(tenant_id, "complete_appointment")
    appointment = _apply_transition(
        gateway, tenant_id, appointment_id, LifecycleAction.COMPLETE
    )
    _dispatch(appointment, AppointmentEvent.COMPLETED)
    return appointment


def delete_appointment(
    gateway: DataAccessGateway,
    tenant_id: str,
    appointment_id: UUID,
) -> None:
    """Hard-delete an appointment of the active tenant."""
    tenant_context.require_matching_tenant(tenant_id, "delete_appointment")
    try:
        deleted = gateway.delete(Appointment, appointment_id)
        if not deleted:
            raise NotFoundError("Appointment", appointment_id)
        gateway.commit()
    except Exception:
        gateway.rollback()
        raise
    logger.info(
        "Appointment deleted",
        extra=build_log_context(tenant_id=tenant_id, appointment_id=appointment_id),
    )
