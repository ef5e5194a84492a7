"""Appointments router - API endpoints for booking and managing appointments.

Tenant-scoped endpoints (tenant from TenantContextMiddleware):
- Booking, rescheduling, cancellation and completion
- Appointment reads and paginated listing
- Conflict lookup and open intervals for a psychologist's day

Business errors are translated to HTTP responses by the handlers in main.py.
"""

from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.deps import get_gateway, get_tenant_id
from clinic_scheduling.db.enums import AppointmentStatus
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.schemas.appointment import (
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentRead,
    AppointmentReschedule,
    AppointmentUpdate,
    ConflictResponse,
    OpenInterval,
)
from clinic_scheduling.services import scheduling_service

router = APIRouter()

_CONFLICT_RESPONSES = {409: {"model": ConflictResponse}}


# =============================================================================
# Lookups
# =============================================================================

@router.get("/conflicts", response_model=list[AppointmentRead])
def find_conflicts(
    psychologist_id: UUID,
    date_time: datetime,
    duration: int = Query(..., gt=0, le=settings.MAX_DURATION_MINUTES),
    exclude_appointment_id: UUID | None = None,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Appointments the proposed interval would overlap."""
    conflicts = scheduling_service.find_conflicts(
        gateway,
        tenant_id,
        psychologist_id,
        date_time,
        duration,
        exclude_appointment_id=exclude_appointment_id,
    )
    return [AppointmentRead.model_validate(a) for a in conflicts]


@router.get("/availability", response_model=list[OpenInterval])
def get_open_intervals(
    psychologist_id: UUID,
    day: date,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Open intervals for a psychologist on a calendar day."""
    intervals = scheduling_service.get_open_intervals(gateway, tenant_id, psychologist_id, day)
    return [OpenInterval(start=i.start, end=i.end) for i in intervals]


# =============================================================================
# Appointments
# =============================================================================

@router.get("", response_model=AppointmentListResponse)
def list_appointments(
    psychologist_id: UUID | None = None,
    patient_id: UUID | None = None,
    status: AppointmentStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """List appointments with optional filters."""
    items, total = scheduling_service.list_appointments(
        gateway,
        tenant_id,
        psychologist_id=psychologist_id,
        patient_id=patient_id,
        status=status,
        date_from=date_from,
        date_to=date_to,
        limit=per_page,
        offset=(page - 1) * per_page,
    )
    return AppointmentListResponse(
        items=[AppointmentRead.model_validate(a) for a in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("", response_model=AppointmentRead, status_code=201, responses=_CONFLICT_RESPONSES)
def create_appointment(
    data: AppointmentCreate,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Book an appointment."""
    appointment = scheduling_service.create_appointment(
        gateway,
        tenant_id,
        patient_id=data.patient_id,
        psychologist_id=data.psychologist_id,
        start_time=data.date_time,
        duration=data.duration,
        value=data.value,
        notes=data.notes,
    )
    return AppointmentRead.model_validate(appointment)


@router.get("/{appointment_id}", response_model=AppointmentRead)
def get_appointment(
    appointment_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Get an appointment."""
    appointment = scheduling_service.get_appointment(gateway, tenant_id, appointment_id)
    return AppointmentRead.model_validate(appointment)


@router.patch("/{appointment_id}", response_model=AppointmentRead, responses=_CONFLICT_RESPONSES)
def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Update notes and/or value. Sending notes as null clears them."""
    changes = {field: getattr(data, field) for field in data.model_fields_set}
    appointment = scheduling_service.update_appointment_details(
        gateway, tenant_id, appointment_id, **changes
    )
    return AppointmentRead.model_validate(appointment)


@router.patch(
    "/{appointment_id}/reschedule",
    response_model=AppointmentRead,
    responses=_CONFLICT_RESPONSES,
)
def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Move and/or resize an appointment."""
    appointment = scheduling_service.reschedule_appointment(
        gateway,
        tenant_id,
        appointment_id,
        new_start_time=data.date_time,
        new_duration=data.duration,
    )
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentRead,
    responses=_CONFLICT_RESPONSES,
)
def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Cancel an appointment on behalf of the patient or the professional."""
    appointment = scheduling_service.cancel_appointment(
        gateway, tenant_id, appointment_id, data.actor
    )
    return AppointmentRead.model_validate(appointment)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentRead,
    responses=_CONFLICT_RESPONSES,
)
def complete_appointment(
    appointment_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Mark an appointment as completed."""
    appointment = scheduling_service.complete_appointment(gateway, tenant_id, appointment_id)
    return AppointmentRead.model_validate(appointment)


@router.delete("/{appointment_id}", status_code=204)
def delete_appointment(
    appointment_id: UUID,
    tenant_id: str = Depends(get_tenant_id),
    gateway: DataAccessGateway = Depends(get_gateway),
):
    """Delete an appointment."""
    scheduling_service.delete_appointment(gateway, tenant_id, appointment_id)
    return Response(status_code=204)
