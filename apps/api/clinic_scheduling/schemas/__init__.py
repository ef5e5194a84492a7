"""Pydantic schemas for API request/response models."""

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

__all__ = [
    "AppointmentCancel",
    "AppointmentCreate",
    "AppointmentListResponse",
    "AppointmentRead",
    "AppointmentReschedule",
    "AppointmentUpdate",
    "ConflictResponse",
    "OpenInterval",
]
