"""Appointment schemas - Pydantic models for appointments API."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from clinic_scheduling.core.config import settings
from clinic_scheduling.db.enums import AppointmentStatus, CancellationActor, ConflictReason


_DURATION = {"ge": settings.MIN_DURATION_MINUTES, "le": settings.MAX_DURATION_MINUTES}


# =============================================================================
# Requests
# =============================================================================

class AppointmentCreate(BaseModel):
    """Schema for booking an appointment."""
    patient_id: UUID
    psychologist_id: UUID
    date_time: datetime
    duration: int = Field(..., description="Minutes", **_DURATION)
    value: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    notes: str | None = Field(None, max_length=5000)


class AppointmentReschedule(BaseModel):
    """Schema for moving and/or resizing an appointment."""
    date_time: datetime | None = None
    duration: int | None = Field(None, description="Minutes", **_DURATION)

    @model_validator(mode="after")
    def _require_change(self):
        if self.date_time is None and self.duration is None:
            raise ValueError("Provide date_time and/or duration")
        return self


class AppointmentUpdate(BaseModel):
    """Schema for editing non-scheduling fields."""
    notes: str | None = Field(None, max_length=5000)
    value: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""
    actor: CancellationActor


# =============================================================================
# Responses
# =============================================================================

class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    psychologist_id: UUID
    date_time: datetime
    duration: int
    end_time: datetime
    status: AppointmentStatus
    value: Decimal
    notes: str | None


class AppointmentListResponse(BaseModel):
    """Paginated appointment list."""
    items: list[AppointmentRead]
    total: int
    page: int
    per_page: int


class OpenInterval(BaseModel):
    """A bookable interval [start, end)."""
    start: datetime
    end: datetime


class ConflictResponse(BaseModel):
    """Body returned with 409 responses."""
    detail: str
    reason: ConflictReason
