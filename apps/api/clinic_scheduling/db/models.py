"""SQLAlchemy ORM models for tenants' practices and their scheduling data.

Every model except Account carries a tenant_id column and must only be read or
written through the DataAccessGateway, which scopes it to the ambient tenant.
"""

import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import (
    Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, Numeric,
    String, Text, UniqueConstraint, Uuid, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from clinic_scheduling.core.exceptions import ValidationError
from clinic_scheduling.db.base import Base
from clinic_scheduling.db.enums import DEFAULT_APPOINTMENT_STATUS


# =============================================================================
# Identity (global, not tenant-scoped)
# =============================================================================

class Account(Base):
    """
    Login identity addressed by its globally unique email.

    Accounts exist before a tenant is known (authentication), so they are the
    one model exempt from tenant scoping.
    """
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# =============================================================================
# Practice
# =============================================================================

class Clinic(Base):
    """A clinic a psychologist may be affiliated with."""
    __tablename__ = "clinics"
    __table_args__ = (
        Index("idx_clinics_tenant", "tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


class Psychologist(Base):
    """A bookable professional. Zero-or-one clinic affiliation."""
    __tablename__ = "psychologists"
    __table_args__ = (
        Index("idx_psychologists_tenant", "tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)

    clinic: Mapped["Clinic | None"] = relationship()


class Patient(Base):
    """A patient, optionally linked to a psychologist and/or clinic."""
    __tablename__ = "patients"
    __table_args__ = (
        Index("idx_patients_tenant", "tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("accounts.id", ondelete="SET NULL"), nullable=True
    )
    psychologist_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("psychologists.id", ondelete="SET NULL"), nullable=True
    )
    clinic_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("clinics.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)


# =============================================================================
# Scheduling inputs (published elsewhere, read-only here)
# =============================================================================

class AvailableSlot(Base):
    """A published window during which the psychologist may be booked."""
    __tablename__ = "available_slots"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_available_slots_range"),
        Index("idx_available_slots_lookup", "tenant_id", "psychologist_id", "start_time"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    psychologist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False
    )
    start_time: Mapped[datetime] = mapped_column(nullable=False)
    end_time: Mapped[datetime] = mapped_column(nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Holiday(Base):
    """Tenant-wide non-bookable day (date only)."""
    __tablename__ = "holidays"
    __table_args__ = (
        UniqueConstraint("tenant_id", "date", name="uq_holidays_tenant_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")


# =============================================================================
# Appointments
# =============================================================================

class Appointment(Base):
    """
    A booked session between a patient and a psychologist.

    end_time is derived from date_time + duration and recomputed whenever
    either changes. On PostgreSQL an exclusion constraint (see migrations)
    keeps SCHEDULED/COMPLETED rows of one psychologist from overlapping.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("duration > 0", name="ck_appointments_duration"),
        CheckConstraint("end_time > date_time", name="ck_appointments_range"),
        Index("idx_appointments_psychologist_time", "tenant_id", "psychologist_id", "date_time"),
        Index("idx_appointments_patient", "tenant_id", "patient_id"),
        Index("idx_appointments_status", "tenant_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    patient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False
    )
    psychologist_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("psychologists.id", ondelete="CASCADE"), nullable=False
    )

    # Timing (end_time is derived, never set directly)
    date_time: Mapped[datetime] = mapped_column(nullable=False)
    duration: Mapped[int] = mapped_column(Integer, nullable=False)  # minutes
    end_time: Mapped[datetime] = mapped_column(nullable=False)

    status: Mapped[str] = mapped_column(
        String(32), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False
    )

    patient: Mapped["Patient"] = relationship()
    psychologist: Mapped["Psychologist"] = relationship()

    @validates("date_time", "duration")
    def _derive_end_time(self, key, value):
        start = value if key == "date_time" else self.date_time
        duration = value if key == "duration" else self.duration
        if start is not None and duration is not None:
            self._deriving_end_time = True
            try:
                self.end_time = start + timedelta(minutes=duration)
            finally:
                self._deriving_end_time = False
        return value

    @validates("end_time")
    def _check_end_time(self, key, value):
        if getattr(self, "_deriving_end_time", False):
            return value
        if self.date_time is not None and self.duration is not None:
            expected = self.date_time + timedelta(minutes=self.duration)
            if value != expected:
                raise ValidationError("end_time is derived from date_time and duration")
        return value
