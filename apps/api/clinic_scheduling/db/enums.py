"""Appointment and scheduling enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → completed
              ↘ cancelled_by_patient
              ↘ cancelled_by_professional
    """

    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED_BY_PATIENT = "CANCELLED_BY_PATIENT"
    CANCELLED_BY_PROFESSIONAL = "CANCELLED_BY_PROFESSIONAL"


class CancellationActor(str, Enum):
    """Who requested a cancellation."""

    PATIENT = "patient"
    PROFESSIONAL = "professional"


class LifecycleAction(str, Enum):
    """Actions that move an appointment out of SCHEDULED."""

    CANCEL = "cancel"
    COMPLETE = "complete"


class ConflictReason(str, Enum):
    """Why a booking or transition was rejected."""

    HOLIDAY_CONFLICT = "HOLIDAY_CONFLICT"
    OUTSIDE_AVAILABILITY = "OUTSIDE_AVAILABILITY"
    TIME_CONFLICT = "TIME_CONFLICT"
    INVALID_TRANSITION = "INVALID_TRANSITION"


class AppointmentEvent(str, Enum):
    """Events published to notification collaborators."""

    CREATED = "created"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


# Statuses that free the psychologist's time again
CANCELLED_STATUSES = frozenset({
    AppointmentStatus.CANCELLED_BY_PATIENT,
    AppointmentStatus.CANCELLED_BY_PROFESSIONAL,
})

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    *CANCELLED_STATUSES,
})

DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
