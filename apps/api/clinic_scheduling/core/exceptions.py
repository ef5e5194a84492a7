"""Error taxonomy shared by the gateway, scheduling services and HTTP layer.

Two families:
- ProgrammerError: wiring mistakes (no ambient tenant, unscoped model). Fatal,
  never retried, surfaced as a 5xx.
- SchedulingError: business outcomes the caller can act on (not found,
  conflict, invalid input).
"""

from uuid import UUID

from clinic_scheduling.db.enums import ConflictReason


class ProgrammerError(RuntimeError):
    """Raised when the code is wired incorrectly."""

    pass


class TenantContextMissingError(ProgrammerError):
    """An operation required an ambient tenant but none was established."""

    def __init__(self, operation: str | None = None):
        message = "No tenant in context"
        if operation:
            message = f"No tenant in context for {operation}"
        super().__init__(message)
        self.operation = operation


class TenantScopeViolationError(ProgrammerError):
    """A call tried to cross or bypass the tenant boundary."""

    pass


class SchedulingError(Exception):
    """Base exception for scheduling business errors."""

    pass


class NotFoundError(SchedulingError):
    """Entity is missing or belongs to another tenant (indistinguishable)."""

    def __init__(self, entity: str, entity_id: UUID | str | None = None):
        message = f"{entity} not found"
        if entity_id is not None:
            message = f"{entity} {entity_id} not found"
        super().__init__(message)
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(SchedulingError):
    """Booking or transition rejected; carries a reason code."""

    _MESSAGES = {
        ConflictReason.HOLIDAY_CONFLICT: "Selected date is a holiday",
        ConflictReason.OUTSIDE_AVAILABILITY: "Psychologist is not available at the selected time",
        ConflictReason.TIME_CONFLICT: "Selected time overlaps an existing appointment",
        ConflictReason.INVALID_TRANSITION: "Appointment is no longer scheduled",
    }

    def __init__(self, reason: ConflictReason, message: str | None = None):
        super().__init__(message or self._MESSAGES[reason])
        self.reason = reason


class ValidationError(SchedulingError):
    """Malformed input (e.g. non-positive duration)."""

    pass
