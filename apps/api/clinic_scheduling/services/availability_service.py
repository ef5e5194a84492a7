"""Availability service - decides whether a proposed booking time is free.

Checks, in order, stopping at the first failure:
- Holiday on the calendar date of the start time
- A published, available slot covering the whole interval
- Overlap with a non-cancelled appointment of the same psychologist

Intervals are half-open: [start, end). All reads go through the
DataAccessGateway, so every query is scoped to the active tenant. Nothing here
writes.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.exceptions import ValidationError
from clinic_scheduling.db.enums import CANCELLED_STATUSES, ConflictReason
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.models import Appointment, AvailableSlot, Holiday


# =============================================================================
# Types
# =============================================================================

class AvailabilityResult(NamedTuple):
    """Outcome of an availability check. reason is None when the time is free."""
    reason: ConflictReason | None = None

    @property
    def is_free(self) -> bool:
        return self.reason is None


FREE = AvailabilityResult()


class TimeSlot(NamedTuple):
    """Open time interval [start, end)."""
    start: datetime
    end: datetime


# =============================================================================
# Time helpers
# =============================================================================

def scheduling_timezone() -> ZoneInfo:
    """Zone that defines calendar days (holidays, open intervals, date filters)."""
    return ZoneInfo(settings.SCHEDULING_TIMEZONE)


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        raise ValidationError("Date is out of range")


def booking_date(start_time: datetime) -> date:
    """Calendar date of start_time in the scheduling timezone."""
    try:
        return to_utc(start_time).astimezone(scheduling_timezone()).date()
    except OverflowError:
        raise ValidationError("Date is out of range")


def interval_end(start_time: datetime, duration_minutes: int) -> datetime:
    try:
        return to_utc(start_time) + timedelta(minutes=duration_minutes)
    except OverflowError:
        raise ValidationError("Interval is out of range")


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC [start, end) of a calendar day in the scheduling timezone."""
    tz = scheduling_timezone()
    try:
        start = datetime.combine(day, time.min, tzinfo=tz)
        end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)
    except OverflowError:
        raise ValidationError("Date is out of range")


def _validate_duration(duration_minutes: int) -> None:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise ValidationError("Duration must be a whole number of minutes")
    if duration_minutes <= 0:
        raise ValidationError("Duration must be positive")


# =============================================================================
# Individual checks
# =============================================================================

def is_holiday(gateway: DataAccessGateway, day: date) -> bool:
    return gateway.exists(Holiday, Holiday.date == day)


def has_covering_slot(
    gateway: DataAccessGateway,
    psychologist_id: UUID,
    start: datetime,
    end: datetime,
) -> bool:
    """True if one available slot contains [start, end) entirely."""
    return gateway.exists(
        AvailableSlot,
        AvailableSlot.psychologist_id == psychologist_id,
        AvailableSlot.is_available.is_(True),
        AvailableSlot.start_time <= start,
        AvailableSlot.end_time >= end,
    )


def find_overlapping_appointments(
    gateway: DataAccessGateway,
    psychologist_id: UUID,
    start: datetime,
    end: datetime,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """
    Non-cancelled appointments overlapping [start, end).

    existing.date_time < end AND existing.end_time > start covers an existing
    appointment starting inside, ending inside, or containing the interval.
    """
    criteria = [
        Appointment.psychologist_id == psychologist_id,
        Appointment.status.notin_([s.value for s in CANCELLED_STATUSES]),
        Appointment.date_time < end,
        Appointment.end_time > start,
    ]
    if exclude_appointment_id is not None:
        criteria.append(Appointment.id != exclude_appointment_id)
    return gateway.find_many(Appointment, *criteria, order_by=(Appointment.date_time,))


# =============================================================================
# Availability check
# =============================================================================

def check_availability(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
    start_time: datetime,
    duration_minutes: int,
    exclude_appointment_id: UUID | None = None,
) -> AvailabilityResult:
    """
    Decide whether (psychologist, start_time, duration) can be booked.

    Returns FREE or a BLOCKED result carrying one reason code. Raises only for
    malformed input or a missing/mismatched tenant context.
    """
    tenant_context.require_matching_tenant(tenant_id, "check_availability")
    _validate_duration(duration_minutes)

    start = to_utc(start_time)
    end = interval_end(start, duration_minutes)

    if is_holiday(gateway, booking_date(start)):
        return AvailabilityResult(ConflictReason.HOLIDAY_CONFLICT)

    if not has_covering_slot(gateway, psychologist_id, start, end):
        return AvailabilityResult(ConflictReason.OUTSIDE_AVAILABILITY)

    if find_overlapping_appointments(gateway, psychologist_id, start, end, exclude_appointment_id):
        return AvailabilityResult(ConflictReason.TIME_CONFLICT)

    return FREE


def find_conflicts(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
    start_time: datetime,
    duration_minutes: int,
    exclude_appointment_id: UUID | None = None,
) -> list[Appointment]:
    """List the appointments a proposed interval would collide with."""
    tenant_context.require_matching_tenant(tenant_id, "find_conflicts")
    _validate_duration(duration_minutes)
    start = to_utc(start_time)
    return find_overlapping_appointments(
        gateway,
        psychologist_id,
        start,
        interval_end(start, duration_minutes),
        exclude_appointment_id=exclude_appointment_id,
    )


# =============================================================================
# Open intervals
# =============================================================================

def get_open_intervals(
    gateway: DataAccessGateway,
    tenant_id: str,
    psychologist_id: UUID,
    day: date,
) -> list[TimeSlot]:
    """
    Bookable time on a calendar day: available slots minus booked intervals.

    The day is taken in the scheduling timezone. Empty on holidays.
    """
    tenant_context.require_matching_tenant(tenant_id, "get_open_intervals")

    if is_holiday(gateway, day):
        return []

    day_start, day_end = day_bounds(day)

    slots = gateway.find_many(
        AvailableSlot,
        AvailableSlot.psychologist_id == psychologist_id,
        AvailableSlot.is_available.is_(True),
        AvailableSlot.start_time < day_end,
        AvailableSlot.end_time > day_start,
        order_by=(AvailableSlot.start_time,),
    )
    windows = _merge([
        TimeSlot(max(slot.start_time, day_start), min(slot.end_time, day_end))
        for slot in slots
    ])
    if not windows:
        return []

    booked = find_overlapping_appointments(gateway, psychologist_id, day_start, day_end)

    open_intervals: list[TimeSlot] = []
    for window in windows:
        cursor = window.start
        for appt in booked:
            if appt.end_time <= cursor or appt.date_time >= window.end:
                continue
            if appt.date_time > cursor:
                open_intervals.append(TimeSlot(cursor, appt.date_time))
            cursor = max(cursor, appt.end_time)
            if cursor >= window.end:
                break
        if cursor < window.end:
            open_intervals.append(TimeSlot(cursor, window.end))
    return open_intervals


def _merge(intervals: list[TimeSlot]) -> list[TimeSlot]:
    """Merge overlapping or touching intervals; input need not be sorted."""
    merged: list[TimeSlot] = []
    for interval in sorted(intervals):
        if merged and interval.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = TimeSlot(last.start, max(last.end, interval.end))
        else:
            merged.append(interval)
    return merged
