"""Concurrent booking attempts against the same psychologist."""

import threading
from datetime import datetime, timezone

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.exceptions import ConflictError
from clinic_scheduling.db.enums import AppointmentStatus, ConflictReason
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.models import Appointment
from clinic_scheduling.services import scheduling_service


def _race(database, practices, starts, duration=60):
    """Book each (practice, start) from its own thread and session at the same moment."""
    barrier = threading.Barrier(len(starts))
    outcomes: list = [None] * len(starts)

    def _attempt(index: int) -> None:
        practice = practices[index]

        def _book():
            with database.session() as session:
                barrier.wait(timeout=5)
                return scheduling_service.create_appointment(
                    DataAccessGateway(session),
                    practice.tenant_id,
                    patient_id=practice.patient_id,
                    psychologist_id=practice.psychologist_id,
                    start_time=starts[index],
                    duration=duration,
                )

        try:
            outcomes[index] = tenant_context.run(practice.tenant_id, _book)
        except ConflictError as exc:
            outcomes[index] = exc

    threads = [threading.Thread(target=_attempt, args=(i,)) for i in range(len(starts))]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def _count_scheduled(database, tenant_id: str) -> int:
    def _count():
        with database.session() as session:
            return DataAccessGateway(session).count(
                Appointment, Appointment.status == AppointmentStatus.SCHEDULED.value
            )

    return tenant_context.run(tenant_id, _count)


def test_overlapping_bookings_exactly_one_wins(database, morning_practice):
    outcomes = _race(
        database,
        [morning_practice, morning_practice],
        [
            datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
            datetime(2024, 3, 4, 9, 30, tzinfo=timezone.utc),
        ],
    )

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    booked = [o for o in outcomes if isinstance(o, Appointment)]
    assert len(booked) == 1
    assert len(conflicts) == 1
    assert conflicts[0].reason == ConflictReason.TIME_CONFLICT
    assert _count_scheduled(database, "tenant-a") == 1


def test_same_time_in_different_tenants_both_succeed(database, make_practice):
    slot = [(
        datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc),
    )]
    practice_a = make_practice("tenant-a", slots=slot)
    practice_b = make_practice("tenant-b", slots=slot)
    start = datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc)

    outcomes = _race(database, [practice_a, practice_b], [start, start])

    assert all(isinstance(o, Appointment) for o in outcomes)
    assert {o.tenant_id for o in outcomes} == {"tenant-a", "tenant-b"}
    assert _count_scheduled(database, "tenant-a") == 1
    assert _count_scheduled(database, "tenant-b") == 1
