"""HTTP tests for the appointments router."""

import uuid
from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from clinic_scheduling.core.config import settings


def _slot():
    return [(
        datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
        datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc),
    )]


def _booking(practice, date_time="2024-03-04T09:00:00Z", duration=60, **extra):
    return {
        "patient_id": str(practice.patient_id),
        "psychologist_id": str(practice.psychologist_id),
        "date_time": date_time,
        "duration": duration,
        **extra,
    }


@pytest.mark.asyncio
async def test_missing_tenant_header_is_rejected(client: AsyncClient):
    response = await client.get(
        "/appointments", headers={settings.TENANT_HEADER: ""}
    )

    assert response.status_code == 400
    assert response.json() == {"detail": "Tenant ID not provided"}


@pytest.mark.asyncio
async def test_health_does_not_need_tenant(client: AsyncClient):
    response = await client.get("/health", headers={settings.TENANT_HEADER: ""})

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_and_get_appointment(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())

    response = await client.post(
        "/appointments", json=_booking(practice, value="120.00", notes="Intake")
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "SCHEDULED"
    assert body["duration"] == 60
    assert body["end_time"].startswith("2024-03-04T10:00:00")

    response = await client.get(f"/appointments/{body['id']}")
    assert response.status_code == 200
    assert response.json()["notes"] == "Intake"


@pytest.mark.asyncio
async def test_overlap_returns_conflict_reason(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    assert (await client.post("/appointments", json=_booking(practice))).status_code == 201

    response = await client.post(
        "/appointments", json=_booking(practice, date_time="2024-03-04T09:30:00Z")
    )

    assert response.status_code == 409
    assert response.json()["reason"] == "TIME_CONFLICT"


@pytest.mark.asyncio
async def test_outside_availability_returns_conflict_reason(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())

    response = await client.post(
        "/appointments", json=_booking(practice, date_time="2024-03-04T14:00:00Z")
    )

    assert response.status_code == 409
    assert response.json()["reason"] == "OUTSIDE_AVAILABILITY"


@pytest.mark.asyncio
async def test_invalid_duration_is_422(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())

    response = await client.post("/appointments", json=_booking(practice, duration=0))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_other_tenant_appointment_is_404(client: AsyncClient, make_practice):
    practice_b = make_practice("tenant-b", slots=_slot())
    created = await client.post(
        "/appointments",
        json=_booking(practice_b),
        headers={settings.TENANT_HEADER: "tenant-b"},
    )
    assert created.status_code == 201
    appointment_id = created.json()["id"]

    assert (await client.get(f"/appointments/{appointment_id}")).status_code == 404
    cancel = await client.post(
        f"/appointments/{appointment_id}/cancel", json={"actor": "patient"}
    )
    assert cancel.status_code == 404

    listing = await client.get("/appointments")
    assert listing.json()["total"] == 0


@pytest.mark.asyncio
async def test_booking_other_tenant_patient_is_404(client: AsyncClient, make_practice):
    practice_a = make_practice("tenant-a", slots=_slot())
    practice_b = make_practice("tenant-b", slots=_slot())

    payload = _booking(practice_a)
    payload["patient_id"] = str(practice_b.patient_id)
    response = await client.post("/appointments", json=payload)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_cancel_twice_is_conflict(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    appointment_id = (await client.post("/appointments", json=_booking(practice))).json()["id"]

    first = await client.post(
        f"/appointments/{appointment_id}/cancel", json={"actor": "professional"}
    )
    assert first.status_code == 200
    assert first.json()["status"] == "CANCELLED_BY_PROFESSIONAL"

    second = await client.post(
        f"/appointments/{appointment_id}/cancel", json={"actor": "patient"}
    )
    assert second.status_code == 409
    assert second.json()["reason"] == "INVALID_TRANSITION"


@pytest.mark.asyncio
async def test_reschedule_and_complete(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    appointment_id = (await client.post("/appointments", json=_booking(practice))).json()["id"]

    moved = await client.patch(
        f"/appointments/{appointment_id}/reschedule",
        json={"date_time": "2024-03-04T10:00:00Z", "duration": 90},
    )
    assert moved.status_code == 200
    assert moved.json()["end_time"].startswith("2024-03-04T11:30:00")

    completed = await client.post(f"/appointments/{appointment_id}/complete")
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"


@pytest.mark.asyncio
async def test_reschedule_requires_a_field(client: AsyncClient):
    response = await client.patch(f"/appointments/{uuid.uuid4()}/reschedule", json={})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_availability_and_conflicts(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    booked = await client.post(
        "/appointments", json=_booking(practice, date_time="2024-03-04T10:00:00Z", duration=30)
    )
    assert booked.status_code == 201

    intervals = await client.get(
        "/appointments/availability",
        params={"psychologist_id": str(practice.psychologist_id), "day": "2024-03-04"},
    )
    assert intervals.status_code == 200
    assert len(intervals.json()) == 2

    conflicts = await client.get(
        "/appointments/conflicts",
        params={
            "psychologist_id": str(practice.psychologist_id),
            "date_time": "2024-03-04T09:45:00Z",
            "duration": 30,
        },
    )
    assert conflicts.status_code == 200
    assert [c["id"] for c in conflicts.json()] == [booked.json()["id"]]


@pytest.mark.asyncio
async def test_delete_appointment(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    appointment_id = (await client.post("/appointments", json=_booking(practice))).json()["id"]

    assert (await client.delete(f"/appointments/{appointment_id}")).status_code == 204
    assert (await client.delete(f"/appointments/{appointment_id}")).status_code == 404


@pytest.mark.asyncio
async def test_overlong_tenant_header_is_rejected(client: AsyncClient):
    response = await client.get("/appointments", headers={settings.TENANT_HEADER: "t" * 65})

    assert response.status_code == 400
    assert "at most 64" in response.json()["detail"]


@pytest.mark.asyncio
async def test_booking_at_end_of_calendar_is_422(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())

    response = await client.post(
        "/appointments", json=_booking(practice, date_time="9999-12-31T23:30:00Z")
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_conflicts_rejects_huge_duration(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())

    response = await client.get(
        "/appointments/conflicts",
        params={
            "psychologist_id": str(practice.psychologist_id),
            "date_time": "2024-03-04T09:00:00Z",
            "duration": 10**12,
        },
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_patch_null_notes_clears_them(client: AsyncClient, make_practice):
    practice = make_practice("tenant-a", slots=_slot())
    appointment_id = (
        await client.post("/appointments", json=_booking(practice, notes="Intake"))
    ).json()["id"]

    kept = await client.patch(f"/appointments/{appointment_id}", json={"value": "10"})
    assert kept.status_code == 200
    assert kept.json()["notes"] == "Intake"

    cleared = await client.patch(f"/appointments/{appointment_id}", json={"notes": None})
    assert cleared.status_code == 200
    assert cleared.json()["notes"] is None
    assert float(cleared.json()["value"]) == 10
