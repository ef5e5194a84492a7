"""Tests for structured logging helpers."""

import uuid

from clinic_scheduling.core.structured_logging import build_log_context


def test_build_log_context_includes_only_provided_fields():
    appointment_id = uuid.uuid4()
    context = build_log_context(
        tenant_id="tenant-a",
        request_id="req-1",
        route="/appointments",
        method="POST",
        appointment_id=appointment_id,
    )

    assert context == {
        "tenant_id": "tenant-a",
        "request_id": "req-1",
        "route": "/appointments",
        "method": "POST",
        "appointment_id": str(appointment_id),
    }


def test_build_log_context_ignores_empty_fields():
    context = build_log_context(
        tenant_id="",
        psychologist_id=None,
        request_id="req-1",
    )

    assert context == {"request_id": "req-1"}
