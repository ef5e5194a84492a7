"""Structured logging helpers (PHI-safe)."""

from typing import Any
from uuid import UUID


def build_log_context(
    *,
    tenant_id: str | None = None,
    request_id: str | None = None,
    route: str | None = None,
    method: str | None = None,
    appointment_id: UUID | str | None = None,
    psychologist_id: UUID | str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict."""
    context: dict[str, Any] = {}
    if tenant_id:
        context["tenant_id"] = tenant_id
    if request_id:
        context["request_id"] = request_id
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    if appointment_id:
        context["appointment_id"] = str(appointment_id)
    if psychologist_id:
        context["psychologist_id"] = str(psychologist_id)
    return context
