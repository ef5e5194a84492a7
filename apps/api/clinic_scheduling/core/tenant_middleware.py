"""ASGI middleware that establishes the tenant context for each request."""

from __future__ import annotations

import json

from starlette.types import ASGIApp, Receive, Scope, Send

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.exceptions import ValidationError

# Paths served without a tenant (probes, docs)
TENANT_EXEMPT_PATHS = frozenset({"/health", "/docs", "/redoc", "/openapi.json"})


class TenantContextMiddleware:
    """
    Read the tenant header and run the rest of the request inside its scope.

    The ContextVar set here is the one seen by the endpoint, its
    dependencies and any worker thread they run in.
    """

    def __init__(self, app: ASGIApp, header_name: str | None = None):
        self.app = app
        self.header_name = (header_name or settings.TENANT_HEADER).lower().encode("latin-1")

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path") in TENANT_EXEMPT_PATHS:
            await self.app(scope, receive, send)
            return

        tenant_id = ""
        for name, value in scope.get("headers", []):
            if name == self.header_name:
                tenant_id = value.decode("latin-1").strip()
                break

        if not tenant_id:
            await _reject(send, "Tenant ID not provided")
            return

        try:
            token = tenant_context.set_tenant(tenant_id)
        except ValidationError as exc:
            await _reject(send, str(exc))
            return
        try:
            await self.app(scope, receive, send)
        finally:
            tenant_context.reset_tenant(token)


async def _reject(send: Send, detail: str) -> None:
    body = json.dumps({"detail": detail}).encode()
    await send({
        "type": "http.response.start",
        "status": 400,
        "headers": [
            (b"content-type", b"application/json"),
            (b"content-length", str(len(body)).encode()),
        ],
    })
    await send({"type": "http.response.body", "body": body})
