"""Per-request tenant context.

The active tenant lives in a ContextVar, so it follows the dynamic extent of a
request: it survives awaits, is copied into tasks spawned from the request and
into worker threads started through anyio/Starlette, and never leaks between
concurrently handled requests.
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token, copy_context
from typing import Any, Awaitable, Callable, Iterator, TypeVar

from clinic_scheduling.core.exceptions import (
    TenantContextMissingError,
    TenantScopeViolationError,
    ValidationError,
)

T = TypeVar("T")

# Matches the tenant_id column width
TENANT_ID_MAX_LENGTH = 64

_TENANT_ID: ContextVar[str | None] = ContextVar("tenant_id", default=None)


def _validate(tenant_id: str) -> str:
    if not isinstance(tenant_id, str) or not tenant_id.strip():
        raise ValidationError("Tenant ID must be a non-empty string")
    tenant_id = tenant_id.strip()
    if len(tenant_id) > TENANT_ID_MAX_LENGTH:
        raise ValidationError(f"Tenant ID must be at most {TENANT_ID_MAX_LENGTH} characters")
    return tenant_id


def set_tenant(tenant_id: str) -> Token:
    """Set the ambient tenant and return the token needed to restore it."""
    return _TENANT_ID.set(_validate(tenant_id))


def reset_tenant(token: Token) -> None:
    """Restore the ambient tenant that was active before set_tenant."""
    _TENANT_ID.reset(token)


@contextmanager
def tenant_scope(tenant_id: str) -> Iterator[str]:
    """Make tenant_id ambient for the body of the with-block."""
    token = set_tenant(tenant_id)
    try:
        yield _TENANT_ID.get()
    finally:
        reset_tenant(token)


def run(tenant_id: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Call fn with tenant_id as the ambient tenant.

    Runs in a copy of the caller's context, so the caller's own ambient value
    is untouched once fn returns.
    """
    tenant_id = _validate(tenant_id)

    def _runner() -> T:
        _TENANT_ID.set(tenant_id)
        return fn(*args, **kwargs)

    return copy_context().run(_runner)


async def run_async(
    tenant_id: str,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    **kwargs: Any,
) -> T:
    """Await fn(*args, **kwargs) with tenant_id ambient across its suspension points."""
    with tenant_scope(tenant_id):
        return await fn(*args, **kwargs)


def current() -> str | None:
    """Return the ambient tenant ID, or None outside any tenant scope."""
    return _TENANT_ID.get()


def require_tenant_id(operation: str | None = None) -> str:
    """Return the ambient tenant ID or fail fast."""
    tenant_id = _TENANT_ID.get()
    if tenant_id is None:
        raise TenantContextMissingError(operation)
    return tenant_id


def require_matching_tenant(tenant_id: str, operation: str | None = None) -> str:
    """Check an explicitly passed tenant ID against the ambient one."""
    ambient = require_tenant_id(operation)
    if tenant_id != ambient:
        raise TenantScopeViolationError(
            f"Explicit tenant does not match the active tenant for {operation or 'operation'}"
        )
    return ambient
