"""Tests for the ambient tenant context."""

import asyncio
import threading

import pytest

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.exceptions import (
    TenantContextMissingError,
    TenantScopeViolationError,
    ValidationError,
)


def test_no_tenant_outside_scope():
    assert tenant_context.current() is None
    with pytest.raises(TenantContextMissingError):
        tenant_context.require_tenant_id("list appointments")


def test_tenant_scope_restores_previous_value():
    with tenant_context.tenant_scope("tenant-a"):
        assert tenant_context.current() == "tenant-a"
        with tenant_context.tenant_scope("tenant-b"):
            assert tenant_context.current() == "tenant-b"
        assert tenant_context.current() == "tenant-a"
    assert tenant_context.current() is None


def test_tenant_scope_restores_on_error():
    with pytest.raises(RuntimeError):
        with tenant_context.tenant_scope("tenant-a"):
            raise RuntimeError("boom")
    assert tenant_context.current() is None


def test_run_does_not_leak_into_caller():
    seen = tenant_context.run("tenant-b", tenant_context.require_tenant_id)

    assert seen == "tenant-b"
    assert tenant_context.current() is None


@pytest.mark.parametrize("tenant_id", ["", "   ", None])
def test_empty_tenant_rejected(tenant_id):
    with pytest.raises(ValidationError):
        tenant_context.set_tenant(tenant_id)


def test_tenant_id_length_is_capped():
    longest = "t" * tenant_context.TENANT_ID_MAX_LENGTH
    with tenant_context.tenant_scope(longest):
        assert tenant_context.current() == longest

    with pytest.raises(ValidationError):
        tenant_context.set_tenant(longest + "t")
    assert tenant_context.current() is None


def test_require_matching_tenant_rejects_mismatch():
    with tenant_context.tenant_scope("tenant-a"):
        assert tenant_context.require_matching_tenant("tenant-a") == "tenant-a"
        with pytest.raises(TenantScopeViolationError):
            tenant_context.require_matching_tenant("tenant-b", "create_appointment")


def test_require_matching_tenant_without_ambient_tenant():
    with pytest.raises(TenantContextMissingError):
        tenant_context.require_matching_tenant("tenant-a", "create_appointment")


def test_threads_see_only_their_own_tenant():
    results: dict[str, str | None] = {}
    barrier = threading.Barrier(2)

    def _work(tenant_id: str) -> None:
        def _inner() -> None:
            barrier.wait(timeout=5)
            results[tenant_id] = tenant_context.current()

        tenant_context.run(tenant_id, _inner)

    threads = [threading.Thread(target=_work, args=(t,)) for t in ("tenant-a", "tenant-b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert results == {"tenant-a": "tenant-a", "tenant-b": "tenant-b"}


@pytest.mark.asyncio
async def test_run_async_keeps_tenant_across_suspension():
    async def _read_after_sleep() -> str:
        await asyncio.sleep(0.01)
        return tenant_context.require_tenant_id()

    assert await tenant_context.run_async("tenant-a", _read_after_sleep) == "tenant-a"
    assert tenant_context.current() is None


@pytest.mark.asyncio
async def test_concurrent_tasks_do_not_share_tenant():
    started = asyncio.Event()

    async def _slow() -> str | None:
        started.set()
        await asyncio.sleep(0.05)
        return tenant_context.current()

    async def _fast() -> str | None:
        await started.wait()
        return tenant_context.current()

    slow, fast = await asyncio.gather(
        tenant_context.run_async("tenant-a", _slow),
        tenant_context.run_async("tenant-b", _fast),
    )

    assert slow == "tenant-a"
    assert fast == "tenant-b"
