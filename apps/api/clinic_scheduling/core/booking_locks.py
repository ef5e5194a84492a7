"""Per-(tenant, psychologist) locks around the check-then-book sequence."""

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Iterator, Tuple
from uuid import UUID

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.exceptions import ConflictError
from clinic_scheduling.db.enums import ConflictReason

logger = logging.getLogger(__name__)


class BookingLockRegistry:
    """
    Hands out one lock per (tenant, psychologist).

    Bookings for different psychologists or tenants never contend. Holding the
    lock covers one process only; the gateway's advisory lock and the
    database exclusion constraint cover the rest.
    """

    def __init__(self):
        # (tenant_id, psychologist_id) -> lock; an entry lives while someone holds or waits on it
        self._locks: "weakref.WeakValueDictionary[Tuple[str, str], threading.Lock]" = (
            weakref.WeakValueDictionary()
        )
        self._guard = threading.Lock()

    def _lock_for(self, tenant_id: str, psychologist_id: UUID | str) -> threading.Lock:
        key = (tenant_id, str(psychologist_id))
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(
        self,
        tenant_id: str,
        psychologist_id: UUID | str,
        timeout: float | None = None,
    ) -> Iterator[None]:
        """Hold the lock for the body; a timeout surfaces as a retryable TIME_CONFLICT."""
        if timeout is None:
            timeout = settings.BOOKING_LOCK_TIMEOUT_SECONDS
        lock = self._lock_for(tenant_id, psychologist_id)
        if not lock.acquire(timeout=timeout):
            logger.info(
                "Booking lock timeout tenant=%s psychologist=%s", tenant_id, psychologist_id
            )
            raise ConflictError(
                ConflictReason.TIME_CONFLICT,
                "Another booking for this psychologist is in progress, retry",
            )
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


booking_locks = BookingLockRegistry()
