"""Tenant-scoped data access gateway.

The only path business code has to persisted state. Every read, update and
delete is ANDed with ``tenant_id == <ambient tenant>``; every create has its
tenant_id set from the ambient tenant. A row that belongs to another tenant is
therefore simply not found, which keeps other tenants' IDs from being probed.

Only models listed in TENANT_EXEMPT_MODELS skip the predicate.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, TypeVar
from uuid import UUID

from sqlalchemy import func, select, text
from sqlalchemy.orm import Session
from sqlalchemy.sql import ColumnElement, Select

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.exceptions import TenantScopeViolationError
from clinic_scheduling.db.base import Base
from clinic_scheduling.db.models import Account

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

# Global identity records addressed by unique key during authentication.
TENANT_EXEMPT_MODELS: frozenset[type[Base]] = frozenset({Account})


class DataAccessGateway:
    """Wraps a Session and applies tenant scoping to every operation."""

    def __init__(self, db: Session):
        self._db = db

    # =========================================================================
    # Scoping
    # =========================================================================

    def _tenant_id_for(self, model: type[Base], operation: str) -> str | None:
        if model in TENANT_EXEMPT_MODELS:
            return None
        if "tenant_id" not in model.__table__.columns:
            raise TenantScopeViolationError(
                f"{model.__name__} has no tenant_id and is not tenant-exempt"
            )
        return tenant_context.require_tenant_id(f"{operation} {model.__name__}")

    def _criteria(
        self,
        model: type[Base],
        criteria: Iterable[ColumnElement[bool]],
        operation: str,
    ) -> list[ColumnElement[bool]]:
        scoped = list(criteria)
        tenant_id = self._tenant_id_for(model, operation)
        if tenant_id is not None:
            scoped.append(model.tenant_id == tenant_id)
        return scoped

    def _check_supplied_tenant(self, model: type[Base], values: dict[str, Any], tenant_id: str | None) -> None:
        if "tenant_id" not in values:
            return
        if tenant_id is None:
            raise TenantScopeViolationError(f"{model.__name__} does not carry tenant_id")
        if values["tenant_id"] != tenant_id:
            logger.warning(
                "Cross-tenant write rejected model=%s active_tenant=%s",
                model.__name__,
                tenant_id,
            )
            raise TenantScopeViolationError(
                f"Refusing to write {model.__name__} for a tenant other than the active one"
            )

    def select(self, model: type[ModelT], *criteria: ColumnElement[bool]) -> Select:
        """Build a tenant-scoped SELECT for model."""
        return select(model).where(*self._criteria(model, criteria, "select"))

    # =========================================================================
    # Reads
    # =========================================================================

    def find_one(
        self,
        model: type[ModelT],
        *criteria: ColumnElement[bool],
        for_update: bool = False,
    ) -> ModelT | None:
        stmt = select(model).where(*self._criteria(model, criteria, "find_one"))
        if for_update:
            stmt = stmt.with_for_update()
        return self._db.execute(stmt.limit(1)).scalars().first()

    def get(self, model: type[ModelT], entity_id: UUID, for_update: bool = False) -> ModelT | None:
        return self.find_one(model, model.id == entity_id, for_update=for_update)

    def find_many(
        self,
        model: type[ModelT],
        *criteria: ColumnElement[bool],
        order_by: Iterable[Any] = (),
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[ModelT]:
        stmt = select(model).where(*self._criteria(model, criteria, "find_many"))
        order_by = tuple(order_by)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self._db.execute(stmt).scalars().all())

    def count(self, model: type[ModelT], *criteria: ColumnElement[bool]) -> int:
        stmt = (
            select(func.count())
            .select_from(model)
            .where(*self._criteria(model, criteria, "count"))
        )
        return self._db.execute(stmt).scalar_one()

    def exists(self, model: type[ModelT], *criteria: ColumnElement[bool]) -> bool:
        return self.find_one(model, *criteria) is not None

    # =========================================================================
    # Writes
    # =========================================================================

    def create(self, model: type[ModelT], **values: Any) -> ModelT:
        tenant_id = self._tenant_id_for(model, "create")
        self._check_supplied_tenant(model, values, tenant_id)
        if tenant_id is not None:
            values["tenant_id"] = tenant_id
        instance = model(**values)
        self._db.add(instance)
        self._db.flush()
        return instance

    def update(self, model: type[ModelT], entity_id: UUID, **values: Any) -> ModelT | None:
        """Apply values to the scoped row; None if it is not visible to this tenant."""
        instance = self.get(model, entity_id)
        if instance is None:
            return None
        self._check_supplied_tenant(model, values, getattr(instance, "tenant_id", None))
        values.pop("tenant_id", None)
        for key, value in values.items():
            setattr(instance, key, value)
        self._db.flush()
        return instance

    def delete(self, model: type[ModelT], entity_id: UUID) -> bool:
        instance = self.get(model, entity_id)
        if instance is None:
            return False
        self._db.delete(instance)
        self._db.flush()
        return True

    # =========================================================================
    # Transactions and locking
    # =========================================================================

    @property
    def dialect_name(self) -> str:
        return self._db.get_bind().dialect.name

    def acquire_advisory_lock(self, resource_key: str) -> None:
        """
        Take a transaction-scoped lock on resource_key within the active tenant.

        PostgreSQL only (pg_advisory_xact_lock); a no-op elsewhere. Released
        on commit or rollback.
        """
        tenant_id = tenant_context.require_tenant_id("acquire_advisory_lock")
        if self.dialect_name != "postgresql":
            return
        self._db.execute(
            text("SELECT pg_advisory_xact_lock(hashtext(:lock_key))"),
            {"lock_key": f"{tenant_id}:{resource_key}"},
        )

    def flush(self) -> None:
        self._db.flush()

    def commit(self) -> None:
        self._db.commit()

    def rollback(self) -> None:
        self._db.rollback()

    def refresh(self, instance: Base) -> None:
        self._db.refresh(instance)
