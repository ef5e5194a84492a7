"""FastAPI dependencies for tenant and database access."""

from typing import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from clinic_scheduling.core import tenant_context
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.session import Database


def get_database(request: Request) -> Database:
    """The Database handle opened in the application lifespan."""
    return request.app.state.database


def get_db(database: Database = Depends(get_database)) -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    with database.session() as db:
        yield db


def get_gateway(db: Session = Depends(get_db)) -> DataAccessGateway:
    return DataAccessGateway(db)


async def get_tenant_id() -> str:
    """Active tenant set by TenantContextMiddleware; fails fast if absent."""
    return tenant_context.require_tenant_id("request")
