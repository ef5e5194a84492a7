"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (tables created from metadata)
- Practice factory seeding a tenant's clinic, psychologist, patient, slots and holidays
- HTTPX AsyncClient wired to the test database with the tenant header set
"""
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Callable, Generator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.orm import Session

from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.booking_locks import booking_locks
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.deps import get_database
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.models import AvailableSlot, Clinic, Holiday, Patient, Psychologist
from clinic_scheduling.db.session import Database
from clinic_scheduling.main import app
from clinic_scheduling.services import notification_service, payment_service


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def database(tmp_path) -> Generator[Database, None, None]:
    """
    Opens a Database on a throwaway SQLite file.

    A file (not :memory:) so separate sessions and threads share the data.
    """
    database = Database(f"sqlite:///{tmp_path / 'scheduling.db'}", echo=False).open()
    database.create_all()
    yield database
    database.close()


@pytest.fixture(scope="function")
def db(database: Database) -> Generator[Session, None, None]:
    with database.session() as session:
        yield session


@pytest.fixture(scope="function")
def gateway(db: Session) -> DataAccessGateway:
    return DataAccessGateway(db)


@pytest.fixture(autouse=True)
def reset_collaborators():
    """Collaborator registries and booking locks are module-global."""
    notification_service.clear_handlers()
    payment_service.set_payment_creator(None)
    yield
    notification_service.clear_handlers()
    payment_service.set_payment_creator(None)
    booking_locks._locks.clear()


# =============================================================================
# Practice Fixtures
# =============================================================================

@dataclass
class Practice:
    """IDs of one tenant's seeded practice."""
    tenant_id: str
    clinic_id: uuid.UUID
    psychologist_id: uuid.UUID
    patient_id: uuid.UUID
    slot_ids: list[uuid.UUID] = field(default_factory=list)


@pytest.fixture(scope="function")
def make_practice(database: Database) -> Callable[..., Practice]:
    """
    Factory seeding a practice for a tenant and committing it.

    slots is a list of (start, end) datetimes, holidays a list of dates.
    """

    def _seed(
        tenant_id: str,
        slots: list[tuple[datetime, datetime]] = (),
        holidays: list[date] = (),
    ) -> Practice:
        with database.session() as session:
            gateway = DataAccessGateway(session)

            def _create() -> Practice:
                clinic = gateway.create(Clinic, name=f"Clinic {tenant_id}")
                psychologist = gateway.create(
                    Psychologist, name="Dr. Ana Souza", clinic_id=clinic.id
                )
                patient = gateway.create(
                    Patient,
                    name="Bruno Lima",
                    psychologist_id=psychologist.id,
                    clinic_id=clinic.id,
                )
                slot_ids = [
                    gateway.create(
                        AvailableSlot,
                        psychologist_id=psychologist.id,
                        start_time=start,
                        end_time=end,
                    ).id
                    for start, end in slots
                ]
                for day in holidays:
                    gateway.create(Holiday, date=day, description="Holiday")
                gateway.commit()
                return Practice(
                    tenant_id=tenant_id,
                    clinic_id=clinic.id,
                    psychologist_id=psychologist.id,
                    patient_id=patient.id,
                    slot_ids=slot_ids,
                )

            return tenant_context.run(tenant_id, _create)

    return _seed


@pytest.fixture(scope="function")
def morning_practice(make_practice) -> Practice:
    """tenant-a with one 09:00-12:00 UTC slot on 2024-03-04."""
    return make_practice(
        "tenant-a",
        slots=[(
            datetime(2024, 3, 4, 9, 0, tzinfo=timezone.utc),
            datetime(2024, 3, 4, 12, 0, tzinfo=timezone.utc),
        )],
    )


@pytest.fixture(scope="function")
def tenant_a() -> Generator[str, None, None]:
    """Runs the test with tenant-a as the ambient tenant."""
    with tenant_context.tenant_scope("tenant-a") as tenant_id:
        yield tenant_id


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(database: Database) -> AsyncGenerator[AsyncClient, None]:
    """
    AsyncClient sending tenant-a's tenant header.

    The lifespan does not run under ASGITransport, so the test Database is
    injected through the dependency and app.state.
    """
    app.dependency_overrides[get_database] = lambda: database
    app.state.database = database

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={settings.TENANT_HEADER: "tenant-a"},
    ) as c:
        yield c

    app.dependency_overrides.clear()
