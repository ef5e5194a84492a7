"""Patient and psychologist lookups used by scheduling.

Only existence and tenant membership are checked here; managing the people
themselves happens elsewhere.
"""

from uuid import UUID

from clinic_scheduling.core.exceptions import NotFoundError
from clinic_scheduling.db.gateway import DataAccessGateway
from clinic_scheduling.db.models import Patient, Psychologist


def get_psychologist(gateway: DataAccessGateway, psychologist_id: UUID) -> Psychologist:
    psychologist = gateway.get(Psychologist, psychologist_id)
    if psychologist is None:
        raise NotFoundError("Psychologist", psychologist_id)
    return psychologist


def get_patient(gateway: DataAccessGateway, patient_id: UUID) -> Patient:
    patient = gateway.get(Patient, patient_id)
    if patient is None:
        raise NotFoundError("Patient", patient_id)
    return patient


def ensure_booking_parties(
    gateway: DataAccessGateway,
    patient_id: UUID,
    psychologist_id: UUID,
) -> tuple[Patient, Psychologist]:
    """Both parties must exist in the active tenant."""
    patient = get_patient(gateway, patient_id)
    psychologist = get_psychologist(gateway, psychologist_id)
    return patient, psychologist
