"""
Controller layer: validates requests, maps records, and calls the FHIR server.
"""

import logging
import re
from typing import Any

from fhir import Patient

from patient_gateway.errors import NotFound, RemoteFault, ValidationFailed
from patient_gateway.fhir_client import ExternalServiceError, FhirClient
from patient_gateway.mapper import to_record, to_resource
from patient_gateway.patient_record import PatientRecord, parse_patient_record

logger = logging.getLogger(__name__)

DEFAULT_LIST_COUNT = 20

# FHIR R4 id datatype
PATIENT_ID_PATTERN = re.compile(r"[A-Za-z0-9\-.]{1,64}")


def _require(**values: str | None) -> None:
    """
    :raises ValidationFailed: Naming every argument that is missing or blank.
    """
    errors = {
        name: f"{name} is required"
        for name, value in values.items()
        if value is None or not value.strip()
    }
    if errors:
        raise ValidationFailed(field_errors=errors)


def _require_patient_id(patient_id: str) -> None:
    """
    :raises ValidationFailed: If ``patient_id`` is blank or not a valid FHIR id.
    """
    _require(id=patient_id)
    if not PATIENT_ID_PATTERN.fullmatch(patient_id):
        raise ValidationFailed(
            field_errors={
                "id": "Patient id must be 1-64 letters, digits, '-' or '.'"
            }
        )


def _remote_fault(err: ExternalServiceError) -> RemoteFault:
    logger.error("FHIR server error: %s - %s", err.status_code, err.message)
    return RemoteFault(status_code=err.status_code or 502, message=err.message)


class PatientController:
    """
    Patient operations against a FHIR server.

    Each operation validates its input, then makes exactly one call to the FHIR
    server, except ``update`` and ``delete`` which first read the patient to
    confirm it exists.

    Errors are raised as :class:`~patient_gateway.errors.GatewayError` subclasses:
        - :class:`ValidationFailed` before any remote call is made,
        - :class:`NotFound` when ``update``/``delete`` target a missing patient,
        - :class:`RemoteFault` when the FHIR server fails or cannot be reached.
    """

    def __init__(self, fhir_client: FhirClient) -> None:
        """
        :param fhir_client: Client for the FHIR server. Shared, never mutated.
        """
        self._fhir_client = fhir_client

    @property
    def fhir_client(self) -> FhirClient:
        return self._fhir_client

    def create(self, body: Any) -> PatientRecord:
        """
        Create a patient. Any ``id`` in the body is ignored.

        :param body: Decoded JSON request body.
        :returns: The submitted record with the server-assigned ``id``.
        """
        record = parse_patient_record(body).with_id(None)
        logger.info(
            "Creating new patient: %s %s", record.given_name, record.family_name
        )

        try:
            patient_id = self._fhir_client.create_patient(to_resource(record))
        except ExternalServiceError as err:
            raise _remote_fault(err) from err

        logger.info("Patient created successfully with ID: %s", patient_id)
        return record.with_id(patient_id)

    def get_by_id(self, patient_id: str) -> PatientRecord | None:
        """
        Read a patient.

        :returns: The record, or ``None`` if the FHIR server has no such patient.
        :raises RemoteFault: For any failure other than "not found".
        """
        _require_patient_id(patient_id)
        logger.info("Fetching patient with ID: %s", patient_id)

        try:
            patient = self._fhir_client.read_patient(patient_id)
        except ExternalServiceError as err:
            raise _remote_fault(err) from err

        if patient is None:
            return None
        return to_record(patient)

    def list_patients(self, count: int = DEFAULT_LIST_COUNT) -> list[PatientRecord]:
        """
        List up to ``count`` patients, in the order the server returns them.
        """
        if count < 0:
            raise ValidationFailed(
                field_errors={"count": "count must be zero or greater"}
            )
        logger.info("Fetching up to %d patients", count)

        patients = self._search({"_count": count})
        logger.info("Retrieved %d patients", len(patients))
        return patients

    def search_by_name(self, name: str) -> list[PatientRecord]:
        """
        Case-insensitive, starts-with match across every part of the patient's name.
        """
        _require(name=name)
        logger.info("Searching for patients with name: %s", name)
        return self._search({"name": name})

    def search_by_family_name(self, name: str) -> list[PatientRecord]:
        _require(name=name)
        logger.info("Searching for patients with family name: %s", name)
        return self._search({"family": name})

    def search_by_identifier(self, system: str, value: str) -> list[PatientRecord]:
        """Exact match on identifier system and value."""
        _require(system=system, value=value)
        logger.info("Searching for patients with identifier: %s|%s", system, value)
        return self._search({"identifier": f"{system}|{value}"})

    def update(self, patient_id: str, body: Any) -> PatientRecord:
        """
        Replace a patient's data.

        The patient is read first, so a missing id is reported as
        :class:`NotFound` whatever the server does with a PUT to an unknown id.

        :returns: The submitted record with ``id`` set to ``patient_id``.
        :raises NotFound: If the patient does not exist. No update is sent.
        """
        _require_patient_id(patient_id)
        record = parse_patient_record(body).with_id(patient_id)

        self._ensure_exists(patient_id)

        logger.info("Updating patient with ID: %s", patient_id)
        try:
            self._fhir_client.update_patient(patient_id, to_resource(record))
        except ExternalServiceError as err:
            raise _remote_fault(err) from err

        logger.info("Patient updated successfully")
        return record

    def delete(self, patient_id: str) -> None:
        """
        Delete a patient, after reading it to confirm it exists (see :meth:`update`).

        :raises NotFound: If the patient does not exist. No delete is sent.
        """
        _require_patient_id(patient_id)
        self._ensure_exists(patient_id)

        logger.info("Deleting patient with ID: %s", patient_id)
        try:
            self._fhir_client.delete_patient(patient_id)
        except ExternalServiceError as err:
            raise _remote_fault(err) from err

        logger.info("Patient deleted successfully")

    def _ensure_exists(self, patient_id: str) -> None:
        if self.get_by_id(patient_id) is None:
            raise NotFound(message=f"Patient not found with ID: {patient_id}")

    def _search(self, params: dict[str, str | int]) -> list[PatientRecord]:
        try:
            patients: list[Patient] = self._fhir_client.search_patients(params)
        except ExternalServiceError as err:
            raise _remote_fault(err) from err
        return [to_record(patient) for patient in patients]
