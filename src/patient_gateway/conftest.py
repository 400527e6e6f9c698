"""Pytest configuration and shared fixtures for patient gateway tests."""

from typing import Any

import pytest
from fhir import Patient
from stubs.stub_fhir import FhirServerStub

from patient_gateway.controller import PatientController
from patient_gateway.fhir_client import FhirClient


@pytest.fixture
def valid_patient_payload() -> dict[str, Any]:
    return {
        "givenName": "Jane",
        "familyName": "Smith",
        "gender": "female",
        "birthDate": "1985-03-20",
        "identifier": "MRN12345",
        "identifierSystem": "http://hospital.org/mrn",
    }


@pytest.fixture
def valid_patient_resource() -> Patient:
    return {
        "resourceType": "Patient",
        "id": "1001",
        "name": [{"family": "Smith", "given": ["Jane"]}],
        "gender": "female",
        "birthDate": "1985-03-20",
        "identifier": [{"system": "http://hospital.org/mrn", "value": "MRN12345"}],
    }


@pytest.fixture
def fhir_stub() -> FhirServerStub:
    return FhirServerStub()


@pytest.fixture
def fhir_client(fhir_stub: FhirServerStub) -> FhirClient:
    """A client whose HTTP traffic is served by the in-memory stub."""
    return FhirClient(
        base_url=fhir_stub.base_url,
        connect_timeout=5,
        response_timeout=7,
        request_method=fhir_stub.request,
    )


@pytest.fixture
def controller(fhir_client: FhirClient) -> PatientController:
    return PatientController(fhir_client)
