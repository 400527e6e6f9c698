"""Pytest configuration and shared fixtures for patient gateway API tests."""

from collections.abc import Generator
from typing import Any

import pytest
from flask import Flask
from flask.testing import FlaskClient
from stubs.stub_fhir import FhirServerStub
from werkzeug.test import TestResponse

from patient_gateway.app import create_app
from patient_gateway.controller import PatientController
from patient_gateway.fhir_client import FhirClient

PATIENTS_PATH = "/api/patients"


class Client:
    """A thin wrapper around the Flask test client for the patient endpoints."""

    def __init__(self, test_client: FlaskClient) -> None:
        self._client = test_client

    def send_health_check(self) -> TestResponse:
        return self._client.get("/health")

    def create_patient(self, payload: Any) -> TestResponse:
        return self._client.post(PATIENTS_PATH, json=payload)

    def get_patient(self, patient_id: str) -> TestResponse:
        return self._client.get(f"{PATIENTS_PATH}/{patient_id}")

    def list_patients(self, count: int | None = None) -> TestResponse:
        query = {} if count is None else {"count": count}
        return self._client.get(PATIENTS_PATH, query_string=query)

    def search_by_name(self, name: str) -> TestResponse:
        return self._client.get(f"{PATIENTS_PATH}/search", query_string={"name": name})

    def search_by_family_name(self, name: str) -> TestResponse:
        return self._client.get(
            f"{PATIENTS_PATH}/search/family", query_string={"name": name}
        )

    def search_by_identifier(self, system: str, value: str) -> TestResponse:
        return self._client.get(
            f"{PATIENTS_PATH}/search/identifier",
            query_string={"system": system, "value": value},
        )

    def update_patient(self, patient_id: str, payload: Any) -> TestResponse:
        return self._client.put(f"{PATIENTS_PATH}/{patient_id}", json=payload)

    def delete_patient(self, patient_id: str) -> TestResponse:
        return self._client.delete(f"{PATIENTS_PATH}/{patient_id}")

    def get(self, path: str) -> TestResponse:
        return self._client.get(path)


@pytest.fixture
def fhir_stub() -> FhirServerStub:
    return FhirServerStub()


@pytest.fixture
def app(fhir_stub: FhirServerStub) -> Flask:
    """Create a test instance of the Flask application backed by the FHIR stub."""
    fhir_client = FhirClient(
        base_url=fhir_stub.base_url, request_method=fhir_stub.request
    )
    flask_app = create_app(controller=PatientController(fhir_client))
    flask_app.config.update({"TESTING": True})
    return flask_app


@pytest.fixture
def client(app: Flask) -> Generator[Client, None, None]:
    with app.test_client() as test_client:
        yield Client(test_client)


@pytest.fixture
def jane_smith() -> dict[str, Any]:
    return {
        "givenName": "Jane",
        "familyName": "Smith",
        "gender": "female",
        "birthDate": "1985-03-20",
        "identifier": "MRN12345",
        "identifierSystem": "http://hospital.org/mrn",
    }
