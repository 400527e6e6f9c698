"""
Unit tests for :mod:`patient_gateway.mapper`.
"""

import pytest
from fhir import Patient

from patient_gateway.mapper import to_record, to_resource
from patient_gateway.patient_record import PatientRecord


@pytest.fixture
def full_record() -> PatientRecord:
    return PatientRecord(
        id="1001",
        given_name="Jane",
        family_name="Smith",
        gender="female",
        birth_date="1985-03-20",
        identifier="MRN12345",
        identifier_system="http://hospital.org/mrn",
    )


class TestToResource:
    def test_maps_every_field(
        self, full_record: PatientRecord, valid_patient_resource: Patient
    ) -> None:
        assert to_resource(full_record) == valid_patient_resource

    def test_minimal_record_has_only_a_name(self) -> None:
        record = PatientRecord(given_name="Jane", family_name="Smith")

        assert to_resource(record) == {
            "resourceType": "Patient",
            "name": [{"family": "Smith", "given": ["Jane"]}],
        }

    def test_family_is_always_set(self) -> None:
        resource = to_resource(PatientRecord(given_name="Jane"))

        assert resource["name"] == [{"family": "", "given": ["Jane"]}]

    def test_identifier_without_system(self) -> None:
        record = PatientRecord(
            given_name="Jane", family_name="Smith", identifier="MRN12345"
        )

        assert to_resource(record)["identifier"] == [{"value": "MRN12345"}]

    def test_identifier_system_alone_is_dropped(self) -> None:
        record = PatientRecord(
            given_name="Jane",
            family_name="Smith",
            identifier_system="http://hospital.org/mrn",
        )

        assert "identifier" not in to_resource(record)

    def test_invalid_gender_raises_value_error(self) -> None:
        record = PatientRecord(given_name="Jane", family_name="Smith", gender="f")

        with pytest.raises(ValueError):  # noqa: PT011
            to_resource(record)

    def test_birth_date_is_copied_verbatim(self) -> None:
        record = PatientRecord(
            given_name="Jane", family_name="Smith", birth_date="2023-02-30"
        )

        assert to_resource(record)["birthDate"] == "2023-02-30"


class TestToRecord:
    def test_maps_every_field(
        self, full_record: PatientRecord, valid_patient_resource: Patient
    ) -> None:
        assert to_record(valid_patient_resource) == full_record

    def test_uses_first_name_and_joins_given_parts(self) -> None:
        patient: Patient = {
            "resourceType": "Patient",
            "id": "42",
            "name": [
                {"use": "official", "family": "Smith", "given": ["Jane", "Ann"]},
                {"use": "nickname", "family": "Smithy", "given": ["JJ"]},
            ],
        }

        record = to_record(patient)

        assert record.given_name == "Jane Ann"
        assert record.family_name == "Smith"

    def test_uses_first_identifier(self) -> None:
        patient: Patient = {
            "resourceType": "Patient",
            "id": "42",
            "identifier": [
                {"system": "http://hospital.org/mrn", "value": "MRN1"},
                {"system": "http://hospital.org/ssn", "value": "SSN1"},
            ],
        }

        record = to_record(patient)

        assert record.identifier == "MRN1"
        assert record.identifier_system == "http://hospital.org/mrn"

    def test_absent_elements_map_to_none(self) -> None:
        record = to_record({"resourceType": "Patient", "id": "42"})

        assert record == PatientRecord(id="42")

    def test_empty_name_and_identifier_lists(self) -> None:
        record = to_record(
            {"resourceType": "Patient", "id": "42", "name": [], "identifier": []}
        )

        assert record == PatientRecord(id="42")


class TestRoundTrip:
    @pytest.mark.parametrize(
        "record",
        [
            PatientRecord(given_name="Jane", family_name="Smith"),
            PatientRecord(
                id="7",
                given_name="John",
                family_name="Doe",
                gender="unknown",
                identifier="X1",
            ),
            PatientRecord(
                id="8",
                given_name="Ana",
                family_name="Lopez",
                gender="other",
                birth_date="1990-05-15",
                identifier="MRN9",
                identifier_system="http://hospital.org/mrn",
            ),
        ],
    )
    def test_record_survives_resource_round_trip(self, record: PatientRecord) -> None:
        assert to_record(to_resource(record)) == record
