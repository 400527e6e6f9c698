"""
The flat patient record exposed by the REST API, and its field validation.
"""

import re
from dataclasses import asdict, dataclass, replace
from typing import Any

from fhir import AdministrativeGender

from patient_gateway.errors import ValidationFailed

BIRTH_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
GENDER_CODES = tuple(code.value for code in AdministrativeGender)

# Python attribute name -> JSON field name
_JSON_FIELDS = {
    "id": "id",
    "given_name": "givenName",
    "family_name": "familyName",
    "gender": "gender",
    "birth_date": "birthDate",
    "identifier": "identifier",
    "identifier_system": "identifierSystem",
}


@dataclass(frozen=True)
class PatientRecord:
    """
    Flat patient record, the stable shape of the ``/api/patients`` API.

    :param id: Server-assigned FHIR resource id. Never supplied by the client on
        create.
    :param given_name: Given name. Required on input.
    :param family_name: Family name. Required on input.
    :param gender: One of ``male``, ``female``, ``other``, ``unknown``.
    :param birth_date: Date of birth as ``YYYY-MM-DD``.
    :param identifier: Identifier value, e.g. a medical record number.
    :param identifier_system: Namespace of ``identifier``.
    """

    id: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    gender: str | None = None
    birth_date: str | None = None
    identifier: str | None = None
    identifier_system: str | None = None

    @classmethod
    def from_json(cls, body: dict[str, Any]) -> "PatientRecord":
        """
        Build a record from a decoded JSON request body.

        Unknown keys are ignored. Values are taken as given; call
        :func:`validate_patient_json` first.
        """
        return cls(**{attr: body.get(key) for attr, key in _JSON_FIELDS.items()})

    def to_json(self) -> dict[str, str | None]:
        values = asdict(self)
        return {key: values[attr] for attr, key in _JSON_FIELDS.items()}

    def with_id(self, resource_id: str | None) -> "PatientRecord":
        return replace(self, id=resource_id)


def validate_patient_json(body: Any) -> dict[str, str]:
    """
    Check a decoded JSON request body against the patient record constraints.

    :param body: The decoded request body.
    :returns: Mapping of JSON field name to message; empty if the body is valid.
    """
    if not isinstance(body, dict):
        return {"body": "Request body must be a JSON object"}

    errors: dict[str, str] = {}

    for key, label in (("givenName", "Given name"), ("familyName", "Family name")):
        value = body.get(key)
        if not isinstance(value, str) or not value.strip():
            errors[key] = f"{label} is required"

    for key in ("id", "identifier", "identifierSystem"):
        value = body.get(key)
        if value is not None and not isinstance(value, str):
            errors[key] = f"{key} must be a string"

    gender = body.get("gender")
    if gender is not None and gender not in GENDER_CODES:
        errors["gender"] = "Gender must be: male, female, other, or unknown"

    birth_date = body.get("birthDate")
    if birth_date is not None and (
        not isinstance(birth_date, str) or not BIRTH_DATE_PATTERN.fullmatch(birth_date)
    ):
        errors["birthDate"] = "Birth date must be in YYYY-MM-DD format"

    return errors


def parse_patient_record(body: Any) -> PatientRecord:
    """
    Validate a decoded JSON body and return it as a :class:`PatientRecord`.

    :raises ValidationFailed: If any field is invalid.
    """
    errors = validate_patient_json(body)
    if errors:
        raise ValidationFailed(field_errors=errors)
    return PatientRecord.from_json(body)
