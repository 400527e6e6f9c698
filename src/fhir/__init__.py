"""FHIR data types and resources."""

from fhir.administrative_gender import AdministrativeGender
from fhir.bundle import Bundle, BundleEntry
from fhir.human_name import HumanName
from fhir.identifier import Identifier
from fhir.operation_outcome import OperationOutcome, OperationOutcomeIssue
from fhir.patient import Patient

__all__ = [
    "AdministrativeGender",
    "Bundle",
    "BundleEntry",
    "HumanName",
    "Identifier",
    "OperationOutcome",
    "OperationOutcomeIssue",
    "Patient",
]
