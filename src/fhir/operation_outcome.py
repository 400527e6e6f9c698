"""FHIR OperationOutcome resource."""

from typing import NotRequired, TypedDict


class OperationOutcomeIssue(TypedDict):
    severity: str
    code: str
    diagnostics: NotRequired[str]


class OperationOutcome(TypedDict):
    resourceType: str
    issue: list[OperationOutcomeIssue]
