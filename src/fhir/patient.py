"""FHIR Patient resource."""

from typing import NotRequired, TypedDict

from fhir.human_name import HumanName
from fhir.identifier import Identifier


class Patient(TypedDict):
    resourceType: str
    id: NotRequired[str]
    identifier: NotRequired[list[Identifier]]
    name: NotRequired[list[HumanName]]
    gender: NotRequired[str]
    birthDate: NotRequired[str]
