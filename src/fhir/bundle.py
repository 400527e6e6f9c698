"""FHIR Bundle resource."""

from typing import Any, NotRequired, TypedDict


class BundleEntry(TypedDict):
    fullUrl: NotRequired[str]
    # Search bundles can mix resource types, e.g. an OperationOutcome entry
    # with search.mode "outcome" alongside the Patient matches.
    resource: dict[str, Any]


class Bundle(TypedDict):
    resourceType: str
    id: NotRequired[str]
    type: str
    total: NotRequired[int]
    entry: NotRequired[list[BundleEntry]]
