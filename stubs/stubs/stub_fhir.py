"""
In-memory FHIR R4 server stub, implementing only the Patient interactions the
gateway uses:

    - POST   /Patient            create, server assigns the id
    - GET    /Patient/{id}       read (404 unknown, 410 deleted)
    - GET    /Patient?...        search by name, family, identifier; _count
    - PUT    /Patient/{id}       update (full replacement)
    - DELETE /Patient/{id}       delete

The stub does **not** implement FHIR validation or paging beyond ``_count``.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any
from urllib.parse import urlsplit

import requests
from requests import Response
from requests.structures import CaseInsensitiveDict

FHIR_JSON = "application/fhir+json"


def _create_response(
    status_code: int,
    body: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    reason: str = "",
) -> Response:
    """
    Create a :class:`requests.Response` object for the stub.

    :param status_code: HTTP status code.
    :param body: JSON body, if any.
    :param headers: Response headers.
    :param reason: HTTP reason phrase (e.g., "OK", "Not Found").
    :return: A :class:`requests.Response` instance.
    """
    response = Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    if body is not None:
        response.headers.setdefault("Content-Type", FHIR_JSON)
        response._content = json.dumps(body).encode("utf-8")  # noqa: SLF001
    else:
        response._content = b""  # noqa: SLF001
    response.reason = reason
    response.encoding = "utf-8"
    return response


@dataclass(frozen=True)
class RecordedRequest:
    """A request received by the stub, kept so tests can assert on traffic."""

    method: str
    url: str
    params: dict[str, Any] | None
    json: dict[str, Any] | None
    headers: dict[str, str]
    timeout: Any


class FhirServerStub:
    """
    Minimal in-memory stub for a FHIR R4 server's Patient endpoints.

    Use :meth:`request` wherever a :func:`requests.request` callable is expected.
    """

    def __init__(self, base_url: str = "http://fhir.stub/baseR4") -> None:
        self.base_url = base_url.rstrip("/")
        self.requests: list[RecordedRequest] = []

        # Internal store: id -> (patient_resource, version_id_int)
        self._patients: dict[str, tuple[dict[str, Any], int]] = {}
        self._deleted: set[str] = set()
        self._next_id = 1000

        self._fault: tuple[int, str] | None = None
        self._transport_error: requests.RequestException | None = None
        self._omit_create_body = False

    # ---------------------------
    # Public API for tests
    # ---------------------------

    def upsert_patient(self, patient: dict[str, Any]) -> str:
        """
        Insert or replace a Patient. An id is assigned if the resource has none.

        :return: The patient id.
        """
        patient_id = str(patient.get("id") or self._assign_id())
        self._store(patient_id, copy.deepcopy(patient))
        return patient_id

    def get_stored_patient(self, patient_id: str) -> dict[str, Any] | None:
        stored = self._patients.get(patient_id)
        return copy.deepcopy(stored[0]) if stored else None

    def fail_with(self, status_code: int, diagnostics: str) -> None:
        """Answer every following request with an OperationOutcome error."""
        self._fault = (status_code, diagnostics)

    def raise_on_request(self, error: requests.RequestException) -> None:
        """Raise ``error`` from every following request, as a dead server would."""
        self._transport_error = error

    def omit_create_body(self) -> None:
        """Answer creates with only a Location header (``Prefer: return=minimal``)."""
        self._omit_create_body = True

    def requests_for(self, method: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method]

    # ---------------------------
    # requests.request replacement
    # ---------------------------

    def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,  # noqa: A002 (mirrors requests.request)
        timeout: Any = None,
    ) -> Response:
        method = method.upper()
        self.requests.append(
            RecordedRequest(
                method=method,
                url=url,
                params=dict(params) if params is not None else None,
                json=copy.deepcopy(json),
                headers=dict(headers or {}),
                timeout=timeout,
            )
        )

        if self._transport_error is not None:
            raise self._transport_error
        if self._fault is not None:
            status_code, diagnostics = self._fault
            return self._operation_outcome(status_code, "exception", diagnostics)

        path = urlsplit(url).path
        base_path = urlsplit(self.base_url).path
        match = re.fullmatch(
            rf"{re.escape(base_path)}/Patient(?:/(?P<id>[^/]+))?", path
        )
        if match is None:
            return self._operation_outcome(404, "not-supported", f"Unknown path {path}")
        patient_id = match.group("id")

        if patient_id is None:
            if method == "POST":
                return self._create(json or {})
            if method == "GET":
                return self._search(params or {})
        elif method == "GET":
            return self._read(patient_id)
        elif method == "PUT":
            return self._update(patient_id, json or {})
        elif method == "DELETE":
            return self._delete(patient_id)

        return self._operation_outcome(
            405, "not-supported", f"{method} not supported on {path}"
        )

    # ---------------------------
    # Interactions
    # ---------------------------

    def _create(self, body: dict[str, Any]) -> Response:
        if body.get("resourceType") != "Patient":
            return self._operation_outcome(400, "invalid", "Expected a Patient")

        patient_id = self._assign_id()
        patient = copy.deepcopy(body)
        self._store(patient_id, patient)
        stored, version_id = self._patients[patient_id]

        headers = {
            "Location": f"{self.base_url}/Patient/{patient_id}/_history/{version_id}",
            "ETag": f'W/"{version_id}"',
        }
        if self._omit_create_body:
            return _create_response(201, None, headers, reason="Created")
        return _create_response(201, copy.deepcopy(stored), headers, reason="Created")

    def _read(self, patient_id: str) -> Response:
        if patient_id in self._deleted:
            return self._operation_outcome(
                410, "deleted", f"Resource Patient/{patient_id} has been deleted"
            )
        if patient_id not in self._patients:
            return self._operation_outcome(
                404, "not-found", f"Resource Patient/{patient_id} is not known"
            )

        patient, version_id = self._patients[patient_id]
        return _create_response(
            200, copy.deepcopy(patient), {"ETag": f'W/"{version_id}"'}, reason="OK"
        )

    def _update(self, patient_id: str, body: dict[str, Any]) -> Response:
        if body.get("id") != patient_id:
            return self._operation_outcome(
                400, "invalid", "Resource id must match the URL id"
            )
        status_code = 200 if patient_id in self._patients else 201
        self._store(patient_id, copy.deepcopy(body))
        patient, version_id = self._patients[patient_id]
        return _create_response(
            status_code, copy.deepcopy(patient), {"ETag": f'W/"{version_id}"'}
        )

    def _delete(self, patient_id: str) -> Response:
        if self._patients.pop(patient_id, None) is not None:
            self._deleted.add(patient_id)
        return _create_response(204, None, reason="No Content")

    def _search(self, params: dict[str, Any]) -> Response:
        matches = [patient for patient, _ in self._patients.values()]

        name = params.get("name")
        if name is not None:
            matches = [p for p in matches if self._name_matches(p, str(name), None)]

        family = params.get("family")
        if family is not None:
            matches = [
                p for p in matches if self._name_matches(p, str(family), "family")
            ]

        identifier = params.get("identifier")
        if identifier is not None:
            system, _, value = str(identifier).rpartition("|")
            matches = [
                p for p in matches if self._identifier_matches(p, system, value)
            ]

        total = len(matches)
        count = params.get("_count")
        if count is not None:
            matches = matches[: int(count)]

        bundle = {
            "resourceType": "Bundle",
            "id": f"search-{len(self.requests)}",
            "type": "searchset",
            "total": total,
            "entry": [
                {
                    "fullUrl": f"{self.base_url}/Patient/{p['id']}",
                    "resource": copy.deepcopy(p),
                    "search": {"mode": "match"},
                }
                for p in matches
            ],
        }
        return _create_response(200, bundle, reason="OK")

    # ---------------------------
    # Internal helpers
    # ---------------------------

    def _assign_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def _store(self, patient_id: str, patient: dict[str, Any]) -> None:
        version_id = 1
        if patient_id in self._patients:
            version_id = self._patients[patient_id][1] + 1
        patient["id"] = patient_id
        patient["meta"] = {
            "versionId": str(version_id),
            "lastUpdated": self._now_fhir_instant(),
        }
        self._patients[patient_id] = (patient, version_id)
        self._deleted.discard(patient_id)

    @staticmethod
    def _name_matches(
        patient: dict[str, Any], term: str, only_part: str | None
    ) -> bool:
        """Case-insensitive starts-with match, as FHIR string search parameters do."""
        term = term.lower()
        for name in patient.get("name", []):
            parts: list[str] = []
            if only_part in (None, "family") and name.get("family"):
                parts.append(name["family"])
            if only_part is None:
                parts.extend(name.get("given", []))
            if any(part.lower().startswith(term) for part in parts):
                return True
        return False

    @staticmethod
    def _identifier_matches(patient: dict[str, Any], system: str, value: str) -> bool:
        return any(
            ident.get("value") == value
            and (not system or ident.get("system") == system)
            for ident in patient.get("identifier", [])
        )

    @staticmethod
    def _now_fhir_instant() -> str:
        return (
            datetime.now(timezone.utc)
            .replace(microsecond=0)
            .isoformat()
            .replace("+00:00", "Z")
        )

    @staticmethod
    def _operation_outcome(status_code: int, code: str, diagnostics: str) -> Response:
        body = {
            "resourceType": "OperationOutcome",
            "issue": [{"severity": "error", "code": code, "diagnostics": diagnostics}],
        }
        reason = HTTPStatus(status_code).phrase
        return _create_response(status_code, body, reason=reason)
