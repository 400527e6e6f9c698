"""
Module: patient_gateway.fhir_client

Client for the Patient endpoints of a FHIR R4 server.

Usage:

    client = FhirClient(base_url="https://hapi.fhir.org/baseR4")

    patient_id = client.create_patient(patient)
    patient = client.read_patient(patient_id)  # None if the server has no such id
    matches = client.search_patients({"family": "Smith"})

Every call is a single HTTP round trip with a ``(connect, response)`` timeout and
no retries. Failures surface as :class:`ExternalServiceError`.
"""

import logging
import re
from collections.abc import Callable
from typing import Any, cast
from urllib.parse import quote

import requests
from fhir import Bundle, OperationOutcome, Patient
from requests import Response

logger = logging.getLogger(__name__)

RequestCallable = Callable[..., Response]

FHIR_JSON = "application/fhir+json"
RESOURCE_TYPE = "Patient"

# Status codes a FHIR server uses for "no such resource". 410 is returned by
# servers that keep a tombstone for deleted resources (e.g. HAPI).
NOT_FOUND_STATUS_CODES = frozenset({404, 410})

_LOCATION_ID = re.compile(r"Patient/(?P<id>[^/]+)(?:/_history/[^/]+)?/?$")


def _resource_path(patient_id: str) -> str:
    return f"{RESOURCE_TYPE}/{quote(patient_id, safe='')}"


class ExternalServiceError(Exception):
    """
    Raised when a request to the FHIR server fails.

    Wraps requests exceptions so callers are not coupled to requests exception types.

    :param message: Human-readable description of the failure.
    :param status_code: Status returned by the server, or ``None`` if no response
        was received (timeout, connection failure).
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class FhirClient:
    """
    Simple client for FHIR R4 Patient create/read/update/delete/search.

    The client holds no per-request state and may be shared between requests.

    :param base_url: Base URL of the FHIR server. Trailing slashes are stripped.
    :param connect_timeout: Seconds allowed to establish a connection.
    :param response_timeout: Seconds allowed to wait for a response.
    :param request_method: Callable with the signature of :func:`requests.request`.
        Tests substitute an in-memory server here.
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 30,
        response_timeout: float = 30,
        *,
        request_method: RequestCallable = requests.request,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.response_timeout = response_timeout
        self.request_method = request_method

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.response_timeout)

    def create_patient(self, patient: Patient) -> str:
        """
        ``POST [base]/Patient``.

        :param patient: Resource to create. Any ``id`` is ignored by the server.
        :returns: The server-assigned resource id.
        :raises ExternalServiceError: If the request fails, or the server's response
            does not say which id it assigned.
        """
        response = self._send("POST", RESOURCE_TYPE, json=patient)

        body = self._json_or_none(response)
        if body and body.get("id"):
            return str(body["id"])

        for header in ("Location", "Content-Location"):
            match = _LOCATION_ID.search(response.headers.get(header, ""))
            if match:
                return match.group("id")

        raise ExternalServiceError(
            "FHIR server did not return an id for the created Patient",
            status_code=502,
        )

    def read_patient(self, patient_id: str) -> Patient | None:
        """
        ``GET [base]/Patient/{id}``.

        :returns: The resource, or ``None`` if the server reports it does not exist.
        :raises ExternalServiceError: For any other failure.
        """
        response = self._send(
            "GET", _resource_path(patient_id), allow=NOT_FOUND_STATUS_CODES
        )
        if response.status_code in NOT_FOUND_STATUS_CODES:
            logger.warning("Patient not found with ID: %s", patient_id)
            return None

        body = self._json(response)
        if body.get("resourceType") != RESOURCE_TYPE:
            raise ExternalServiceError(
                f"FHIR server returned {body.get('resourceType')!r} "
                f"when reading Patient/{patient_id}",
                status_code=502,
            )
        return cast("Patient", body)

    def search_patients(self, params: dict[str, str | int]) -> list[Patient]:
        """
        ``GET [base]/Patient?{params}``.

        Only the first page of the result Bundle is read. Entries that are not
        Patient resources are dropped.

        :returns: Matching resources, in the order the server returned them.
        """
        response = self._send("GET", RESOURCE_TYPE, params=params)
        bundle = cast("Bundle", self._json(response))

        entries = bundle.get("entry") or []
        logger.debug("Bundle contains %d entries", len(entries))

        return [
            cast("Patient", entry["resource"])
            for entry in entries
            if entry.get("resource", {}).get("resourceType") == RESOURCE_TYPE
        ]

    def update_patient(self, patient_id: str, patient: Patient) -> None:
        """
        ``PUT [base]/Patient/{id}``. A full replacement of the stored resource.
        """
        resource = cast("Patient", {**patient, "id": patient_id})
        self._send("PUT", _resource_path(patient_id), json=resource)

    def delete_patient(self, patient_id: str) -> None:
        """``DELETE [base]/Patient/{id}``."""
        self._send("DELETE", _resource_path(patient_id))

    # --------------- internal helpers -----------------

    def _build_headers(self, has_body: bool) -> dict[str, str]:
        headers = {"Accept": FHIR_JSON}
        if has_body:
            headers["Content-Type"] = FHIR_JSON
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str | int] | None = None,
        json: Patient | None = None,
        allow: frozenset[int] = frozenset(),
    ) -> Response:
        """
        Issue one request and raise for any error status not listed in ``allow``.
        """
        url = f"{self.base_url}/{path}"

        try:
            response = self.request_method(
                method,
                url,
                headers=self._build_headers(has_body=json is not None),
                params=params,
                json=json,
                timeout=self.timeout,
            )
        except requests.Timeout as err:
            raise ExternalServiceError(
                f"FHIR server timed out: {method} {url}"
            ) from err
        except requests.RequestException as err:
            raise ExternalServiceError(
                f"FHIR server could not be reached: {method} {url}: {err}"
            ) from err

        logger.info("%s %s -> %s", method, url, response.status_code)

        if response.status_code in allow:
            return response

        try:
            response.raise_for_status()
        except requests.HTTPError as err:
            raise ExternalServiceError(
                f"FHIR server request failed: {response.status_code} "
                f"{response.reason}{self._diagnostics(response)}",
                status_code=response.status_code,
            ) from err

        return response

    @staticmethod
    def _json(response: Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as err:
            raise ExternalServiceError(
                "FHIR server returned a body that is not valid JSON",
                status_code=502,
            ) from err
        if not isinstance(body, dict):
            raise ExternalServiceError(
                "FHIR server returned JSON that is not a resource", status_code=502
            )
        return cast("dict[str, Any]", body)

    @staticmethod
    def _json_or_none(response: Response) -> dict[str, Any] | None:
        """A create may be answered with an empty body (``Prefer: return=minimal``)."""
        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return cast("dict[str, Any]", body) if isinstance(body, dict) else None

    @staticmethod
    def _diagnostics(response: Response) -> str:
        """
        Pull the diagnostics text out of an OperationOutcome error body, if present.
        """
        try:
            body = response.json()
        except ValueError:
            return ""
        if not isinstance(body, dict) or body.get("resourceType") != "OperationOutcome":
            return ""

        outcome = cast("OperationOutcome", body)
        details = [
            issue["diagnostics"]
            for issue in outcome.get("issue", [])
            if issue.get("diagnostics")
        ]
        return f": {'; '.join(details)}" if details else ""
