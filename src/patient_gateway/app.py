import logging
from datetime import datetime, timezone
from typing import Any

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from patient_gateway.config import (
    Settings,
    get_app_host,
    get_app_port,
    load_settings,
)
from patient_gateway.controller import DEFAULT_LIST_COUNT, PatientController
from patient_gateway.errors import NotFound, RemoteFault, ValidationFailed
from patient_gateway.fhir_client import FhirClient
from patient_gateway.patient_record import PatientRecord

logger = logging.getLogger(__name__)

CONTROLLER_EXTENSION = "patient_controller"
LOG_FORMAT = "%(levelname)s | %(name)s | %(message)s"

patients = Blueprint("patients", __name__, url_prefix="/api/patients")


def _controller() -> PatientController:
    controller: PatientController = current_app.extensions[CONTROLLER_EXTENSION]
    return controller


def _records_response(records: list[PatientRecord]) -> Response:
    return jsonify([record.to_json() for record in records])


def _query_arg(name: str) -> str:
    value = request.args.get(name)
    if value is None:
        raise ValidationFailed(field_errors={name: f"{name} is required"})
    return value


@patients.route("", methods=["POST"])
def create_patient() -> tuple[Response, int]:
    logger.info("POST /api/patients - Creating new patient")
    created = _controller().create(request.get_json(silent=True))
    return jsonify(created.to_json()), 201


@patients.route("/<patient_id>", methods=["GET"])
def get_patient(patient_id: str) -> Response | tuple[str, int]:
    logger.info("GET /api/patients/%s - Fetching patient", patient_id)
    record = _controller().get_by_id(patient_id)
    if record is None:
        return "", 404
    return jsonify(record.to_json())


@patients.route("", methods=["GET"])
def list_patients() -> Response:
    raw_count = request.args.get("count")
    try:
        count = int(raw_count) if raw_count is not None else DEFAULT_LIST_COUNT
    except ValueError as err:
        raise ValidationFailed(
            field_errors={"count": "count must be an integer"}
        ) from err

    logger.info("GET /api/patients - Listing patients (count=%d)", count)
    return _records_response(_controller().list_patients(count))


@patients.route("/search", methods=["GET"])
def search_by_name() -> Response:
    name = _query_arg("name")
    logger.info("GET /api/patients/search?name=%s - Searching by name", name)
    return _records_response(_controller().search_by_name(name))


@patients.route("/search/family", methods=["GET"])
def search_by_family_name() -> Response:
    name = _query_arg("name")
    logger.info(
        "GET /api/patients/search/family?name=%s - Searching by family name", name
    )
    return _records_response(_controller().search_by_family_name(name))


@patients.route("/search/identifier", methods=["GET"])
def search_by_identifier() -> Response:
    system = _query_arg("system")
    value = _query_arg("value")
    logger.info(
        "GET /api/patients/search/identifier - system=%s, value=%s", system, value
    )
    return _records_response(_controller().search_by_identifier(system, value))


@patients.route("/<patient_id>", methods=["PUT"])
def update_patient(patient_id: str) -> Response:
    logger.info("PUT /api/patients/%s - Updating patient", patient_id)
    updated = _controller().update(patient_id, request.get_json(silent=True))
    return jsonify(updated.to_json())


@patients.route("/<patient_id>", methods=["DELETE"])
def delete_patient(patient_id: str) -> tuple[str, int]:
    logger.info("DELETE /api/patients/%s - Deleting patient", patient_id)
    _controller().delete(patient_id)
    return "", 204


def _error_body(status_code: int, error: str, **extra: Any) -> dict[str, Any]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "error": error,
        **extra,
    }


def _handle_validation_failed(err: ValidationFailed) -> tuple[Response, int]:
    body = _error_body(err.status_code, err.message, details=err.field_errors)
    return jsonify(body), err.status_code


def _handle_not_found(err: NotFound) -> tuple[Response, int]:
    body = _error_body(err.status_code, "Not Found", message=err.message)
    return jsonify(body), err.status_code


def _handle_remote_fault(err: RemoteFault) -> tuple[Response, int]:
    body = _error_body(err.status_code, "FHIR Server Error", message=err.message)
    return jsonify(body), err.status_code


def _handle_unexpected(err: Exception) -> Response | tuple[Response, int]:
    # Let Flask render its own 404/405 responses for unknown routes and methods.
    if isinstance(err, HTTPException):
        return err.get_response()

    logger.exception("Unexpected error occurred")
    body = _error_body(
        500,
        "Internal Server Error",
        message="An unexpected error occurred. Please try again later.",
    )
    return jsonify(body), 500


def health_check() -> Response:
    """Health check endpoint."""
    return jsonify({"status": "healthy"})


def create_app(
    controller: PatientController | None = None, settings: Settings | None = None
) -> Flask:
    """
    Build the Flask application.

    :param controller: Controller to serve requests with. If omitted, one is built
        with a :class:`FhirClient` configured from ``settings``.
    :param settings: Settings to use; read from the environment if omitted.
    :returns: The configured application.
    """
    settings = settings or load_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    if controller is None:
        controller = PatientController(
            FhirClient(
                base_url=settings.fhir_server_base_url,
                connect_timeout=settings.connect_timeout,
                response_timeout=settings.response_timeout,
            )
        )

    app = Flask(__name__)
    app.extensions[CONTROLLER_EXTENSION] = controller

    app.register_blueprint(patients)
    app.add_url_rule("/health", view_func=health_check, methods=["GET"])

    app.register_error_handler(ValidationFailed, _handle_validation_failed)
    app.register_error_handler(NotFound, _handle_not_found)
    app.register_error_handler(RemoteFault, _handle_remote_fault)
    app.register_error_handler(Exception, _handle_unexpected)

    return app


if __name__ == "__main__":
    create_app().run(host=get_app_host(), port=get_app_port())
