"""
Error kinds raised by the controller layer and translated into responses by the app.
"""

from dataclasses import dataclass, field


@dataclass
class GatewayError(Exception):
    """
    Base class for errors raised (and handled) by the patient gateway.

    Instances are caught by the Flask error handlers and converted into a JSON
    response with the carried status code.

    :param status_code: HTTP status code that should be returned.
    :param message: Human-readable error message.
    """

    status_code: int
    message: str

    def __str__(self) -> str:
        """
        Coercing this exception to a string returns the error message.

        :returns: The error message.
        """
        return self.message


@dataclass
class ValidationFailed(GatewayError):
    """
    One or more request fields are missing or malformed.

    :param field_errors: Mapping of field name to validation message.
    """

    status_code: int = 400
    message: str = "Validation Failed"
    field_errors: dict[str, str] = field(default_factory=dict)


@dataclass
class NotFound(GatewayError):
    """The addressed patient does not exist on the FHIR server."""

    status_code: int = 404
    message: str = "Patient not found"


@dataclass
class RemoteFault(GatewayError):
    """
    The FHIR server answered with an error status, or could not be reached.

    ``status_code`` is the status reported by the server, or 502 when the
    failure happened at the transport level (timeout, refused connection).
    """

    status_code: int = 502
    message: str = "FHIR server request failed"
