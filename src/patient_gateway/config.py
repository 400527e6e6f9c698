"""
Environment-driven settings for the patient gateway.
"""

import os
from dataclasses import dataclass

DEFAULT_FHIR_SERVER_BASE_URL = "https://hapi.fhir.org/baseR4"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True)
class Settings:
    """
    :param fhir_server_base_url: Base address of the remote FHIR R4 server.
    :param connect_timeout: Seconds allowed to establish a connection.
    :param response_timeout: Seconds allowed to wait for the response.
    :param log_level: Root logging level name.
    """

    fhir_server_base_url: str = DEFAULT_FHIR_SERVER_BASE_URL
    connect_timeout: float = DEFAULT_TIMEOUT_SECONDS
    response_timeout: float = DEFAULT_TIMEOUT_SECONDS
    log_level: str = "INFO"


def _get_timeout(name: str) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError as err:
        raise RuntimeError(f"{name} must be a number of seconds, got {raw!r}") from err
    if value <= 0:
        raise RuntimeError(f"{name} must be greater than zero, got {raw!r}")
    return value


def load_settings() -> Settings:
    """
    Read settings from the environment.

    :raises RuntimeError: If a timeout variable is set to something other than a
        positive number.
    """
    return Settings(
        fhir_server_base_url=os.getenv(
            "FHIR_SERVER_BASE_URL", DEFAULT_FHIR_SERVER_BASE_URL
        ),
        connect_timeout=_get_timeout("FHIR_CONNECT_TIMEOUT"),
        response_timeout=_get_timeout("FHIR_RESPONSE_TIMEOUT"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


def get_app_host() -> str:
    host = os.getenv("FLASK_HOST")
    if host is None:
        raise RuntimeError("FLASK_HOST environment variable is not set.")
    return host


def get_app_port() -> int:
    port = os.getenv("FLASK_PORT")
    if port is None:
        raise RuntimeError("FLASK_PORT environment variable is not set.")
    return int(port)
