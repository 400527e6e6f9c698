"""Shared state for the acceptance scenarios."""

from dataclasses import dataclass

import pytest
from werkzeug.test import TestResponse


@dataclass
class ResponseContext:
    """Carries the last response, and any created patient id, between steps."""

    response: TestResponse | None = None
    patient_id: str | None = None


@pytest.fixture
def response_context() -> ResponseContext:
    return ResponseContext()
