"""FHIR AdministrativeGender code set."""

from enum import StrEnum


class AdministrativeGender(StrEnum):
    """
    The fixed value set bound to ``Patient.gender``.

    Decoding an unknown code (``AdministrativeGender("x")``) raises
    :class:`ValueError`.
    """

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    UNKNOWN = "unknown"
