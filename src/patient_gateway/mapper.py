"""
Conversion between the flat :class:`PatientRecord` and the FHIR Patient resource.

Only the first name and first identifier of a resource are carried into a record,
so the projection is lossy for patients with several of either.
"""

from fhir import AdministrativeGender, HumanName, Identifier, Patient

from patient_gateway.patient_record import PatientRecord


def to_resource(record: PatientRecord) -> Patient:
    """
    Build a FHIR Patient resource from a record.

    :param record: A validated patient record.
    :returns: The Patient resource. ``id`` is only set when the record has one.
    :raises ValueError: If ``record.gender`` is not an AdministrativeGender code.
    """
    name = HumanName(family=record.family_name or "")
    if record.given_name is not None:
        name["given"] = [record.given_name]

    patient = Patient(resourceType="Patient", name=[name])

    if record.id:
        patient["id"] = record.id

    if record.gender is not None:
        patient["gender"] = AdministrativeGender(record.gender).value

    if record.birth_date is not None:
        patient["birthDate"] = record.birth_date

    if record.identifier is not None:
        identifier = Identifier(value=record.identifier)
        if record.identifier_system is not None:
            identifier["system"] = record.identifier_system
        patient["identifier"] = [identifier]

    return patient


def to_record(patient: Patient) -> PatientRecord:
    """
    Flatten a FHIR Patient resource into a record.

    Absent elements on the resource become ``None`` on the record.
    """
    names = patient.get("name") or []
    name: HumanName = names[0] if names else {}
    given = name.get("given")

    gender = patient.get("gender")

    identifiers = patient.get("identifier") or []
    identifier: Identifier = identifiers[0] if identifiers else {}

    return PatientRecord(
        id=patient.get("id"),
        given_name=" ".join(given) if given else None,
        family_name=name.get("family"),
        gender=AdministrativeGender(gender).value if gender is not None else None,
        birth_date=patient.get("birthDate"),
        identifier=identifier.get("value"),
        identifier_system=identifier.get("system"),
    )
