"""
Read access to doctors and patients, and patient registration.

Doctors and departments are maintained elsewhere in the hospital system;
the scheduling core only reads them.  Patients are created here because a
booking may register a new patient on the fly.
"""
from __future__ import annotations

import logging
from typing import Optional

import bleach
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from scheduling.exceptions import InvalidInput, PatientNotFound
from scheduling.models import Doctor, IdentifierSequence, Patient

logger = logging.getLogger(__name__)

PATIENT_SEQUENCE = 'patient'
PATIENT_REQUIRED_FIELDS = ('name', 'email', 'contact', 'age', 'gender')


def format_patient_identifier(year: int, sequence: int) -> str:
    return f"PAT-{year:04d}-{sequence:06d}"


def get_doctor(doctor_id) -> Optional[Doctor]:
    try:
        return Doctor.objects.select_related('department').filter(pk=int(doctor_id)).first()
    except (TypeError, ValueError):
        return None


def find_patient_by_human_id(patient_id: str) -> Optional[Patient]:
    if not patient_id:
        return None
    return Patient.objects.filter(patient_id=patient_id).first()


def find_patient_by_ref(ref) -> Optional[Patient]:
    try:
        return Patient.objects.filter(pk=int(ref)).first()
    except (TypeError, ValueError):
        return None


def resolve_patient(identifier) -> Patient:
    """Look up by ``PAT-...`` identifier first, then by internal reference."""
    patient = find_patient_by_human_id(str(identifier)) or find_patient_by_ref(identifier)
    if patient is None:
        raise PatientNotFound(
            "Patient not found. Please provide patient details to register as a new patient."
        )
    return patient


def find_patient_by_contact_or_email(email: Optional[str], contact: Optional[str]) -> Optional[Patient]:
    cond = Q()
    if email:
        cond |= Q(email__iexact=email)
    if contact:
        cond |= Q(contact=contact)
    if not cond:
        return None
    return Patient.objects.filter(cond).order_by('id').first()


def next_patient_identifier(year: Optional[int] = None) -> str:
    """Reserve the next patient identifier.

    The counter row is incremented with a single ``UPDATE ... SET value =
    value + 1`` while locked, so concurrent registrations never observe the
    same sequence number.
    """
    year = year or timezone.localdate().year
    with transaction.atomic():
        IdentifierSequence.objects.get_or_create(name=PATIENT_SEQUENCE)
        IdentifierSequence.objects.filter(name=PATIENT_SEQUENCE).update(value=F('value') + 1)
        value = IdentifierSequence.objects.get(name=PATIENT_SEQUENCE).value
    return format_patient_identifier(year, value)


def _clean(value) -> str:
    return bleach.clean(str(value or '').strip(), tags=set(), strip=True)


def create_patient(profile: dict) -> Patient:
    missing = [f for f in PATIENT_REQUIRED_FIELDS if profile.get(f) in (None, '')]
    if missing:
        raise InvalidInput(
            "For new patients, please provide: patientName, patientEmail, patientContact, "
            "patientAge, and patientGender",
            missing=missing,
        )
    with transaction.atomic():
        patient = Patient.objects.create(
            patient_id=next_patient_identifier(),
            name=_clean(profile['name']),
            email=str(profile['email']).strip().lower(),
            contact=_clean(profile['contact']),
            age=int(profile['age']),
            gender=profile['gender'],
            address=_clean(profile.get('address')),
            emergency_contact=_clean(profile.get('emergency_contact')),
            user=profile.get('user'),
        )
    logger.info("Registered patient %s", patient.patient_id)
    return patient
