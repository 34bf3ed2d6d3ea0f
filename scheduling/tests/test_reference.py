import re

import pytest

from scheduling.exceptions import InvalidInput, PatientNotFound
from scheduling.models import IdentifierSequence
from scheduling.serializers.appointments import BookAppointmentSerializer
from scheduling.services import reference

pytestmark = pytest.mark.django_db

PROFILE = {
    'name': 'Ravi Nair',
    'email': 'Ravi.Nair@Example.com',
    'contact': '9000000002',
    'age': 30,
    'gender': 'Male',
}


def test_identifier_format():
    assert reference.format_patient_identifier(2025, 1) == 'PAT-2025-000001'
    assert reference.format_patient_identifier(2025, 123456) == 'PAT-2025-123456'


def test_identifiers_are_sequential():
    first = reference.next_patient_identifier(2030)
    second = reference.next_patient_identifier(2030)
    assert first == 'PAT-2030-000001'
    assert second == 'PAT-2030-000002'
    assert IdentifierSequence.objects.get(name='patient').value == 2


def test_create_patient_assigns_identifier_and_cleans_text():
    patient = reference.create_patient({**PROFILE, 'name': '<b>Ravi</b> Nair', 'address': '<script>x</script>Main St'})
    assert re.match(r'^PAT-\d{4}-\d{6}$', patient.patient_id)
    assert patient.name == 'Ravi Nair'
    assert '<script>' not in patient.address
    assert patient.email == 'ravi.nair@example.com'


def test_create_patient_requires_profile_fields():
    with pytest.raises(InvalidInput) as exc:
        reference.create_patient({'name': 'Only Name'})
    assert set(exc.value.extra['missing']) == {'email', 'contact', 'age', 'gender'}


def test_resolve_patient_by_human_id_then_internal_ref(patient):
    assert reference.resolve_patient(patient.patient_id) == patient
    assert reference.resolve_patient(str(patient.pk)) == patient
    with pytest.raises(PatientNotFound):
        reference.resolve_patient('PAT-1999-000001')


def test_find_by_contact_or_email(patient):
    assert reference.find_patient_by_contact_or_email('ASHA.RAO@example.com', None) == patient
    assert reference.find_patient_by_contact_or_email(None, patient.contact) == patient
    assert reference.find_patient_by_contact_or_email('nobody@example.com', '0') is None
    assert reference.find_patient_by_contact_or_email(None, None) is None


def test_get_doctor_tolerates_bad_ids(doctor):
    assert reference.get_doctor(doctor.pk) == doctor
    assert reference.get_doctor('abc') is None
    assert reference.get_doctor(999999) is None


def test_booking_payload_strips_markup_from_patient_fields():
    serializer = BookAppointmentSerializer(data={
        'doctorId': 1,
        'date': '2030-01-07',
        'time': '09:00',
        'patientName': '<strong>Ravi</strong> <a href="x">Nair</a>',
        'patientContact': '<i>9000000002</i>',
    })
    assert serializer.is_valid(), serializer.errors
    profile = serializer.profile()
    assert profile['name'] == 'Ravi Nair'
    assert profile['contact'] == '9000000002'
