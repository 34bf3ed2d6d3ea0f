import bleach
from rest_framework import serializers

from scheduling.models import Appointment, Patient


def _clean(v):
    return bleach.clean((v or '').strip(), tags=set(), strip=True)


class BookAppointmentSerializer(serializers.Serializer):
    """Public and staff booking payload.

    Either ``patientId`` (existing patient) or the ``patient*`` profile
    fields (new patient) are expected; the booking engine decides which
    flow applies and reports missing profile fields itself.
    """
    doctorId = serializers.IntegerField(min_value=1)
    departmentId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    date = serializers.RegexField(r'^\d{4}-\d{2}-\d{2}$', error_messages={'invalid': 'Invalid date format. Use YYYY-MM-DD'})
    time = serializers.RegexField(r'^\d{2}:\d{2}$', error_messages={'invalid': 'Invalid time format. Use HH:MM'})
    patientId = serializers.CharField(max_length=32, required=False, allow_blank=True)
    patientName = serializers.CharField(max_length=255, required=False, allow_blank=True)
    patientEmail = serializers.EmailField(required=False, allow_blank=True)
    patientContact = serializers.CharField(max_length=32, required=False, allow_blank=True)
    patientAge = serializers.IntegerField(min_value=0, max_value=150, required=False, allow_null=True)
    patientGender = serializers.ChoiceField(choices=[c for c, _ in Patient.GENDER_CHOICES], required=False, allow_blank=True)
    patientAddress = serializers.CharField(required=False, allow_blank=True)
    emergencyContact = serializers.CharField(max_length=64, required=False, allow_blank=True)

    def validate_patientName(self, v):
        return _clean(v)

    def validate_patientContact(self, v):
        return _clean(v)

    def validate_patientId(self, v):
        return (v or '').strip()

    def profile(self) -> dict:
        d = self.validated_data
        return {
            'name': d.get('patientName'),
            'email': d.get('patientEmail'),
            'contact': d.get('patientContact'),
            'age': d.get('patientAge'),
            'gender': d.get('patientGender'),
            'address': d.get('patientAddress'),
            'emergency_contact': d.get('emergencyContact'),
        }


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.CharField(max_length=16)


class AppointmentListQuerySerializer(serializers.Serializer):
    status = serializers.CharField(max_length=16, required=False)
    date = serializers.CharField(max_length=10, required=False)
    doctorId = serializers.IntegerField(min_value=1, required=False)
    departmentId = serializers.IntegerField(min_value=1, required=False)
    startDate = serializers.CharField(max_length=10, required=False)
    endDate = serializers.CharField(max_length=10, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    limit = serializers.IntegerField(min_value=1, max_value=200, required=False)


class PatientHistoryQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Appointment.STATUS_CHOICES], required=False)
    upcoming = serializers.ChoiceField(choices=['true', 'false'], required=False)


def patient_summary(patient: Patient) -> dict:
    return {
        'id': patient.id,
        'patientId': patient.patient_id,
        'name': patient.name,
        'email': patient.email,
        'contact': patient.contact,
    }


def appointment_to_dict(appointment: Appointment) -> dict:
    doctor = appointment.doctor
    department = appointment.department
    patient = appointment.patient
    return {
        'id': appointment.id,
        'date': appointment.date,
        'time': appointment.time,
        'status': appointment.status,
        'doctor': {
            'id': doctor.id,
            'name': doctor.name,
            'specialization': doctor.specialization,
        },
        'department': {'id': department.id, 'name': department.name} if department else None,
        'patient': {
            'id': patient.id,
            'patientId': patient.patient_id,
            'name': patient.name,
            'contact': patient.contact,
        },
        'createdAt': appointment.created_at.isoformat() if appointment.created_at else None,
    }
