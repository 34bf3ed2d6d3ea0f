"""
Database models for the scheduling backend.

Departments, doctors and patients are reference data maintained by other
parts of the hospital system; the scheduling core reads them.  Appointments
and daily statistics snapshots are owned here.  Dates and times on
appointments are stored as ``YYYY-MM-DD`` / ``HH:MM`` strings so that slot
matching and range filters are plain lexical comparisons.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models
from django.db.models import Q
from django_prometheus.models import ExportModelOperationsMixin


WEEKDAYS = [
    'Monday',
    'Tuesday',
    'Wednesday',
    'Thursday',
    'Friday',
    'Saturday',
    'Sunday',
]


class Department(models.Model):
    name = models.CharField(max_length=255, unique=True)
    code = models.CharField(max_length=32, blank=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Custom user model carrying the hospital role.

    Staff and sub-admins are bound to a department; doctors and patients
    are linked to their reference records through one-to-one relations on
    :class:`Doctor` and :class:`Patient`.
    """
    ROLE_ADMIN = 'admin'
    ROLE_SUBADMIN = 'subadmin'
    ROLE_STAFF = 'staff'
    ROLE_DOCTOR = 'doctor'
    ROLE_PATIENT = 'patient'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_SUBADMIN, 'Sub-administrator'),
        (ROLE_STAFF, 'Staff'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_PATIENT, 'Patient'),
    ]
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_PATIENT, db_index=True)
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='users'
    )

    def __str__(self) -> str:
        return f"{self.username} ({self.role})"


class Doctor(models.Model):
    """A doctor with a weekly availability template.

    ``available_days`` holds English weekday names and ``time_slots`` an
    ordered list of ``{"startTime": "HH:MM", "endTime": "HH:MM"}``.  The
    slot order is significant: alternative slots are searched in it.
    """
    STATUS_ACTIVE = 'Active'
    STATUS_INACTIVE = 'Inactive'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
    ]
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='doctor_profile'
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(unique=True)
    specialization = models.CharField(max_length=255, db_index=True)
    department = models.ForeignKey(Department, on_delete=models.PROTECT, related_name='doctors')
    available_days = models.JSONField(default=list, blank=True)
    time_slots = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_ACTIVE, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True)

    @property
    def is_active(self) -> bool:
        return self.status == self.STATUS_ACTIVE

    def slot_start_times(self) -> list[str]:
        return [slot.get('startTime') for slot in (self.time_slots or []) if slot.get('startTime')]

    def __str__(self) -> str:
        return f"Dr. {self.name} ({self.specialization})"


class Patient(ExportModelOperationsMixin('patient'), models.Model):
    """Patient identity used by bookings.

    ``patient_id`` is the human readable ``PAT-YYYY-NNNNNN`` identifier.  It
    is assigned once by :func:`scheduling.services.reference.create_patient`
    and never changes afterwards.
    """
    GENDER_CHOICES = [
        ('Male', 'Male'),
        ('Female', 'Female'),
        ('Other', 'Other'),
    ]
    patient_id = models.CharField(max_length=20, unique=True)
    user = models.OneToOneField(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='patient_profile'
    )
    name = models.CharField(max_length=255)
    email = models.EmailField(db_index=True)
    contact = models.CharField(max_length=32, db_index=True)
    age = models.PositiveIntegerField()
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES)
    address = models.TextField(blank=True)
    emergency_contact = models.CharField(max_length=64, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    def __str__(self) -> str:
        return f"{self.patient_id} {self.name}"


class IdentifierSequence(models.Model):
    """Named monotonically increasing counter (e.g. ``patient``)."""
    name = models.CharField(max_length=32, primary_key=True)
    value = models.PositiveBigIntegerField(default=0)

    def __str__(self) -> str:
        return f"{self.name}={self.value}"


class Appointment(ExportModelOperationsMixin('appointment'), models.Model):
    STATUS_BOOKED = 'Booked'
    STATUS_ATTENDED = 'Attended'
    STATUS_MISSED = 'Missed'
    STATUS_CHOICES = [
        (STATUS_BOOKED, 'Booked'),
        (STATUS_ATTENDED, 'Attended'),
        (STATUS_MISSED, 'Missed'),
    ]
    # Statuses that keep a (doctor, date, time) slot occupied
    OPEN_STATUSES = (STATUS_BOOKED, STATUS_ATTENDED)

    doctor = models.ForeignKey(Doctor, on_delete=models.PROTECT, related_name='appointments')
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name='appointments')
    department = models.ForeignKey(
        Department, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments'
    )
    date = models.CharField(max_length=10, db_index=True)
    time = models.CharField(max_length=5)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_BOOKED, db_index=True)
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='appointments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=['doctor', 'date', 'time'],
                condition=Q(status__in=['Booked', 'Attended']),
                name='uniq_open_appointment_slot',
            ),
        ]
        indexes = [
            models.Index(fields=['doctor', 'date'], name='appt_doctor_date_idx'),
            models.Index(fields=['date', 'status'], name='appt_date_status_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.date} {self.time} d={self.doctor_id} p={self.patient_id} [{self.status}]"


class DailyStatsSnapshot(models.Model):
    """Immutable per-day rollup written by the statistics task."""
    date = models.CharField(max_length=10, unique=True)
    total_appointments = models.PositiveIntegerField(default=0)
    attended_appointments = models.PositiveIntegerField(default=0)
    missed_appointments = models.PositiveIntegerField(default=0)
    booked_appointments = models.PositiveIntegerField(default=0)
    department_stats = models.JSONField(default=list, blank=True)
    doctor_stats = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"stats {self.date} total={self.total_appointments}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.CharField(max_length=64, blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.object_type}:{self.object_id}"
