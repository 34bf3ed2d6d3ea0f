"""
Django admin registrations for the scheduling models.

Reference data (departments, doctors, patients) can be maintained here
during development; snapshots and audit events are shown read-only.
"""

from django.contrib import admin

from .models import (
    Appointment,
    AuditEvent,
    DailyStatsSnapshot,
    Department,
    Doctor,
    IdentifierSequence,
    Patient,
    User,
)


@admin.register(Department)
class DepartmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'code', 'created_at')
    search_fields = ('name', 'code')


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'department', 'is_staff', 'is_superuser')
    list_filter = ('role', 'department')
    search_fields = ('username', 'email')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialization', 'department', 'status')
    list_filter = ('status', 'department')
    search_fields = ('name', 'email', 'specialization')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('patient_id', 'name', 'email', 'contact', 'age', 'gender', 'created_at')
    search_fields = ('patient_id', 'name', 'email', 'contact')
    readonly_fields = ('patient_id',)


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'date', 'time', 'doctor', 'patient', 'department', 'status')
    list_filter = ('status', 'department', 'date')
    search_fields = ('patient__patient_id', 'patient__name', 'doctor__name')
    raw_id_fields = ('doctor', 'patient', 'created_by')


@admin.register(DailyStatsSnapshot)
class DailyStatsSnapshotAdmin(admin.ModelAdmin):
    list_display = ('date', 'total_appointments', 'attended_appointments', 'missed_appointments', 'booked_appointments')
    readonly_fields = [f.name for f in DailyStatsSnapshot._meta.fields]


@admin.register(IdentifierSequence)
class IdentifierSequenceAdmin(admin.ModelAdmin):
    list_display = ('name', 'value')


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'action', 'object_type', 'object_id', 'user')
    list_filter = ('action',)
    readonly_fields = ('created_at', 'action', 'object_type', 'object_id', 'user', 'detail')
