"""
Error taxonomy for the scheduling core and the API exception handler.

Services raise the typed errors below; views let them propagate and
:func:`api_exception_handler` renders them in the unified
``{"ok": false, "error": {...}}`` envelope with the mapped status code.
"""
from __future__ import annotations

from typing import Any

from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response


class SchedulingError(Exception):
    code = 'scheduling_error'
    http_status = 400

    def __init__(self, message: str = '', **extra: Any) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.extra = extra

    def as_payload(self) -> dict:
        return {'code': self.code, 'message': self.message, **self.extra}


class NotFound(SchedulingError):
    code = 'not_found'
    http_status = 404


class PatientNotFound(NotFound):
    code = 'patient_not_found'


class DoctorNotFound(NotFound):
    code = 'doctor_not_found'


class AppointmentNotFound(NotFound):
    code = 'appointment_not_found'


class Conflict(SchedulingError):
    code = 'conflict'
    http_status = 409


class SlotConflict(Conflict):
    """The (doctor, date, time) slot was taken by a concurrent booking."""
    code = 'slot_conflict'


class DuplicatePatient(Conflict):
    code = 'duplicate_patient'

    def __init__(self, existing_patient_id: str) -> None:
        super().__init__(
            f"Patient already exists with Patient ID: {existing_patient_id}. "
            "Please use this Patient ID to book appointments.",
            existingPatientId=existing_patient_id,
        )
        self.existing_patient_id = existing_patient_id


class SnapshotExists(Conflict):
    code = 'snapshot_exists'


class InvalidInput(SchedulingError):
    code = 'invalid_input'
    http_status = 400


class InvalidSlot(InvalidInput):
    code = 'invalid_slot'


class InvalidStatus(InvalidInput):
    code = 'invalid_status'


class InvalidDate(InvalidInput):
    code = 'invalid_date'


class IllegalState(SchedulingError):
    code = 'illegal_state'
    http_status = 409


class Unavailable(SchedulingError):
    code = 'unavailable'
    http_status = 422


class DoctorUnavailable(Unavailable):
    code = 'doctor_unavailable'


class SlotConflictUnresolved(Unavailable):
    code = 'no_available_slots'


def api_exception_handler(exc, context):
    if isinstance(exc, SchedulingError):
        return Response({'ok': False, 'error': exc.as_payload()}, status=exc.http_status)
    resp = drf_exception_handler(exc, context)
    if resp is None:
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = str(resp.data)
    return Response({'ok': False, 'error': {'code': 'api_error', 'message': detail}}, status=resp.status_code)
