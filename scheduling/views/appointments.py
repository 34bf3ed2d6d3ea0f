"""
Appointment booking and management endpoints.

Patients book, look up and cancel their appointments without an account,
identified by their ``PAT-YYYY-NNNNNN`` patient ID.  Staff book on behalf
of patients in their own department; staff, sub-admins and admins list
appointments and record attendance.  Domain errors raised by the services
propagate to the project exception handler.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from scheduling.actors import (
    Staff,
    actor_for_user,
    allowed_override_statuses,
    can_manage_appointment,
    department_scope,
)
from scheduling.exceptions import InvalidStatus, PatientNotFound
from scheduling.permissions import IsStaffRole
from scheduling.serializers.appointments import (
    AppointmentListQuerySerializer,
    BookAppointmentSerializer,
    PatientHistoryQuerySerializer,
    StatusUpdateSerializer,
    appointment_to_dict,
    patient_summary,
)
from scheduling.services import ledger, reference
from scheduling.services.audit import log_action
from scheduling.services.booking import BookingRequest, book

NEW_PATIENT_NOTE = (
    "Save your Patient ID for future appointments. "
    "You can book future appointments using just this Patient ID."
)


def _booking_response(request, actor):
    s = BookAppointmentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    d = s.validated_data
    user = request.user if getattr(request.user, 'is_authenticated', False) else None
    result = book(
        BookingRequest(
            doctor_id=d['doctorId'],
            department_id=d.get('departmentId'),
            date=d['date'],
            time=d['time'],
            patient_id=d.get('patientId') or None,
            profile=s.profile(),
        ),
        actor,
        created_by=user,
    )
    payload = {
        'message': result.message,
        'isNewPatient': result.is_new_patient,
        'patientId': result.patient.patient_id,
        'patientDetails': patient_summary(result.patient),
        'appointment': appointment_to_dict(result.appointment),
        'redirected': result.redirected,
    }
    if result.redirected:
        payload['requestedSlot'] = {'date': result.requested_date, 'time': result.requested_time}
        payload['bookedSlot'] = {'date': result.appointment.date, 'time': result.appointment.time}
    if result.is_new_patient:
        payload['note'] = NEW_PATIENT_NOTE
    return Response(payload, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([AllowAny])
def book_appointment(request):
    """Public booking for a new patient profile or an existing patient ID."""
    return _booking_response(request, actor_for_user(request.user))


book_appointment.cls.throttle_scope = 'booking'


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsStaffRole])
def staff_book_appointment(request):
    return _booking_response(request, actor_for_user(request.user))


@api_view(['GET'])
@permission_classes([AllowAny])
def patient_appointments(request, patient_id: str):
    q = PatientHistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    patient = reference.find_patient_by_human_id(patient_id)
    if patient is None:
        raise PatientNotFound("Patient not found")
    upcoming = q.validated_data.get('upcoming')
    history = ledger.patient_history(
        patient,
        status=q.validated_data.get('status'),
        upcoming=None if upcoming is None else upcoming == 'true',
    )
    return Response({
        'patient': patient_summary(patient),
        'summary': history['summary'],
        'appointments': {
            'upcoming': [appointment_to_dict(a) for a in history['upcoming']],
            'past': [appointment_to_dict(a) for a in history['past']],
        },
    })


@api_view(['DELETE'])
@permission_classes([AllowAny])
def cancel_patient_appointment(request, patient_id: str, appointment_id: int):
    patient = reference.find_patient_by_human_id(patient_id)
    if patient is None:
        raise PatientNotFound("Patient not found")
    ledger.cancel(appointment_id, patient)
    log_action(
        user=None, action='appointment.cancelled', object_type='appointment',
        object_id=appointment_id, detail={'patientId': patient.patient_id},
    )
    return Response({'message': "Appointment cancelled successfully"})


cancel_patient_appointment.cls.throttle_scope = 'booking'


@api_view(['GET'])
@permission_classes([AllowAny])
def search_patient(request, patient_id: str):
    """Lets a returning patient confirm their ID before booking."""
    patient = reference.resolve_patient(patient_id)
    return Response({
        'found': True,
        'patient': {
            **patient_summary(patient),
            'age': patient.age,
            'gender': patient.gender,
        },
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated, IsStaffRole])
def update_appointment_status(request, pk: int):
    s = StatusUpdateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    new_status = s.validated_data['status']
    actor = actor_for_user(request.user)
    appointment = ledger.get(pk)
    if not can_manage_appointment(actor, appointment):
        raise PermissionDenied('forbidden for this appointment')
    allowed = allowed_override_statuses(actor)
    if new_status in ledger.VALID_STATUSES and new_status not in allowed:
        raise PermissionDenied(f"You may only set status to {', '.join(sorted(allowed))}")
    if new_status not in ledger.VALID_STATUSES:
        raise InvalidStatus("Invalid status", allowed=sorted(ledger.VALID_STATUSES))
    previous = appointment.status
    appointment = ledger.transition_status(pk, new_status)
    log_action(
        user=request.user, action='appointment.status', object_type='appointment',
        object_id=pk, detail={'from': previous, 'to': new_status},
    )
    return Response({
        'message': "Appointment status updated successfully",
        'appointment': appointment_to_dict(appointment),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsStaffRole])
def all_appointments(request):
    q = AppointmentListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    d = q.validated_data
    actor = actor_for_user(request.user)
    scope = department_scope(actor)
    department = d.get('departmentId')
    if scope is not None:
        department = scope
    elif isinstance(actor, Staff):
        raise PermissionDenied('staff account is not bound to a department')
    filters = ledger.AppointmentFilter(
        status=d.get('status'),
        date=d.get('date'),
        doctor=d.get('doctorId'),
        department=department,
        date_from=d.get('startDate'),
        date_to=d.get('endDate'),
    )
    page = ledger.query(filters, page=d.get('page') or 1, limit=d.get('limit') or 20)
    return Response({
        'appointments': [appointment_to_dict(a) for a in page.items],
        'pagination': page.pagination(),
    })
