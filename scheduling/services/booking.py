"""
Booking engine.

A booking request goes through validation (doctor active and operating on
the requested day, time matching one of the doctor's slots), patient
resolution (existing identifier or new profile) and slot resolution.  When
the requested slot is taken the engine books the doctor's next free slot
instead and flags the result as redirected; it only gives up when nothing is
free within the booking horizon.

Patient registration and the reservation share one transaction, so a
rejected booking never leaves a freshly registered patient behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import PermissionDenied

from scheduling.actors import Actor, can_book_for_department
from scheduling.exceptions import (
    DoctorNotFound,
    DoctorUnavailable,
    DuplicatePatient,
    InvalidInput,
    InvalidSlot,
    SlotConflict,
    SlotConflictUnresolved,
)
from scheduling.models import Appointment, Doctor, Patient, User
from scheduling.services import ledger, notify, reference
from scheduling.services.audit import log_action
from scheduling.services.slots import (
    find_next_available,
    has_slot,
    is_operating_day,
    is_slot_taken,
    validate_date,
    validate_time,
    weekday_name,
)

logger = logging.getLogger(__name__)

# Re-resolutions after losing a reservation race before giving up
MAX_RESERVE_ATTEMPTS = 3


@dataclass
class BookingRequest:
    doctor_id: int
    date: str
    time: str
    department_id: Optional[int] = None
    patient_id: Optional[str] = None
    profile: dict = field(default_factory=dict)


@dataclass
class BookingResult:
    appointment: Appointment
    patient: Patient
    is_new_patient: bool
    redirected: bool = False
    requested_date: Optional[str] = None
    requested_time: Optional[str] = None

    @property
    def message(self) -> str:
        if self.redirected:
            return (
                f"Requested slot {self.requested_date} {self.requested_time} was unavailable. "
                f"Appointment booked for {self.appointment.date} {self.appointment.time} instead"
            )
        if self.is_new_patient:
            return "New patient registered and appointment booked successfully"
        return "Appointment booked successfully for existing patient"


def _validate(request: BookingRequest) -> Doctor:
    validate_date(request.date)
    validate_time(request.time)
    doctor = reference.get_doctor(request.doctor_id)
    if doctor is None:
        raise DoctorNotFound("Doctor not found")
    if not doctor.is_active:
        raise DoctorUnavailable("Doctor not available")
    if not is_operating_day(doctor, request.date):
        raise DoctorUnavailable(
            f"Doctor is not available on {weekday_name(request.date)}s",
            availableDays=doctor.available_days,
        )
    if not has_slot(doctor, request.time):
        raise InvalidSlot(
            "Invalid time slot. Please check doctor's available time slots.",
            timeSlots=doctor.time_slots,
        )
    if request.department_id and int(request.department_id) != doctor.department_id:
        raise InvalidInput("Doctor does not belong to the selected department")
    return doctor


def _resolve_patient(request: BookingRequest) -> tuple[Patient, bool]:
    if request.patient_id:
        return reference.resolve_patient(request.patient_id), False
    profile = request.profile or {}
    existing = reference.find_patient_by_contact_or_email(profile.get('email'), profile.get('contact'))
    if existing is not None:
        raise DuplicatePatient(existing.patient_id)
    return reference.create_patient(profile), True


def _reserve(doctor: Doctor, patient: Patient, request: BookingRequest, created_by: Optional[User]) -> tuple[Appointment, bool]:
    date, time = request.date, request.time
    redirected = False
    horizon = settings.BOOKING_HORIZON_DAYS
    for attempt in range(1, MAX_RESERVE_ATTEMPTS + 1):
        if is_slot_taken(doctor, date, time):
            found = find_next_available(doctor, request.date, horizon)
            if found is None:
                raise SlotConflictUnresolved(
                    f"No available slots within the next {horizon} days",
                    requestedDate=request.date,
                    requestedTime=request.time,
                )
            date, time = found
            redirected = True
        try:
            appointment = ledger.reserve(doctor, patient, doctor.department, date, time, created_by)
        except SlotConflict:
            logger.info("Slot %s %s for doctor %s taken during attempt %s", date, time, doctor.pk, attempt)
            continue
        return appointment, redirected
    raise SlotConflictUnresolved(
        "Could not secure a slot, please try again",
        requestedDate=request.date,
        requestedTime=request.time,
    )


def _announce(appointment: Appointment, redirected: bool) -> None:
    notify.broadcast(notify.UPDATES_GROUP, "appointment.booked", {
        "appointmentId": appointment.id,
        "doctorId": appointment.doctor_id,
        "departmentId": appointment.department_id,
        "date": appointment.date,
        "time": appointment.time,
        "redirected": redirected,
    })


def book(request: BookingRequest, actor: Actor, created_by: Optional[User] = None) -> BookingResult:
    """Validate, resolve the patient and reserve a slot for ``request``.

    Raises ``DoctorNotFound``, ``DoctorUnavailable``, ``InvalidSlot``,
    ``PatientNotFound``, ``InvalidInput``, ``DuplicatePatient`` or
    ``SlotConflictUnresolved``. Staff booking outside their department get
    ``PermissionDenied``.
    """
    doctor = _validate(request)
    if not can_book_for_department(actor, doctor.department_id):
        raise PermissionDenied("You can only book appointments for doctors in your department")

    with transaction.atomic():
        patient, is_new = _resolve_patient(request)
        appointment, redirected = _reserve(doctor, patient, request, created_by)
        log_action(
            user=created_by,
            action='appointment.booked',
            object_type='appointment',
            object_id=appointment.id,
            detail={
                'patientId': patient.patient_id,
                'newPatient': is_new,
                'requested': f"{request.date} {request.time}",
                'booked': f"{appointment.date} {appointment.time}",
                'redirected': redirected,
            },
        )
        transaction.on_commit(lambda a=appointment, r=redirected: _announce(a, r))

    if redirected:
        logger.info(
            "Redirected booking for doctor %s from %s %s to %s %s",
            doctor.pk, request.date, request.time, appointment.date, appointment.time,
        )
    appointment = ledger.get(appointment.pk)
    return BookingResult(
        appointment=appointment,
        patient=patient,
        is_new_patient=is_new,
        redirected=redirected,
        requested_date=request.date if redirected else None,
        requested_time=request.time if redirected else None,
    )
