"""
Appointment ledger: the single writer of appointment rows.

``reserve`` is the only way to create an appointment.  It locks the
doctor's row for the duration of the check-and-insert and relies on the
``uniq_open_appointment_slot`` partial unique constraint as the final
arbiter, so two concurrent reservations of the same doctor/date/time can
never both succeed.  Databases that ignore conditional constraints (MySQL)
still serialize through the row lock.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from scheduling.exceptions import (
    AppointmentNotFound,
    IllegalState,
    InvalidStatus,
    SlotConflict,
)
from scheduling.models import Appointment, Department, Doctor, Patient, User
from scheduling.services.slots import shift_date, today_str, validate_date, validate_time

logger = logging.getLogger(__name__)

DEFAULT_ORDERING = ('-date', 'time')
FILTER_FIELDS = ('status', 'date', 'doctor', 'department', 'patient')
VALID_STATUSES = {choice for choice, _ in Appointment.STATUS_CHOICES}


@dataclass
class Page:
    items: list
    total: int
    page: int
    limit: Optional[int]

    @property
    def total_pages(self) -> int:
        if not self.limit:
            return 1
        return math.ceil(self.total / self.limit)

    @property
    def has_next(self) -> bool:
        return bool(self.limit) and self.page * self.limit < self.total

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self, total_key: str = 'totalRecords') -> dict:
        return {
            'currentPage': self.page,
            'totalPages': self.total_pages,
            total_key: self.total,
            'hasNext': self.has_next,
            'hasPrev': self.has_prev,
        }


@dataclass
class AppointmentFilter:
    status: Optional[str] = None
    date: Optional[str] = None
    doctor: Optional[int] = None
    department: Optional[int] = None
    patient: Optional[int] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    ordering: Sequence[str] = field(default=DEFAULT_ORDERING)

    def apply(self, qs: QuerySet) -> QuerySet:
        for name in FILTER_FIELDS:
            value = getattr(self, name)
            if value not in (None, ''):
                qs = qs.filter(**{name: value})
        if self.date_from:
            qs = qs.filter(date__gte=self.date_from)
        if self.date_to:
            qs = qs.filter(date__lte=self.date_to)
        return qs.order_by(*self.ordering)


def _with_relations(qs: QuerySet) -> QuerySet:
    return qs.select_related('doctor', 'patient', 'department')


def reserve(
    doctor: Doctor,
    patient: Patient,
    department: Optional[Department],
    date: str,
    time: str,
    created_by: Optional[User] = None,
) -> Appointment:
    """Atomically book ``doctor`` at ``date``/``time`` for ``patient``.

    Raises :class:`SlotConflict` when an open appointment already holds the
    slot, including when a concurrent caller wins the race.
    """
    validate_date(date)
    validate_time(time)
    try:
        with transaction.atomic():
            Doctor.objects.select_for_update().filter(pk=doctor.pk).first()
            taken = Appointment.objects.filter(
                doctor=doctor, date=date, time=time, status__in=Appointment.OPEN_STATUSES
            ).exists()
            if taken:
                raise SlotConflict("This time slot is already booked", date=date, time=time)
            appointment = Appointment.objects.create(
                doctor=doctor,
                patient=patient,
                department=department,
                date=date,
                time=time,
                status=Appointment.STATUS_BOOKED,
                created_by=created_by if created_by is not None and created_by.pk else None,
            )
    except IntegrityError:
        logger.info("Lost booking race for doctor=%s %s %s", doctor.pk, date, time)
        raise SlotConflict("This time slot is already booked", date=date, time=time) from None
    logger.info("Reserved appointment %s: doctor=%s %s %s", appointment.pk, doctor.pk, date, time)
    return appointment


def get(appointment_id) -> Appointment:
    appointment = _with_relations(Appointment.objects.all()).filter(pk=appointment_id).first()
    if appointment is None:
        raise AppointmentNotFound("Appointment not found")
    return appointment


def transition_status(appointment_id, new_status: str) -> Appointment:
    """Set the status unconditionally; callers decide which moves are legal."""
    if new_status not in VALID_STATUSES:
        raise InvalidStatus("Invalid status", allowed=sorted(VALID_STATUSES))
    try:
        with transaction.atomic():
            appointment = Appointment.objects.select_for_update().get(pk=appointment_id)
            previous = appointment.status
            appointment.status = new_status
            appointment.save(update_fields=['status'])
    except Appointment.DoesNotExist:
        raise AppointmentNotFound("Appointment not found") from None
    except IntegrityError:
        # Reopening a slot somebody else has since booked
        raise SlotConflict("This time slot is already booked") from None
    logger.info("Appointment %s: %s -> %s", appointment.pk, previous, new_status)
    return get(appointment.pk)


def cancel(appointment_id, patient: Patient, today: Optional[str] = None) -> None:
    """Delete a patient's future Booked appointment."""
    today = today or today_str()
    with transaction.atomic():
        appointment = (
            Appointment.objects.select_for_update()
            .filter(pk=appointment_id, patient=patient)
            .first()
        )
        if appointment is None:
            raise AppointmentNotFound("Appointment not found or cannot be cancelled")
        if appointment.status != Appointment.STATUS_BOOKED:
            raise IllegalState(f"Cannot cancel an appointment with status {appointment.status}")
        if appointment.date <= today:
            raise IllegalState("Cannot cancel past or today's appointments")
        appointment.delete()
    logger.info("Cancelled appointment %s for patient %s", appointment_id, patient.patient_id)


def mark_missed_for_date(date: str) -> int:
    """Flip every still-Booked appointment on ``date`` to Missed."""
    validate_date(date)
    return Appointment.objects.filter(date=date, status=Appointment.STATUS_BOOKED).update(
        status=Appointment.STATUS_MISSED
    )


def query(filters: Optional[AppointmentFilter] = None, page: Optional[int] = None, limit: Optional[int] = None) -> Page:
    """Filtered appointments, newest date first and earliest time first.

    ``page`` is 1-indexed and only applied together with ``limit``.
    """
    filters = filters or AppointmentFilter()
    qs = _with_relations(filters.apply(Appointment.objects.all()))
    total = qs.count()
    page = max(int(page or 1), 1)
    if limit:
        start = (page - 1) * limit
        qs = qs[start:start + limit]
    return Page(items=list(qs), total=total, page=page, limit=limit)


def patient_history(patient: Patient, status: Optional[str] = None, upcoming: Optional[bool] = None, today: Optional[str] = None) -> dict:
    today = today or today_str()
    filters = AppointmentFilter(status=status, patient=patient.pk)
    if upcoming is True:
        filters.date_from = today
    elif upcoming is False:
        filters.date_to = shift_date(today, -1)
    appointments = query(filters).items
    past = [a for a in appointments if a.date < today]
    future = [a for a in appointments if a.date >= today]
    return {
        'summary': {
            'total': len(appointments),
            'upcoming': len(future),
            'past': len(past),
            'attended': sum(1 for a in appointments if a.status == Appointment.STATUS_ATTENDED),
            'missed': sum(1 for a in appointments if a.status == Appointment.STATUS_MISSED),
        },
        'upcoming': future,
        'past': past,
    }
