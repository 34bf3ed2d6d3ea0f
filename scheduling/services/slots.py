"""
Slot resolution for a doctor's weekly availability template.

A doctor operates on the weekdays listed in ``available_days`` and offers
the slots in ``time_slots`` on each of them.  A slot on a given date is
taken when an appointment in an open status (Booked or Attended) exists for
the same doctor, date and start time.
"""
from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from django.conf import settings
from django.utils import timezone

from scheduling.exceptions import InvalidDate, InvalidSlot
from scheduling.models import WEEKDAYS, Appointment, Doctor

DATE_FORMAT = '%Y-%m-%d'
_TIME_RE = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def parse_date(value: str) -> date:
    try:
        return datetime.strptime(value or '', DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise InvalidDate("Invalid date format. Use YYYY-MM-DD") from None


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def validate_date(value: str) -> str:
    """Return ``value`` unchanged if it is a canonical ``YYYY-MM-DD`` string."""
    if format_date(parse_date(value)) != value:
        raise InvalidDate("Invalid date format. Use YYYY-MM-DD")
    return value


def validate_time(value: str) -> str:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise InvalidSlot("Invalid time format. Use HH:MM (24-hour)")
    return value


def today_str() -> str:
    return format_date(timezone.localdate())


def shift_date(value: str, days: int) -> str:
    return format_date(parse_date(value) + timedelta(days=days))


def weekday_name(value: str) -> str:
    return WEEKDAYS[parse_date(value).weekday()]


def is_operating_day(doctor: Doctor, value: str) -> bool:
    return weekday_name(value) in (doctor.available_days or [])


def has_slot(doctor: Doctor, time: str) -> bool:
    return time in doctor.slot_start_times()


def taken_times(doctor: Doctor, value: str) -> set[str]:
    return set(
        Appointment.objects.filter(
            doctor=doctor, date=value, status__in=Appointment.OPEN_STATUSES
        ).values_list('time', flat=True)
    )


def is_slot_taken(doctor: Doctor, value: str, time: str) -> bool:
    return Appointment.objects.filter(
        doctor=doctor, date=value, time=time, status__in=Appointment.OPEN_STATUSES
    ).exists()


def list_open_slots(doctor: Doctor, value: str) -> list[dict]:
    """Slots still free on ``value``, in the doctor's configured order.

    Returns an empty list on days the doctor does not operate.
    """
    if not is_operating_day(doctor, value):
        return []
    taken = taken_times(doctor, value)
    return [dict(slot) for slot in (doctor.time_slots or []) if slot.get('startTime') not in taken]


def find_next_available(doctor: Doctor, from_date: str, horizon_days: Optional[int] = None) -> Optional[Tuple[str, str]]:
    """First free ``(date, time)`` at or after ``from_date``.

    Dates are scanned chronologically for ``horizon_days`` days (``from_date``
    included); within a date slots are tried in configured order.  Taken
    times are loaded once per operating day.
    """
    if horizon_days is None:
        horizon_days = settings.BOOKING_HORIZON_DAYS
    starts = doctor.slot_start_times()
    if not starts:
        return None
    start = parse_date(from_date)
    for offset in range(horizon_days):
        candidate = format_date(start + timedelta(days=offset))
        if not is_operating_day(doctor, candidate):
            continue
        taken = taken_times(doctor, candidate)
        for time in starts:
            if time not in taken:
                return candidate, time
    return None


def describe_day(doctor: Doctor, value: str) -> dict:
    """Availability of one doctor on one date, as exposed by the slots endpoint."""
    operating = is_operating_day(doctor, value)
    taken = taken_times(doctor, value) if operating else set()
    return {
        'doctorId': doctor.id,
        'date': value,
        'weekday': weekday_name(value),
        'operating': operating,
        'slots': [
            {**slot, 'available': slot.get('startTime') not in taken}
            for slot in (doctor.time_slots or [])
        ] if operating else [],
    }
