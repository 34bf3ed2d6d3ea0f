"""
Daily statistics snapshots.

A snapshot is the per-day rollup of appointment counts overall, per
department and per doctor.  Snapshots are written once per date and never
overwritten.
"""
from __future__ import annotations

import logging
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, Q, Sum

from scheduling.exceptions import NotFound, SnapshotExists
from scheduling.models import Appointment, DailyStatsSnapshot
from scheduling.services.ledger import Page
from scheduling.services.slots import validate_date

logger = logging.getLogger(__name__)

_COUNTS = dict(
    total=Count('id'),
    attended=Count('id', filter=Q(status=Appointment.STATUS_ATTENDED)),
    missed=Count('id', filter=Q(status=Appointment.STATUS_MISSED)),
    booked=Count('id', filter=Q(status=Appointment.STATUS_BOOKED)),
)


def get_by_date(date: str) -> Optional[DailyStatsSnapshot]:
    return DailyStatsSnapshot.objects.filter(date=date).first()


def require_by_date(date: str) -> DailyStatsSnapshot:
    snapshot = get_by_date(validate_date(date))
    if snapshot is None:
        raise NotFound("Statistics not found for this date")
    return snapshot


def _range(start: Optional[str], end: Optional[str]):
    qs = DailyStatsSnapshot.objects.all()
    if start:
        qs = qs.filter(date__gte=start)
    if end:
        qs = qs.filter(date__lte=end)
    return qs


def list_by_date_range(start: Optional[str] = None, end: Optional[str] = None, page: int = 1, limit: int = 30) -> Page:
    qs = _range(start, end).order_by('-date')
    total = qs.count()
    page = max(int(page or 1), 1)
    offset = (page - 1) * limit
    return Page(items=list(qs[offset:offset + limit]), total=total, page=page, limit=limit)


def summarise(start: Optional[str] = None, end: Optional[str] = None) -> dict:
    agg = _range(start, end).aggregate(
        totalDays=Count('id'),
        avgDailyAppointments=Avg('total_appointments'),
        totalAppointments=Sum('total_appointments'),
        totalAttended=Sum('attended_appointments'),
        totalMissed=Sum('missed_appointments'),
        totalBooked=Sum('booked_appointments'),
    )
    summary = {key: (value or 0) for key, value in agg.items()}
    total = summary['totalAppointments']
    summary['avgDailyAppointments'] = round(float(summary['avgDailyAppointments']), 2)
    summary['overallAttendanceRate'] = round(summary['totalAttended'] / total * 100, 2) if total else 0
    summary['overallMissedRate'] = round(summary['totalMissed'] / total * 100, 2) if total else 0
    return summary


def compute_daily_rollup(date: str) -> dict:
    """Aggregate the ledger for ``date`` into snapshot field values."""
    validate_date(date)
    day = Appointment.objects.filter(date=date)
    overall = day.aggregate(**_COUNTS)
    departments = (
        day.filter(department__isnull=False)
        .values('department_id', 'department__name')
        .annotate(**_COUNTS)
        .order_by('department__name')
    )
    doctors = (
        day.values('doctor_id', 'doctor__name', 'doctor__specialization')
        .annotate(**_COUNTS)
        .order_by('doctor__name')
    )
    return {
        'date': date,
        'total_appointments': overall['total'],
        'attended_appointments': overall['attended'],
        'missed_appointments': overall['missed'],
        'booked_appointments': overall['booked'],
        'department_stats': [
            {
                'departmentId': row['department_id'],
                'departmentName': row['department__name'],
                'totalAppointments': row['total'],
                'attended': row['attended'],
                'missed': row['missed'],
                'booked': row['booked'],
            }
            for row in departments
        ],
        'doctor_stats': [
            {
                'doctorId': row['doctor_id'],
                'doctorName': row['doctor__name'],
                'specialization': row['doctor__specialization'],
                'totalAppointments': row['total'],
                'attended': row['attended'],
                'missed': row['missed'],
                'booked': row['booked'],
            }
            for row in doctors
        ],
    }


def create(values: dict) -> DailyStatsSnapshot:
    if DailyStatsSnapshot.objects.filter(date=values['date']).exists():
        raise SnapshotExists("Statistics already exist for this date", date=values['date'])
    try:
        with transaction.atomic():
            snapshot = DailyStatsSnapshot.objects.create(**values)
    except IntegrityError:
        raise SnapshotExists("Statistics already exist for this date", date=values['date']) from None
    logger.info("Stored statistics snapshot for %s (total=%s)", snapshot.date, snapshot.total_appointments)
    return snapshot


def delete_older_than(date: str) -> int:
    deleted, _ = DailyStatsSnapshot.objects.filter(date__lt=date).delete()
    return deleted


def snapshot_to_dict(snapshot: DailyStatsSnapshot) -> dict:
    return {
        'id': snapshot.id,
        'date': snapshot.date,
        'totalAppointments': snapshot.total_appointments,
        'attendedAppointments': snapshot.attended_appointments,
        'missedAppointments': snapshot.missed_appointments,
        'bookedAppointments': snapshot.booked_appointments,
        'departmentStats': snapshot.department_stats,
        'doctorStats': snapshot.doctor_stats,
        'createdAt': snapshot.created_at.isoformat() if snapshot.created_at else None,
    }
