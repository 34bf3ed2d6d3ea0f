"""
Recurring maintenance tasks for appointments and statistics.

Each task takes an optional reference date/time so it can be re-run for a
past day, returns a small outcome dict, logs it and records an audit event.
All of them are safe to run more than once for the same target date.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

from scheduling.exceptions import InvalidInput
from scheduling.models import Appointment, DailyStatsSnapshot, Patient
from scheduling.services import ledger, notify, statistics
from scheduling.services.audit import log_action
from scheduling.services.slots import format_date, shift_date, today_str, validate_date

logger = logging.getLogger(__name__)


def _yesterday() -> str:
    return shift_date(today_str(), -1)


def mark_missed_appointments(target_date: Optional[str] = None) -> dict:
    """Booked appointments of ``target_date`` (default yesterday) become Missed."""
    target_date = target_date or _yesterday()
    updated = ledger.mark_missed_for_date(target_date)
    outcome = {'date': target_date, 'appointmentsUpdated': updated, 'action': 'marked_as_missed'}
    logger.info("Updated %s appointments to 'Missed' status for date: %s", updated, target_date)
    log_action(user=None, action='cron.appointment_status_update', object_type='appointment', detail=outcome)
    return outcome


def generate_daily_statistics(target_date: Optional[str] = None) -> dict:
    """Write the snapshot for ``target_date`` (default yesterday) unless one exists."""
    target_date = validate_date(target_date or _yesterday())
    if statistics.get_by_date(target_date) is not None:
        logger.info("Daily statistics already exist for %s", target_date)
        return {'date': target_date, 'skipped': True}
    snapshot = statistics.create(statistics.compute_daily_rollup(target_date))
    outcome = {
        'date': target_date,
        'skipped': False,
        'totalAppointments': snapshot.total_appointments,
        'departmentsProcessed': len(snapshot.department_stats),
        'doctorsProcessed': len(snapshot.doctor_stats),
    }
    logger.info("Daily statistics generated for %s: %s", target_date, outcome)
    log_action(
        user=None, action='cron.daily_statistics_generation',
        object_type='daily_stats', object_id=snapshot.id, detail=outcome,
    )
    return outcome


def perform_weekly_cleanup(today: Optional[str] = None) -> dict:
    """Drop snapshots outside the retention window and count long-registered patients.

    The patient count is informational only; no patient rows are touched.
    """
    today = today or today_str()
    cutoff = shift_date(today, -settings.SNAPSHOT_RETENTION_DAYS)
    deleted = statistics.delete_older_than(cutoff)
    logger.info("Cleaned up %s old daily statistics records (before %s)", deleted, cutoff)

    inactive_before = timezone.make_aware(
        datetime.strptime(shift_date(today, -settings.INACTIVE_PATIENT_DAYS), '%Y-%m-%d')
    )
    inactive = Patient.objects.filter(created_at__lt=inactive_before).count()
    logger.info(
        "Found %s potentially inactive patients (created more than %s days ago)",
        inactive, settings.INACTIVE_PATIENT_DAYS,
    )
    outcome = {'oldStatsDeleted': deleted, 'inactivePatientsFound': inactive, 'cleanupDate': today}
    log_action(user=None, action='cron.weekly_cleanup', detail=outcome)
    return outcome


def reminder_candidates(now: Optional[datetime] = None) -> tuple[str, str, list]:
    now = timezone.localtime(now or timezone.now())
    tomorrow = format_date(now.date() + timedelta(days=1))
    reminder_time = f"{now.hour + 1:02d}:00"
    appointments = list(
        Appointment.objects.select_related('patient', 'doctor')
        .filter(date=tomorrow, status=Appointment.STATUS_BOOKED, time__startswith=reminder_time[:3])
        .order_by('time')
    )
    return tomorrow, reminder_time, appointments


def process_reminders(now: Optional[datetime] = None) -> dict:
    """Select tomorrow's appointments in the upcoming hour and hand them off.

    Nothing is delivered or modified here; candidates are published on the
    ``reminders`` channel group for a notification consumer.
    """
    tomorrow, reminder_time, appointments = reminder_candidates(now)
    logger.info(
        "Found %s appointments needing reminders for %s at %s",
        len(appointments), tomorrow, reminder_time,
    )
    for appointment in appointments:
        logger.debug(
            "Reminder needed for: %s - Appointment with Dr. %s on %s at %s",
            appointment.patient.name, appointment.doctor.name, appointment.date, appointment.time,
        )
    if appointments:
        notify.broadcast(notify.REMINDERS_GROUP, "reminders.due", {
            "date": tomorrow,
            "time": reminder_time,
            "appointments": [
                {
                    "appointmentId": a.id,
                    "patientId": a.patient.patient_id,
                    "patientName": a.patient.name,
                    "email": a.patient.email,
                    "contact": a.patient.contact,
                    "doctorName": a.doctor.name,
                    "time": a.time,
                }
                for a in appointments
            ],
        })
    outcome = {
        'appointmentsProcessed': len(appointments),
        'reminderDate': tomorrow,
        'reminderTime': reminder_time,
    }
    log_action(user=None, action='cron.reminder_processing', detail=outcome)
    return outcome


def generate_statistics_for_date(date: str) -> DailyStatsSnapshot:
    """Manual trigger; unlike the scheduled task an existing snapshot is an error."""
    validate_date(date)
    snapshot = statistics.create(statistics.compute_daily_rollup(date))
    log_action(
        user=None, action='cron.manual_statistics_generation',
        object_type='daily_stats', object_id=snapshot.id, detail={'date': date},
    )
    return snapshot


def mark_missed_for_past_date(date: str, today: Optional[str] = None) -> int:
    validate_date(date)
    if date >= (today or today_str()):
        raise InvalidInput("Can only update appointments for past dates")
    updated = ledger.mark_missed_for_date(date)
    logger.info("Manually marked %s appointments as Missed for %s", updated, date)
    log_action(
        user=None, action='cron.manual_status_update', object_type='appointment',
        detail={'date': date, 'updatedCount': updated},
    )
    return updated


def cron_summary(today: Optional[str] = None) -> dict:
    today = today or today_str()
    yesterday = shift_date(today, -1)
    tomorrow = shift_date(today, 1)
    latest = DailyStatsSnapshot.objects.order_by('-date').first()
    return {
        'todayBookedAppointments': Appointment.objects.filter(
            date=today, status=Appointment.STATUS_BOOKED).count(),
        'yesterdayMissedAppointments': Appointment.objects.filter(
            date=yesterday, status=Appointment.STATUS_MISSED).count(),
        'tomorrowUpcomingAppointments': Appointment.objects.filter(
            date=tomorrow, status=Appointment.STATUS_BOOKED).count(),
        'dailyStatsRecords': DailyStatsSnapshot.objects.count(),
        'latestStatsDate': latest.date if latest else None,
    }
