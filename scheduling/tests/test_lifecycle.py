from datetime import datetime, timedelta

import pytest
from django.utils import timezone

from scheduling.exceptions import InvalidInput, SnapshotExists
from scheduling.models import Appointment, AuditEvent, DailyStatsSnapshot, Patient
from scheduling.services import lifecycle, statistics
from scheduling.services.slots import shift_date, today_str

pytestmark = pytest.mark.django_db

FRIDAY = '2025-01-10'


def _appt(doctor, patient, date, time, status=Appointment.STATUS_BOOKED):
    return Appointment.objects.create(
        doctor=doctor, patient=patient, department=doctor.department, date=date, time=time, status=status,
    )


def test_cleanup_on_empty_date_is_zero():
    outcome = lifecycle.mark_missed_appointments(FRIDAY)
    assert outcome['appointmentsUpdated'] == 0
    assert AuditEvent.objects.filter(action='cron.appointment_status_update').exists()


def test_cleanup_defaults_to_yesterday_and_is_idempotent(doctor, patient):
    yesterday = shift_date(today_str(), -1)
    booked = _appt(doctor, patient, yesterday, '09:00')
    today = _appt(doctor, patient, today_str(), '09:00')
    assert lifecycle.mark_missed_appointments()['appointmentsUpdated'] == 1
    assert lifecycle.mark_missed_appointments()['appointmentsUpdated'] == 0
    booked.refresh_from_db()
    today.refresh_from_db()
    assert booked.status == Appointment.STATUS_MISSED
    assert today.status == Appointment.STATUS_BOOKED


def test_cleanup_never_reverts_final_statuses(doctor, patient):
    attended = _appt(doctor, patient, FRIDAY, '09:00', Appointment.STATUS_ATTENDED)
    missed = _appt(doctor, patient, FRIDAY, '09:30', Appointment.STATUS_MISSED)
    lifecycle.mark_missed_appointments(FRIDAY)
    lifecycle.generate_daily_statistics(FRIDAY)
    lifecycle.perform_weekly_cleanup()
    attended.refresh_from_db()
    missed.refresh_from_db()
    assert attended.status == Appointment.STATUS_ATTENDED
    assert missed.status == Appointment.STATUS_MISSED


def test_daily_statistics_twice_keeps_one_snapshot(doctor, other_doctor, patient):
    _appt(doctor, patient, FRIDAY, '09:00', Appointment.STATUS_ATTENDED)
    _appt(doctor, patient, FRIDAY, '09:30', Appointment.STATUS_MISSED)
    _appt(other_doctor, patient, FRIDAY, '09:00')
    first = lifecycle.generate_daily_statistics(FRIDAY)
    second = lifecycle.generate_daily_statistics(FRIDAY)
    assert first['skipped'] is False and second['skipped'] is True
    assert DailyStatsSnapshot.objects.filter(date=FRIDAY).count() == 1

    snap = DailyStatsSnapshot.objects.get(date=FRIDAY)
    day = Appointment.objects.filter(date=FRIDAY)
    assert snap.total_appointments == day.count() == 3
    assert snap.attended_appointments == 1
    assert snap.missed_appointments == 1
    assert snap.booked_appointments == 1
    by_doctor = {row['doctorId']: row for row in snap.doctor_stats}
    assert by_doctor[doctor.id]['totalAppointments'] == 2
    assert by_doctor[other_doctor.id]['booked'] == 1
    assert {row['departmentName'] for row in snap.department_stats} == {'Cardiology', 'Neurology'}


def test_daily_statistics_for_empty_day():
    lifecycle.generate_daily_statistics(FRIDAY)
    snap = DailyStatsSnapshot.objects.get(date=FRIDAY)
    assert snap.total_appointments == 0
    assert snap.department_stats == [] and snap.doctor_stats == []


def test_manual_generation_rejects_existing_snapshot():
    lifecycle.generate_statistics_for_date(FRIDAY)
    with pytest.raises(SnapshotExists):
        lifecycle.generate_statistics_for_date(FRIDAY)


def test_manual_mark_missed_only_for_past_dates(doctor, patient):
    _appt(doctor, patient, FRIDAY, '09:00')
    assert lifecycle.mark_missed_for_past_date(FRIDAY) == 1
    with pytest.raises(InvalidInput):
        lifecycle.mark_missed_for_past_date(today_str())
    with pytest.raises(InvalidInput):
        lifecycle.mark_missed_for_past_date(shift_date(today_str(), 3))


def test_weekly_cleanup_drops_old_snapshots_and_counts_patients(patient, settings):
    today = today_str()
    DailyStatsSnapshot.objects.create(date=shift_date(today, -400))
    DailyStatsSnapshot.objects.create(date=shift_date(today, -10))
    Patient.objects.filter(pk=patient.pk).update(created_at=timezone.now() - timedelta(days=45))
    outcome = lifecycle.perform_weekly_cleanup(today)
    assert outcome['oldStatsDeleted'] == 1
    assert outcome['inactivePatientsFound'] == 1
    assert DailyStatsSnapshot.objects.count() == 1
    assert Patient.objects.filter(pk=patient.pk).exists()


def test_reminders_select_next_hour_of_tomorrow(doctor, patient, monkeypatch):
    sent = []
    monkeypatch.setattr(lifecycle.notify, 'broadcast', lambda *args: sent.append(args))
    now = timezone.make_aware(datetime(2030, 1, 6, 8, 15))
    due = _appt(doctor, patient, '2030-01-07', '09:00')
    _appt(doctor, patient, '2030-01-07', '09:30', Appointment.STATUS_ATTENDED)
    _appt(doctor, patient, '2030-01-09', '09:00')
    outcome = lifecycle.process_reminders(now)
    assert outcome == {'appointmentsProcessed': 1, 'reminderDate': '2030-01-07', 'reminderTime': '09:00'}
    group, event_type, payload = sent[0]
    assert (group, event_type) == ('reminders', 'reminders.due')
    assert payload['appointments'][0]['appointmentId'] == due.id
    due.refresh_from_db()
    assert due.status == Appointment.STATUS_BOOKED


def test_cron_summary_metrics(doctor, patient):
    today = today_str()
    _appt(doctor, patient, today, '09:00')
    _appt(doctor, patient, shift_date(today, -1), '09:00', Appointment.STATUS_MISSED)
    _appt(doctor, patient, shift_date(today, 1), '09:00')
    statistics.create(statistics.compute_daily_rollup(FRIDAY))
    summary = lifecycle.cron_summary()
    assert summary == {
        'todayBookedAppointments': 1,
        'yesterdayMissedAppointments': 1,
        'tomorrowUpcomingAppointments': 1,
        'dailyStatsRecords': 1,
        'latestStatsDate': FRIDAY,
    }
