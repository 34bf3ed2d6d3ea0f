import pytest

from scheduling.exceptions import NotFound, SnapshotExists
from scheduling.models import DailyStatsSnapshot
from scheduling.services import statistics

pytestmark = pytest.mark.django_db


def _snap(date, total, attended, missed, booked=0):
    return DailyStatsSnapshot.objects.create(
        date=date,
        total_appointments=total,
        attended_appointments=attended,
        missed_appointments=missed,
        booked_appointments=booked,
    )


def test_create_rejects_duplicate_date():
    statistics.create(statistics.compute_daily_rollup('2025-01-10'))
    with pytest.raises(SnapshotExists):
        statistics.create(statistics.compute_daily_rollup('2025-01-10'))


def test_list_by_date_range_newest_first():
    for day in ('2025-01-01', '2025-01-02', '2025-01-03', '2025-02-01'):
        _snap(day, 1, 1, 0)
    page = statistics.list_by_date_range('2025-01-01', '2025-01-31', page=1, limit=2)
    assert [s.date for s in page.items] == ['2025-01-03', '2025-01-02']
    assert page.total == 3 and page.has_next


def test_summarise_rates():
    _snap('2025-01-01', 10, 6, 4)
    _snap('2025-01-02', 10, 9, 1)
    summary = statistics.summarise()
    assert summary['totalDays'] == 2
    assert summary['totalAppointments'] == 20
    assert summary['avgDailyAppointments'] == 10
    assert summary['overallAttendanceRate'] == 75.0
    assert summary['overallMissedRate'] == 25.0


def test_summarise_empty_range():
    summary = statistics.summarise('2030-01-01', '2030-12-31')
    assert summary['totalDays'] == 0
    assert summary['overallAttendanceRate'] == 0


def test_delete_older_than_and_lookup():
    _snap('2024-01-01', 1, 0, 1)
    _snap('2025-06-01', 1, 1, 0)
    assert statistics.delete_older_than('2025-01-01') == 1
    assert statistics.get_by_date('2024-01-01') is None
    assert statistics.require_by_date('2025-06-01').total_appointments == 1
    with pytest.raises(NotFound):
        statistics.require_by_date('2025-06-02')
