"""
Statistics and scheduler control endpoints.

Mirrors the cron dashboard of the hospital front end: browsing the daily
snapshots, manual re-runs of the lifecycle jobs for a given date and a
summary of the scheduler's state.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from scheduling.permissions import IsAdmin, IsAdminOrSubAdmin
from scheduling.serializers.statistics import DailyStatsQuerySerializer, TargetDateSerializer
from scheduling.services import statistics
from scheduling.services.audit import log_action
from scheduling.services.scheduler import get_scheduler


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSubAdmin])
def daily_statistics(request):
    q = DailyStatsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    start = q.validated_data.get('startDate')
    end = q.validated_data.get('endDate')
    page = statistics.list_by_date_range(
        start, end,
        page=q.validated_data.get('page') or 1,
        limit=q.validated_data.get('limit') or 30,
    )
    return Response({
        'summary': statistics.summarise(start, end),
        'dailyStatistics': [statistics.snapshot_to_dict(s) for s in page.items],
        'pagination': page.pagination(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminOrSubAdmin])
def statistics_by_date(request, date: str):
    return Response(statistics.snapshot_to_dict(statistics.require_by_date(date)))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def generate_statistics(request):
    s = TargetDateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    snapshot = get_scheduler().generate_statistics_for_date(s.validated_data['date'])
    log_action(user=request.user, action='stats.generate', object_type='daily_stats', object_id=snapshot.id)
    return Response({
        'message': "Daily statistics generated successfully",
        'stats': statistics.snapshot_to_dict(snapshot),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdmin])
def update_missed_appointments(request):
    s = TargetDateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    date = s.validated_data['date']
    updated = get_scheduler().mark_missed_for_past_date(date)
    return Response({
        'message': f"Updated {updated} appointments to 'Missed' status",
        'date': date,
        'updatedCount': updated,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdmin])
def cron_summary(request):
    return Response(get_scheduler().cron_summary())
