from django.db import connections
from django.http import JsonResponse

from scheduling.services.scheduler import get_scheduler


def healthz(request):
    scheduler = get_scheduler()
    jobs = {'running': scheduler.is_running, 'jobCount': len(scheduler.tasks)}
    try:
        with connections['default'].cursor() as c:
            c.execute('SELECT 1')
            row = c.fetchone()
        return JsonResponse({'ok': True, 'db': bool(row and row[0] == 1), 'scheduler': jobs})
    except Exception as e:
        return JsonResponse({'ok': False, 'error': str(e), 'scheduler': jobs}, status=500)
