import logging
import os
import sys

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)

# Management commands that never need background jobs inside the process
_NO_SCHEDULER_COMMANDS = {'migrate', 'makemigrations', 'shell', 'test', 'collectstatic', 'run_scheduler', 'run_lifecycle_task'}


def should_start_scheduler(argv, environ, enabled: bool) -> bool:
    """Whether this process should host the in-process scheduler."""
    if not enabled:
        return False
    command = argv[1] if len(argv) > 1 else ''
    if command in _NO_SCHEDULER_COMMANDS:
        return False
    # runserver's autoreloader imports the project twice; only the child serves
    if command == 'runserver' and environ.get('RUN_MAIN') != 'true':
        return False
    try:
        workers = int(environ.get('WEB_CONCURRENCY') or 1)
    except ValueError:
        workers = 1
    if workers > 1:
        logger.warning(
            "SCHEDULER_ENABLED ignored with WEB_CONCURRENCY=%s; run `manage.py run_scheduler` separately",
            workers,
        )
        return False
    return True


class SchedulingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'scheduling'

    def ready(self):
        if 'pytest' in sys.modules:
            return
        if not should_start_scheduler(sys.argv, os.environ, getattr(settings, 'SCHEDULER_ENABLED', False)):
            return
        from scheduling.services.scheduler import get_scheduler
        get_scheduler().start()
        logger.info("Lifecycle scheduler started in-process (%s)", sys.argv[1] if len(sys.argv) > 1 else 'server')
