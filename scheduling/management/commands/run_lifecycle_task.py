import json

from django.core.management.base import BaseCommand, CommandError

from scheduling.exceptions import SchedulingError
from scheduling.services import lifecycle

TASKS = {
    'appointmentCleanup': lambda date: lifecycle.mark_missed_appointments(date),
    'dailyStats': lambda date: lifecycle.generate_daily_statistics(date),
    'weeklyCleanup': lambda date: lifecycle.perform_weekly_cleanup(date),
    'reminders': lambda date: lifecycle.process_reminders(),
}


class Command(BaseCommand):
    help = "Run one lifecycle task immediately, optionally for a specific date (YYYY-MM-DD)."

    def add_arguments(self, parser):
        parser.add_argument('name', choices=sorted(TASKS))
        parser.add_argument('--date', default=None, help='Target date; defaults to what the scheduled run would use')

    def handle(self, *args, **options):
        name = options['name']
        try:
            outcome = TASKS[name](options.get('date'))
        except SchedulingError as exc:
            raise CommandError(f"{name} failed: {exc.message}") from exc
        self.stdout.write(json.dumps(outcome, indent=2, default=str))
        self.stdout.write(self.style.SUCCESS(f"{name} finished"))
