import signal

from django.core.management.base import BaseCommand

from scheduling.services.scheduler import SchedulerService


class Command(BaseCommand):
    help = "Run the appointment lifecycle scheduler in the foreground until interrupted."

    def add_arguments(self, parser):
        parser.add_argument('--timezone', dest='tz', default=None, help='Override SCHEDULER_TIMEZONE')

    def handle(self, *args, **options):
        scheduler = SchedulerService(tz=options.get('tz'))

        def _shutdown(signum, frame):
            self.stdout.write(f"Received signal {signum}, stopping scheduler")
            scheduler.stop()

        signal.signal(signal.SIGTERM, _shutdown)
        signal.signal(signal.SIGINT, _shutdown)

        scheduler.start()
        for entry in scheduler.status():
            self.stdout.write(f"  {entry['name']:<20} {entry['schedule']:<14} next {entry['nextRun']}")
        self.stdout.write(self.style.SUCCESS(f"Scheduler running with {len(scheduler.tasks)} tasks (tz={scheduler.tz})"))
        scheduler.wait()
        self.stdout.write(self.style.SUCCESS("Scheduler stopped"))
