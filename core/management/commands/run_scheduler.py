import time

from django.core.management.base import BaseCommand, CommandError

from core.services.schedule import InvalidCadence, SyncScheduler
from core.tasks import run_guarded_pass


class Command(BaseCommand):
    help = "Runs the cron scheduler that triggers the sync & reminder pass."

    def add_arguments(self, parser):
        parser.add_argument(
            "--cron",
            help="Override the stored cron expression for this process.",
        )

    def handle(self, *args, **options):
        scheduler = SyncScheduler(run_guarded_pass, cadence=options.get("cron"))
        try:
            scheduler.start()
        except InvalidCadence as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(f"Scheduler running with cron {scheduler.cadence!r}."))
        try:
            while True:
                time.sleep(1)
        except (KeyboardInterrupt, SystemExit):
            pass
        finally:
            scheduler.stop()
