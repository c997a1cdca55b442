from django.core.management.base import BaseCommand, CommandError

from core.services.schedule import InvalidCadence, get_sync_cron, update_sync_schedule


class Command(BaseCommand):
    help = "Shows or updates the cron expression of the sync pass."

    def add_arguments(self, parser):
        parser.add_argument(
            "cron",
            nargs="?",
            help='New cron expression, ex: "0 2 * * *". Omit to show the current one.',
        )

    def handle(self, *args, **options):
        cron = options.get("cron")
        if not cron:
            self.stdout.write(get_sync_cron())
            return

        try:
            value = update_sync_schedule(cron)
        except InvalidCadence as exc:
            raise CommandError(str(exc))

        self.stdout.write(self.style.SUCCESS(f"Sync cron set to {value!r}."))
