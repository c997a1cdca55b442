from django.core.management.base import BaseCommand, CommandError

from core.models import Student
from core.services.sync import sync_student
from core.tasks import run_guarded_pass


class Command(BaseCommand):
    help = "Runs one Codeforces sync & reminder pass now."

    def add_arguments(self, parser):
        parser.add_argument(
            "--student-id",
            type=int,
            help="Only refresh this student (no reminder is sent).",
        )

    def handle(self, *args, **options):
        student_id = options.get("student_id")
        if student_id:
            try:
                student = Student.objects.get(id=student_id)
            except Student.DoesNotExist:
                raise CommandError(f"Student {student_id} not found.")
            result = sync_student(student, remind=False)
            self.stdout.write(
                self.style.SUCCESS(
                    f"{result.handle}: rating {student.current_rating} (max {student.max_rating})."
                )
            )
            return

        summary = run_guarded_pass()
        if summary.get("status") == "locked":
            self.stdout.write(self.style.WARNING("Another sync pass is running; nothing done."))
            return

        self.stdout.write(
            self.style.SUCCESS(
                "Pass finished: {students} students, {synced} synced, {failed} failed, "
                "{reminders_sent} reminders, {quota_exceeded} over quota.".format(**summary)
            )
        )
