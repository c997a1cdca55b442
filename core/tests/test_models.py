from datetime import datetime, timedelta, timezone as dt_timezone
from unittest.mock import patch

from django.contrib import admin
from django.test import TestCase
from django.utils import timezone

from core.admin import SettingForm, StudentAdmin
from core.models import ContestParticipation, ProblemSolveEvent, Setting, Student
from core.services.progress import contests_since, hardest_problem, problems_since

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=dt_timezone.utc)


class StudentOperationsTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(
            name="Um_nik",
            email="umnik@example.com",
            phone="1",
            codeforces_handle="Um_nik",
            reminder_sent_count=4,
        )

    def test_toggle_reminder(self):
        self.assertFalse(self.student.toggle_reminder())
        self.assertTrue(self.student.toggle_reminder())
        self.assertFalse(self.student.toggle_reminder(enabled=False))
        self.assertFalse(self.student.toggle_reminder(enabled=False))
        self.student.refresh_from_db()
        self.assertFalse(self.student.reminder_enabled)

    def test_reset_reminder_count(self):
        self.student.reset_reminder_count()
        self.student.refresh_from_db()
        self.assertEqual(self.student.reminder_sent_count, 0)

    def test_set_sync_hour(self):
        self.student.set_sync_hour(23)
        self.student.refresh_from_db()
        self.assertEqual(self.student.sync_hour, 23)

        for bad in (-1, 24, "5", 2.5, True):
            with self.subTest(hour=bad):
                with self.assertRaises(ValueError):
                    self.student.set_sync_hour(bad)


class ProgressQueriesTests(TestCase):
    def setUp(self):
        self.student = Student.objects.create(
            name="Radewoosh",
            email="radewoosh@example.com",
            phone="1",
            codeforces_handle="Radewoosh",
        )
        for position, days_ago in enumerate((400, 100, 10)):
            ContestParticipation.objects.create(
                student=self.student,
                position=position,
                contest_id=position + 1,
                name=f"Round {position + 1}",
                date=NOW - timedelta(days=days_ago),
                rating_after=2000 + position,
            )
        for position, (days_ago, rating) in enumerate(((120, 3000), (40, 2400), (5, 1800), (3, 2400))):
            ProblemSolveEvent.objects.create(
                student=self.student,
                position=position,
                problem_id=f"{position}A",
                solved_at=NOW - timedelta(days=days_ago),
                rating=rating,
            )

    def test_contests_since(self):
        contests = contests_since(self.student, days=365, now=NOW)
        self.assertEqual([c.contest_id for c in contests], [2, 3])

    def test_problems_since(self):
        problems = problems_since(self.student, days=30, now=NOW)
        self.assertEqual([p.problem_id for p in problems], ["2A", "3A"])

    def test_hardest_problem_in_window(self):
        self.assertEqual(hardest_problem(self.student, days=90, now=NOW).problem_id, "1A")
        self.assertEqual(hardest_problem(self.student, days=365, now=NOW).rating, 3000)
        self.assertIsNone(hardest_problem(self.student, days=1, now=NOW))


class SettingFormTests(TestCase):
    def test_rejects_invalid_sync_cron(self):
        form = SettingForm(data={"key": Setting.SYNC_CRON, "value": "daily"})
        self.assertFalse(form.is_valid())
        self.assertIn("value", form.errors)

    def test_accepts_valid_sync_cron(self):
        form = SettingForm(data={"key": Setting.SYNC_CRON, "value": " 0 5 * * 1 "})
        self.assertTrue(form.is_valid())
        self.assertEqual(form.cleaned_data["value"], "0 5 * * 1")


class StudentAdminTests(TestCase):
    def setUp(self):
        self.model_admin = StudentAdmin(Student, admin.site)
        self.first = Student.objects.create(
            name="Petr", email="petr@example.com", phone="1", codeforces_handle="Petr", reminder_sent_count=3,
        )
        self.second = Student.objects.create(
            name="Um_nik", email="umnik@example.com", phone="1", codeforces_handle="Um_nik",
            reminder_enabled=False, reminder_sent_count=2,
        )

    def test_reminder_actions_use_model_operations(self):
        with patch.object(self.model_admin, "message_user") as message_mock, \
                patch.object(Student, "toggle_reminder", autospec=True, return_value=True) as toggle_mock:
            self.model_admin.enable_reminders(None, Student.objects.all())

        self.assertEqual(toggle_mock.call_count, 2)
        self.assertEqual(toggle_mock.call_args.kwargs, {"enabled": True})
        self.assertIn("2 student(s)", message_mock.call_args.args[1])

    def test_enable_disable_and_reset(self):
        with patch.object(self.model_admin, "message_user"):
            self.model_admin.enable_reminders(None, Student.objects.all())
            self.assertTrue(all(Student.objects.values_list("reminder_enabled", flat=True)))

            self.model_admin.disable_reminders(None, Student.objects.filter(pk=self.first.pk))
            self.first.refresh_from_db()
            self.assertFalse(self.first.reminder_enabled)

            self.model_admin.reset_reminder_count(None, Student.objects.all())

        self.assertEqual(set(Student.objects.values_list("reminder_sent_count", flat=True)), {0})

    def test_progress_displays(self):
        now = timezone.now()
        ContestParticipation.objects.create(
            student=self.first, contest_id=1, name="Round 1", date=now - timedelta(days=10), rating_after=2000,
        )
        ProblemSolveEvent.objects.create(
            student=self.first, problem_id="1A", solved_at=now - timedelta(days=2), rating=1900,
        )

        self.assertEqual(self.model_admin.contests_last_year(self.first), 1)
        self.assertEqual(self.model_admin.solved_last_30_days(self.first), 1)
        self.assertEqual(self.model_admin.hardest_last_90_days(self.first), "1A (1900)")
        self.assertEqual(self.model_admin.hardest_last_90_days(self.second), "-")
        self.assertEqual(self.model_admin.solved_last_30_days(Student()), 0)
