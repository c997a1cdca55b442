"""
Sync & reminder pass.

For every student: normalize the handle, pull contest history and solved
problems from Codeforces, recompute ratings, decide on inactivity, send a
reminder when needed and commit the student on its own. History and solve
events are replaced wholesale on every sync, never merged.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from core.models import ContestParticipation, ProblemSolveEvent, Student
from core.services import notifications
from core.services.codeforces_client import CodeforcesClient

logger = logging.getLogger(__name__)


@dataclass
class StudentSyncResult:
    student_id: int
    handle: str
    ok: bool
    reminder: notifications.ReminderOutcome | None = None
    error: str = ""

    def as_dict(self) -> dict[str, Any]:
        return {
            "student_id": self.student_id,
            "handle": self.handle,
            "status": "ok" if self.ok else "failed",
            "reminder": self.reminder.value if self.reminder else None,
            "error": self.error,
        }


@dataclass
class SyncPassSummary:
    started_at: datetime
    results: list[StudentSyncResult] = field(default_factory=list)
    aborted: bool = False
    error: str = ""
    duration_ms: int = 0

    @property
    def synced(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def reminders_sent(self) -> int:
        return sum(1 for r in self.results if r.reminder is notifications.ReminderOutcome.SENT)

    @property
    def quota_exceeded(self) -> int:
        return sum(1 for r in self.results if r.reminder is notifications.ReminderOutcome.QUOTA_EXCEEDED)

    def as_dict(self) -> dict[str, Any]:
        return {
            "status": "aborted" if self.aborted else "ok",
            "started_at": self.started_at.isoformat(),
            "students": len(self.results),
            "synced": self.synced,
            "failed": self.failed,
            "reminders_sent": self.reminders_sent,
            "quota_exceeded": self.quota_exceeded,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


def normalize_handle(raw: str | None) -> str:
    """
    "https://codeforces.com/profile/tourist" -> "tourist"; "tourist" -> "tourist".
    """
    value = (raw or "").strip()
    if "/" in value:
        segments = [segment for segment in value.split("/") if segment]
        return segments[-1] if segments else ""
    return value


def compute_ratings(history: list[dict[str, Any]]) -> tuple[int, int]:
    if not history:
        return 0, 0
    latest = max(history, key=lambda contest: contest["date"])
    return latest["rating_after"], max(contest["rating_after"] for contest in history)


def latest_solve(events: list[dict[str, Any]]) -> datetime | None:
    dates = [event["solved_at"] for event in events if event.get("solved_at")]
    return max(dates) if dates else None


def is_inactive(student: Student, events: list[dict[str, Any]], now: datetime | None = None) -> bool:
    if not student.reminder_enabled:
        return False
    now = now or timezone.now()
    days = int(getattr(settings, "INACTIVITY_DAYS", 7))
    last = latest_solve(events)
    return last is None or last < now - timedelta(days=days)


def _persist(student: Student, history: list[dict[str, Any]], events: list[dict[str, Any]]) -> None:
    with transaction.atomic():
        student.contest_history.all().delete()
        student.problem_stats.all().delete()
        ContestParticipation.objects.bulk_create([
            ContestParticipation(student=student, position=position, **contest)
            for position, contest in enumerate(history)
        ])
        ProblemSolveEvent.objects.bulk_create([
            ProblemSolveEvent(student=student, position=position, **event)
            for position, event in enumerate(events)
        ])
        student.save(update_fields=[
            "current_rating",
            "max_rating",
            "last_sync",
            "reminder_sent_count",
            "updated_at",
        ])


def sync_student(student: Student, now: datetime | None = None, remind: bool = True) -> StudentSyncResult:
    """
    Run the pipeline for one student. Exceptions propagate to the caller;
    ``run_sync_pass`` is the isolation boundary.

    ``remind=False`` refreshes data only (manual sync, handle change).
    """
    now = now or timezone.now()
    handle = normalize_handle(student.codeforces_handle)

    history = CodeforcesClient.fetch_contest_history(handle)
    events = CodeforcesClient.fetch_problem_stats(handle)

    student.current_rating, student.max_rating = compute_ratings(history)
    student.last_sync = now

    reminder = None
    if remind and is_inactive(student, events, now):
        logger.info("Sending inactivity reminder to %s (%s)", student.email, handle)
        reminder = notifications.send_reminder(student.email, student.name, handle)
        if reminder is notifications.ReminderOutcome.SENT:
            student.reminder_sent_count += 1

    _persist(student, history, events)
    return StudentSyncResult(student_id=student.id, handle=handle, ok=True, reminder=reminder)


def run_sync_pass(now: datetime | None = None) -> SyncPassSummary:
    started = time.monotonic()
    summary = SyncPassSummary(started_at=now or timezone.now())

    try:
        students = list(Student.objects.all())
    except Exception as e:
        logger.exception("Sync pass aborted: could not load students")
        summary.aborted = True
        summary.error = str(e)
        summary.duration_ms = int((time.monotonic() - started) * 1000)
        return summary

    for student in students:
        try:
            result = sync_student(student, now=now)
        except Exception as e:
            logger.exception(
                "Sync failed for student_id=%s handle=%s",
                student.id,
                student.codeforces_handle,
            )
            result = StudentSyncResult(
                student_id=student.id,
                handle=student.codeforces_handle,
                ok=False,
                error=str(e),
            )
        summary.results.append(result)

    summary.duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "sync pass students=%s synced=%s failed=%s reminders_sent=%s quota_exceeded=%s duration_ms=%s",
        len(summary.results),
        summary.synced,
        summary.failed,
        summary.reminders_sent,
        summary.quota_exceeded,
        summary.duration_ms,
    )
    return summary
