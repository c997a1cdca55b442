from datetime import timedelta

from django.utils import timezone

from core.models import ContestParticipation, ProblemSolveEvent, Student


def _cutoff(days: int, now=None):
    return (now or timezone.now()) - timedelta(days=days)


def contests_since(student: Student, days: int = 365, now=None):
    return ContestParticipation.objects.filter(
        student=student,
        date__gte=_cutoff(days, now),
    ).order_by("position")


def problems_since(student: Student, days: int = 30, now=None):
    return ProblemSolveEvent.objects.filter(
        student=student,
        solved_at__gte=_cutoff(days, now),
    ).order_by("position")


def hardest_problem(student: Student, days: int = 90, now=None) -> ProblemSolveEvent | None:
    """
    Highest-rated problem solved in the window; earliest stored one wins ties.
    """
    return problems_since(student, days, now).order_by("-rating", "position").first()
