import logging
import time

from celery import shared_task
from django.conf import settings
import redis

from .models import Student
from .services.sync import run_sync_pass, sync_student as sync_one_student

logger = logging.getLogger(__name__)

SYNC_PASS_LOCK_KEY = "sync_all_students:lock"

_redis_client = None


def _get_redis_client():
    global _redis_client
    if _redis_client is None:
        url = getattr(settings, "CELERY_BROKER_URL", "redis://localhost:6379/0")
        _redis_client = redis.Redis.from_url(url)
    return _redis_client


def _acquire_lock(lock_key: str, ttl_seconds: int = 600) -> bool:
    try:
        client = _get_redis_client()
        return bool(client.set(lock_key, str(time.time()), nx=True, ex=ttl_seconds))
    except Exception:
        logger.exception("Lock failure for %s; continuing without lock.", lock_key)
        return True


def _release_lock(lock_key: str) -> None:
    try:
        _get_redis_client().delete(lock_key)
    except Exception:
        logger.exception("Failed to release lock %s", lock_key)


def run_guarded_pass() -> dict:
    """
    One sync pass, unless another process already holds the pass lock.
    """
    ttl = getattr(settings, "SYNC_LOCK_TTL_SECONDS", 6 * 60 * 60)
    if not _acquire_lock(SYNC_PASS_LOCK_KEY, ttl_seconds=ttl):
        logger.warning("Sync pass already running elsewhere; skipping.")
        return {"status": "locked", "message": "already running"}
    try:
        return run_sync_pass().as_dict()
    finally:
        _release_lock(SYNC_PASS_LOCK_KEY)


@shared_task
def sync_all_students():
    return run_guarded_pass()


@shared_task
def sync_student(student_id):
    """
    On-demand refresh of one student (manual sync or handle change). No reminder.
    """
    try:
        student = Student.objects.get(id=student_id)
    except Student.DoesNotExist:
        return f"Student with ID {student_id} not found."

    try:
        result = sync_one_student(student, remind=False)
    except Exception as e:
        logger.exception("On-demand sync failed for student_id=%s", student_id)
        return f"Error updating student {student_id}: {str(e)}"

    return (
        f"Updated {result.handle}: rating {student.current_rating} "
        f"(max {student.max_rating})."
    )
