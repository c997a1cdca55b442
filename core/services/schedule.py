"""
Cron cadence for the sync pass.

The cadence is a single crontab expression stored in ``Setting`` under
``sync_cron``. ``SyncScheduler`` owns the one live trigger for it.
"""
import logging
import threading
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from django.conf import settings
from django.db import close_old_connections

from core.models import Setting

logger = logging.getLogger(__name__)


class InvalidCadence(ValueError):
    pass


def default_cadence() -> str:
    return getattr(settings, "SYNC_CRON_DEFAULT", "0 2 * * *")


def build_trigger(expr: str) -> CronTrigger:
    try:
        return CronTrigger.from_crontab((expr or "").strip(), timezone=settings.TIME_ZONE)
    except (TypeError, ValueError) as exc:
        raise InvalidCadence(f"Invalid cron expression {expr!r}: {exc}") from exc


def get_sync_cron() -> str:
    setting, _ = Setting.objects.get_or_create(
        key=Setting.SYNC_CRON,
        defaults={"value": default_cadence()},
    )
    return setting.value


def update_sync_schedule(expr: str, scheduler: "SyncScheduler | None" = None) -> str:
    """
    Validate and store a new cadence. With a live ``scheduler`` in this
    process the trigger is swapped right away; schedulers in other processes
    pick it up through ``SyncScheduler.watch_setting``.
    """
    expr = (expr or "").strip()
    build_trigger(expr)
    Setting.objects.update_or_create(key=Setting.SYNC_CRON, defaults={"value": expr})
    if scheduler is not None:
        scheduler.replace(expr)
    return expr


class SyncScheduler:
    JOB_ID = "student-sync"
    WATCH_JOB_ID = "sync-schedule-watch"

    def __init__(
        self,
        pass_func: Callable[[], object],
        cadence: str | None = None,
        scheduler: BackgroundScheduler | None = None,
        watch: bool = True,
    ):
        self._pass_func = pass_func
        self._cadence = cadence
        self._scheduler = scheduler or BackgroundScheduler(timezone=settings.TIME_ZONE)
        self._watch = watch
        self._swap_lock = threading.RLock()
        self._pass_lock = threading.Lock()

    @property
    def cadence(self) -> str | None:
        return self._cadence

    @property
    def running(self) -> bool:
        return self._scheduler.running

    def start(self) -> None:
        with self._swap_lock:
            if self._scheduler.running:
                return
            cadence = self._cadence or get_sync_cron()
            trigger = build_trigger(cadence)
            self._scheduler.add_job(
                self._tick,
                trigger=trigger,
                id=self.JOB_ID,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=300,
                replace_existing=True,
            )
            if self._watch:
                self._scheduler.add_job(
                    self.watch_setting,
                    trigger="interval",
                    seconds=getattr(settings, "SYNC_SCHEDULE_POLL_SECONDS", 60),
                    id=self.WATCH_JOB_ID,
                    max_instances=1,
                    coalesce=True,
                    replace_existing=True,
                )
            self._cadence = cadence
            self._scheduler.start()
        logger.info("Sync scheduled with cron %r", cadence)

    def replace(self, expr: str) -> None:
        trigger = build_trigger(expr)
        with self._swap_lock:
            if self._scheduler.get_job(self.JOB_ID) is not None:
                # Same job, new trigger: never two triggers, never zero.
                self._scheduler.reschedule_job(self.JOB_ID, trigger=trigger)
            previous, self._cadence = self._cadence, expr.strip()
        logger.info("Sync cron replaced: %r -> %r", previous, self._cadence)

    def stop(self) -> None:
        with self._swap_lock:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
        logger.info("Sync scheduler stopped.")

    def watch_setting(self) -> None:
        close_old_connections()
        try:
            stored = get_sync_cron()
        except Exception:
            logger.exception("Could not read stored sync cron; keeping %r", self._cadence)
            return
        finally:
            close_old_connections()
        if stored == self._cadence:
            return
        try:
            self.replace(stored)
        except InvalidCadence:
            logger.error("Stored sync cron %r is invalid; keeping %r", stored, self._cadence)

    def _tick(self) -> None:
        if not self._pass_lock.acquire(blocking=False):
            logger.warning("Previous sync pass still running; skipping this tick.")
            return
        try:
            # Scheduler threads live for days; drop connections the server has closed.
            close_old_connections()
            self._pass_func()
        except Exception:
            logger.exception("Sync pass crashed")
        finally:
            self._pass_lock.release()
            close_old_connections()
