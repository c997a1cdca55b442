import threading
from unittest.mock import MagicMock, patch

from apscheduler.schedulers.background import BackgroundScheduler
from django.test import SimpleTestCase, TestCase

from core.models import Setting
from core.services.schedule import (
    InvalidCadence,
    SyncScheduler,
    build_trigger,
    get_sync_cron,
    update_sync_schedule,
)


def _fields(job):
    return {field.name: str(field) for field in job.trigger.fields}


class BuildTriggerTests(SimpleTestCase):
    def test_valid_expression(self):
        trigger = build_trigger("0 2 * * *")
        fields = {field.name: str(field) for field in trigger.fields}
        self.assertEqual((fields["hour"], fields["minute"]), ("2", "0"))

    def test_invalid_expressions_raise(self):
        for expr in ("not a cron", "61 * * * *", "* * *", "", None):
            with self.subTest(expr=expr):
                with self.assertRaises(InvalidCadence):
                    build_trigger(expr)


class SyncSettingTests(TestCase):
    def test_default_cron_is_created_on_first_read(self):
        self.assertEqual(get_sync_cron(), "0 2 * * *")
        self.assertEqual(Setting.objects.get(key=Setting.SYNC_CRON).value, "0 2 * * *")

    def test_update_stores_and_reschedules_live_scheduler(self):
        scheduler = MagicMock()
        value = update_sync_schedule("  */15 * * * * ", scheduler=scheduler)

        self.assertEqual(value, "*/15 * * * *")
        self.assertEqual(get_sync_cron(), "*/15 * * * *")
        scheduler.replace.assert_called_once_with("*/15 * * * *")

    def test_invalid_update_is_rejected_and_not_stored(self):
        Setting.objects.create(key=Setting.SYNC_CRON, value="0 3 * * *")
        scheduler = MagicMock()

        with self.assertRaises(InvalidCadence):
            update_sync_schedule("every day", scheduler=scheduler)

        self.assertEqual(get_sync_cron(), "0 3 * * *")
        scheduler.replace.assert_not_called()


class SyncSchedulerTests(TestCase):
    def setUp(self):
        connections_patch = patch("core.services.schedule.close_old_connections")
        self.close_connections_mock = connections_patch.start()
        self.addCleanup(connections_patch.stop)

    def _scheduler(self, cadence="0 2 * * *", pass_func=None):
        backend = BackgroundScheduler(timezone="UTC")
        scheduler = SyncScheduler(pass_func or MagicMock(), cadence=cadence, scheduler=backend, watch=False)
        self.addCleanup(scheduler.stop)
        return scheduler, backend

    def test_start_installs_single_trigger(self):
        scheduler, backend = self._scheduler()
        scheduler.start()

        self.assertTrue(scheduler.running)
        jobs = backend.get_jobs()
        self.assertEqual(len(jobs), 1)
        self.assertEqual(jobs[0].id, SyncScheduler.JOB_ID)
        self.assertEqual(jobs[0].max_instances, 1)
        self.assertTrue(jobs[0].coalesce)
        self.assertEqual(_fields(jobs[0])["hour"], "2")

    def test_start_reads_stored_cadence(self):
        Setting.objects.create(key=Setting.SYNC_CRON, value="30 4 * * *")
        scheduler, backend = self._scheduler(cadence=None)
        scheduler.start()

        fields = _fields(backend.get_job(SyncScheduler.JOB_ID))
        self.assertEqual((fields["hour"], fields["minute"]), ("4", "30"))
        self.assertEqual(scheduler.cadence, "30 4 * * *")

    def test_start_with_invalid_cadence_raises(self):
        scheduler, backend = self._scheduler(cadence="bogus")
        with self.assertRaises(InvalidCadence):
            scheduler.start()
        self.assertFalse(scheduler.running)

    def test_replace_swaps_trigger_in_place(self):
        scheduler, backend = self._scheduler()
        scheduler.start()

        scheduler.replace("*/5 * * * *")

        jobs = backend.get_jobs()
        self.assertEqual(len(jobs), 1)
        self.assertEqual(_fields(jobs[0])["minute"], "*/5")
        self.assertEqual(scheduler.cadence, "*/5 * * * *")

    def test_invalid_replace_keeps_old_trigger(self):
        scheduler, backend = self._scheduler()
        scheduler.start()

        with self.assertRaises(InvalidCadence):
            scheduler.replace("whenever")

        self.assertEqual(_fields(backend.get_job(SyncScheduler.JOB_ID))["hour"], "2")
        self.assertEqual(scheduler.cadence, "0 2 * * *")

    def test_stop(self):
        scheduler, _ = self._scheduler()
        scheduler.start()
        scheduler.stop()
        self.assertFalse(scheduler.running)

    def test_watch_setting_picks_up_new_cadence(self):
        scheduler, backend = self._scheduler()
        scheduler.start()
        Setting.objects.update_or_create(key=Setting.SYNC_CRON, defaults={"value": "15 3 * * *"})

        scheduler.watch_setting()

        self.assertEqual(scheduler.cadence, "15 3 * * *")
        self.assertEqual(_fields(backend.get_job(SyncScheduler.JOB_ID))["hour"], "3")

    def test_watch_setting_recycles_connections(self):
        scheduler, _ = self._scheduler()
        scheduler.start()
        self.close_connections_mock.reset_mock()

        scheduler.watch_setting()

        self.assertEqual(self.close_connections_mock.call_count, 2)

    def test_watch_setting_ignores_invalid_stored_cadence(self):
        scheduler, _ = self._scheduler()
        scheduler.start()
        Setting.objects.update_or_create(key=Setting.SYNC_CRON, defaults={"value": "broken"})

        with self.assertLogs("core.services.schedule", level="ERROR"):
            scheduler.watch_setting()

        self.assertEqual(scheduler.cadence, "0 2 * * *")


class SyncTickTests(SimpleTestCase):
    def setUp(self):
        connections_patch = patch("core.services.schedule.close_old_connections")
        self.close_connections_mock = connections_patch.start()
        self.addCleanup(connections_patch.stop)

    def test_tick_skips_while_pass_in_flight(self):
        entered = threading.Event()
        release = threading.Event()
        calls = []

        def _slow_pass():
            calls.append(1)
            entered.set()
            release.wait(5)

        scheduler = SyncScheduler(_slow_pass, cadence="0 2 * * *", watch=False)
        worker = threading.Thread(target=scheduler._tick)
        worker.start()
        self.assertTrue(entered.wait(5))

        with self.assertLogs("core.services.schedule", level="WARNING"):
            scheduler._tick()

        release.set()
        worker.join(5)
        self.assertEqual(len(calls), 1)

        scheduler._tick()
        self.assertEqual(len(calls), 2)

    def test_tick_swallows_pass_errors(self):
        pass_func = MagicMock(side_effect=RuntimeError("boom"))
        scheduler = SyncScheduler(pass_func, cadence="0 2 * * *", watch=False)

        with self.assertLogs("core.services.schedule", level="ERROR"):
            scheduler._tick()

        pass_func.assert_called_once()
        # lock released after a crash
        scheduler._tick()
        self.assertEqual(pass_func.call_count, 2)

    def test_tick_recycles_stale_connections_around_pass(self):
        order = []
        self.close_connections_mock.side_effect = lambda: order.append("close")
        scheduler = SyncScheduler(lambda: order.append("pass"), cadence="0 2 * * *", watch=False)

        scheduler._tick()

        self.assertEqual(order, ["close", "pass", "close"])

    def test_tick_recycles_connections_after_failed_pass(self):
        scheduler = SyncScheduler(MagicMock(side_effect=RuntimeError("db gone")), cadence="0 2 * * *", watch=False)

        with self.assertLogs("core.services.schedule", level="ERROR"):
            scheduler._tick()

        self.assertEqual(self.close_connections_mock.call_count, 2)
