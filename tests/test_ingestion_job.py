import os
import tempfile
import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import schedule

from techpulse.config import Settings
from techpulse.ingestion.article_types import IngestAllResult
from techpulse.services.ingestion_job import (
    STATUS_ERROR,
    STATUS_IDLE,
    STATUS_RUNNING,
    STATUS_SUCCESS,
    IngestionJobRunner,
    IngestionJobState,
    StartResult,
)
from techpulse.services.scheduler import (
    IngestionScheduler,
    needs_catchup,
    parse_daily_cron,
    read_last_success,
    write_last_success,
)
from techpulse.storage.repository import InMemoryArticleRepository


NOW = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


def summary(created=2):
    return IngestAllResult(
        started_at=NOW, finished_at=NOW, source_count=1, fetched_count=created, created_count=created, skipped_count=0
    )


class TestJobState(unittest.TestCase):
    def test_compare_and_set(self):
        state = IngestionJobState()
        self.assertEqual(state.snapshot().status, STATUS_IDLE)
        self.assertTrue(state.try_begin())
        self.assertFalse(state.try_begin())
        self.assertEqual(state.snapshot().status, STATUS_RUNNING)
        state.finish(summary())
        self.assertEqual(state.snapshot().status, STATUS_SUCCESS)
        self.assertTrue(state.try_begin())

    def test_only_one_concurrent_winner(self):
        state = IngestionJobState()
        barrier = threading.Barrier(8)
        wins = []

        def attempt():
            barrier.wait()
            wins.append(state.try_begin())

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(wins.count(True), 1)


class TestJobRunner(unittest.TestCase):
    def test_second_trigger_is_rejected(self):
        release = threading.Event()

        def slow_ingest():
            release.wait(5)
            return summary()

        runner = IngestionJobRunner(InMemoryArticleRepository(), ingest=slow_ingest, refresh_after_ingest=False)
        first = runner.start_manual()
        self.assertTrue(first.accepted)
        self.assertEqual(first.status, STATUS_RUNNING)

        second = runner.start_manual()
        self.assertFalse(second.accepted)
        self.assertEqual(second.status, STATUS_RUNNING)
        self.assertFalse(runner.run_now().accepted)
        self.assertEqual(runner.state.snapshot().status, STATUS_RUNNING)

        release.set()
        runner.wait(5)
        snap = runner.state.snapshot()
        self.assertEqual(snap.status, STATUS_SUCCESS)
        self.assertEqual(snap.result.created_count, 2)

    def test_failure_is_recorded(self):
        def broken():
            raise RuntimeError("database unavailable")

        runner = IngestionJobRunner(InMemoryArticleRepository(), ingest=broken, refresh_after_ingest=False)
        result = runner.run_now()
        self.assertTrue(result.accepted)
        self.assertEqual(result.status, STATUS_ERROR)
        self.assertEqual(result.message, "database unavailable")
        self.assertTrue(runner.start_manual().accepted)
        runner.wait(5)

    def test_refresh_follows_successful_ingest(self):
        refreshed = threading.Event()
        runner = IngestionJobRunner(
            InMemoryArticleRepository(),
            settings=Settings(popularity_refresh_enabled=True),
            ingest=summary,
            refresh=refreshed.set,
        )
        self.assertEqual(runner.run_now().status, STATUS_SUCCESS)
        self.assertTrue(refreshed.wait(5))

    def test_refresh_not_stacked(self):
        release = threading.Event()
        runner = IngestionJobRunner(InMemoryArticleRepository(), ingest=summary, refresh=lambda: release.wait(5))
        self.assertTrue(runner.trigger_refresh())
        self.assertFalse(runner.trigger_refresh())
        release.set()


class TestScheduler(unittest.TestCase):
    def test_parse_daily_cron(self):
        self.assertEqual(parse_daily_cron("0 6 * * *"), (6, 0))
        self.assertEqual(parse_daily_cron("30 23 * * *"), (23, 30))
        self.assertIsNone(parse_daily_cron("0 6 * * 1"))
        self.assertIsNone(parse_daily_cron("60 6 * * *"))
        self.assertIsNone(parse_daily_cron("every day"))

    def test_needs_catchup(self):
        self.assertTrue(needs_catchup(None, NOW))
        self.assertTrue(needs_catchup(NOW - timedelta(hours=25), NOW))
        self.assertFalse(needs_catchup(NOW - timedelta(hours=1), NOW))

    def test_last_success_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "state", "last.json")
            self.assertIsNone(read_last_success(path))
            write_last_success(path, NOW)
            self.assertEqual(read_last_success(path), NOW)

    def _scheduler(self, tmp, **overrides):
        settings = Settings(scheduler_state_file=os.path.join(tmp, "last.json"), **overrides)
        runner = Mock()
        runner.run_now.return_value = StartResult(
            accepted=True, status=STATUS_SUCCESS, message="ok", result=summary()
        )
        return IngestionScheduler(runner, settings=settings, scheduler=schedule.Scheduler(), clock=lambda: NOW)

    def test_install_registers_jobs(self):
        with tempfile.TemporaryDirectory() as tmp:
            sched = self._scheduler(tmp, ingestion_daily_cron="15 7 * * *")
            self.assertTrue(sched.install())
            self.assertEqual(len(sched.scheduler.jobs), 2)

    def test_install_rejects_bad_cron(self):
        with tempfile.TemporaryDirectory() as tmp:
            sched = self._scheduler(tmp, ingestion_daily_cron="*/5 * * * *")
            self.assertFalse(sched.install())
            self.assertEqual(sched.scheduler.jobs, [])

    def test_startup_catchup_runs_once(self):
        with tempfile.TemporaryDirectory() as tmp:
            sched = self._scheduler(tmp)
            self.assertTrue(sched.run_startup_catchup())
            self.assertEqual(read_last_success(sched.settings.scheduler_state_file), NOW)
            self.assertFalse(sched.run_startup_catchup())
            sched.runner.run_now.assert_called_once()


if __name__ == "__main__":
    unittest.main()
