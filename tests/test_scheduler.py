#!/usr/bin/env python3
"""
Tests for the queue manager: admission, isolation of failures between
jobs, stop/remove semantics and the user-facing operations.
"""

import asyncio
import random
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from srt_translator.ai.exceptions import AuthOrRequestError, MissingCredentialError, RateLimitError
from srt_translator.config import QueueSettings
from srt_translator.core.credentials import MemoryCredentialStore
from srt_translator.jobs import JobStatus
from srt_translator.jobs.scheduler import (
    JobBusyError,
    JobNotFoundError,
    LineNotFoundError,
    QueueManager,
)
from srt_translator.subtitles import SourceDocument
from tests.fakes import GatedClient, RecordingSleep, ScriptedClient, make_srt


def doc(name, count=3, prefix="Line"):
    return SourceDocument(name=f"{name}.srt", content=make_srt(count, prefix=prefix))


class SchedulerTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.sleep = RecordingSleep()
        self.credentials = MemoryCredentialStore("key")

    async def asyncTearDown(self):
        if getattr(self, "manager", None) is not None:
            release = getattr(self.manager.client, "release", None)
            if release is not None:
                release.set()
            self.sleep.release.set()
            await self.manager.aclose()

    def build(self, client, concurrency_limit=2, batch_size=50, max_retries=5):
        settings = QueueSettings(
            batch_size=batch_size,
            concurrency_limit=concurrency_limit,
            max_retries=max_retries,
            base_delay=0.01,
            jitter=0.0,
        )
        self.manager = QueueManager(
            client, self.credentials, settings,
            sleep=self.sleep, rng=random.Random(3),
        )
        return self.manager

    async def wait_until(self, predicate, timeout=2.0):
        async def poll():
            while not predicate():
                await asyncio.sleep(0)
        await asyncio.wait_for(poll(), timeout)

    def statuses(self, manager):
        return [job.status for job in manager.jobs()]


class TestAdmission(SchedulerTestCase):

    async def test_all_jobs_complete(self):
        manager = self.build(ScriptedClient())

        ids = manager.submit([doc("a"), doc("b"), doc("c")], "French", "m")
        await manager.wait_idle()

        self.assertEqual(len(ids), 3)
        self.assertEqual(self.statuses(manager), [JobStatus.COMPLETED] * 3)
        self.assertEqual(manager.active_ids, frozenset())
        self.assertEqual(manager.overall_progress(), 100.0)
        self.assertTrue(all(job.progress == 100.0 for job in manager.jobs()))

    async def test_active_never_exceeds_limit(self):
        manager = self.build(ScriptedClient(), concurrency_limit=2)
        peaks = []
        manager.subscribe(lambda job: peaks.append(len(manager.active_ids)))

        manager.submit([doc(str(i)) for i in range(6)])
        await manager.wait_idle()

        self.assertLessEqual(max(peaks), 2)
        self.assertEqual(self.statuses(manager), [JobStatus.COMPLETED] * 6)

    async def test_limit_one_runs_serially_in_submission_order(self):
        client = ScriptedClient()
        manager = self.build(client, concurrency_limit=1)
        started = []
        manager.subscribe(
            lambda job: started.append(job.id) if job.status == JobStatus.PARSING else None
        )

        ids = manager.submit([doc("a", prefix="A"), doc("b", prefix="B"), doc("c", prefix="C")])
        await manager.wait_idle()

        self.assertEqual(started, ids)
        self.assertEqual([call[0] for call in client.calls], ["A 1", "B 1", "C 1"])

    async def test_in_flight_requests_bounded(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=2)

        manager.submit([doc(str(i)) for i in range(4)])
        await self.wait_until(lambda: client.in_flight == 2)
        await asyncio.sleep(0)

        self.assertEqual(len(manager.active_ids), 2)
        self.assertEqual(
            self.statuses(manager),
            [JobStatus.TRANSLATING, JobStatus.TRANSLATING, JobStatus.PENDING, JobStatus.PENDING],
        )

        client.release.set()
        await manager.wait_idle()
        self.assertEqual(client.max_in_flight, 2)
        self.assertEqual(self.statuses(manager), [JobStatus.COMPLETED] * 4)

    async def test_admit_ready_is_idempotent(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=1)

        manager.submit([doc("a"), doc("b")])
        active = manager.active_ids

        self.assertEqual(manager.admit_ready(), [])
        self.assertEqual(manager.admit_ready(), [])
        self.assertEqual(manager.active_ids, active)
        self.assertEqual(len(manager.active_ids), 1)

        client.release.set()
        await manager.wait_idle()

    async def test_missing_credential_rejects_submission(self):
        self.credentials.clear()
        manager = self.build(ScriptedClient())

        with self.assertRaises(MissingCredentialError):
            manager.submit([doc("a")])

        self.assertEqual(manager.jobs(), [])
        self.assertIn("Missing API Key.", manager.status_log.entries()[-1])

    async def test_document_from_path(self):
        manager = self.build(ScriptedClient())
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "episode01.srt"
            path.write_text(make_srt(4), encoding="utf-8")

            manager.submit([SourceDocument.from_path(path)])
            await manager.wait_idle()

        job = manager.jobs()[0]
        self.assertEqual(job.display_name, "episode01")
        self.assertEqual(job.status, JobStatus.COMPLETED)
        self.assertEqual(job.translated_count, 4)


class TestFailureIsolation(SchedulerTestCase):

    async def test_fatal_error_only_halts_owning_job(self):
        def route(texts):
            if texts[0].startswith("Bad"):
                return AuthOrRequestError("Request rejected")
            return None

        client = ScriptedClient(route=route)
        manager = self.build(client)

        bad_id, good_id = manager.submit([doc("bad", prefix="Bad"), doc("good", prefix="Good")])
        await manager.wait_idle()

        bad, good = manager.get(bad_id), manager.get(good_id)
        self.assertEqual(bad.status, JobStatus.ERROR)
        self.assertEqual(bad.error, "Request rejected")
        self.assertEqual(sum(1 for call in client.calls if call[0].startswith("Bad")), 1)
        self.assertEqual(good.status, JobStatus.COMPLETED)
        self.assertTrue(manager.status_log.has_alerts())

    async def test_parse_errors_do_not_block_queue(self):
        manager = self.build(ScriptedClient(), concurrency_limit=1)

        empty_id, junk_id, ok_id = manager.submit([
            SourceDocument(name="empty.srt", content=""),
            SourceDocument(name="junk.srt", content="not a subtitle file"),
            doc("ok"),
        ])
        await manager.wait_idle()

        self.assertEqual(manager.get(empty_id).status, JobStatus.ERROR)
        self.assertEqual(manager.get(empty_id).error, "Empty file")
        self.assertEqual(manager.get(junk_id).error, "File parsing failed")
        self.assertEqual(manager.get(ok_id).status, JobStatus.COMPLETED)
        log = "\n".join(manager.status_log.entries())
        self.assertIn("Error (empty): Uploaded file is empty.", log)
        self.assertIn("Parsing Error (junk)", log)

    async def test_unreadable_file(self):
        manager = self.build(ScriptedClient())
        job_id, = manager.submit([SourceDocument.from_path("/nonexistent/missing.srt")])
        await manager.wait_idle()
        self.assertEqual(manager.get(job_id).error, "Failed to read file")

    async def test_retries_then_completes(self):
        client = ScriptedClient(outcomes=[RateLimitError("429"), RateLimitError("429")])
        manager = self.build(client)

        job_id, = manager.submit([doc("a")])
        await manager.wait_idle()

        self.assertEqual(manager.get(job_id).status, JobStatus.COMPLETED)
        self.assertEqual(len(client.calls), 3)
        self.assertEqual(len(self.sleep.delays), 2)


class TestStopAndRemove(SchedulerTestCase):

    async def test_stop_all_marks_everything_stopped(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=1)
        ids = manager.submit([doc("a"), doc("b")])
        await asyncio.wait_for(client.entered.wait(), 2)

        stopped = manager.stop_all()

        self.assertEqual(sorted(stopped), sorted(ids))
        self.assertEqual(self.statuses(manager), [JobStatus.STOPPED] * 2)
        self.assertTrue(manager.stopped)
        self.assertEqual(manager.active_ids, frozenset())
        self.assertIn("User stopped the queue.", manager.status_log.entries()[-1])

        client.release.set()
        await manager.wait_idle()
        self.assertEqual(self.statuses(manager), [JobStatus.STOPPED] * 2)
        self.assertEqual(len(client.calls), 1)
        self.assertEqual(manager.get(ids[0]).translated_count, 0)

    async def test_stop_during_backoff_honoured_at_checkpoint(self):
        self.sleep = RecordingSleep(hold=True)
        client = ScriptedClient(outcomes=[RateLimitError("429")])
        manager = self.build(client, batch_size=2)

        job_id, = manager.submit([doc("a", count=4)])
        await asyncio.wait_for(self.sleep.sleeping.wait(), 2)
        manager.stop_all()
        self.assertEqual(manager.get(job_id).status, JobStatus.STOPPED)

        self.sleep.release.set()
        await manager.wait_idle()

        job = manager.get(job_id)
        self.assertEqual(job.status, JobStatus.STOPPED)
        self.assertEqual(job.translated_count, 0)
        # The pending retry still runs, but no further batch is dispatched
        self.assertEqual(len(client.calls), 2)
        self.assertEqual(client.calls[1], ["Line 1", "Line 2"])

    async def test_stop_during_backoff_skips_remaining_retries(self):
        self.sleep = RecordingSleep(hold=True)
        client = ScriptedClient(outcomes=[RateLimitError("429")] * 5)
        manager = self.build(client, max_retries=5)

        job_id, = manager.submit([doc("a")])
        await asyncio.wait_for(self.sleep.sleeping.wait(), 2)
        manager.stop_all()
        self.sleep.release.set()
        await manager.wait_idle()

        self.assertEqual(manager.get(job_id).status, JobStatus.STOPPED)
        self.assertEqual(len(client.calls), 2)
        self.assertEqual(len(self.sleep.delays), 1)

    async def test_submit_after_stop_runs_new_jobs_only(self):
        client = GatedClient()
        manager = self.build(client)
        old_id, = manager.submit([doc("old")])
        await asyncio.wait_for(client.entered.wait(), 2)
        manager.stop_all()
        client.release.set()
        await manager.wait_idle()

        new_id, = manager.submit([doc("new")])
        await manager.wait_idle()

        self.assertFalse(manager.stopped)
        self.assertEqual(manager.get(old_id).status, JobStatus.STOPPED)
        self.assertEqual(manager.get(new_id).status, JobStatus.COMPLETED)

    async def test_admit_ready_does_nothing_while_stopped(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=1)
        manager.submit([doc("a")])
        manager.stop_all()
        self.assertEqual(manager.admit_ready(), [])
        client.release.set()
        await manager.wait_idle()

    async def test_remove_active_job_frees_slot(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=1)
        first_id, second_id = manager.submit([doc("a"), doc("b")])
        await asyncio.wait_for(client.entered.wait(), 2)

        removed = manager.remove(first_id)

        self.assertEqual(removed.id, first_id)
        self.assertIsNone(manager.get(first_id))
        self.assertEqual(manager.active_ids, frozenset({second_id}))

        client.release.set()
        await manager.wait_idle()
        self.assertEqual([job.id for job in manager.jobs()], [second_id])
        self.assertEqual(manager.get(second_id).status, JobStatus.COMPLETED)

    async def test_remove_pending_job(self):
        client = GatedClient()
        manager = self.build(client, concurrency_limit=1)
        first_id, second_id = manager.submit([doc("a"), doc("b")])

        manager.remove(second_id)

        self.assertIsNone(manager.get(second_id))
        self.assertEqual(manager.active_ids, frozenset({first_id}))
        client.release.set()
        await manager.wait_idle()
        self.assertEqual(manager.get(first_id).status, JobStatus.COMPLETED)

    async def test_remove_unknown_job(self):
        manager = self.build(ScriptedClient())
        with self.assertRaises(JobNotFoundError):
            manager.remove("missing")


class TestUserOperations(SchedulerTestCase):

    async def test_clear_completed(self):
        client = ScriptedClient(route=lambda texts: AuthOrRequestError("no") if texts[0].startswith("X") else None)
        manager = self.build(client)
        ok_id, failed_id = manager.submit([doc("ok"), doc("bad", prefix="X")])
        await manager.wait_idle()

        self.assertEqual(manager.clear_completed(), [ok_id])
        self.assertEqual([job.id for job in manager.jobs()], [failed_id])

    async def test_update_line(self):
        manager = self.build(ScriptedClient())
        job_id, = manager.submit([doc("a")])
        await manager.wait_idle()

        job = manager.update_line(job_id, 2, "manual fix")

        self.assertEqual(job.lines[1].translated_text, "manual fix")
        self.assertEqual(job.status, JobStatus.COMPLETED)
        with self.assertRaises(LineNotFoundError):
            manager.update_line(job_id, 99, "x")
        with self.assertRaises(JobNotFoundError):
            manager.update_line("missing", 1, "x")

    async def test_update_line_rejected_while_running(self):
        client = GatedClient()
        manager = self.build(client)
        job_id, = manager.submit([doc("a")])
        await asyncio.wait_for(client.entered.wait(), 2)

        with self.assertRaises(JobBusyError):
            manager.update_line(job_id, 1, "x")

        client.release.set()
        await manager.wait_idle()

    async def test_reset_forgets_everything(self):
        manager = self.build(ScriptedClient())
        manager.submit([doc("a")])
        await manager.wait_idle()

        manager.reset()

        self.assertEqual(manager.jobs(), [])
        self.assertEqual(manager.status_log.entries(), [])
        self.assertEqual(manager.overall_progress(), 0.0)

    async def test_batch_progress_exposed(self):
        manager = self.build(ScriptedClient(), batch_size=2)
        job_id, = manager.submit([doc("a", count=5)])
        await manager.wait_idle()

        progress = manager.batch_progress(job_id)
        self.assertEqual(progress.phase, "completed")
        self.assertEqual(progress.total_batches, 3)
        self.assertEqual(progress.percent, 100.0)

    async def test_aclose_closes_client(self):
        client = ScriptedClient()
        manager = self.build(client)
        await manager.aclose()
        self.assertTrue(client.closed)
        self.manager = None


if __name__ == "__main__":
    unittest.main()
