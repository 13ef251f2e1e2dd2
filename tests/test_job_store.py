"""Tests for job persistence, expiry and the background job runner."""

import os
import tempfile
import unittest

from podsummary.exceptions import SynthesisError
from podsummary.models.episode import Episode, SummaryRequest
from podsummary.models.summary import CostBreakdown, ProcessingProgress, ProcessingStatus, SummaryResult
from podsummary.processors.cost_estimator import BudgetTracker
from podsummary.processors.job_runner import JobRunner
from podsummary.processors.job_store import JobStore, MemoryJobBackend, SQLiteJobBackend
from podsummary.utils.config import Credentials

DAY = 24 * 60 * 60

RESULT = SummaryResult(
    audio_url="https://cdn.example.com/summary-1.mp3",
    summary_text="A short summary.",
    actual_duration=0,
    target_duration=60,
    cost_breakdown=CostBreakdown.from_parts(0.06, 0.03, 0.01),
)

REQUEST = SummaryRequest(
    episodes=[Episode(url="https://open.spotify.com/episode/1", title="Pilot", duration=600, audio_url="https://m/1.mp3")],
    target_duration=1,
)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class JobStoreCases:
    """Lifecycle checks shared by every backend."""

    def make_backend(self, clock):
        raise NotImplementedError

    def setUp(self):
        self.clock = FakeClock()
        self.store = JobStore(self.make_backend(self.clock))

    async def test_new_job_is_processing(self):
        await self.store.create("job-1")
        job = await self.store.get("job-1")
        self.assertEqual(job.status, ProcessingStatus.PROCESSING)
        self.assertIsNone(job.progress)
        self.assertIsNone(job.result)
        self.assertIsNone(job.error)

    async def test_progress_updates(self):
        await self.store.create("job-1")
        await self.store.update_progress("job-1", ProcessingProgress("Generating summary", 50, "Creating text summary..."))
        job = await self.store.get("job-1")
        self.assertEqual(job.status, ProcessingStatus.PROCESSING)
        self.assertEqual(job.progress.percentage, 50)

    async def test_completed_job(self):
        await self.store.create("job-1")
        await self.store.complete("job-1", RESULT)
        job = await self.store.get("job-1")
        self.assertEqual(job.status, ProcessingStatus.COMPLETED)
        self.assertEqual(job.result, RESULT)
        self.assertIsNone(job.error)
        self.assertEqual(job.progress.percentage, 100)

    async def test_failed_job(self):
        await self.store.create("job-1")
        await self.store.fail("job-1", "Speech synthesis failed")
        job = await self.store.get("job-1")
        self.assertEqual(job.status, ProcessingStatus.FAILED)
        self.assertEqual(job.error, "Speech synthesis failed")
        self.assertIsNone(job.result)

    async def test_expires_after_retention_window(self):
        await self.store.create("job-1")
        self.clock.now += DAY - 1
        self.assertIsNotNone(await self.store.get("job-1"))
        self.clock.now += 2
        self.assertIsNone(await self.store.get("job-1"))

    async def test_unknown_job(self):
        self.assertIsNone(await self.store.get("missing"))
        # mutating a missing job is a no-op
        await self.store.update_progress("missing", ProcessingProgress("x", 1, "y"))
        await self.store.complete("missing", RESULT)
        await self.store.fail("missing", "boom")
        self.assertIsNone(await self.store.get("missing"))


class TestMemoryJobStore(JobStoreCases, unittest.IsolatedAsyncioTestCase):

    def make_backend(self, clock):
        return MemoryJobBackend(clock=clock)


class TestSQLiteJobStore(JobStoreCases, unittest.IsolatedAsyncioTestCase):

    def make_backend(self, clock):
        self.tmp = tempfile.TemporaryDirectory()
        self.backend = SQLiteJobBackend(os.path.join(self.tmp.name, "jobs.db"), clock=clock)
        return self.backend

    def tearDown(self):
        self.backend.close()
        self.tmp.cleanup()


class FakePipeline:
    def __init__(self, result=None, error=None):
        self.result = result
        self.error = error

    async def run(self, request, credentials, progress_callback):
        await progress_callback(ProcessingProgress("Transcribing episodes", 5, "Transcribing 1 episode(s) in parallel..."))
        if self.error is not None:
            raise self.error
        await progress_callback(ProcessingProgress("Storing audio", 90, "Uploading to storage..."))
        return self.result


class TestJobRunner(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.store = JobStore()
        self.budget = BudgetTracker()
        self.credentials = Credentials(openai_api_key="sk-test")

    async def test_successful_job(self):
        runner = JobRunner(self.store, FakePipeline(result=RESULT), self.credentials, self.budget)
        job_id = await runner.submit()
        self.assertEqual((await self.store.get(job_id)).status, ProcessingStatus.PROCESSING)

        await runner.execute(job_id, REQUEST)

        job = await self.store.get(job_id)
        self.assertEqual(job.status, ProcessingStatus.COMPLETED)
        self.assertEqual(job.result.audio_url, RESULT.audio_url)
        self.assertIsNone(job.error)
        self.assertAlmostEqual(self.budget.info().monthly_spend, RESULT.cost_breakdown.total)

    async def test_failed_job(self):
        runner = JobRunner(self.store, FakePipeline(error=SynthesisError("Speech synthesis failed: quota")), self.credentials, self.budget)
        job_id = await runner.submit()

        await runner.execute(job_id, REQUEST)

        job = await self.store.get(job_id)
        self.assertEqual(job.status, ProcessingStatus.FAILED)
        self.assertEqual(job.error, "Speech synthesis failed: quota")
        self.assertIsNone(job.result)
        self.assertEqual(job.progress.percentage, 5)
        self.assertEqual(self.budget.info().monthly_spend, 0.0)

    async def test_job_ids_are_unique(self):
        runner = JobRunner(self.store, FakePipeline(result=RESULT), self.credentials)
        ids = {await runner.submit() for _ in range(20)}
        self.assertEqual(len(ids), 20)


if __name__ == "__main__":
    unittest.main()
