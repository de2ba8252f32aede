import asyncio
import tempfile
import unittest
from unittest.mock import AsyncMock, MagicMock

from ytscraper.core.database import Database
from ytscraper.core.exceptions import PersistenceFailed
from ytscraper.models.orm import JobState, ScrapeJob
from ytscraper.repository.job_repository import JobRepository
from ytscraper.repository.video_repository import VideoRepository
from ytscraper.testing import FakeExtractor, InMemoryObjectStore, sqlite_url
from ytscraper.worker.pipeline import IngestionPipeline
from ytscraper.worker.pool import WorkerPool


def claims(*results):
    pending = list(results)

    async def claim_next(worker_id, job_id=None):
        result = pending.pop(0) if pending else None
        if isinstance(result, Exception):
            raise result
        return result

    return AsyncMock(side_effect=claim_next)


async def wait_for_terminal(jobs: JobRepository, job_ids, timeout=10.0):
    async def poll():
        while True:
            states = [(await jobs.get(job_id)).state for job_id in job_ids]
            if all(state.is_terminal for state in states):
                return states
            await asyncio.sleep(0.02)

    return await asyncio.wait_for(poll(), timeout)


class TestWorkerPool(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(sqlite_url(self._tmp.name))
        await self.db.create_database()
        self.jobs = JobRepository(self.db.session_factory)
        self.extractor = FakeExtractor(delay=0.05)
        self.storage = InMemoryObjectStore()
        self.pipeline = IngestionPipeline(
            self.jobs, VideoRepository(self.db.session_factory), self.extractor, self.storage
        )

    async def asyncTearDown(self):
        await self.db.dispose()
        self._tmp.cleanup()

    async def test_rejects_empty_pool(self):
        with self.assertRaises(ValueError):
            WorkerPool(self.jobs, self.pipeline, size=0)

    async def test_drains_queue_once_per_job(self):
        urls = [f"https://www.youtube.com/watch?v=vid{i}" for i in range(6)]
        self.extractor.failures[urls[3]] = "ERROR: Video unavailable"
        job_ids = [(await self.jobs.insert(ScrapeJob(youtube_url=url))).id for url in urls]

        pool = WorkerPool(self.jobs, self.pipeline, size=3, poll_interval=0.02, error_backoff=0.02, name="t")
        pool.start()
        try:
            states = await wait_for_terminal(self.jobs, job_ids)
        finally:
            await pool.stop()

        self.assertEqual(states.count(JobState.COMPLETED), 5)
        self.assertEqual(states[3], JobState.FAILED)
        self.assertCountEqual(self.extractor.downloads, urls)
        self.assertEqual(pool.processed, 6)
        self.assertFalse(pool.running)

        workers = {(await self.jobs.get(job_id)).worker_id for job_id in job_ids}
        self.assertTrue(workers <= {"t/w0", "t/w1", "t/w2"})

    async def test_picks_up_jobs_submitted_later(self):
        pool = WorkerPool(self.jobs, self.pipeline, size=1, poll_interval=0.02)
        pool.start()
        try:
            await asyncio.sleep(0.1)
            job = await self.jobs.insert(ScrapeJob(youtube_url="https://youtu.be/late1"))
            [state] = await wait_for_terminal(self.jobs, [job.id])
        finally:
            await pool.stop()

        self.assertEqual(state, JobState.COMPLETED)

    async def test_survives_claim_errors(self):
        repo = MagicMock()
        repo.claim_next = claims(PersistenceFailed("connection refused"))
        pipeline = MagicMock()
        pipeline.run = AsyncMock()

        pool = WorkerPool(repo, pipeline, size=1, poll_interval=0.01, error_backoff=0.01)
        pool.start()
        while repo.claim_next.await_count < 3:
            await asyncio.sleep(0.01)
        self.assertTrue(pool.running)
        await pool.stop()

        pipeline.run.assert_not_awaited()

    async def test_survives_pipeline_errors(self):
        job = ScrapeJob(id="j1", youtube_url="https://youtu.be/x", status=JobState.PROCESSING.value)
        repo = MagicMock()
        repo.claim_next = claims(job)
        pipeline = MagicMock()
        pipeline.run = AsyncMock(side_effect=PersistenceFailed("database went away"))

        pool = WorkerPool(repo, pipeline, size=1, poll_interval=0.01)
        pool.start()
        while repo.claim_next.await_count < 3:
            await asyncio.sleep(0.01)
        self.assertTrue(pool.running)
        await pool.stop()

        self.assertEqual(pool.processed, 1)

    async def test_stop_waits_for_in_flight_job(self):
        self.extractor.delay = 0.3
        job = await self.jobs.insert(ScrapeJob(youtube_url="https://youtu.be/slow1"))

        pool = WorkerPool(self.jobs, self.pipeline, size=1, poll_interval=0.02)
        pool.start()
        while not self.extractor.downloads:
            await asyncio.sleep(0.01)
        await pool.stop()

        self.assertEqual((await self.jobs.get(job.id)).state, JobState.COMPLETED)


if __name__ == "__main__":
    unittest.main()
