import tempfile
import unittest
from unittest.mock import patch

from sqlalchemy import func, select

from ytscraper.core.database import Database
from ytscraper.models.orm import JobState, ScrapeJob, Video
from ytscraper.repository.job_repository import JobRepository
from ytscraper.repository.video_repository import VideoRepository
from ytscraper.testing import FakeExtractor, InMemoryObjectStore, sqlite_url
from ytscraper.worker.pipeline import IngestionPipeline

URL = "https://www.youtube.com/watch?v=abc123"


class StuckDirectory(tempfile.TemporaryDirectory):
    def cleanup(self):
        raise PermissionError("directory is busy")


class TestIngestionPipeline(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(sqlite_url(self._tmp.name))
        await self.db.create_database()
        self.jobs = JobRepository(self.db.session_factory)
        self.videos = VideoRepository(self.db.session_factory)
        self.extractor = FakeExtractor()
        self.storage = InMemoryObjectStore()

    async def asyncTearDown(self):
        await self.db.dispose()
        self._tmp.cleanup()

    def pipeline(self) -> IngestionPipeline:
        return IngestionPipeline(self.jobs, self.videos, self.extractor, self.storage)

    async def claimed(self, url=URL, **fields) -> ScrapeJob:
        job = await self.jobs.insert(ScrapeJob(youtube_url=url, **fields))
        return await self.jobs.claim_next("test", job_id=job.id)

    async def video_count(self) -> int:
        async with self.db.session() as session:
            return await session.scalar(select(func.count()).select_from(Video))

    async def test_success_uploads_and_catalogs(self):
        job = await self.claimed(user_id=9)

        self.assertTrue(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.COMPLETED)
        self.assertRegex(stored.s3_key, r"^videos/[0-9a-f-]{36}\.mp4$")
        self.assertRegex(stored.thumbnail_key, r"^thumbnails/[0-9a-f-]{36}\.jpg$")
        self.assertTrue(await self.storage.exists(stored.s3_key))
        self.assertTrue(await self.storage.exists(stored.thumbnail_key))
        self.assertEqual(self.storage.objects[stored.thumbnail_key][1], "image/jpeg")

        video = await self.videos.get_video(stored.video_id)
        self.assertEqual(video.s3_key, stored.s3_key)
        self.assertEqual(video.thumbnail_url, stored.thumbnail_key)
        self.assertEqual(video.title, "Video abc123")
        self.assertEqual(stored.result_title, "Video abc123")
        self.assertEqual(video.description, "Description of abc123")
        self.assertEqual(video.uploaded_by, 9)
        self.assertEqual(video.tags, [])

    async def test_caller_metadata_wins(self):
        job = await self.claimed(title="My title", description="Mine", tags=["x", "y"])

        await self.pipeline().run(job)

        video = await self.videos.get_video((await self.jobs.get(job.id)).video_id)
        self.assertEqual(video.title, "My title")
        self.assertEqual(video.description, "Mine")
        self.assertEqual(video.tags, ["x", "y"])

    async def test_missing_thumbnail_still_completes(self):
        self.extractor.thumbnail = False
        job = await self.claimed()

        self.assertTrue(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.COMPLETED)
        self.assertIsNone(stored.thumbnail_key)

    async def test_extraction_failure_marks_failed(self):
        self.extractor.failures[URL] = "yt-dlp exited with code 1: ERROR: Private video"
        job = await self.claimed()

        self.assertFalse(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.FAILED)
        self.assertIn("Private video", stored.error)
        self.assertIsNone(stored.video_id)
        self.assertEqual(self.storage.objects, {})
        self.assertEqual(await self.video_count(), 0)

    async def test_upload_failure_discards_objects(self):
        self.storage.fail_on_prefix = "thumbnails/"
        job = await self.claimed()

        self.assertFalse(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.FAILED)
        self.assertIn("thumbnails/", stored.error)
        self.assertEqual(self.storage.objects, {})
        self.assertEqual(len(self.storage.deleted), 1)
        self.assertTrue(self.storage.deleted[0].startswith("videos/"))
        self.assertIsNone(await self.videos.get_video_by_key(self.storage.deleted[0]))
        self.assertEqual(await self.video_count(), 0)

    async def test_catalog_failure_discards_objects(self):
        # an existing catalog row already owns the key the upload will use
        await self.videos.create_video(title="Existing", s3_key="videos/taken.mp4")
        self.storage.video_key = lambda ext="mp4": "videos/taken.mp4"
        job = await self.claimed()

        self.assertFalse(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.FAILED)
        self.assertIsNone(stored.video_id)
        self.assertEqual(self.storage.objects, {})
        self.assertEqual(len(self.storage.deleted), 2)
        self.assertIn("videos/taken.mp4", self.storage.deleted)
        self.assertEqual(await self.video_count(), 1)

    async def test_duplicate_key_upload_fails(self):
        self.storage.video_key = lambda ext="mp4": "videos/same.mp4"
        first = await self.claimed()
        self.assertTrue(await self.pipeline().run(first))

        second = await self.claimed(url="https://youtu.be/def456")
        self.assertFalse(await self.pipeline().run(second))

        self.assertIn("BlobAlreadyExists", (await self.jobs.get(second.id)).error)
        self.assertIn("videos/same.mp4", self.storage.objects)
        self.assertNotIn("videos/same.mp4", self.storage.deleted)
        completed = await self.jobs.get(first.id)
        self.assertIsNotNone(await self.videos.get_video_by_key(completed.s3_key))

    async def test_unexpected_error_marks_failed(self):
        async def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        self.extractor.download = broken
        job = await self.claimed()

        self.assertFalse(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.FAILED)
        self.assertEqual(stored.error, "Unexpected error: disk full")

    async def test_working_directory_is_removed(self):
        job = await self.claimed()

        await self.pipeline().run(job)

        [workdir] = self.extractor.dest_dirs
        self.assertFalse(workdir.exists())

    async def test_cleanup_error_keeps_completed_outcome(self):
        job = await self.claimed()

        with patch("ytscraper.worker.pipeline.tempfile.TemporaryDirectory", StuckDirectory):
            self.assertTrue(await self.pipeline().run(job))

        stored = await self.jobs.get(job.id)
        self.assertEqual(stored.state, JobState.COMPLETED)
        self.assertIsNotNone(await self.videos.get_video(stored.video_id))


if __name__ == "__main__":
    unittest.main()
